"""Searchable, paginated user directory with locally persisted favorites."""

__version__ = "0.1.0"
