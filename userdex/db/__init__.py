"""Database engine, sessions and ORM models for the favorites store."""
