"""Exceptions raised by the directory services.

None of these are fatal: every failure leaves the owning component in a state
where the same operation can simply be issued again.
"""

from __future__ import annotations


class DirectoryError(Exception):
    """Base class for recoverable directory failures."""


class FetchError(DirectoryError):
    """A page could not be fetched or decoded; the cause is chained."""

    def __init__(self, message: str, *, page: int, nationality: str | None) -> None:
        super().__init__(message)
        self.page = page
        self.nationality = nationality


class RecordNotFoundError(DirectoryError):
    """No record with ``identifier`` is on the displayed page or in the detail cache."""

    def __init__(self, message: str, *, identifier: str) -> None:
        super().__init__(message)
        self.identifier = identifier


class ToggleError(DirectoryError):
    """Adding or removing a favorite failed; membership must be assumed unchanged."""

    def __init__(self, message: str, *, identifier: str) -> None:
        super().__init__(message)
        self.identifier = identifier


__all__ = ["DirectoryError", "FetchError", "RecordNotFoundError", "ToggleError"]
