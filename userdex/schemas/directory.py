"""View-state and request models for the directory browser."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from userdex.schemas.user import UserRecord


def normalize_query(query: str | None) -> str | None:
    """Return the canonical nationality filter, ``None`` meaning unfiltered."""

    if query is None:
        return None
    cleaned = query.strip().upper()
    return cleaned or None


class DirectoryStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class PageRequest(BaseModel):
    """A single page of a (possibly filtered) directory query."""

    model_config = ConfigDict(frozen=True)

    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    nationality: str | None = None


class ViewState(BaseModel):
    """Snapshot published to every directory observer.

    ``users`` is always the last successfully fetched page.  ``query`` is the
    filter of the most recent request.  After a failed refresh or search,
    ``page`` is 1 of that new filter while ``users`` still holds the previously
    displayed records, so the next paging step continues under the new filter.
    """

    model_config = ConfigDict(frozen=True)

    status: DirectoryStatus = DirectoryStatus.IDLE
    page: int = Field(1, ge=1)
    query: str = ""
    users: tuple[UserRecord, ...] = ()
    favorite_ids: frozenset[str] = frozenset()
    is_loading: bool = False
    error: str | None = None
    has_next_page: bool = False
    has_previous_page: bool = False

    def is_favorite(self, identifier: str) -> bool:
        return identifier in self.favorite_ids


class DirectoryActionResponse(BaseModel):
    accepted: bool = Field(
        ..., description="False when the action was dropped (fetch in flight or boundary reached)."
    )
    state: ViewState


class UserDetailResponse(BaseModel):
    user: UserRecord
    is_favorite: bool


__all__ = [
    "DirectoryActionResponse",
    "DirectoryStatus",
    "PageRequest",
    "UserDetailResponse",
    "ViewState",
    "normalize_query",
]
