"""Pydantic schemas for persisted favorite entries."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from userdex.schemas.user import UserRecord


class FavoriteEntry(BaseModel):
    """Denormalized favorite row, enough to render a favorites view offline."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    identifier: str = Field(..., min_length=1, description="Same key space as UserRecord.identifier")
    full_name: str = Field(..., description="Display name at the time the record was favorited")
    email: str = ""
    country: str = ""
    picture_url: str = Field("", description="Primary (large) image URL")
    added_at: datetime | None = Field(
        None, description="Set by the store when the entry is persisted."
    )

    @classmethod
    def from_record(cls, record: UserRecord) -> FavoriteEntry:
        return cls(
            identifier=record.identifier,
            full_name=record.full_name,
            email=record.email,
            country=record.location.country,
            picture_url=record.picture.large,
        )


class FavoriteToggleResponse(BaseModel):
    identifier: str
    is_favorite: bool


__all__ = ["FavoriteEntry", "FavoriteToggleResponse"]
