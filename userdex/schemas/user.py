"""Pydantic models describing remote directory records.

The shapes mirror the randomuser.me payload.  Unknown keys are ignored so that
the remote service can grow new fields without breaking decoding, and every
model is frozen: a record fetched once is shared between the displayed page and
the detail cache and must never be mutated in place.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class Name(_Record):
    title: str = ""
    first: str
    last: str

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.title, self.first, self.last) if part)


class Street(_Record):
    number: int | None = None
    name: str = ""


class Coordinates(_Record):
    latitude: str | None = None
    longitude: str | None = None


class Timezone(_Record):
    offset: str = ""
    description: str = ""


class Location(_Record):
    street: Street = Field(default_factory=Street)
    city: str = ""
    state: str = ""
    country: str = ""
    postcode: str = ""
    coordinates: Coordinates = Field(default_factory=Coordinates)
    timezone: Timezone = Field(default_factory=Timezone)

    @field_validator("postcode", mode="before")
    @classmethod
    def _stringify_postcode(cls, value: object) -> str:
        # The remote source emits numeric postcodes for some nationalities.
        if value is None:
            return ""
        return str(value)

    @property
    def full_address(self) -> str:
        street = " ".join(
            str(part) for part in (self.street.number, self.street.name) if part
        )
        return ", ".join(part for part in (street, self.city, self.state, self.country) if part)


class Login(_Record):
    uuid: str
    username: str = ""


class DatedAge(_Record):
    date: datetime | None = None
    age: int | None = None


class NationalId(_Record):
    name: str | None = None
    value: str | None = None


class Picture(_Record):
    large: str = ""
    medium: str = ""
    thumbnail: str = ""


class UserRecord(_Record):
    """A single directory entry as returned by the remote source."""

    gender: str = ""
    name: Name
    location: Location = Field(default_factory=Location)
    email: str = ""
    login: Login
    dob: DatedAge = Field(default_factory=DatedAge)
    registered: DatedAge = Field(default_factory=DatedAge)
    phone: str = ""
    cell: str = ""
    national_id: NationalId | None = Field(default=None, alias="id")
    picture: Picture = Field(default_factory=Picture)
    nat: str = ""

    @property
    def identifier(self) -> str:
        """Globally unique key, stable across pages and filters."""

        return self.login.uuid

    @property
    def full_name(self) -> str:
        return self.name.full_name


class ResponseInfo(_Record):
    seed: str | None = None
    results: int | None = None
    page: int | None = None
    version: str | None = None


class RandomUserResponse(_Record):
    """Envelope returned by the remote directory for a single page."""

    results: list[UserRecord]
    info: ResponseInfo = Field(default_factory=ResponseInfo)


__all__ = [
    "Coordinates",
    "DatedAge",
    "Location",
    "Login",
    "Name",
    "NationalId",
    "Picture",
    "RandomUserResponse",
    "ResponseInfo",
    "Street",
    "Timezone",
    "UserRecord",
]
