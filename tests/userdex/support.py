"""Test doubles simulating the remote directory and helpers shared by the suite."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

from userdex.clients.randomuser import RemoteDirectoryError
from userdex.schemas.user import UserRecord


def make_user(
    identifier: str,
    *,
    first: str = "Test",
    last: str = "User",
    nat: str = "US",
    country: str = "United States",
) -> UserRecord:
    """Build a minimal but complete directory record."""

    return UserRecord.model_validate(
        {
            "gender": "female",
            "name": {"title": "Ms", "first": first, "last": last},
            "location": {
                "street": {"number": 12, "name": "Main Street"},
                "city": "Springfield",
                "state": "Oregon",
                "country": country,
                "postcode": 97477,
            },
            "email": f"{identifier}@example.com",
            "login": {"uuid": identifier, "username": f"user-{identifier}"},
            "dob": {"date": "1990-04-02T10:00:00.000Z", "age": 34},
            "phone": "(555) 010-0000",
            "cell": "(555) 010-0001",
            "id": {"name": "SSN", "value": "000-00-0000"},
            "picture": {
                "large": f"https://example.com/{identifier}/large.jpg",
                "medium": f"https://example.com/{identifier}/medium.jpg",
                "thumbnail": f"https://example.com/{identifier}/thumb.jpg",
            },
            "nat": nat,
        }
    )


@dataclass(frozen=True)
class FetchCall:
    results_per_page: int
    page: int
    nationality: str | None
    seed: str | None


class FakeDirectorySource:
    """Deterministic stand-in for :class:`userdex.clients.randomuser.RandomUserClient`.

    Every ``(seed, index)`` pair maps to the same record, so a page is stable
    across repeated requests.  ``totals`` caps how many records exist per
    nationality (``None`` key for the unfiltered directory); missing keys mean
    an effectively endless directory.
    """

    def __init__(self, totals: dict[str | None, int] | None = None) -> None:
        self.totals: dict[str | None, int] = dict(totals or {})
        self.calls: list[FetchCall] = []
        self.failures: list[Exception] = []
        self.gate: asyncio.Event | None = None

    def fail_next(self, exc: Exception | None = None) -> None:
        self.failures.append(exc or RemoteDirectoryError("randomuser.me returned HTTP 503"))

    def hold(self) -> asyncio.Event:
        """Block subsequent fetches until the returned event is set."""

        self.gate = asyncio.Event()
        return self.gate

    async def fetch(
        self,
        *,
        results_per_page: int,
        page: int,
        nationality: str | None = None,
        seed: str | None = None,
    ) -> list[UserRecord]:
        self.calls.append(FetchCall(results_per_page, page, nationality, seed))
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            raise self.failures.pop(0)

        total = self.totals.get(nationality, 10_000)
        start = (page - 1) * results_per_page
        stop = min(start + results_per_page, total)
        prefix = seed or "unseeded"
        return [
            make_user(f"{prefix}-{index}", first=f"User{index}", nat=nationality or "US")
            for index in range(start, stop)
        ]


async def wait_until(predicate: Callable[[], bool], *, timeout: float = 2.0) -> None:
    """Yield to the loop until ``predicate`` holds, failing after ``timeout``."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)
