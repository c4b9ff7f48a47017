"""Seeded page fetching on top of a :class:`RemoteDirectorySource`.

The remote directory shuffles its records unless a seed is supplied.  Deriving
the seed from the nationality filter keeps the ordering of one filtered query
stable, so page 2 of ``US`` is always the same slice and never overlaps page 1,
no matter how often the user pages back and forth.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from userdex.clients.randomuser import RemoteDirectoryError, RemoteDirectorySource
from userdex.schemas.directory import PageRequest
from userdex.schemas.user import UserRecord
from userdex.services.errors import FetchError

logger = logging.getLogger(__name__)

SEED_BASE = "challenge"


def seed_for(nationality: str | None) -> str:
    """Return the deterministic seed used for every page of a filter."""

    if nationality is None or not nationality.strip():
        return SEED_BASE
    return f"{SEED_BASE}-{nationality}"


class PageFetcher:
    def __init__(self, source: RemoteDirectorySource) -> None:
        self._source = source

    async def fetch(
        self, page: int, page_size: int, nationality: str | None = None
    ) -> list[UserRecord]:
        """Return exactly the requested page or raise :class:`FetchError`."""

        nationality = nationality if nationality and nationality.strip() else None
        seed = seed_for(nationality)
        logger.debug(
            "Fetching page %s (size=%s, nat=%s, seed=%s)", page, page_size, nationality, seed
        )

        try:
            users = await self._source.fetch(
                results_per_page=page_size,
                page=page,
                nationality=nationality,
                seed=seed,
            )
        except (RemoteDirectoryError, httpx.HTTPError, ValidationError) as exc:
            logger.warning("Fetching page %s (nat=%s) failed: %s", page, nationality, exc)
            raise FetchError(
                str(exc) or type(exc).__name__, page=page, nationality=nationality
            ) from exc

        return list(users)

    async def fetch_request(self, request: PageRequest) -> list[UserRecord]:
        return await self.fetch(request.page, request.page_size, request.nationality)
