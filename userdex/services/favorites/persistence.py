"""Database-backed favorites store with a live "all favorites" observation."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from userdex.db.connection import get_session
from userdex.db.models import FavoriteUser
from userdex.schemas.favorites import FavoriteEntry
from userdex.utils.broadcast import Broadcast


@runtime_checkable
class FavoriteStore(Protocol):
    """Durable keyed set of favorite entries."""

    def observe_all(self) -> AsyncIterator[list[FavoriteEntry]]:
        ...

    async def get_by_key(self, identifier: str) -> FavoriteEntry | None:
        ...

    async def upsert(self, entry: FavoriteEntry) -> None:
        ...

    async def delete_by_key(self, identifier: str) -> None:
        ...

    async def exists_by_key(self, identifier: str) -> bool:
        ...


class SqlFavoriteStore:
    """Encapsulates the SQLAlchemy operations behind :class:`FavoriteStore`.

    Mutations publish an invalidation on ``changes`` once committed; every
    ``observe_all`` iterator re-reads the table in response.  Stores that share
    one ``changes`` channel observe each other's writes.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        changes: Broadcast[int] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._changes: Broadcast[int] = changes if changes is not None else Broadcast()
        self._version = 0

    @property
    def changes(self) -> Broadcast[int]:
        return self._changes

    async def list_all(self) -> list[FavoriteEntry]:
        """Return every favorite, oldest first."""

        async with self._session_factory() as session:
            result = await session.execute(
                select(FavoriteUser).order_by(FavoriteUser.added_at, FavoriteUser.identifier)
            )
            return [FavoriteEntry.model_validate(row) for row in result.scalars().all()]

    async def observe_all(self) -> AsyncIterator[list[FavoriteEntry]]:
        """Yield the current favorites, then a fresh list after every change.

        The subscription is registered before the first read so that a write
        racing with the initial snapshot still triggers a re-read.
        """

        subscription = self._changes.subscribe(replay=False)
        try:
            yield await self.list_all()
            async for _ in subscription:
                yield await self.list_all()
        finally:
            subscription.close()

    async def get_by_key(self, identifier: str) -> FavoriteEntry | None:
        async with self._session_factory() as session:
            row = await session.get(FavoriteUser, identifier)
            return FavoriteEntry.model_validate(row) if row is not None else None

    async def exists_by_key(self, identifier: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(FavoriteUser.identifier)
                .where(FavoriteUser.identifier == identifier)
                .limit(1)
            )
            return result.scalar_one_or_none() is not None

    async def upsert(self, entry: FavoriteEntry) -> None:
        """Insert ``entry`` or replace the display fields of the existing row."""

        async with get_session(self._session_factory) as session:
            row = await session.get(FavoriteUser, entry.identifier)
            if row is None:
                session.add(
                    FavoriteUser(
                        identifier=entry.identifier,
                        full_name=entry.full_name,
                        email=entry.email,
                        country=entry.country,
                        picture_url=entry.picture_url,
                    )
                )
            else:
                row.full_name = entry.full_name
                row.email = entry.email
                row.country = entry.country
                row.picture_url = entry.picture_url
        self._notify()

    async def delete_by_key(self, identifier: str) -> None:
        async with get_session(self._session_factory) as session:
            await session.execute(
                delete(FavoriteUser).where(FavoriteUser.identifier == identifier)
            )
        self._notify()

    def _notify(self) -> None:
        self._version += 1
        self._changes.publish(self._version)
