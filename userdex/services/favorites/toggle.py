"""Read-then-write favorite toggling against the favorites store."""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from userdex.schemas.favorites import FavoriteEntry
from userdex.schemas.user import UserRecord
from userdex.services.errors import ToggleError
from userdex.services.favorites.persistence import FavoriteStore

logger = logging.getLogger(__name__)


class FavoriteToggleCoordinator:
    """Flip the favorite membership of a record.

    Membership is always read from the store, never from a cached view-state,
    so that a stale indicator on screen cannot turn a "remove" into a second
    "add".  The read and the write are not one transaction: two concurrent
    toggles of the same record resolve as last-write-wins, which is acceptable
    for a single user on a single device.  The coordinator does not touch any
    view-state; observers learn about the change from the store's live
    observation.
    """

    def __init__(self, store: FavoriteStore) -> None:
        self._store = store

    async def toggle(self, record: UserRecord) -> bool:
        """Return the new membership state or raise :class:`ToggleError`."""

        identifier = record.identifier
        try:
            is_favorite = await self._store.exists_by_key(identifier)
        except SQLAlchemyError as exc:
            logger.warning("Could not read favorite state of %s: %s", identifier, exc)
            raise ToggleError(
                f"Failed to read favorite state of '{identifier}'", identifier=identifier
            ) from exc

        try:
            if is_favorite:
                await self._store.delete_by_key(identifier)
            else:
                await self._store.upsert(FavoriteEntry.from_record(record))
        except SQLAlchemyError as exc:
            action = "remove" if is_favorite else "add"
            logger.warning("Could not %s favorite %s: %s", action, identifier, exc)
            raise ToggleError(
                f"Failed to {action} favorite '{identifier}'", identifier=identifier
            ) from exc

        logger.info("%s favorite %s", "Removed" if is_favorite else "Added", identifier)
        return not is_favorite
