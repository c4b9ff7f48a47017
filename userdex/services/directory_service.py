"""Consumer-facing surface of a directory session.

:class:`DirectoryService` is what a UI, the HTTP API, or the CLI drives.  It
routes paging and search to the state machine, favorites to the toggle
coordinator, and list-to-detail handoff to the detail cache, without any of
those collaborators knowing about each other.
"""

from __future__ import annotations

from contextlib import aclosing

from userdex.clients.randomuser import RemoteDirectorySource
from userdex.schemas.directory import UserDetailResponse, ViewState
from userdex.schemas.favorites import FavoriteEntry
from userdex.schemas.user import UserRecord
from userdex.services.detail_cache import DetailCache
from userdex.services.directory_state import DirectoryStateMachine
from userdex.services.errors import ToggleError
from userdex.services.favorites import FavoriteStore, FavoriteToggleCoordinator
from userdex.services.page_fetcher import PageFetcher
from userdex.settings import DEFAULT_PAGE_SIZE, DEFAULT_RESUBSCRIBE_DELAY_SECONDS
from userdex.utils.broadcast import Subscription


class DirectoryService:
    def __init__(
        self,
        *,
        machine: DirectoryStateMachine,
        toggler: FavoriteToggleCoordinator,
        store: FavoriteStore,
        detail_cache: DetailCache,
    ) -> None:
        self._machine = machine
        self._toggler = toggler
        self._store = store
        self._detail_cache = detail_cache

    @classmethod
    def create(
        cls,
        source: RemoteDirectorySource,
        store: FavoriteStore,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        resubscribe_delay: float = DEFAULT_RESUBSCRIBE_DELAY_SECONDS,
        detail_cache: DetailCache | None = None,
    ) -> DirectoryService:
        """Wire a fresh session; must run inside the event loop that will drive it."""

        machine = DirectoryStateMachine(
            PageFetcher(source),
            store,
            page_size=page_size,
            resubscribe_delay=resubscribe_delay,
        )
        return cls(
            machine=machine,
            toggler=FavoriteToggleCoordinator(store),
            store=store,
            detail_cache=detail_cache or DetailCache(),
        )

    # -- View state ----------------------------------------------------------

    @property
    def state(self) -> ViewState:
        return self._machine.state

    @property
    def machine(self) -> DirectoryStateMachine:
        return self._machine

    def observe_view_state(self) -> Subscription[ViewState]:
        return self._machine.observe()

    async def refresh(self, nationality: str | None = None) -> bool:
        return await self._machine.refresh(nationality)

    async def search(self, query: str) -> bool:
        return await self._machine.search(query)

    async def reload(self) -> bool:
        return await self._machine.reload()

    async def next_page(self) -> bool:
        return await self._machine.next_page()

    async def previous_page(self) -> bool:
        return await self._machine.previous_page()

    def clear_error(self) -> None:
        self._machine.clear_error()

    # -- Favorites -----------------------------------------------------------

    async def toggle_favorite(self, record: UserRecord) -> bool:
        """Toggle ``record`` and return its new membership.

        The heart shown in the list follows from the store observation, not
        from this return value.  A failure is written into the view-state
        error before :class:`ToggleError` propagates.
        """

        try:
            is_favorite = await self._toggler.toggle(record)
        except ToggleError as exc:
            self._machine.report_error(str(exc))
            raise
        self._machine.clear_error()
        return is_favorite

    async def list_favorites(self) -> list[FavoriteEntry]:
        async with aclosing(self._store.observe_all()) as snapshots:
            async for entries in snapshots:
                return list(entries)
        return []

    # -- Detail handoff ------------------------------------------------------

    def cache_detail(self, record: UserRecord) -> None:
        self._detail_cache.put(record.identifier, record)

    def get_cached_detail(self, identifier: str) -> UserRecord | None:
        return self._detail_cache.get(identifier)

    def record_for(self, identifier: str) -> UserRecord | None:
        """Find a record on the displayed page, falling back to the detail cache."""

        for user in self.state.users:
            if user.identifier == identifier:
                return user
        return self._detail_cache.get(identifier)

    async def get_detail(self, identifier: str) -> UserDetailResponse | None:
        """Return the cached record with its favorite flag read from the store."""

        record = self._detail_cache.get(identifier)
        if record is None:
            return None
        is_favorite = await self._store.exists_by_key(identifier)
        return UserDetailResponse(user=record, is_favorite=is_favorite)

    async def aclose(self) -> None:
        await self._machine.aclose()

    async def __aenter__(self) -> DirectoryService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
