"""State machine coordinating directory paging, search, and favorite overlay.

Every change to the published :class:`ViewState` goes through :func:`transition`,
a pure function of the previous snapshot and one event.  The machine owns the
side effects around it: at most one page fetch in flight, and a long-lived
subscription to the favorites store that is started on construction and torn
down by :meth:`DirectoryStateMachine.aclose`.

Invariants maintained here:

* ``users`` is exactly the last successfully fetched page, never an
  accumulation across pages; a failed fetch keeps it untouched.
* ``favorite_ids`` mirrors the favorites store's latest snapshot and is merged
  without ever re-fetching users.
* Requests arriving while a fetch is in flight are dropped, not queued.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass

from userdex.schemas.directory import (
    DirectoryStatus,
    PageRequest,
    ViewState,
    normalize_query,
)
from userdex.schemas.user import UserRecord
from userdex.services.errors import FetchError
from userdex.services.favorites.persistence import FavoriteStore
from userdex.services.page_fetcher import PageFetcher
from userdex.settings import DEFAULT_PAGE_SIZE, DEFAULT_RESUBSCRIBE_DELAY_SECONDS
from userdex.utils.broadcast import Broadcast, Subscription

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class FetchStarted:
    request: PageRequest
    reset: bool = False


@dataclass(frozen=True)
class FetchSucceeded:
    request: PageRequest
    users: tuple[UserRecord, ...]


@dataclass(frozen=True)
class FetchFailed:
    request: PageRequest
    message: str
    reset: bool = False


@dataclass(frozen=True)
class FavoritesChanged:
    identifiers: frozenset[str]


@dataclass(frozen=True)
class ErrorReported:
    message: str


@dataclass(frozen=True)
class ErrorCleared:
    pass


DirectoryEvent = (
    FetchStarted | FetchSucceeded | FetchFailed | FavoritesChanged | ErrorReported | ErrorCleared
)


def transition(state: ViewState, event: DirectoryEvent) -> ViewState:
    """Return the snapshot that follows ``state`` once ``event`` happened."""

    if isinstance(event, FetchStarted):
        update: dict[str, object] = {
            "status": DirectoryStatus.LOADING,
            "is_loading": True,
            "error": None,
        }
        if event.reset:
            update["query"] = event.request.nationality or ""
        return state.model_copy(update=update)

    if isinstance(event, FetchSucceeded):
        # The remote source exposes no total count: a full page is the only
        # hint that another page may exist.
        return state.model_copy(
            update={
                "status": DirectoryStatus.LOADED,
                "page": event.request.page,
                "users": event.users,
                "is_loading": False,
                "error": None,
                "has_next_page": len(event.users) == event.request.page_size,
                "has_previous_page": event.request.page > 1,
            }
        )

    if isinstance(event, FetchFailed):
        update = {
            "status": DirectoryStatus.FAILED,
            "is_loading": False,
            "error": event.message,
        }
        if event.reset:
            # A failed refresh still moves the position to page 1 of the new
            # filter; only the displayed users are kept.
            update["page"] = 1
            update["has_previous_page"] = False
        return state.model_copy(update=update)

    if isinstance(event, FavoritesChanged):
        return state.model_copy(update={"favorite_ids": event.identifiers})

    if isinstance(event, ErrorReported):
        return state.model_copy(update={"error": event.message})

    if isinstance(event, ErrorCleared):
        return state.model_copy(update={"error": None})

    raise TypeError(f"Unsupported directory event: {event!r}")


class DirectoryStateMachine:
    """One directory browsing session.

    Must be constructed inside a running event loop: the favorites
    subscription starts immediately.  Use it as an async context manager, or
    call :meth:`aclose`, to stop the subscription and any fetch in flight.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        store: FavoriteStore,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        resubscribe_delay: float = DEFAULT_RESUBSCRIBE_DELAY_SECONDS,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be a positive integer")
        self._fetcher = fetcher
        self._store = store
        self._page_size = page_size
        self._resubscribe_delay = resubscribe_delay
        self._states: Broadcast[ViewState] = Broadcast(ViewState())
        self._loaded: PageRequest | None = None
        self._last_page_reached = False
        self._fetch_task: asyncio.Task[None] | None = None
        self._closed = False
        self._favorites_task = asyncio.get_running_loop().create_task(
            self._observe_favorites(), name="userdex-favorites-observer"
        )

    # -- Observation ---------------------------------------------------------

    @property
    def state(self) -> ViewState:
        return self._states.value

    @property
    def is_fetching(self) -> bool:
        return self._fetch_task is not None and not self._fetch_task.done()

    @property
    def closed(self) -> bool:
        return self._closed

    def observe(self) -> Subscription[ViewState]:
        """Subscribe to the current snapshot and every later one."""

        return self._states.subscribe()

    # -- Paging and search ---------------------------------------------------

    async def refresh(self, nationality: str | None = None) -> bool:
        """Start over at page 1 for ``nationality`` (blank means unfiltered)."""

        if not self._accepts_requests("refresh"):
            return False
        self._last_page_reached = False
        request = PageRequest(
            page=1, page_size=self._page_size, nationality=normalize_query(nationality)
        )
        await self._load(request, reset=True)
        return True

    async def search(self, query: str) -> bool:
        """Filter by nationality code, always discarding the current position."""

        return await self.refresh(query)

    async def reload(self) -> bool:
        """Refresh with the query that was requested last."""

        return await self.refresh(self.state.query)

    async def next_page(self) -> bool:
        if not self._accepts_requests("next_page"):
            return False
        loaded = self._loaded
        if loaded is None or not self.state.has_next_page or self._last_page_reached:
            logger.debug("next_page ignored: no further page is known")
            return False
        await self._load(loaded.model_copy(update={"page": loaded.page + 1}), reset=False)
        return True

    async def previous_page(self) -> bool:
        if not self._accepts_requests("previous_page"):
            return False
        loaded = self._loaded
        if loaded is None or loaded.page <= 1:
            logger.debug("previous_page ignored: already on the first page")
            return False
        await self._load(loaded.model_copy(update={"page": loaded.page - 1}), reset=False)
        return True

    # -- Errors --------------------------------------------------------------

    def report_error(self, message: str) -> None:
        if not self._closed:
            self._apply(ErrorReported(message))

    def clear_error(self) -> None:
        if not self._closed and self.state.error is not None:
            self._apply(ErrorCleared())

    # -- Teardown ------------------------------------------------------------

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        pending = [
            task
            for task in (self._favorites_task, self._fetch_task)
            if task is not None and not task.done()
        ]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._states.close()
        logger.info("Directory session closed")

    async def __aenter__(self) -> DirectoryStateMachine:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # -- Internals -----------------------------------------------------------

    def _apply(self, event: DirectoryEvent) -> ViewState:
        state = transition(self._states.value, event)
        self._states.publish(state)
        return state

    def _accepts_requests(self, operation: str) -> bool:
        if self._closed:
            logger.debug("%s ignored: session is closed", operation)
            return False
        if self.is_fetching:
            logger.debug("%s dropped: a fetch is already in flight", operation)
            return False
        return True

    async def _load(self, request: PageRequest, *, reset: bool) -> None:
        # Marking the state and creating the task happen without yielding to
        # the loop, so a concurrent caller always sees the fetch in flight.
        self._apply(FetchStarted(request, reset=reset))
        self._fetch_task = asyncio.create_task(
            self._run_fetch(request, reset=reset), name=f"userdex-fetch-page-{request.page}"
        )
        # A cancelled caller must not abandon the state in "loading".
        await asyncio.shield(self._fetch_task)

    async def _run_fetch(self, request: PageRequest, *, reset: bool = False) -> None:
        try:
            users = await self._fetcher.fetch_request(request)
        except FetchError as exc:
            self._fail(request, str(exc), reset=reset)
            return
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Unexpected failure while fetching page %s", request.page)
            self._fail(request, f"Unexpected error: {type(exc).__name__}", reset=reset)
            raise

        if self._closed:
            return
        self._loaded = request
        self._last_page_reached = len(users) < request.page_size
        self._apply(FetchSucceeded(request, tuple(users)))

    def _fail(self, request: PageRequest, message: str, *, reset: bool) -> None:
        if self._closed:
            return
        if reset:
            # Paging continues from page 1 of the filter that was asked for.
            self._loaded = request
            self._last_page_reached = False
        self._apply(FetchFailed(request, message, reset=reset))

    async def _observe_favorites(self) -> None:
        failure: str | None = None
        while True:
            try:
                async with aclosing(self._store.observe_all()) as snapshots:
                    async for entries in snapshots:
                        self._apply(
                            FavoritesChanged(frozenset(entry.identifier for entry in entries))
                        )
                        if failure is not None:
                            if self.state.error == failure:
                                self._apply(ErrorCleared())
                            failure = None
                logger.info("Favorites observation completed")
                return
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception(
                    "Favorites observation failed; resubscribing in %.1fs",
                    self._resubscribe_delay,
                )
                failure = f"Favorites unavailable: {exc}"
                self._apply(ErrorReported(failure))
                await asyncio.sleep(self._resubscribe_delay)
