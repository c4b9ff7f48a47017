"""Tests for the directory state machine: transitions, paging, search and teardown."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import aclosing

import pytest
from sqlalchemy.exc import OperationalError

from tests.userdex.support import FakeDirectorySource, make_user, wait_until
from userdex.schemas.directory import DirectoryStatus, PageRequest, ViewState
from userdex.schemas.favorites import FavoriteEntry
from userdex.services.directory_state import (
    DirectoryStateMachine,
    ErrorCleared,
    ErrorReported,
    FavoritesChanged,
    FetchFailed,
    FetchStarted,
    FetchSucceeded,
    transition,
)
from userdex.services.favorites import SqlFavoriteStore
from userdex.services.page_fetcher import PageFetcher


def _request(page: int = 1, nationality: str | None = None) -> PageRequest:
    return PageRequest(page=page, page_size=10, nationality=nationality)


def _loaded_state(count: int = 10, page: int = 1) -> ViewState:
    users = tuple(make_user(f"u-{index}") for index in range(count))
    return transition(ViewState(), FetchSucceeded(_request(page), users))


# ---------------------------------------------------------------------------
# Pure transitions
# ---------------------------------------------------------------------------
def test_fetch_started_with_reset_records_query_and_clears_error() -> None:
    state = ViewState(error="boom", query="FR")

    started = transition(state, FetchStarted(_request(nationality=None), reset=True))

    assert started.status is DirectoryStatus.LOADING
    assert started.is_loading is True
    assert started.error is None
    assert started.query == ""


def test_fetch_started_without_reset_keeps_query() -> None:
    state = ViewState(query="FR")

    started = transition(state, FetchStarted(_request(page=2, nationality="FR")))

    assert started.query == "FR"
    assert started.page == 1


def test_fetch_succeeded_derives_paging_flags() -> None:
    full = _loaded_state(count=10, page=1)
    assert full.has_next_page is True
    assert full.has_previous_page is False

    partial = _loaded_state(count=4, page=2)
    assert partial.page == 2
    assert partial.has_next_page is False
    assert partial.has_previous_page is True
    assert partial.status is DirectoryStatus.LOADED


def test_fetch_failed_retains_displayed_page() -> None:
    loaded = _loaded_state(count=10)
    loading = transition(loaded, FetchStarted(_request(page=2)))

    failed = transition(loading, FetchFailed(_request(page=2), "HTTP 503"))

    assert failed.status is DirectoryStatus.FAILED
    assert failed.is_loading is False
    assert failed.error == "HTTP 503"
    assert failed.users == loaded.users
    assert failed.page == 1
    assert failed.has_next_page is True


def test_failed_reset_moves_position_to_first_page() -> None:
    third = _loaded_state(count=10, page=3)
    loading = transition(third, FetchStarted(_request(nationality="FR"), reset=True))

    failed = transition(loading, FetchFailed(_request(nationality="FR"), "HTTP 503", reset=True))

    assert failed.query == "FR"
    assert failed.page == 1
    assert failed.has_previous_page is False
    assert failed.users == third.users


def test_favorites_changed_only_replaces_identifier_set() -> None:
    loaded = _loaded_state(count=3)

    merged = transition(loaded, FavoritesChanged(frozenset({"u-1"})))

    assert merged.users is loaded.users
    assert merged.is_favorite("u-1")
    assert not merged.is_favorite("u-0")


def test_error_reported_and_cleared() -> None:
    reported = transition(ViewState(), ErrorReported("store offline"))
    assert reported.error == "store offline"
    assert transition(reported, ErrorCleared()).error is None


def test_transition_rejects_unknown_event() -> None:
    with pytest.raises(TypeError):
        transition(ViewState(), object())  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------
def _machine(source: FakeDirectorySource, store: SqlFavoriteStore) -> DirectoryStateMachine:
    return DirectoryStateMachine(
        PageFetcher(source), store, page_size=10, resubscribe_delay=0.01
    )


@pytest.mark.asyncio
async def test_paging_scenarios(store: SqlFavoriteStore) -> None:
    """Full first page, short second page, then back to the first page."""
    source = FakeDirectorySource(totals={None: 14})
    async with _machine(source, store) as machine:
        assert await machine.refresh() is True
        first = machine.state
        assert first.page == 1
        assert len(first.users) == 10
        assert first.has_next_page is True
        assert first.has_previous_page is False

        assert await machine.next_page() is True
        second = machine.state
        assert second.page == 2
        assert len(second.users) == 4
        assert second.has_next_page is False
        assert second.has_previous_page is True
        assert not {u.identifier for u in first.users} & {u.identifier for u in second.users}

        assert await machine.next_page() is False
        assert machine.state.page == 2

        assert await machine.previous_page() is True
        assert machine.state.page == 1
        assert machine.state.users == first.users
        assert await machine.previous_page() is False


@pytest.mark.asyncio
async def test_failure_on_empty_first_page(
    source: FakeDirectorySource, store: SqlFavoriteStore
) -> None:
    source.fail_next()
    async with _machine(source, store) as machine:
        assert await machine.refresh() is True

        state = machine.state
        assert state.status is DirectoryStatus.FAILED
        assert state.error
        assert state.users == ()
        assert state.is_loading is False


@pytest.mark.asyncio
async def test_failed_next_page_keeps_list_and_can_be_retried(
    source: FakeDirectorySource, store: SqlFavoriteStore
) -> None:
    async with _machine(source, store) as machine:
        await machine.refresh()
        first_page = machine.state.users

        source.fail_next()
        assert await machine.next_page() is True
        assert machine.state.error is not None
        assert machine.state.users == first_page
        assert machine.state.page == 1

        assert await machine.next_page() is True
        assert machine.state.page == 2
        assert machine.state.error is None
        assert [call.page for call in source.calls] == [1, 2, 2]


@pytest.mark.asyncio
async def test_failed_search_pages_under_new_filter(store: SqlFavoriteStore) -> None:
    source = FakeDirectorySource()
    async with _machine(source, store) as machine:
        await machine.refresh()
        await machine.next_page()
        await machine.next_page()
        displayed = machine.state.users
        assert machine.state.page == 3

        source.fail_next()
        assert await machine.search("fr") is True

        assert machine.state.status is DirectoryStatus.FAILED
        assert machine.state.query == "FR"
        assert machine.state.page == 1
        assert machine.state.has_previous_page is False
        assert machine.state.users == displayed

        assert await machine.previous_page() is False
        assert await machine.next_page() is True
        last = source.calls[-1]
        assert (last.page, last.nationality, last.seed) == (2, "FR", "challenge-FR")
        assert machine.state.page == 2
        assert all(user.nat == "FR" for user in machine.state.users)


@pytest.mark.asyncio
async def test_requests_are_dropped_while_fetch_in_flight(
    source: FakeDirectorySource, store: SqlFavoriteStore
) -> None:
    async with _machine(source, store) as machine:
        await machine.refresh()
        gate = source.hold()

        pending = asyncio.create_task(machine.next_page())
        await wait_until(lambda: machine.is_fetching)

        assert machine.state.is_loading is True
        assert await machine.next_page() is False
        assert await machine.refresh("FR") is False
        assert await machine.previous_page() is False

        gate.set()
        assert await pending is True
        assert machine.state.page == 2
        assert [call.page for call in source.calls] == [1, 2]


@pytest.mark.asyncio
async def test_concurrent_next_page_advances_once(
    source: FakeDirectorySource, store: SqlFavoriteStore
) -> None:
    async with _machine(source, store) as machine:
        await machine.refresh()

        results = await asyncio.gather(machine.next_page(), machine.next_page())

        assert sorted(results) == [False, True]
        assert machine.state.page == 2


@pytest.mark.asyncio
async def test_search_normalizes_filter_and_seeds_requests(
    source: FakeDirectorySource, store: SqlFavoriteStore
) -> None:
    async with _machine(source, store) as machine:
        await machine.next_page()
        await machine.search(" fr ")

        assert machine.state.query == "FR"
        assert source.calls[-1].nationality == "FR"
        assert source.calls[-1].seed == "challenge-FR"
        assert source.calls[-1].page == 1

        await machine.next_page()
        await machine.next_page()
        assert machine.state.page == 3
        assert len(machine.state.users) == 3
        assert machine.state.has_next_page is False
        assert all(call.seed == "challenge-FR" for call in source.calls)

        await machine.search("   ")
        assert machine.state.query == ""
        assert machine.state.page == 1
        assert source.calls[-1].nationality is None
        assert source.calls[-1].seed == "challenge"


@pytest.mark.asyncio
async def test_refresh_twice_yields_same_users(
    source: FakeDirectorySource, store: SqlFavoriteStore
) -> None:
    async with _machine(source, store) as machine:
        await machine.refresh("IE")
        first = machine.state.users
        await machine.refresh("IE")
        assert machine.state.users == first


@pytest.mark.asyncio
async def test_exact_multiple_reveals_empty_last_page(
    source: FakeDirectorySource, store: SqlFavoriteStore
) -> None:
    async with _machine(source, store) as machine:
        await machine.refresh("IE")
        assert machine.state.has_next_page is True

        assert await machine.next_page() is True
        assert machine.state.page == 2
        assert machine.state.users == ()
        assert machine.state.has_next_page is False
        assert machine.state.has_previous_page is True
        assert await machine.next_page() is False


@pytest.mark.asyncio
async def test_reload_repeats_last_query(
    source: FakeDirectorySource, store: SqlFavoriteStore
) -> None:
    async with _machine(source, store) as machine:
        await machine.search("fr")
        await machine.next_page()

        assert await machine.reload() is True
        assert machine.state.page == 1
        assert source.calls[-1].nationality == "FR"


@pytest.mark.asyncio
async def test_paging_before_first_load_is_ignored(
    source: FakeDirectorySource, store: SqlFavoriteStore
) -> None:
    async with _machine(source, store) as machine:
        assert await machine.next_page() is False
        assert await machine.previous_page() is False
        assert source.calls == []
        assert machine.state.status is DirectoryStatus.IDLE


@pytest.mark.asyncio
async def test_favorite_changes_merge_without_refetch(
    source: FakeDirectorySource, store: SqlFavoriteStore
) -> None:
    async with _machine(source, store) as machine:
        await machine.refresh()
        users = machine.state.users
        calls_before = len(source.calls)

        await store.upsert(FavoriteEntry.from_record(users[0]))
        await wait_until(lambda: machine.state.is_favorite(users[0].identifier))

        assert machine.state.users is users
        assert len(source.calls) == calls_before

        await store.delete_by_key(users[0].identifier)
        await wait_until(lambda: not machine.state.is_favorite(users[0].identifier))
        assert len(source.calls) == calls_before


@pytest.mark.asyncio
async def test_observe_replays_current_snapshot(
    source: FakeDirectorySource, store: SqlFavoriteStore
) -> None:
    async with _machine(source, store) as machine:
        await machine.refresh()
        subscription = machine.observe()

        snapshot = await asyncio.wait_for(subscription.get(), 1)
        assert snapshot == machine.state
        subscription.close()


@pytest.mark.asyncio
async def test_aclose_stops_subscriptions_and_rejects_requests(
    source: FakeDirectorySource, store: SqlFavoriteStore
) -> None:
    machine = _machine(source, store)
    subscription = machine.observe()
    await wait_until(lambda: store.changes.subscriber_count == 1)

    await machine.aclose()
    await machine.aclose()

    assert machine.closed
    assert store.changes.subscriber_count == 0
    assert await machine.refresh() is False
    received = [state async for state in subscription]
    assert all(isinstance(state, ViewState) for state in received)


@pytest.mark.asyncio
async def test_observe_after_aclose_replays_final_state_and_ends(
    source: FakeDirectorySource, store: SqlFavoriteStore
) -> None:
    machine = _machine(source, store)
    await machine.refresh()
    await machine.aclose()

    late = machine.observe()
    received = await asyncio.wait_for(_drain(late), 1)

    assert received == [machine.state]


async def _drain(subscription) -> list[ViewState]:
    return [state async for state in subscription]


class _FlakyStore:
    """Wraps a real store; the first observation fails like a dropped connection."""

    def __init__(self, inner: SqlFavoriteStore) -> None:
        self._inner = inner
        self.attempts = 0

    async def observe_all(self) -> AsyncIterator[list[FavoriteEntry]]:
        self.attempts += 1
        if self.attempts == 1:
            raise OperationalError("SELECT", {}, Exception("database is locked"))
        async with aclosing(self._inner.observe_all()) as snapshots:
            async for entries in snapshots:
                yield entries

    async def get_by_key(self, identifier: str) -> FavoriteEntry | None:
        return await self._inner.get_by_key(identifier)

    async def upsert(self, entry: FavoriteEntry) -> None:
        await self._inner.upsert(entry)

    async def delete_by_key(self, identifier: str) -> None:
        await self._inner.delete_by_key(identifier)

    async def exists_by_key(self, identifier: str) -> bool:
        return await self._inner.exists_by_key(identifier)


@pytest.mark.asyncio
async def test_favorites_observation_resubscribes_after_failure(
    source: FakeDirectorySource, store: SqlFavoriteStore
) -> None:
    await store.upsert(FavoriteEntry.from_record(make_user("fav-1")))
    flaky = _FlakyStore(store)

    async with DirectoryStateMachine(
        PageFetcher(source), flaky, page_size=10, resubscribe_delay=0.01
    ) as machine:
        await wait_until(lambda: machine.state.is_favorite("fav-1"))

        assert flaky.attempts == 2
        assert machine.state.error is None


@pytest.mark.asyncio
async def test_favorites_recovery_keeps_unrelated_error(
    source: FakeDirectorySource, store: SqlFavoriteStore
) -> None:
    flaky = _FlakyStore(store)

    async with DirectoryStateMachine(
        PageFetcher(source), flaky, page_size=10, resubscribe_delay=0.2
    ) as machine:
        await wait_until(lambda: flaky.attempts == 1)
        await wait_until(lambda: machine.state.error is not None)
        assert "Favorites unavailable" in machine.state.error

        machine.report_error("Detail unavailable")
        await wait_until(lambda: flaky.attempts == 2)
        await wait_until(lambda: store.changes.subscriber_count == 1)
        await asyncio.sleep(0.05)

        assert machine.state.error == "Detail unavailable"
