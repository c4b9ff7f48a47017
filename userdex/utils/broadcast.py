"""Latest-value broadcast channel used to publish snapshots to observers.

Every subscriber owns a single-slot queue.  Publishing replaces whatever the
subscriber has not consumed yet, so slow observers always wake up to the most
recent snapshot instead of replaying a backlog.  Subscriptions must be closed
explicitly (or used as async context managers) so that the channel does not
keep references to observers that went away.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()
_MISSING = object()


class Subscription(Generic[T]):
    """Async iterator over the values published to a :class:`Broadcast`."""

    def __init__(self, channel: Broadcast[T]) -> None:
        self._channel = channel
        self._slot: asyncio.Queue[object] = asyncio.Queue(maxsize=1)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _offer(self, value: object) -> None:
        if self._slot.full():
            self._slot.get_nowait()
        self._slot.put_nowait(value)

    async def get(self) -> T:
        """Wait for the next value; raises ``StopAsyncIteration`` once closed."""

        if self._closed and self._slot.empty():
            raise StopAsyncIteration
        value = await self._slot.get()
        if value is _CLOSED:
            raise StopAsyncIteration
        return value  # type: ignore[return-value]

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._channel._discard(self)
        self._offer(_CLOSED)

    def __aiter__(self) -> Subscription[T]:
        return self

    async def __anext__(self) -> T:
        return await self.get()

    async def __aenter__(self) -> Subscription[T]:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class Broadcast(Generic[T]):
    """Fan a stream of snapshots out to any number of subscribers."""

    def __init__(self, initial: object = _MISSING) -> None:
        self._value = None if initial is _MISSING else initial
        self._has_value = initial is not _MISSING
        self._subscribers: set[Subscription[T]] = set()
        self._closed = False

    @property
    def value(self) -> T:
        if not self._has_value:
            raise LookupError("Nothing has been published yet")
        return self._value  # type: ignore[return-value]

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, value: T) -> None:
        """Replace the current value and wake every subscriber."""

        self._value = value
        self._has_value = True
        for subscriber in tuple(self._subscribers):
            subscriber._offer(value)

    def subscribe(self, *, replay: bool = True) -> Subscription[T]:
        """Register an observer; with ``replay`` it first receives the current value."""

        subscription: Subscription[T] = Subscription(self)
        if replay and self._has_value:
            subscription._offer(self._value)
        if self._closed:
            # Late observers get the final value, then the end of the stream.
            subscription._closed = True
            return subscription
        self._subscribers.add(subscription)
        return subscription

    def close(self) -> None:
        """Terminate every open subscription and refuse new ones."""

        self._closed = True
        for subscriber in tuple(self._subscribers):
            subscriber.close()
        logger.debug("Broadcast closed")

    def _discard(self, subscription: Subscription[T]) -> None:
        self._subscribers.discard(subscription)
