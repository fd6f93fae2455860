"""Broadcast feed of full design-list snapshots.

Every subscriber owns an unbounded FIFO buffer. publish() appends the same
snapshot to every buffer without waiting, so delivery is asynchronous to the
mutation that produced it while each subscriber still observes snapshots in
publish order. Snapshots are whole lists, never deltas.

publish() may be called from any thread. A subscriber waiting on its event
loop is woken through call_soon_threadsafe when the publisher runs elsewhere.
"""

import asyncio
import inspect
from collections import deque
from typing import Any, Awaitable, Callable, Optional, Union

import structlog

from restyle.models.design import DesignRecord

logger = structlog.get_logger(__name__)

Snapshot = list[DesignRecord]
SnapshotCallback = Callable[[Snapshot], Union[None, Awaitable[None]]]

_CLOSED = object()


class Subscription:
    """One subscriber's ordered stream of snapshots.

    Snapshots may be pushed from any thread; the consumer awaits them on its
    own event loop.

    Usage:
        subscription = store.subscribe()
        async for designs in subscription:
            render(designs)
    """

    def __init__(self, feed: "ChangeFeed"):
        self._feed = feed
        self._buffer: deque[Any] = deque()
        self._ready = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.closed = False

    def _push(self, snapshot: Snapshot) -> None:
        if self.closed:
            return
        self._buffer.append(snapshot)
        self._wake()

    def _wake(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._ready.set()
            return
        try:
            loop.call_soon_threadsafe(self._ready.set)
        except RuntimeError:
            # Consumer loop closed between the check and the call
            logger.debug("feed.wake_skipped", reason="loop_closed")

    def pending(self) -> int:
        """Number of snapshots delivered but not yet consumed."""
        return sum(1 for item in list(self._buffer) if item is not _CLOSED)

    async def get(self) -> Snapshot:
        """Wait for the next snapshot.

        Raises:
            StopAsyncIteration: If the subscription was closed and drained
        """
        self._loop = asyncio.get_running_loop()
        while not self._buffer:
            self._ready.clear()
            await self._ready.wait()
        if self._buffer[0] is _CLOSED:
            raise StopAsyncIteration
        return self._buffer.popleft()

    def drain(self) -> list[Snapshot]:
        """Take every queued snapshot without waiting, oldest first."""
        snapshots = []
        while self._buffer and self._buffer[0] is not _CLOSED:
            snapshots.append(self._buffer.popleft())
        return snapshots

    def latest(self) -> Optional[Snapshot]:
        """Drain queued snapshots without waiting and return the newest one."""
        snapshots = self.drain()
        return snapshots[-1] if snapshots else None

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._feed._remove(self)
        self._buffer.append(_CLOSED)
        self._wake()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Snapshot:
        return await self.get()


class ChangeFeed:
    """Publish/subscribe channel carrying design-list snapshots."""

    def __init__(self) -> None:
        self._subscribers: list[Subscription] = []
        self._delivery_tasks: set[asyncio.Task] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, initial: Optional[Snapshot] = None) -> Subscription:
        """Register a subscriber, optionally seeding its queue with a first snapshot."""
        subscription = Subscription(self)
        if initial is not None:
            subscription._push(initial)
        self._subscribers.append(subscription)
        logger.debug("feed.subscribed", subscribers=len(self._subscribers))
        return subscription

    def subscribe_callback(
        self, callback: SnapshotCallback, initial: Optional[Snapshot] = None
    ) -> Subscription:
        """Deliver snapshots to a callback from a dedicated task.

        The callback may be a plain function or a coroutine function. It is
        invoked once per snapshot, in order. A callback that raises is logged
        and keeps receiving later snapshots.

        Must be called with a running event loop.
        """
        subscription = self.subscribe(initial)
        task = asyncio.get_running_loop().create_task(self._deliver(subscription, callback))
        self._delivery_tasks.add(task)
        task.add_done_callback(self._delivery_tasks.discard)
        return subscription

    def publish(self, snapshot: Snapshot) -> None:
        for subscription in list(self._subscribers):
            subscription._push(snapshot)
        logger.debug(
            "feed.published", designs=len(snapshot), subscribers=len(self._subscribers)
        )

    def close(self) -> None:
        """Close every subscription; callback delivery tasks exit once drained."""
        for subscription in list(self._subscribers):
            subscription.close()

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    async def _deliver(self, subscription: Subscription, callback: SnapshotCallback) -> None:
        async for snapshot in subscription:
            try:
                result = callback(snapshot)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "feed.callback_failed",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    exc_info=True,
                )
