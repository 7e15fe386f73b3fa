"""Broadcast hub — fans change messages out to connected subscribers.

Producers (watcher threads) publish serialized messages onto an unbounded
intake queue without blocking. A single dispatcher task drains the intake and
tries a non-blocking enqueue onto every subscriber's bounded queue.

Delivery is best-effort. A subscriber whose queue is full is dropped on the
spot: removed from the registry and its connection torn down. Dropping a
slow subscriber is the backpressure policy, not an error, and it never
delays delivery to the others.

Thread Safety:
    The registry is guarded by a ``threading.Lock``. The dispatcher holds it
    while enqueueing a message (no I/O), so a subscriber being removed never
    receives a message concurrently. Drop callbacks run after the lock is
    released.

"""

from __future__ import annotations

import asyncio
import itertools
import sys
import threading
from typing import TYPE_CHECKING

from difftail._errors import HubError
from difftail.config import SUBSCRIBER_QUEUE_SIZE

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from difftail._types import ClientID
    from difftail.observability.collector import Collector

_client_ids = itertools.count(1)


class Subscriber:
    """One connected consumer and its bounded outbound queue.

    Attributes:
        client_id: Unique identifier for this subscriber.
        queue: Outbound messages awaiting the write loop.

    """

    __slots__ = ("_dropped", "_on_drop", "client_id", "queue")

    def __init__(
        self,
        client_id: ClientID,
        queue_size: int = SUBSCRIBER_QUEUE_SIZE,
        on_drop: Callable[[], None] | None = None,
    ) -> None:
        self.client_id = client_id
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_size)
        self._on_drop = on_drop
        self._dropped = False

    @property
    def dropped(self) -> bool:
        """Whether the hub dropped this subscriber for being slow."""
        return self._dropped

    def offer(self, message: str) -> bool:
        """Enqueue without blocking. Returns False if the queue is full."""
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            return False
        return True

    async def messages(self) -> AsyncIterator[str]:
        """Yield queued messages until the subscriber is dropped."""
        while not self._dropped:
            message = await self.queue.get()
            if self._dropped:
                return
            yield message

    def _mark_dropped(self) -> None:
        self._dropped = True

    def _teardown(self) -> None:
        if self._on_drop is not None:
            try:
                self._on_drop()
            except Exception as exc:
                print(f"  Teardown error: {self.client_id}: {exc}", file=sys.stderr)

    def __repr__(self) -> str:
        return f"Subscriber({self.client_id!r}, queued={self.queue.qsize()})"


class BroadcastHub:
    """Registry of subscribers plus the dispatcher that feeds them.

    Args:
        queue_size: Outbound queue capacity given to each subscriber.
        collector: Optional observability collector.

    """

    def __init__(
        self,
        queue_size: int = SUBSCRIBER_QUEUE_SIZE,
        collector: Collector | None = None,
    ) -> None:
        self._queue_size = queue_size
        self._collector = collector
        self._subscribers: set[Subscriber] = set()
        self._lock = threading.Lock()
        self._intake: asyncio.Queue[str | None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def subscriber_count(self) -> int:
        """Number of registered subscribers."""
        with self._lock:
            return len(self._subscribers)

    @property
    def is_running(self) -> bool:
        """Whether the dispatcher task is active."""
        return self._task is not None and not self._task.done()

    def get_subscribers(self) -> frozenset[Subscriber]:
        """Snapshot of registered subscribers (no lock held on return)."""
        with self._lock:
            return frozenset(self._subscribers)

    # ----- membership -----

    def register(
        self,
        client_id: ClientID | None = None,
        on_drop: Callable[[], None] | None = None,
    ) -> Subscriber:
        """Create and register a subscriber.

        Args:
            client_id: Identifier; generated when omitted.
            on_drop: Called (outside the registry lock) if the hub drops the
                subscriber for being slow. Should close the connection.

        """
        if client_id is None:
            client_id = f"client-{next(_client_ids)}"
        subscriber = Subscriber(client_id, self._queue_size, on_drop)
        with self._lock:
            self._subscribers.add(subscriber)
        return subscriber

    def unregister(self, subscriber: Subscriber) -> bool:
        """Remove a subscriber. Returns False if it was already gone."""
        with self._lock:
            if subscriber not in self._subscribers:
                return False
            self._subscribers.discard(subscriber)
            return True

    def drop(self, subscriber: Subscriber) -> bool:
        """Drop a slow subscriber and tear down its connection.

        Returns False if it was already removed, in which case nothing is
        torn down a second time.

        """
        with self._lock:
            if subscriber not in self._subscribers:
                return False
            self._subscribers.discard(subscriber)
            subscriber._mark_dropped()
        self._after_drop(subscriber)
        return True

    def _after_drop(self, subscriber: Subscriber) -> None:
        subscriber._teardown()
        if self._collector is not None:
            self._collector.record_disconnect(subscriber.client_id, reason="slow")

    # ----- intake -----

    def publish(self, message: str) -> None:
        """Hand a message to the dispatcher. Never blocks.

        Safe to call from any thread.

        Raises:
            HubError: The hub is not running.

        """
        loop, intake = self._loop, self._intake
        if loop is None or intake is None or not self.is_running:
            msg = "broadcast hub is not running"
            raise HubError(msg)

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            intake.put_nowait(message)
        else:
            try:
                loop.call_soon_threadsafe(intake.put_nowait, message)
            except RuntimeError as exc:
                # Event loop already closed
                raise HubError(str(exc)) from exc

    # ----- dispatcher -----

    def start(self) -> None:
        """Start the dispatcher task on the running event loop."""
        if self.is_running:
            return
        self._loop = asyncio.get_running_loop()
        self._intake = asyncio.Queue()
        self._task = self._loop.create_task(self._dispatch_loop(self._intake))

    async def stop(self) -> None:
        """Drain messages already accepted, then stop the dispatcher."""
        if self._task is None or self._intake is None:
            return
        self._intake.put_nowait(None)
        try:
            await self._task
        finally:
            self._task = None
            self._intake = None

    async def _dispatch_loop(self, intake: asyncio.Queue[str | None]) -> None:
        while True:
            message = await intake.get()
            if message is None:
                return
            self.dispatch(message)

    def dispatch(self, message: str) -> int:
        """Fan one message out to every subscriber. Returns deliveries.

        Subscribers with a full queue are dropped.

        """
        slow: list[Subscriber] = []
        delivered = 0
        with self._lock:
            for subscriber in self._subscribers:
                if subscriber.offer(message):
                    delivered += 1
                else:
                    slow.append(subscriber)
            for subscriber in slow:
                self._subscribers.discard(subscriber)
                subscriber._mark_dropped()

        for subscriber in slow:
            self._after_drop(subscriber)

        if self._collector is not None:
            self._collector.record_broadcast(
                delivered=delivered, dropped=len(slow), size=len(message),
            )
        return delivered
