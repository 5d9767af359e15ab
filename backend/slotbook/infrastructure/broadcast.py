from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Optional, Set

from ..domain.snapshot import VersionedSnapshot

logger = logging.getLogger(__name__)


class QueueSubscription:
    """
    Delivers full snapshots in version order. Only the newest undelivered snapshot
    is kept, since every push supersedes the previous one.
    """

    def __init__(self, path: str, on_close: Callable[["QueueSubscription"], None]) -> None:
        self.path = path
        self._queue: asyncio.Queue[Optional[VersionedSnapshot]] = asyncio.Queue()
        self._on_close = on_close
        self._closed = False
        self._last_version: Optional[int] = None

    def push(self, snapshot: VersionedSnapshot) -> None:
        if self._closed:
            return
        # Publishes can arrive out of commit order; never step back to an older tree.
        if self._last_version is not None and snapshot.version <= self._last_version:
            return
        self._last_version = snapshot.version
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(snapshot)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._on_close(self)
        self._queue.put_nowait(None)

    def __aiter__(self) -> "QueueSubscription":
        return self

    async def __anext__(self) -> VersionedSnapshot:
        item = await self._queue.get()
        if item is None:
            raise StopAsyncIteration
        return item


class SnapshotBroadcaster:
    """In-process fan-out of committed snapshots, keyed by store path."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, Set[QueueSubscription]] = {}

    def open(self, path: str, current: Optional[VersionedSnapshot] = None) -> QueueSubscription:
        """Register a subscriber. Without ``current`` the caller pushes the initial snapshot itself."""
        subscription = QueueSubscription(path, self._discard)
        if current is not None:
            subscription.push(current)
        self._subscribers.setdefault(path, set()).add(subscription)
        logger.debug("subscription opened on %s (%d active)", path, self.subscriber_count(path))
        return subscription

    def publish(self, path: str, snapshot: VersionedSnapshot) -> None:
        for subscription in list(self._subscribers.get(path, ())):
            subscription.push(snapshot)

    def subscriber_count(self, path: str) -> int:
        return len(self._subscribers.get(path, ()))

    def _discard(self, subscription: QueueSubscription) -> None:
        subscribers = self._subscribers.get(subscription.path)
        if subscribers is None:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscribers[subscription.path]
        logger.debug("subscription closed on %s", subscription.path)
