from __future__ import annotations

from typing import AsyncIterator, Optional, Protocol

from .snapshot import Snapshot, VersionedSnapshot


class SnapshotSubscription(Protocol):
    """Push stream of full snapshots; yields the current one first. Owners must close it."""

    def __aiter__(self) -> AsyncIterator[VersionedSnapshot]: ...

    def close(self) -> None: ...


class SnapshotStore(Protocol):
    async def read(self, path: str) -> VersionedSnapshot: ...

    async def replace(
        self,
        path: str,
        snapshot: Snapshot,
        *,
        expected_version: Optional[int] = None,
    ) -> VersionedSnapshot: ...

    async def subscribe(self, path: str) -> SnapshotSubscription: ...
