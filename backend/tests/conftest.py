from typing import Optional
from zoneinfo import ZoneInfo

import pytest
from slotbook.domain.errors import StoreWriteError, VersionConflictError
from slotbook.domain.services import BookingRules, QuotaPolicy
from slotbook.domain.snapshot import Snapshot, VersionedSnapshot, snapshot_from_tree, snapshot_to_tree
from slotbook.domain.window import BookingPolicy
from slotbook.infrastructure.broadcast import QueueSubscription, SnapshotBroadcaster

KST = ZoneInfo("Asia/Seoul")


class FakeStore:
    """In-memory whole-tree store with the same push semantics as the SQL store."""

    def __init__(self) -> None:
        self.broadcaster = SnapshotBroadcaster()
        self.current = VersionedSnapshot(snapshot={}, version=0)
        self.replace_calls: list[tuple[str, Snapshot, Optional[int]]] = []
        self.fail_writes = False

    def seed(self, snapshot: Snapshot) -> None:
        self.current = VersionedSnapshot(snapshot=snapshot, version=self.current.version + 1)

    async def read(self, path: str) -> VersionedSnapshot:
        return self.current

    async def replace(
        self,
        path: str,
        snapshot: Snapshot,
        *,
        expected_version: Optional[int] = None,
    ) -> VersionedSnapshot:
        self.replace_calls.append((path, snapshot, expected_version))
        if self.fail_writes:
            raise StoreWriteError("store unavailable")
        if expected_version is not None and expected_version != self.current.version:
            raise VersionConflictError("stale")
        self.current = VersionedSnapshot(
            snapshot=snapshot_from_tree(snapshot_to_tree(snapshot)),
            version=self.current.version + 1,
        )
        self.broadcaster.publish(path, self.current)
        return self.current

    async def subscribe(self, path: str) -> QueueSubscription:
        return self.broadcaster.open(path, self.current)


@pytest.fixture
def rules() -> BookingRules:
    return BookingRules(policy=BookingPolicy(tz=KST), quota=QuotaPolicy())


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()
