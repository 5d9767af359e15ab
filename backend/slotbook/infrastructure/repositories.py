from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..domain.errors import StoreWriteError, VersionConflictError
from ..domain.repositories import SnapshotStore
from ..domain.snapshot import Snapshot, VersionedSnapshot, snapshot_from_tree, snapshot_to_tree
from ..models import ReservationTree
from .broadcast import QueueSubscription, SnapshotBroadcaster

logger = logging.getLogger(__name__)


class SqlAlchemySnapshotStore(SnapshotStore):
    """
    Whole-tree store: each path holds one JSON document. Every committed
    replace is pushed to the path's subscribers.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        broadcaster: SnapshotBroadcaster,
    ) -> None:
        self.session_factory = session_factory
        self.broadcaster = broadcaster

    async def read(self, path: str) -> VersionedSnapshot:
        async with self.session_factory() as session:
            row = await session.scalar(select(ReservationTree).where(ReservationTree.path == path))
        if row is None:
            return VersionedSnapshot(snapshot={}, version=0)
        return VersionedSnapshot(snapshot=snapshot_from_tree(row.payload), version=row.version)

    async def replace(
        self,
        path: str,
        snapshot: Snapshot,
        *,
        expected_version: Optional[int] = None,
    ) -> VersionedSnapshot:
        tree = snapshot_to_tree(snapshot)
        try:
            async with self.session_factory() as session, session.begin():
                row = await session.scalar(
                    select(ReservationTree).where(ReservationTree.path == path).with_for_update()
                )
                current_version = row.version if row is not None else 0
                if expected_version is not None and expected_version != current_version:
                    raise VersionConflictError(
                        f"expected version {expected_version}, store has {current_version}"
                    )
                now = datetime.now(timezone.utc).replace(tzinfo=None)
                if row is None:
                    row = ReservationTree(path=path, payload=tree, version=1, created_at=now, updated_at=now)
                    session.add(row)
                else:
                    row.payload = tree
                    row.version = current_version + 1
                    row.updated_at = now
                new_version = row.version
        except SQLAlchemyError as exc:
            logger.exception("replace of %s failed", path)
            raise StoreWriteError("failed to write reservations") from exc

        committed = VersionedSnapshot(snapshot=snapshot_from_tree(tree), version=new_version)
        self.broadcaster.publish(path, committed)
        return committed

    async def subscribe(self, path: str) -> QueueSubscription:
        # Register before reading so a commit landing during the read still reaches us.
        subscription = self.broadcaster.open(path)
        try:
            current = await self.read(path)
        except BaseException:
            subscription.close()
            raise
        subscription.push(current)
        return subscription
