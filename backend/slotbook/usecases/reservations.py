from datetime import datetime
from typing import Optional

from ..domain.repositories import SnapshotStore
from ..domain.services import BookingRules, validate_cancel, validate_create
from ..domain.snapshot import VersionedSnapshot, with_reservation, without_reservation


async def create_reservation(
    store: SnapshotStore,
    rules: BookingRules,
    *,
    path: str,
    current: VersionedSnapshot,
    now: datetime,
    date_key: str,
    time_key: str,
    name: str,
    passphrase: str,
    expected_version: Optional[int] = None,
) -> VersionedSnapshot:
    """
    Validate against ``current`` (the most recently observed snapshot) and
    replace the whole tree. Without ``expected_version`` the last writer wins.
    """
    window = rules.window_at(now)
    record = validate_create(
        current.snapshot,
        window,
        rules,
        date_key=date_key,
        time_key=time_key,
        name=name,
        passphrase=passphrase,
    )
    updated = with_reservation(current.snapshot, date_key, time_key, record)
    return await store.replace(path, updated, expected_version=expected_version)


async def cancel_reservation(
    store: SnapshotStore,
    rules: BookingRules,
    *,
    path: str,
    current: VersionedSnapshot,
    now: datetime,
    date_key: str,
    time_key: str,
    passphrase: str,
    expected_version: Optional[int] = None,
) -> VersionedSnapshot:
    window = rules.window_at(now)
    validate_cancel(
        current.snapshot,
        window,
        rules,
        date_key=date_key,
        time_key=time_key,
        passphrase=passphrase,
    )
    updated = without_reservation(current.snapshot, date_key, time_key)
    return await store.replace(path, updated, expected_version=expected_version)
