from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

Snapshot = Dict[str, Dict[str, "ReservationRecord"]]

PALETTE: Tuple[str, ...] = (
    "#FFD1DC",
    "#FFDFD3",
    "#FFFFD1",
    "#D1FFD6",
    "#D1F5FF",
    "#E0D1FF",
    "#FFD1F5",
    "#D1FFF3",
    "#FFE5D1",
    "#E2E2E2",
    "#C4F5E1",
    "#DAE8FC",
    "#FFABAB",
    "#FFC3A0",
    "#D5AAFF",
    "#85E3FF",
    "#B9FBC0",
    "#FBE7C6",
    "#FF9CEE",
    "#A0C4FF",
)
UNKNOWN_NAME_COLOR = "#E2E2E2"
NO_NAME_COLOR = "#F7FAFC"


@dataclass(frozen=True)
class ReservationRecord:
    name: str
    passphrase: str

    def holder(self) -> str:
        return self.name.strip()


@dataclass(frozen=True)
class VersionedSnapshot:
    snapshot: Snapshot
    version: int


@dataclass(frozen=True)
class AdminRow:
    date_key: str
    time_key: str
    name: str
    passphrase: str


def snapshot_from_tree(tree: Optional[Mapping[str, Any]]) -> Snapshot:
    """Build a snapshot from the stored JSON tree (``{"name", "password"}`` leaves)."""
    snapshot: Snapshot = {}
    for date_key, slots in (tree or {}).items():
        if not slots:
            continue
        day: Dict[str, ReservationRecord] = {}
        for time_key, leaf in slots.items():
            if not leaf:
                continue
            day[time_key] = ReservationRecord(
                name=str(leaf.get("name", "")),
                passphrase=str(leaf.get("password", "")),
            )
        if day:
            snapshot[date_key] = day
    return snapshot


def snapshot_to_tree(snapshot: Snapshot) -> Dict[str, Dict[str, Dict[str, str]]]:
    return {
        date_key: {
            time_key: {"name": record.name, "password": record.passphrase}
            for time_key, record in slots.items()
        }
        for date_key, slots in snapshot.items()
        if slots
    }


def public_tree(snapshot: Snapshot) -> Dict[str, Dict[str, str]]:
    """Names only; passphrases never leave the server through public views."""
    return {
        date_key: {time_key: record.name for time_key, record in slots.items()}
        for date_key, slots in snapshot.items()
    }


def get_record(snapshot: Snapshot, date_key: str, time_key: str) -> Optional[ReservationRecord]:
    return snapshot.get(date_key, {}).get(time_key)


def with_reservation(
    snapshot: Snapshot,
    date_key: str,
    time_key: str,
    record: ReservationRecord,
) -> Snapshot:
    updated = {key: dict(slots) for key, slots in snapshot.items()}
    updated.setdefault(date_key, {})[time_key] = record
    return updated


def without_reservation(snapshot: Snapshot, date_key: str, time_key: str) -> Snapshot:
    updated = {key: dict(slots) for key, slots in snapshot.items()}
    day = updated.get(date_key)
    if day is None:
        return updated
    day.pop(time_key, None)
    # An emptied date is represented by the key's absence.
    if not day:
        del updated[date_key]
    return updated


def iter_records(snapshot: Snapshot) -> Iterator[Tuple[str, str, ReservationRecord]]:
    for date_key in sorted(snapshot):
        for time_key in sorted(snapshot[date_key]):
            yield date_key, time_key, snapshot[date_key][time_key]


def admin_rows(snapshot: Snapshot) -> List[AdminRow]:
    return [
        AdminRow(date_key=date_key, time_key=time_key, name=record.name, passphrase=record.passphrase)
        for date_key, time_key, record in iter_records(snapshot)
    ]


def name_colors(snapshot: Snapshot, palette: Sequence[str] = PALETTE) -> Dict[str, str]:
    names = sorted({record.holder() for _, _, record in iter_records(snapshot) if record.name})
    return {name: palette[index % len(palette)] for index, name in enumerate(names)}


def color_for(name: Optional[str], colors: Mapping[str, str]) -> str:
    if not name:
        return NO_NAME_COLOR
    return colors.get(name.strip(), UNKNOWN_NAME_COLOR)
