from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, tzinfo
from typing import FrozenSet, Optional, Sequence, Tuple

from .errors import (
    InputValidationError,
    OutsideWindowError,
    QuotaExceededError,
    SlotTakenError,
    WindowRejection,
)
from .snapshot import ReservationRecord, Snapshot, get_record
from .window import BookingPolicy, BookingWindow, compute_booking_window, window_dates

DEFAULT_TIMES: Tuple[str, ...] = ("00:00", "03:00", "06:00", "09:00", "12:00", "15:00", "18:00", "21:00")


@dataclass(frozen=True)
class QuotaPolicy:
    """Weekly per-person cap on restricted (weekday, time) slots. ``cap=None`` disables it."""

    restricted_times: FrozenSet[str] = frozenset({"09:00", "12:00", "15:00"})
    restricted_weekdays: FrozenSet[int] = frozenset({0, 1, 2, 3, 4})
    cap: Optional[int] = 3

    @property
    def enabled(self) -> bool:
        return self.cap is not None

    def is_restricted(self, date_key: str, time_key: str) -> bool:
        if not self.enabled:
            return False
        return time_key in self.restricted_times and parse_date_key(date_key).weekday() in self.restricted_weekdays


@dataclass(frozen=True)
class BookingRules:
    policy: BookingPolicy
    quota: QuotaPolicy = field(default_factory=QuotaPolicy)
    times: Tuple[str, ...] = DEFAULT_TIMES

    @property
    def tz(self) -> tzinfo:
        return self.policy.tz

    def window_at(self, now: datetime) -> BookingWindow:
        return compute_booking_window(now, self.policy)


def to_date_key(day: date) -> str:
    return day.isoformat()


def parse_date_key(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InputValidationError(f"invalid date key: {value!r}") from exc


def parse_time_key(value: str) -> time:
    try:
        hours, minutes = (int(part) for part in value.split(":"))
        return time(hour=hours, minute=minutes)
    except ValueError as exc:
        raise InputValidationError(f"invalid time key: {value!r}") from exc


def slot_instant(date_key: str, time_key: str, tz: tzinfo) -> datetime:
    return datetime.combine(parse_date_key(date_key), parse_time_key(time_key), tzinfo=tz)


def is_slot_reservable(window: BookingWindow, date_key: str, time_key: str, tz: tzinfo) -> bool:
    if not window.is_open:
        return False
    instant = slot_instant(date_key, time_key, tz)
    return window.reservable_start <= instant <= window.reservable_end


def is_date_reachable(window: BookingWindow, date_key: str, times: Sequence[str], tz: tzinfo) -> bool:
    return any(is_slot_reservable(window, date_key, t, tz) for t in times)


def check_known_time(time_key: str, times: Sequence[str]) -> None:
    if time_key not in times:
        raise InputValidationError(f"unknown slot time: {time_key!r}")


def check_slot_click(window: BookingWindow, date_key: str, time_key: str, tz: tzinfo) -> None:
    """Raise OutsideWindowError telling a closed cycle apart from an out-of-range slot."""
    if not window.is_open:
        raise OutsideWindowError(WindowRejection.CLOSED)
    if not is_slot_reservable(window, date_key, time_key, tz):
        raise OutsideWindowError(WindowRejection.OUT_OF_RANGE)


def count_restricted_holdings(
    snapshot: Snapshot,
    window: BookingWindow,
    name: str,
    quota: QuotaPolicy,
) -> int:
    holder = name.strip()
    count = 0
    for day in window_dates(window):
        if day.weekday() not in quota.restricted_weekdays:
            continue
        slots = snapshot.get(to_date_key(day))
        if not slots:
            continue
        for time_key in quota.restricted_times:
            record = slots.get(time_key)
            if record is not None and record.holder() == holder:
                count += 1
    return count


def check_quota(
    snapshot: Snapshot,
    window: BookingWindow,
    quota: QuotaPolicy,
    *,
    date_key: str,
    time_key: str,
    name: str,
) -> None:
    if quota.cap is None or not quota.is_restricted(date_key, time_key):
        return
    held = count_restricted_holdings(snapshot, window, name, quota)
    if held >= quota.cap:
        raise QuotaExceededError("weekly quota exceeded", held=held, cap=quota.cap)


def validate_create(
    snapshot: Snapshot,
    window: BookingWindow,
    rules: BookingRules,
    *,
    date_key: str,
    time_key: str,
    name: str,
    passphrase: str,
) -> ReservationRecord:
    """
    Pure validation of a create attempt against the given snapshot.
    Returns the record to insert. Raises domain errors otherwise.
    """
    check_known_time(time_key, rules.times)
    check_slot_click(window, date_key, time_key, rules.tz)
    if not name.strip() or not passphrase.strip():
        raise InputValidationError("name and passphrase are both required")
    if get_record(snapshot, date_key, time_key) is not None:
        raise SlotTakenError("slot already taken")
    check_quota(snapshot, window, rules.quota, date_key=date_key, time_key=time_key, name=name)
    return ReservationRecord(name=name, passphrase=passphrase)


def validate_cancel(
    snapshot: Snapshot,
    window: BookingWindow,
    rules: BookingRules,
    *,
    date_key: str,
    time_key: str,
    passphrase: str,
) -> ReservationRecord:
    check_known_time(time_key, rules.times)
    check_slot_click(window, date_key, time_key, rules.tz)
    record = get_record(snapshot, date_key, time_key)
    if record is None or record.passphrase != passphrase:
        raise InputValidationError("passphrase does not match")
    return record
