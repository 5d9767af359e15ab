from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterator, Optional

CYCLE_DAYS = 7


@dataclass(frozen=True)
class BookingPolicy:
    """When a weekly cycle opens and closes.

    Weekdays use Python numbering (Monday is 0). The cycle opens on
    ``admission_weekday`` at ``admission_hour`` and closes a week later on the
    same weekday at ``closing_hour``.
    """

    tz: tzinfo
    admission_weekday: int = 1
    admission_hour: int = 12
    closing_hour: int = 21

    def __post_init__(self) -> None:
        if not 0 <= self.admission_weekday <= 6:
            raise ValueError("admission_weekday must be within 0..6")
        for hour in (self.admission_hour, self.closing_hour):
            if not 0 <= hour <= 23:
                raise ValueError("hours must be within 0..23")


@dataclass(frozen=True)
class BookingWindow:
    cycle_start: datetime
    cycle_end: datetime
    is_open: bool
    next_opening: Optional[datetime]
    reservable_start: datetime
    reservable_end: datetime


def _at(day: date, hour: int, tz: tzinfo) -> datetime:
    return datetime.combine(day, time(hour=hour), tzinfo=tz)


def compute_booking_window(now: datetime, policy: BookingPolicy) -> BookingWindow:
    """
    Pure function of wall-clock time: no cycle state is ever stored.
    A moment on the admission weekday before the opening hour still belongs to
    the previous cycle.
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    local_now = now.astimezone(policy.tz)

    diff = (local_now.weekday() - policy.admission_weekday) % CYCLE_DAYS
    if diff == 0 and local_now.hour < policy.admission_hour:
        diff = CYCLE_DAYS

    start_day = local_now.date() - timedelta(days=diff)
    cycle_start = _at(start_day, policy.admission_hour, policy.tz)
    cycle_end = _at(start_day + timedelta(days=CYCLE_DAYS), policy.closing_hour, policy.tz)

    is_open = cycle_start <= local_now <= cycle_end

    next_opening: Optional[datetime] = None
    if local_now > cycle_end:
        next_opening = _at(start_day + timedelta(days=CYCLE_DAYS), policy.admission_hour, policy.tz)
    elif local_now < cycle_start:
        next_opening = cycle_start

    return BookingWindow(
        cycle_start=cycle_start,
        cycle_end=cycle_end,
        is_open=is_open,
        next_opening=next_opening,
        reservable_start=_at(start_day + timedelta(days=1), 0, policy.tz),
        reservable_end=cycle_end,
    )


def window_dates(window: BookingWindow) -> Iterator[date]:
    """Yield every local date whose midnight lies within the reservable range."""
    current = window.reservable_start
    while current <= window.reservable_end:
        yield current.date()
        current = datetime.combine(current.date() + timedelta(days=1), time(), tzinfo=current.tzinfo)
