from typing import List, Sequence

from ..domain.errors import EmptyReportError
from ..domain.services import BookingRules, to_date_key
from ..domain.snapshot import Snapshot
from ..domain.window import BookingWindow, window_dates


def export_lines(
    snapshot: Snapshot,
    window: BookingWindow,
    rules: BookingRules,
    *,
    weekday_labels: Sequence[str],
) -> List[str]:
    """One ``"<label> - <time> <name>, ..."`` line per booked date of the reservable range."""
    lines: List[str] = []
    for day in window_dates(window):
        slots = snapshot.get(to_date_key(day))
        if not slots:
            continue
        booked = [time_key for time_key in rules.times if time_key in slots]
        if not booked:
            continue
        entries = ", ".join(f"{time_key} {slots[time_key].name}" for time_key in booked)
        lines.append(f"{weekday_labels[day.weekday()]} - {entries}")
    return lines


def export_report(
    snapshot: Snapshot,
    window: BookingWindow,
    rules: BookingRules,
    *,
    weekday_labels: Sequence[str],
) -> str:
    lines = export_lines(snapshot, window, rules, weekday_labels=weekday_labels)
    if not lines:
        raise EmptyReportError("no reservations in this cycle")
    return "".join(f"{line}\n" for line in lines)
