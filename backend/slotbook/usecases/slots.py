import calendar
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from ..domain.services import BookingRules, is_date_reachable, is_slot_reservable, to_date_key
from ..domain.snapshot import Snapshot, color_for, get_record, name_colors
from ..domain.window import BookingWindow

WEEK_LENGTH = 7


def slot_status(reservable: bool, reserved: bool) -> str:
    if not reservable:
        return "locked"
    return "reserved" if reserved else "available"


def day_view(
    snapshot: Snapshot,
    window: BookingWindow,
    rules: BookingRules,
    *,
    date_key: str,
) -> List[Dict[str, Any]]:
    colors = name_colors(snapshot)
    items: List[Dict[str, Any]] = []
    for time_key in rules.times:
        record = get_record(snapshot, date_key, time_key)
        reservable = is_slot_reservable(window, date_key, time_key, rules.tz)
        items.append(
            {
                "time": time_key,
                "reservable": reservable,
                "status": slot_status(reservable, record is not None),
                "name": record.name if record is not None else None,
                "color": color_for(record.name, colors) if record is not None else None,
            }
        )
    return items


def month_view(
    snapshot: Snapshot,
    window: BookingWindow,
    rules: BookingRules,
    *,
    year: int,
    month: int,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Calendar grid data; ``leading_blanks`` counts empty cells before day 1 in a Sunday-first grid."""
    first_weekday, days_in_month = calendar.monthrange(year, month)
    days: List[Dict[str, Any]] = []
    for day_number in range(1, days_in_month + 1):
        key = to_date_key(date(year, month, day_number))
        days.append(
            {
                "date": key,
                "day": day_number,
                "is_today": today is not None and to_date_key(today) == key,
                "has_reservation": bool(snapshot.get(key)),
                "reachable": is_date_reachable(window, key, rules.times, rules.tz),
            }
        )
    return {
        "year": year,
        "month": month,
        "leading_blanks": (first_weekday + 1) % WEEK_LENGTH,
        "days": days,
    }


def week_view(
    snapshot: Snapshot,
    window: BookingWindow,
    rules: BookingRules,
    *,
    weekday_labels: List[str],
) -> Dict[str, Any]:
    start: datetime = window.reservable_start
    dates = [start.date() + timedelta(days=offset) for offset in range(WEEK_LENGTH)]
    colors = name_colors(snapshot)
    rows: List[Dict[str, Any]] = []
    for time_key in rules.times:
        cells: List[Dict[str, Any]] = []
        for day in dates:
            record = get_record(snapshot, to_date_key(day), time_key)
            cells.append(
                {
                    "date": to_date_key(day),
                    "name": record.name if record is not None else None,
                    "color": color_for(record.name, colors) if record is not None else None,
                }
            )
        rows.append({"time": time_key, "cells": cells})
    return {
        "days": [
            {"date": to_date_key(day), "label": weekday_labels[day.weekday()], "month": day.month, "day": day.day}
            for day in dates
        ],
        "rows": rows,
    }
