from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status

from ..config import Settings, get_settings
from ..deps import get_now, get_rules, get_store
from ..domain.errors import InputValidationError
from ..domain.repositories import SnapshotStore
from ..domain.services import BookingRules, parse_date_key
from ..schemas import BookingWindowRead, CalendarMonthRead, SlotRead, WeekRead
from ..usecases import slots as slot_usecase

router = APIRouter(prefix="", tags=["slots"])


@router.get("/window", response_model=BookingWindowRead)
async def read_window(
    rules: BookingRules = Depends(get_rules),
    now: datetime = Depends(get_now),
) -> BookingWindowRead:
    return BookingWindowRead.from_domain(rules.window_at(now))


@router.get("/calendar/{year}/{month}", response_model=CalendarMonthRead)
async def read_month(
    year: int = Path(..., ge=1, le=9999),
    month: int = Path(..., ge=1, le=12),
    store: SnapshotStore = Depends(get_store),
    rules: BookingRules = Depends(get_rules),
    settings: Settings = Depends(get_settings),
    now: datetime = Depends(get_now),
) -> CalendarMonthRead:
    current = await store.read(settings.snapshot_path)
    view = slot_usecase.month_view(
        current.snapshot,
        rules.window_at(now),
        rules,
        year=year,
        month=month,
        today=now.astimezone(rules.tz).date(),
    )
    return CalendarMonthRead.model_validate(view)


@router.get("/days/{date_key}/slots", response_model=List[SlotRead])
async def read_day(
    date_key: str,
    store: SnapshotStore = Depends(get_store),
    rules: BookingRules = Depends(get_rules),
    settings: Settings = Depends(get_settings),
    now: datetime = Depends(get_now),
) -> list[SlotRead]:
    try:
        parse_date_key(date_key)
    except InputValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    current = await store.read(settings.snapshot_path)
    items = slot_usecase.day_view(current.snapshot, rules.window_at(now), rules, date_key=date_key)
    return [SlotRead.model_validate(item) for item in items]


@router.get("/week", response_model=WeekRead)
async def read_week(
    store: SnapshotStore = Depends(get_store),
    rules: BookingRules = Depends(get_rules),
    settings: Settings = Depends(get_settings),
    now: datetime = Depends(get_now),
) -> WeekRead:
    current = await store.read(settings.snapshot_path)
    view = slot_usecase.week_view(
        current.snapshot,
        rules.window_at(now),
        rules,
        weekday_labels=settings.weekday_labels,
    )
    return WeekRead.model_validate(view)
