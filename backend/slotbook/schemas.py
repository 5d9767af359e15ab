from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .domain.snapshot import AdminRow
from .domain.window import BookingWindow

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^\d{2}:\d{2}$"


class BookingWindowRead(BaseModel):
    cycle_start: datetime
    cycle_end: datetime
    is_open: bool
    next_opening: Optional[datetime]
    reservable_start: datetime
    reservable_end: datetime

    @classmethod
    def from_domain(cls, window: BookingWindow) -> "BookingWindowRead":
        return cls(
            cycle_start=window.cycle_start,
            cycle_end=window.cycle_end,
            is_open=window.is_open,
            next_opening=window.next_opening,
            reservable_start=window.reservable_start,
            reservable_end=window.reservable_end,
        )


class SlotRead(BaseModel):
    time: str
    reservable: bool
    status: str
    name: Optional[str] = None
    color: Optional[str] = None


class CalendarDayRead(BaseModel):
    date: str
    day: int
    is_today: bool
    has_reservation: bool
    reachable: bool


class CalendarMonthRead(BaseModel):
    year: int
    month: int
    leading_blanks: int
    days: List[CalendarDayRead]


class WeekDayRead(BaseModel):
    date: str
    label: str
    month: int
    day: int


class WeekCellRead(BaseModel):
    date: str
    name: Optional[str] = None
    color: Optional[str] = None


class WeekRowRead(BaseModel):
    time: str
    cells: List[WeekCellRead]


class WeekRead(BaseModel):
    days: List[WeekDayRead]
    rows: List[WeekRowRead]


class ReservationCreate(BaseModel):
    date: str = Field(pattern=DATE_PATTERN)
    time: str = Field(pattern=TIME_PATTERN)
    name: str
    passphrase: str
    version: Optional[int] = Field(default=None, ge=0)


class ReservationCancel(BaseModel):
    date: str = Field(pattern=DATE_PATTERN)
    time: str = Field(pattern=TIME_PATTERN)
    passphrase: str
    version: Optional[int] = Field(default=None, ge=0)


class SnapshotRead(BaseModel):
    version: int
    reservations: Dict[str, Dict[str, str]]
    colors: Dict[str, str]


class AdminLogin(BaseModel):
    secret: str


class AdminToken(BaseModel):
    access_token: str
    token_type: str = "bearer"


class AdminReservationRead(BaseModel):
    date: str
    time: str
    name: str
    passphrase: str

    @classmethod
    def from_domain(cls, row: AdminRow) -> "AdminReservationRead":
        return cls(date=row.date_key, time=row.time_key, name=row.name, passphrase=row.passphrase)
