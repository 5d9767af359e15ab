from __future__ import annotations

from enum import StrEnum


class ReservationError(Exception):
    """Base class for every user-action scoped failure."""


class InputValidationError(ReservationError):
    pass


class SlotTakenError(ReservationError):
    pass


class QuotaExceededError(ReservationError):
    def __init__(self, message: str, *, held: int, cap: int) -> None:
        super().__init__(message)
        self.held = held
        self.cap = cap


class StoreWriteError(ReservationError):
    pass


class VersionConflictError(ReservationError):
    pass


class EmptyReportError(ReservationError):
    pass


class WindowRejection(StrEnum):
    CLOSED = "closed"
    OUT_OF_RANGE = "out_of_range"


class OutsideWindowError(ReservationError):
    def __init__(self, reason: WindowRejection) -> None:
        if reason == WindowRejection.CLOSED:
            message = "booking window is currently closed"
        else:
            message = "slot is outside this cycle's reservable range"
        super().__init__(message)
        self.reason = reason
