import logging
import re
from datetime import datetime
from typing import NoReturn, Optional, Union

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from fastapi.responses import PlainTextResponse

from ..config import Settings, get_settings
from ..deps import get_now, get_rules, get_store
from ..domain.errors import (
    EmptyReportError,
    InputValidationError,
    OutsideWindowError,
    QuotaExceededError,
    ReservationError,
    SlotTakenError,
    StoreWriteError,
    VersionConflictError,
)
from ..domain.repositories import SnapshotStore
from ..domain.services import BookingRules
from ..domain.snapshot import VersionedSnapshot, name_colors, public_tree
from ..schemas import ReservationCancel, ReservationCreate, SnapshotRead
from ..usecases import reports as report_usecase
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import AuditOutcome, emit_audit_log

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["reservations"])

_ETAG_RE = re.compile(r'^(?:W/)?"(\d+)"$')


def _extract_version(
    if_match: Optional[str],
    payload: Optional[Union[ReservationCreate, ReservationCancel]],
) -> Optional[int]:
    """If-Match wins over the body; neither means an unconditional (last-write-wins) replace."""
    if if_match is not None:
        match = _ETAG_RE.match(if_match.strip())
        if match is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid If-Match header")
        return int(match.group(1))
    if payload is not None and payload.version is not None:
        if payload.version < 0:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid version")
        return payload.version
    return None


def _snapshot_read(current: VersionedSnapshot) -> SnapshotRead:
    return SnapshotRead(
        version=current.version,
        reservations=public_tree(current.snapshot),
        colors=name_colors(current.snapshot),
    )


def _outcome(exc: ReservationError) -> AuditOutcome:
    if isinstance(exc, OutsideWindowError):
        return "outside_window"
    if isinstance(exc, SlotTakenError):
        return "taken"
    if isinstance(exc, QuotaExceededError):
        return "over_limit"
    if isinstance(exc, VersionConflictError):
        return "version_conflict"
    if isinstance(exc, StoreWriteError):
        return "store_error"
    return "invalid"


def _raise_http(exc: ReservationError) -> NoReturn:
    if isinstance(exc, OutsideWindowError):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"reason": exc.reason.value, "message": str(exc)},
        ) from exc
    if isinstance(exc, SlotTakenError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="slot already taken") from exc
    if isinstance(exc, QuotaExceededError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="weekly quota exceeded") from exc
    if isinstance(exc, VersionConflictError):
        raise HTTPException(status_code=status.HTTP_412_PRECONDITION_FAILED, detail="version mismatch") from exc
    if isinstance(exc, StoreWriteError):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="failed to save reservations") from exc
    if isinstance(exc, InputValidationError):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/reservations", response_model=SnapshotRead)
async def read_reservations(
    response: Response,
    store: SnapshotStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> SnapshotRead:
    current = await store.read(settings.snapshot_path)
    response.headers["ETag"] = f'"{current.version}"'
    return _snapshot_read(current)


@router.post("/reservations", response_model=SnapshotRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    response: Response,
    if_match: Optional[str] = Header(default=None),
    store: SnapshotStore = Depends(get_store),
    rules: BookingRules = Depends(get_rules),
    settings: Settings = Depends(get_settings),
    now: datetime = Depends(get_now),
) -> SnapshotRead:
    expected_version = _extract_version(if_match, payload)
    current = await store.read(settings.snapshot_path)
    try:
        committed = await reservation_usecase.create_reservation(
            store,
            rules,
            path=settings.snapshot_path,
            current=current,
            now=now,
            date_key=payload.date,
            time_key=payload.time,
            name=payload.name,
            passphrase=payload.passphrase,
            expected_version=expected_version,
        )
    except ReservationError as exc:
        emit_audit_log(
            action="reservation.rejected",
            outcome=_outcome(exc),
            date_key=payload.date,
            time_key=payload.time,
            name=payload.name,
            version=current.version,
            message=str(exc),
        )
        _raise_http(exc)

    try:
        emit_audit_log(
            action="reservation.created",
            outcome="ok",
            date_key=payload.date,
            time_key=payload.time,
            name=payload.name,
            version=committed.version,
        )
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc

    response.headers["ETag"] = f'"{committed.version}"'
    return _snapshot_read(committed)


@router.post("/reservations/cancel", response_model=SnapshotRead)
async def cancel_reservation(
    payload: ReservationCancel,
    response: Response,
    if_match: Optional[str] = Header(default=None),
    store: SnapshotStore = Depends(get_store),
    rules: BookingRules = Depends(get_rules),
    settings: Settings = Depends(get_settings),
    now: datetime = Depends(get_now),
) -> SnapshotRead:
    expected_version = _extract_version(if_match, payload)
    current = await store.read(settings.snapshot_path)
    try:
        committed = await reservation_usecase.cancel_reservation(
            store,
            rules,
            path=settings.snapshot_path,
            current=current,
            now=now,
            date_key=payload.date,
            time_key=payload.time,
            passphrase=payload.passphrase,
            expected_version=expected_version,
        )
    except ReservationError as exc:
        emit_audit_log(
            action="reservation.rejected",
            outcome=_outcome(exc),
            date_key=payload.date,
            time_key=payload.time,
            version=current.version,
            message=str(exc),
        )
        _raise_http(exc)

    try:
        emit_audit_log(
            action="reservation.cancelled",
            outcome="ok",
            date_key=payload.date,
            time_key=payload.time,
            version=committed.version,
        )
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc

    response.headers["ETag"] = f'"{committed.version}"'
    return _snapshot_read(committed)


@router.get("/reservations/export", response_class=PlainTextResponse)
async def export_reservations(
    store: SnapshotStore = Depends(get_store),
    rules: BookingRules = Depends(get_rules),
    settings: Settings = Depends(get_settings),
    now: datetime = Depends(get_now),
) -> PlainTextResponse:
    current = await store.read(settings.snapshot_path)
    try:
        content = report_usecase.export_report(
            current.snapshot,
            rules.window_at(now),
            rules,
            weekday_labels=settings.weekday_labels,
        )
    except EmptyReportError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="no reservations this cycle") from exc
    filename = f"reservations_{now.date().isoformat()}.txt"
    return PlainTextResponse(
        content,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
