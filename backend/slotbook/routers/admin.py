from datetime import timedelta
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ..config import Settings, get_settings
from ..deps import get_admin, get_store
from ..domain.repositories import SnapshotStore
from ..domain.snapshot import admin_rows
from ..schemas import AdminLogin, AdminReservationRead, AdminToken
from ..utils.audit_log import emit_audit_log
from ..utils.auth import check_shared_secret, create_access_token

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/login", response_model=AdminToken)
async def login(
    payload: AdminLogin,
    settings: Settings = Depends(get_settings),
) -> AdminToken:
    if not check_shared_secret(payload.secret, settings.admin_secret):
        emit_audit_log(action="admin.login", outcome="denied")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid admin secret")
    emit_audit_log(action="admin.login", outcome="ok")
    token = create_access_token(
        secret=settings.auth_secret,
        algorithm=settings.auth_algorithm,
        expires_delta=timedelta(minutes=settings.admin_token_minutes),
    )
    return AdminToken(access_token=token)


@router.get("/reservations", response_model=List[AdminReservationRead])
async def list_reservations(
    _: str = Depends(get_admin),
    store: SnapshotStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> list[AdminReservationRead]:
    """Every reservation with its plaintext passphrase, sorted by date then time."""
    current = await store.read(settings.snapshot_path)
    return [AdminReservationRead.from_domain(row) for row in admin_rows(current.snapshot)]
