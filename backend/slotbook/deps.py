from datetime import datetime

from fastapi import Depends, Header, HTTPException, status
from starlette.requests import HTTPConnection

from .config import Settings, get_settings
from .database import async_session
from .domain.services import BookingRules
from .infrastructure.broadcast import SnapshotBroadcaster
from .infrastructure.repositories import SqlAlchemySnapshotStore
from .utils.auth import ADMIN_SUBJECT, decode_access_token
from .utils.time import local_now


def get_rules(settings: Settings = Depends(get_settings)) -> BookingRules:
    return settings.rules()


def get_now(rules: BookingRules = Depends(get_rules)) -> datetime:
    return local_now(rules.tz)


def get_broadcaster(connection: HTTPConnection) -> SnapshotBroadcaster:
    broadcaster = getattr(connection.app.state, "broadcaster", None)
    if broadcaster is None:
        broadcaster = SnapshotBroadcaster()
        connection.app.state.broadcaster = broadcaster
    return broadcaster


async def get_store(broadcaster: SnapshotBroadcaster = Depends(get_broadcaster)) -> SqlAlchemySnapshotStore:
    return SqlAlchemySnapshotStore(async_session, broadcaster)


async def get_admin(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> str:
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="admin token required",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if authorization is None:
        raise unauthorized
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise unauthorized
    try:
        subject = decode_access_token(token, secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
    except ValueError as exc:
        raise unauthorized from exc
    if subject != ADMIN_SUBJECT:
        raise unauthorized
    return subject
