from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Callable, Dict, Optional

from ..domain.errors import (
    InputValidationError,
    OutsideWindowError,
    QuotaExceededError,
    SlotTakenError,
    StoreWriteError,
    VersionConflictError,
)
from ..domain.repositories import SnapshotStore, SnapshotSubscription
from ..domain.services import (
    BookingRules,
    check_known_time,
    check_slot_click,
    is_date_reachable,
    is_slot_reservable,
    to_date_key,
)
from ..domain.snapshot import VersionedSnapshot, get_record, name_colors
from ..domain.window import BookingWindow
from ..utils.time import local_now
from . import reservations as reservation_usecase

logger = logging.getLogger(__name__)

CREATE_FAILED_MESSAGE = "failed to save the reservation, please try again"
CANCEL_FAILED_MESSAGE = "failed to cancel the reservation, please try again"
STALE_MESSAGE = "reservations changed in the meantime, please try again"


class DialogMode(StrEnum):
    CREATE = "create"
    CANCEL = "cancel"
    TAKEN = "taken"
    OVER_LIMIT = "over-limit"


@dataclass
class Dialog:
    mode: DialogMode
    date_key: str
    time_key: str
    error: Optional[str] = None


class BookingSession:
    """
    One viewer's session: a cached snapshot kept current by the store
    subscription, a booking window refreshed by a periodic tick, and the
    dialog state machine driven by slot clicks.

    ``start()`` opens the subscription and launches the tick; ``stop()``
    cancels the tick and releases the subscription.
    """

    def __init__(
        self,
        store: SnapshotStore,
        rules: BookingRules,
        *,
        path: str,
        tick_seconds: float = 60.0,
        clock: Optional[Callable[[], datetime]] = None,
        conditional_writes: bool = False,
    ) -> None:
        self.store = store
        self.rules = rules
        self.path = path
        self.tick_seconds = tick_seconds
        self.clock = clock or (lambda: local_now(rules.tz))
        self.conditional_writes = conditional_writes

        self.now: datetime = self.clock()
        self.window: BookingWindow = rules.window_at(self.now)
        self.current = VersionedSnapshot(snapshot={}, version=0)
        self.colors: Dict[str, str] = {}
        self.selected_date = to_date_key(self.now.astimezone(rules.tz).date())
        self.dialog: Optional[Dialog] = None
        self.notice: Optional[str] = None

        self._subscription: Optional[SnapshotSubscription] = None
        self._tick_task: Optional[asyncio.Task[None]] = None
        self._listen_task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._subscription is not None

    async def start(self) -> None:
        if self.running:
            raise RuntimeError("session already started")
        self._subscription = await self.store.subscribe(self.path)
        self._listen_task = asyncio.create_task(self._listen(self._subscription))
        self._tick_task = asyncio.create_task(self._tick())

    async def stop(self) -> None:
        for task in (self._tick_task, self._listen_task):
            if task is None:
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tick_task = None
        self._listen_task = None
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    async def __aenter__(self) -> "BookingSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> None:
        await self.stop()

    def refresh_window(self) -> BookingWindow:
        self.now = self.clock()
        self.window = self.rules.window_at(self.now)
        return self.window

    def apply_snapshot(self, current: VersionedSnapshot) -> None:
        self.current = current
        self.colors = name_colors(current.snapshot)

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.tick_seconds)
            self.refresh_window()

    async def _listen(self, subscription: SnapshotSubscription) -> None:
        async for current in subscription:
            self.apply_snapshot(current)
            logger.debug("snapshot v%d received for %s", current.version, self.path)

    def select_date(self, date_key: str) -> None:
        self.selected_date = date_key

    def is_reservable(self, time_key: str, date_key: Optional[str] = None) -> bool:
        return is_slot_reservable(self.window, date_key or self.selected_date, time_key, self.rules.tz)

    def is_reachable(self, date_key: str) -> bool:
        return is_date_reachable(self.window, date_key, self.rules.times, self.rules.tz)

    def click_slot(self, time_key: str) -> Optional[Dialog]:
        """Open the create or cancel dialog; an unknown or out-of-window slot only sets ``notice``."""
        self.notice = None
        try:
            check_known_time(time_key, self.rules.times)
            check_slot_click(self.window, self.selected_date, time_key, self.rules.tz)
        except (InputValidationError, OutsideWindowError) as exc:
            self.notice = str(exc)
            return None
        held = get_record(self.current.snapshot, self.selected_date, time_key) is not None
        mode = DialogMode.CANCEL if held else DialogMode.CREATE
        self.dialog = Dialog(mode=mode, date_key=self.selected_date, time_key=time_key)
        return self.dialog

    def close_dialog(self) -> None:
        self.dialog = None

    def _expected_version(self) -> Optional[int]:
        return self.current.version if self.conditional_writes else None

    def _require_dialog(self, mode: DialogMode) -> Dialog:
        if self.dialog is None or self.dialog.mode != mode:
            raise RuntimeError(f"no {mode} dialog is open")
        return self.dialog

    async def submit_create(self, name: str, passphrase: str) -> bool:
        dialog = self._require_dialog(DialogMode.CREATE)
        dialog.error = None
        try:
            await reservation_usecase.create_reservation(
                self.store,
                self.rules,
                path=self.path,
                current=self.current,
                now=self.clock(),
                date_key=dialog.date_key,
                time_key=dialog.time_key,
                name=name,
                passphrase=passphrase,
                expected_version=self._expected_version(),
            )
        except InputValidationError as exc:
            dialog.error = str(exc)
            return False
        except SlotTakenError:
            self.dialog = Dialog(mode=DialogMode.TAKEN, date_key=dialog.date_key, time_key=dialog.time_key)
            return False
        except QuotaExceededError:
            self.dialog = Dialog(mode=DialogMode.OVER_LIMIT, date_key=dialog.date_key, time_key=dialog.time_key)
            return False
        except OutsideWindowError as exc:
            self.dialog = None
            self.notice = str(exc)
            return False
        except VersionConflictError:
            dialog.error = STALE_MESSAGE
            return False
        except StoreWriteError:
            logger.warning("create of %s %s failed", dialog.date_key, dialog.time_key, exc_info=True)
            dialog.error = CREATE_FAILED_MESSAGE
            return False
        self.close_dialog()
        return True

    async def submit_cancel(self, passphrase: str) -> bool:
        dialog = self._require_dialog(DialogMode.CANCEL)
        dialog.error = None
        try:
            await reservation_usecase.cancel_reservation(
                self.store,
                self.rules,
                path=self.path,
                current=self.current,
                now=self.clock(),
                date_key=dialog.date_key,
                time_key=dialog.time_key,
                passphrase=passphrase,
                expected_version=self._expected_version(),
            )
        except InputValidationError as exc:
            dialog.error = str(exc)
            return False
        except OutsideWindowError as exc:
            self.dialog = None
            self.notice = str(exc)
            return False
        except VersionConflictError:
            dialog.error = STALE_MESSAGE
            return False
        except StoreWriteError:
            logger.warning("cancel of %s %s failed", dialog.date_key, dialog.time_key, exc_info=True)
            dialog.error = CANCEL_FAILED_MESSAGE
            return False
        self.close_dialog()
        return True
