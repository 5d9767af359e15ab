import asyncio
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from slotbook.domain.services import BookingRules
from slotbook.domain.snapshot import ReservationRecord
from slotbook.usecases.session import CREATE_FAILED_MESSAGE, BookingSession, DialogMode

KST = ZoneInfo("Asia/Seoul")
NOW = datetime(2025, 1, 14, 15, 0, tzinfo=KST)
PATH = "reservations"


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def _session(store, rules: BookingRules, **kwargs) -> BookingSession:
    return BookingSession(store, rules, path=PATH, clock=lambda: NOW, **kwargs)


@pytest.mark.asyncio
async def test_start_receives_current_snapshot_and_stop_releases_subscription(store, rules: BookingRules) -> None:
    store.seed({"2025-01-15": {"09:00": ReservationRecord("Bob", "b")}})
    session = _session(store, rules)
    await session.start()
    await _settle()
    assert session.current.snapshot == store.current.snapshot
    assert session.colors == {"Bob": "#FFD1DC"}
    assert store.broadcaster.subscriber_count(PATH) == 1

    with pytest.raises(RuntimeError):
        await session.start()

    await session.stop()
    assert store.broadcaster.subscriber_count(PATH) == 0
    assert session.running is False


@pytest.mark.asyncio
async def test_pushes_replace_cached_snapshot(store, rules: BookingRules) -> None:
    async with _session(store, rules) as session:
        await _settle()
        await store.replace(PATH, {"2025-01-16": {"12:00": ReservationRecord("Carol", "c")}})
        await _settle()
        assert session.current.snapshot == {"2025-01-16": {"12:00": ReservationRecord("Carol", "c")}}
        await store.replace(PATH, {})
        await _settle()
        assert session.current.snapshot == {}


@pytest.mark.asyncio
async def test_tick_recomputes_window(store, rules: BookingRules) -> None:
    times = [datetime(2025, 1, 14, 11, 59, tzinfo=KST)]
    session = BookingSession(store, rules, path=PATH, tick_seconds=0.01, clock=lambda: times[-1])
    assert session.window.cycle_start == datetime(2025, 1, 7, 12, 0, tzinfo=KST)
    async with session:
        times.append(datetime(2025, 1, 14, 12, 0, tzinfo=KST))
        await asyncio.sleep(0.05)
        assert session.window.cycle_start == datetime(2025, 1, 14, 12, 0, tzinfo=KST)


@pytest.mark.asyncio
async def test_click_outside_window_sets_notice_without_dialog(store, rules: BookingRules) -> None:
    session = _session(store, rules)
    session.select_date("2025-01-14")
    assert session.click_slot("18:00") is None
    assert session.dialog is None
    assert session.notice == "slot is outside this cycle's reservable range"


@pytest.mark.asyncio
async def test_create_flow_closes_dialog_and_push_updates_cache(store, rules: BookingRules) -> None:
    async with _session(store, rules) as session:
        await _settle()
        session.select_date("2025-01-15")
        dialog = session.click_slot("09:00")
        assert dialog is not None and dialog.mode == DialogMode.CREATE

        assert await session.submit_create("", "pw") is False
        assert session.dialog is not None and session.dialog.error

        assert await session.submit_create("Alice", "pw") is True
        assert session.dialog is None
        await _settle()
        assert session.current.snapshot["2025-01-15"]["09:00"].name == "Alice"

        dialog = session.click_slot("09:00")
        assert dialog is not None and dialog.mode == DialogMode.CANCEL


@pytest.mark.asyncio
async def test_lost_race_switches_to_taken(store, rules: BookingRules) -> None:
    async with _session(store, rules) as session:
        await _settle()
        session.select_date("2025-01-15")
        session.click_slot("09:00")
        await store.replace(PATH, {"2025-01-15": {"09:00": ReservationRecord("Bob", "b")}})
        await _settle()
        assert await session.submit_create("Alice", "pw") is False
        assert session.dialog is not None and session.dialog.mode == DialogMode.TAKEN


@pytest.mark.asyncio
async def test_quota_switches_to_over_limit(store, rules: BookingRules) -> None:
    store.seed(
        {
            "2025-01-15": {"09:00": ReservationRecord("Alice", "a")},
            "2025-01-16": {"12:00": ReservationRecord("Alice", "a")},
            "2025-01-17": {"15:00": ReservationRecord("Alice", "a")},
        }
    )
    async with _session(store, rules) as session:
        await _settle()
        session.select_date("2025-01-20")
        session.click_slot("09:00")
        assert await session.submit_create("Alice", "a") is False
        assert session.dialog is not None and session.dialog.mode == DialogMode.OVER_LIMIT


@pytest.mark.asyncio
async def test_store_failure_keeps_dialog_open(store, rules: BookingRules) -> None:
    store.fail_writes = True
    session = _session(store, rules)
    session.select_date("2025-01-15")
    session.click_slot("09:00")
    assert await session.submit_create("Alice", "pw") is False
    assert session.dialog is not None
    assert session.dialog.mode == DialogMode.CREATE
    assert session.dialog.error == CREATE_FAILED_MESSAGE
    assert len(store.replace_calls) == 1


@pytest.mark.asyncio
async def test_cancel_flow(store, rules: BookingRules) -> None:
    store.seed({"2025-01-15": {"09:00": ReservationRecord("Alice", "secret")}})
    async with _session(store, rules) as session:
        await _settle()
        session.select_date("2025-01-15")
        session.click_slot("09:00")
        assert await session.submit_cancel("wrong") is False
        assert session.dialog is not None and session.dialog.error == "passphrase does not match"
        assert await session.submit_cancel("secret") is True
        await _settle()
        assert session.current.snapshot == {}


@pytest.mark.asyncio
async def test_conditional_writes_send_observed_version(store, rules: BookingRules) -> None:
    async with _session(store, rules, conditional_writes=True) as session:
        await _settle()
        session.select_date("2025-01-15")
        session.click_slot("09:00")
        await session.submit_create("Alice", "pw")
        assert store.replace_calls[-1][2] == 0


@pytest.mark.asyncio
async def test_submit_without_dialog_is_a_programming_error(store, rules: BookingRules) -> None:
    session = _session(store, rules)
    with pytest.raises(RuntimeError):
        await session.submit_cancel("pw")


@pytest.mark.asyncio
async def test_reservability_helpers_follow_window(store, rules: BookingRules) -> None:
    session = _session(store, rules)
    session.select_date("2025-01-15")
    assert session.is_reservable("00:00") is True
    assert session.is_reservable("12:00", "2025-01-14") is False
    assert session.is_reachable("2025-01-21") is True
    assert session.is_reachable("2025-01-22") is False


@pytest.mark.asyncio
async def test_click_with_bad_keys_sets_notice_without_dialog(store, rules: BookingRules) -> None:
    session = _session(store, rules)
    session.select_date("not-a-date")
    assert session.click_slot("09:00") is None
    assert session.dialog is None
    assert session.notice == "invalid date key: 'not-a-date'"

    session.select_date("2025-01-15")
    assert session.click_slot("10:30") is None
    assert session.dialog is None
    assert session.notice == "unknown slot time: '10:30'"
