import json
from typing import Any, List

import pytest
from slotbook.utils import audit_log
from slotbook.utils.request_id import set_request_id


def test_emit_audit_log_outputs_json(monkeypatch) -> None:
    messages: List[str] = []

    class DummyLogger:
        def info(self, message: str) -> None:
            messages.append(message)

    monkeypatch.setattr(audit_log, "_audit_logger", DummyLogger())

    set_request_id("req-123")
    audit_log.emit_audit_log(
        action="reservation.created",
        outcome="ok",
        date_key="2025-01-15",
        time_key="09:00",
        name=" 김민지 ",
        version=4,
    )
    set_request_id(None)
    assert len(messages) == 1
    payload = json.loads(messages[0])
    assert payload["action"] == "reservation.created"
    assert payload["outcome"] == "ok"
    assert payload["request_id"] == "req-123"
    assert payload["name"] == "김민지"
    assert payload["version"] == 4
    assert "timestamp" in payload


def test_emit_audit_log_drops_empty_fields(monkeypatch) -> None:
    messages: List[str] = []

    class DummyLogger:
        def info(self, message: str) -> None:
            messages.append(message)

    monkeypatch.setattr(audit_log, "_audit_logger", DummyLogger())
    audit_log.emit_audit_log(action="admin.login", outcome="denied")
    payload = json.loads(messages[0])
    assert "date" not in payload
    assert "name" not in payload


def test_emit_audit_log_raises_on_logger_failure(monkeypatch) -> None:
    class DummyLogger:
        def info(self, _: Any) -> None:
            raise ValueError("fail")

    monkeypatch.setattr(audit_log, "_audit_logger", DummyLogger())

    with pytest.raises(RuntimeError):
        audit_log.emit_audit_log(
            action="reservation.cancelled",
            outcome="ok",
            date_key="2025-01-15",
            time_key="09:00",
            version=2,
        )
