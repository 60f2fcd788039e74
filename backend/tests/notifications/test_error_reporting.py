import re

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from clinic_recalls.models.audit_log import AuditLog
from clinic_recalls.services.error_reporting import ErrorReporter, create_error_code, serialize_error

ERROR_CODE = re.compile(r"^ERR-[0-9A-Z]+-[0-9A-Z]{4}$")


def test_error_code_format():
    code = create_error_code(now_ms=1_700_000_000_000)

    assert ERROR_CODE.match(code)
    assert code.startswith("ERR-LOYW3V28-")


def test_serialize_error_includes_cause():
    try:
        try:
            raise ValueError("bad row")
        except ValueError as inner:
            raise RuntimeError("dispatch failed") from inner
    except RuntimeError as exc:
        payload = serialize_error(exc)

    assert payload["name"] == "RuntimeError"
    assert payload["cause"] == {"name": "ValueError", "message": "bad row"}


def test_report_writes_audit_row(session_factory):
    reporter = ErrorReporter(session_factory)

    code = reporter.report(
        message="email delivery failed",
        source="recalls_send",
        context={"record_id": 4},
        error=RuntimeError("boom"),
    )

    db = session_factory()
    try:
        entry = db.scalar(select(AuditLog))
        assert entry.action == "error.reported"
        assert entry.entity_id == code
        assert entry.metadata_json["source"] == "recalls_send"
        assert entry.metadata_json["context"] == {"record_id": 4}
        assert entry.metadata_json["error"]["message"] == "boom"
    finally:
        db.close()


def test_record_uses_event_as_message(session_factory):
    code = ErrorReporter(session_factory).record("sms delivery failed", {"source": "appointment_reminders"})

    db = session_factory()
    try:
        entry = db.scalar(select(AuditLog).where(AuditLog.entity_id == code))
        assert entry.metadata_json["message"] == "sms delivery failed"
        assert entry.metadata_json["source"] == "appointment_reminders"
    finally:
        db.close()


def test_sink_failure_is_swallowed(session_factory, monkeypatch):
    from clinic_recalls.services import error_reporting

    def broken_log_event(*args, **kwargs):
        raise OperationalError("INSERT audit_logs", {}, Exception("disk full"))

    monkeypatch.setattr(error_reporting, "log_event", broken_log_event)

    code = ErrorReporter(session_factory).report(message="anything")

    assert ERROR_CODE.match(code)
