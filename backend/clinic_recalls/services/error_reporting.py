"""Error/audit sink used by the dispatch engine.

Reports are written to the audit log under the action ``error.reported`` with
a short error code that is also returned to the caller (and exposed in HTTP
error responses) so operators can correlate a failure with its audit row.
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_recalls.services.audit import log_event

logger = logging.getLogger("clinic_recalls.errors")

_BASE36 = string.digits + string.ascii_uppercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def create_error_code(now_ms: int | None = None) -> str:
    stamp = _to_base36(now_ms if now_ms is not None else int(time.time() * 1000))
    rand = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"ERR-{stamp}-{rand}"


def serialize_error(error: BaseException | None) -> dict[str, Any] | None:
    if error is None:
        return None
    payload: dict[str, Any] = {
        "name": type(error).__name__,
        "message": str(error),
    }
    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int):
        payload["status_code"] = status_code
    cause = error.__cause__ or error.__context__
    if cause is not None and cause is not error:
        payload["cause"] = serialize_error(cause)
    return payload


def to_json_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(key): to_json_value(entry) for key, entry in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_json_value(entry) for entry in value]
    if hasattr(value, "value"):
        return to_json_value(value.value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


class ErrorReporter:
    """Fire-and-forget sink; a failure to persist a report is logged, not raised."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def report(
        self,
        *,
        message: str,
        source: str | None = None,
        path: str | None = None,
        context: dict[str, Any] | None = None,
        error: BaseException | None = None,
        code: str | None = None,
        request_id: str | None = None,
    ) -> str:
        error_code = code or create_error_code()
        logger.error(
            "App error reported: %s (code=%s source=%s path=%s)",
            message,
            error_code,
            source,
            path,
            exc_info=error,
        )
        metadata = {
            "code": error_code,
            "message": message,
            "source": source,
            "path": path,
            "context": to_json_value(context) if context else None,
            "error": serialize_error(error),
        }

        db = self._session_factory()
        try:
            log_event(
                db,
                action="error.reported",
                entity_type="System",
                entity_id=error_code,
                metadata=metadata,
                request_id=request_id,
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not persist error report %s", error_code)
        finally:
            db.close()
        return error_code

    def record(self, event: str, context: dict[str, Any] | None = None) -> str:
        context = dict(context or {})
        error = context.pop("error", None)
        return self.report(
            message=event,
            source=context.pop("source", None),
            context=context,
            error=error if isinstance(error, BaseException) else None,
        )
