from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

from clinic_recalls.core.errors import TriggerUnauthorized
from clinic_recalls.core.settings import Settings, get_settings
from clinic_recalls.db.session import get_db, get_session_factory
from clinic_recalls.services.batch_runner import authorize_trigger
from clinic_recalls.services.dispatch_cycle import run_dispatch_cycle
from clinic_recalls.services.email import ResendEmailTransport
from clinic_recalls.services.error_reporting import ErrorReporter
from clinic_recalls.services.sms import ClickSendSmsTransport

logger = logging.getLogger("clinic_recalls.cron")

router = APIRouter(prefix="/recalls", tags=["recalls"])

SEND_FAILED_MESSAGE = "Errore invio richiami"


def get_email_transport(settings: Settings = Depends(get_settings)) -> Any:
    return ResendEmailTransport.from_settings(settings)


def get_sms_transport(
    settings: Settings = Depends(get_settings),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> Any:
    return ClickSendSmsTransport.from_settings(settings, session_factory=session_factory)


def get_error_reporter(
    session_factory: sessionmaker = Depends(get_session_factory),
) -> ErrorReporter:
    return ErrorReporter(session_factory)


def _error_response(status_code: int, error: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "code": code},
        headers={"x-error-code": code},
    )


@router.api_route("/send", methods=["GET", "POST"])
def send_recalls(
    request: Request,
    x_cron_secret: str | None = Header(default=None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    email_transport: Any = Depends(get_email_transport),
    sms_transport: Any = Depends(get_sms_transport),
    reporter: ErrorReporter = Depends(get_error_reporter),
):
    request_id = request.headers.get("x-request-id")
    try:
        authorize_trigger(
            x_cron_secret,
            secret=settings.cron_secret,
            allow_unauthenticated=settings.cron_allow_unauthenticated,
        )
    except TriggerUnauthorized as exc:
        code = reporter.report(
            message="Unauthorized dispatch trigger",
            source="recalls_send",
            path=request.url.path,
            context={"reason": str(exc)},
            request_id=request_id,
        )
        return _error_response(401, "Unauthorized", code)

    try:
        result = run_dispatch_cycle(
            db,
            settings=settings,
            email_transport=email_transport,
            sms_transport=sms_transport,
            reporter=reporter,
        )
    except Exception as exc:
        db.rollback()
        logger.exception("Dispatch cycle failed")
        code = reporter.report(
            message=SEND_FAILED_MESSAGE,
            source="recalls_send",
            path=request.url.path,
            error=exc,
            request_id=request_id,
        )
        return _error_response(500, SEND_FAILED_MESSAGE, code)

    return result
