from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from clinic_recalls.core.settings import Settings
from clinic_recalls.services.appointment_reminders import (
    AppointmentReminderDispatcher,
    enqueue_appointment_reminders,
)
from clinic_recalls.services.batch_runner import BatchResult, batch_options, run_recall_batch
from clinic_recalls.services.dispatcher import RecallDispatcher
from clinic_recalls.services.error_reporting import ErrorReporter
from clinic_recalls.services.recall_scheduling import enqueue_recurring_recalls
from clinic_recalls.services.timeutils import utcnow

logger = logging.getLogger("clinic_recalls.dispatch")


def run_recall_pass(
    db: Session,
    *,
    settings: Settings,
    email_transport: Any,
    sms_transport: Any,
    reporter: ErrorReporter | None = None,
    now: datetime | None = None,
    batch_size: int | None = None,
) -> BatchResult:
    dispatcher = RecallDispatcher(
        db,
        email_transport=email_transport,
        sms_transport=sms_transport,
        reporter=reporter,
        clinic_name=settings.clinic_name,
    )
    options = batch_options(settings)
    if batch_size is not None:
        options["batch_size"] = batch_size
    return run_recall_batch(db, dispatcher, now=now, **options)


def run_appointment_reminder_batch(
    db: Session,
    *,
    settings: Settings,
    email_transport: Any,
    sms_transport: Any,
    reporter: ErrorReporter | None = None,
    now: datetime | None = None,
    batch_size: int | None = None,
) -> BatchResult:
    dispatcher = AppointmentReminderDispatcher(
        db,
        tz=ZoneInfo(settings.clinic_timezone),
        email_transport=email_transport,
        sms_transport=sms_transport,
        reporter=reporter,
        clinic_name=settings.clinic_name,
    )
    options = batch_options(settings)
    if batch_size is not None:
        options["batch_size"] = batch_size
    return run_recall_batch(db, dispatcher, now=now, **options)


def run_dispatch_cycle(
    db: Session,
    *,
    settings: Settings,
    email_transport: Any,
    sms_transport: Any,
    reporter: ErrorReporter | None = None,
    now: datetime | None = None,
    batch_size: int | None = None,
    enqueue: bool = True,
) -> dict[str, int]:
    """Schedule what has come due, then run one recall pass and one reminder pass.

    Returns ``processed`` (recalls selected) and ``appointment_reminders``
    (reminders selected). Scheduling failures propagate to the caller.
    """
    now = now or utcnow()
    if enqueue:
        scheduled = enqueue_recurring_recalls(db, now=now, horizon_days=settings.dispatch_horizon_days)
        reminders = enqueue_appointment_reminders(
            db,
            now=now,
            horizon_days=settings.dispatch_horizon_days,
            tz=ZoneInfo(settings.clinic_timezone),
        )
        logger.info("Scheduled recalls=%s appointment_reminders=%s", scheduled, reminders)

    kwargs = {
        "settings": settings,
        "email_transport": email_transport,
        "sms_transport": sms_transport,
        "reporter": reporter,
        "now": now,
        "batch_size": batch_size,
    }
    recalls = run_recall_pass(db, **kwargs)
    reminders_result = run_appointment_reminder_batch(db, **kwargs)
    return {
        "processed": recalls.processed,
        "appointment_reminders": reminders_result.processed,
    }
