from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from clinic_recalls.models.appointment import (
    ACTIVE_APPOINTMENT_STATUSES,
    Appointment,
    AppointmentStatus,
)
from clinic_recalls.models.appointment_reminder import (
    AppointmentReminder,
    AppointmentReminderRule,
    ReminderTimingType,
)
from clinic_recalls.models.recall import RecallStatus
from clinic_recalls.services.channel_policy import ChannelPolicy, resolve_channel_policy
from clinic_recalls.services.dispatcher import RecallDispatcher
from clinic_recalls.services.email_templates import APPOINTMENT_REMINDER_TEMPLATE
from clinic_recalls.services.recall_scheduling import DEFAULT_HORIZON_DAYS
from clinic_recalls.services.timeutils import ensure_utc

logger = logging.getLogger("clinic_recalls.scheduling")

DEFAULT_TIME_OF_DAY_MINUTES = 540
DEFAULT_CLINIC_TZ = ZoneInfo("Europe/Rome")

REMINDER_SUBJECT = "Promemoria appuntamento"
REMINDER_BODY = (
    "Gentile {{patientName}}, promemoria per l'appuntamento del {{appointmentDate}} "
    "alle {{appointmentTime}} con {{doctorName}}."
)

_IT_MONTHS = ("gen", "feb", "mar", "apr", "mag", "giu", "lug", "ago", "set", "ott", "nov", "dic")


def format_italian_date(value: datetime, tz: ZoneInfo = DEFAULT_CLINIC_TZ) -> str:
    local = ensure_utc(value).astimezone(tz)
    return f"{local.day} {_IT_MONTHS[local.month - 1]} {local.year}"


def format_italian_time(value: datetime, tz: ZoneInfo = DEFAULT_CLINIC_TZ) -> str:
    local = ensure_utc(value).astimezone(tz)
    return f"{local.hour:02d}:{local.minute:02d}"


def reminder_due_at(
    rule: AppointmentReminderRule,
    starts_at: datetime,
    *,
    tz: ZoneInfo = DEFAULT_CLINIC_TZ,
) -> datetime:
    starts_at = ensure_utc(starts_at)
    if rule.timing_type == ReminderTimingType.same_day_time:
        minutes = (
            rule.time_of_day_minutes
            if isinstance(rule.time_of_day_minutes, int)
            else DEFAULT_TIME_OF_DAY_MINUTES
        )
        local = starts_at.astimezone(tz).replace(
            hour=minutes // 60, minute=minutes % 60, second=0, microsecond=0
        )
        return local.astimezone(timezone.utc)
    return starts_at - timedelta(days=rule.days_before)


def enqueue_appointment_reminders(
    db: Session,
    *,
    now: datetime,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    tz: ZoneInfo = DEFAULT_CLINIC_TZ,
) -> int:
    rule = db.scalar(
        select(AppointmentReminderRule)
        .where(AppointmentReminderRule.enabled.is_(True))
        .order_by(AppointmentReminderRule.id)
        .limit(1)
    )
    if rule is None:
        return 0

    horizon = now + timedelta(days=horizon_days)
    upper_bound = horizon
    if rule.timing_type == ReminderTimingType.days_before:
        upper_bound = horizon + timedelta(days=rule.days_before)

    appointments = list(
        db.scalars(
            select(Appointment)
            .where(Appointment.starts_at > now)
            .where(Appointment.starts_at <= upper_bound)
            .where(Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES))
        ).unique()
    )
    if not appointments:
        return 0

    existing = set(
        db.scalars(
            select(AppointmentReminder.appointment_id).where(
                AppointmentReminder.appointment_id.in_([a.id for a in appointments])
            )
        )
    )

    created = 0
    for appointment in appointments:
        if appointment.id in existing:
            continue
        due_at = reminder_due_at(rule, appointment.starts_at, tz=tz)
        if due_at < now:
            due_at = now
        if due_at > horizon:
            continue
        db.add(
            AppointmentReminder(
                appointment_id=appointment.id,
                patient_id=appointment.patient_id,
                rule_id=rule.id,
                due_at=due_at,
                status=RecallStatus.pending,
            )
        )
        created += 1

    if created:
        db.commit()
        logger.info("Scheduled %s appointment reminders", created)
    return created


class AppointmentReminderDispatcher(RecallDispatcher):
    """Dispatches appointment reminders; stale appointments are skipped unsent."""

    source = "appointment_reminders"
    model: Any = AppointmentReminder
    closed_statuses = (
        AppointmentStatus.cancelled,
        AppointmentStatus.no_show,
        AppointmentStatus.completed,
    )

    def __init__(self, db: Session, *, tz: ZoneInfo = DEFAULT_CLINIC_TZ, **kwargs) -> None:
        super().__init__(db, **kwargs)
        self.tz = tz

    def template_name(self, record: Any) -> str | None:
        return getattr(record.rule, "template_name", None) or APPOINTMENT_REMINDER_TEMPLATE

    def placeholders(self, record: Any, *, now: datetime) -> dict[str, str]:
        appointment = record.appointment
        return {
            **super().placeholders(record, now=now),
            "appointmentDate": format_italian_date(appointment.starts_at, self.tz),
            "appointmentTime": format_italian_time(appointment.starts_at, self.tz),
            "doctorName": appointment.doctor_name or "lo staff",
        }

    def resolve_policy(self, record: Any, *, now: datetime) -> ChannelPolicy:
        template = self.template_lookup(self.db, self.template_name(record))
        return resolve_channel_policy(
            record.rule,
            record.patient,
            template=template,
            placeholders=self.placeholders(record, now=now),
            default_channel=self.default_channel,
            fallback_subject=REMINDER_SUBJECT,
            fallback_body=REMINDER_BODY,
        )

    def skip_reason(self, record: Any, *, now: datetime) -> str | None:
        appointment = record.appointment
        if appointment is None:
            return "appointment missing"
        if ensure_utc(appointment.starts_at) <= now:
            return "appointment already started"
        if appointment.status in self.closed_statuses:
            return f"appointment {appointment.status.value.lower()}"
        return None
