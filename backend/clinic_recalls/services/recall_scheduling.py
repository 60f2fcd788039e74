from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clinic_recalls.models.appointment import Appointment, AppointmentStatus
from clinic_recalls.models.recall import Recall, RecallStatus
from clinic_recalls.models.recall_rule import ANY_SERVICE_TYPE, RecallRule
from clinic_recalls.services.timeutils import ensure_utc

logger = logging.getLogger("clinic_recalls.scheduling")

DEFAULT_HORIZON_DAYS = 30


def next_recall_due(
    *,
    last_visit: datetime,
    last_recall_due: datetime | None,
    interval_days: int,
    now: datetime,
) -> datetime:
    interval = timedelta(days=interval_days)
    next_due = last_visit + interval
    if last_recall_due is not None and last_recall_due >= last_visit:
        next_due = last_recall_due + interval
    if next_due < now:
        next_due = now
    return next_due


def enqueue_recurring_recalls(
    db: Session, *, now: datetime, horizon_days: int = DEFAULT_HORIZON_DAYS
) -> int:
    """Create the next PENDING recall for each patient a rule's cadence has come round for.

    A patient qualifies when they have a completed appointment for the rule's
    service (any service for ``ANY``) and no open recall for the rule. The next
    due date counts from the later of the last visit and the last recall;
    recalls due beyond the horizon are not created yet.
    """
    horizon = now + timedelta(days=horizon_days)
    created = 0

    for rule in db.scalars(select(RecallRule).order_by(RecallRule.id)):
        if rule.interval_days <= 0:
            logger.warning("Recall rule %s has non-positive interval; skipped", rule.id)
            continue

        visits_stmt = (
            select(Appointment.patient_id, func.max(Appointment.starts_at))
            .where(Appointment.status == AppointmentStatus.completed)
            .where(Appointment.starts_at <= now)
            .group_by(Appointment.patient_id)
        )
        if rule.service_type != ANY_SERVICE_TYPE:
            visits_stmt = visits_stmt.where(Appointment.service_type == rule.service_type)
        last_visits = dict(db.execute(visits_stmt).all())

        last_recalls = dict(
            db.execute(
                select(Recall.patient_id, func.max(Recall.due_at))
                .where(Recall.rule_id == rule.id)
                .group_by(Recall.patient_id)
            ).all()
        )
        open_patients = set(
            db.scalars(
                select(Recall.patient_id)
                .where(Recall.rule_id == rule.id)
                .where(Recall.status.in_([RecallStatus.pending, RecallStatus.in_progress]))
                .distinct()
            )
        )

        for patient_id, last_visit in last_visits.items():
            if last_visit is None or patient_id in open_patients:
                continue
            last_recall_due = last_recalls.get(patient_id)
            due_at = next_recall_due(
                last_visit=ensure_utc(last_visit),
                last_recall_due=ensure_utc(last_recall_due) if last_recall_due else None,
                interval_days=rule.interval_days,
                now=now,
            )
            if due_at > horizon:
                continue
            db.add(
                Recall(
                    patient_id=patient_id,
                    rule_id=rule.id,
                    due_at=due_at,
                    status=RecallStatus.pending,
                )
            )
            created += 1

    if created:
        db.commit()
        logger.info("Scheduled %s recurring recalls", created)
    return created
