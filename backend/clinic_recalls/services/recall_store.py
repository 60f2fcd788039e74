"""Query and update primitives the dispatcher needs from the store.

``model`` is either Recall or AppointmentReminder; both share the status
columns. Every status change is a conditional UPDATE on the expected current
status, so a row that another pass already moved on is left alone.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from clinic_recalls.models.recall import Recall, RecallStatus

DEFAULT_BATCH_SIZE = 50


def find_due_recalls(
    db: Session,
    *,
    now: datetime,
    limit: int = DEFAULT_BATCH_SIZE,
    model=Recall,
) -> list:
    stmt = (
        select(model)
        .where(model.status == RecallStatus.pending)
        .where(model.due_at <= now)
        .order_by(model.due_at.asc(), model.id.asc())
        .limit(limit)
    )
    return list(db.scalars(stmt).unique())


def update_recall_status(
    db: Session,
    recall_id: int,
    *,
    status: RecallStatus,
    last_contact_at: datetime,
    expected_status: RecallStatus = RecallStatus.pending,
    model=Recall,
) -> bool:
    result = db.execute(
        update(model)
        .where(model.id == recall_id)
        .where(model.status == expected_status)
        .values(status=status, last_contact_at=last_contact_at, claimed_at=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def claim_recall(db: Session, recall_id: int, *, now: datetime, model=Recall) -> bool:
    result = db.execute(
        update(model)
        .where(model.id == recall_id)
        .where(model.status == RecallStatus.pending)
        .values(status=RecallStatus.in_progress, claimed_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def release_claim(db: Session, recall_id: int, *, model=Recall) -> bool:
    result = db.execute(
        update(model)
        .where(model.id == recall_id)
        .where(model.status == RecallStatus.in_progress)
        .values(status=RecallStatus.pending, claimed_at=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def release_stale_claims(
    db: Session, *, now: datetime, timeout_seconds: int, model=Recall
) -> int:
    threshold = now - timedelta(seconds=timeout_seconds)
    result = db.execute(
        update(model)
        .where(model.status == RecallStatus.in_progress)
        .where(model.claimed_at <= threshold)
        .values(status=RecallStatus.pending, claimed_at=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0
