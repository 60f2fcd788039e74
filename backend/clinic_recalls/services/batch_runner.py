"""One bounded dispatch pass over due reminders, and the trigger that starts it."""

from __future__ import annotations

import hmac
import logging
from dataclasses import asdict, dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_recalls.core.errors import TriggerUnauthorized
from clinic_recalls.core.settings import Settings
from clinic_recalls.models.recall import RecallStatus
from clinic_recalls.services.dispatcher import RecallDispatcher
from clinic_recalls.services.recall_store import (
    DEFAULT_BATCH_SIZE,
    claim_recall,
    find_due_recalls,
    release_stale_claims,
)
from clinic_recalls.services.timeutils import utcnow

logger = logging.getLogger("clinic_recalls.dispatch")


def authorize_trigger(
    provided_secret: str | None,
    *,
    secret: str | None,
    allow_unauthenticated: bool = False,
) -> None:
    """Raise TriggerUnauthorized unless the caller may start a pass.

    A configured secret must match exactly. With no secret configured the
    trigger is refused unless ``allow_unauthenticated`` was set explicitly.
    """
    if secret is None:
        if allow_unauthenticated:
            return
        raise TriggerUnauthorized("No trigger secret configured")
    if not provided_secret or not hmac.compare_digest(
        provided_secret.encode("utf-8"), secret.encode("utf-8")
    ):
        raise TriggerUnauthorized("Trigger secret mismatch")


@dataclass
class BatchResult:
    processed: int = 0
    contacted: int = 0
    skipped: int = 0
    not_attempted: int = 0
    write_failures: int = 0
    dispatch_failures: int = 0
    claim_conflicts: int = 0
    released_claims: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def _claim(db: Session, dispatcher: RecallDispatcher, record_id: int, *, now: datetime) -> bool:
    try:
        claimed = claim_recall(db, record_id, now=now, model=dispatcher.model)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Could not claim %s %s", dispatcher.model.__tablename__, record_id)
        if dispatcher.reporter is not None:
            dispatcher.reporter.report(
                message="claim failed",
                source=dispatcher.source,
                context={"record_id": record_id},
                error=exc,
            )
        return False
    return claimed


def run_recall_batch(
    db: Session,
    dispatcher: RecallDispatcher,
    *,
    now: datetime | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    claim: bool = False,
    claim_timeout_seconds: int = 900,
) -> BatchResult:
    """Select up to ``batch_size`` due, pending records and dispatch them in order.

    ``processed`` is the number selected, not the number delivered. A failure
    on one record is reported and the pass moves on to the next.
    """
    now = now or utcnow()
    model = dispatcher.model
    result = BatchResult()

    if claim:
        result.released_claims = release_stale_claims(
            db, now=now, timeout_seconds=claim_timeout_seconds, model=model
        )
        db.commit()
        if result.released_claims:
            logger.warning(
                "Released %s stale %s claims", result.released_claims, model.__tablename__
            )

    due = find_due_recalls(db, now=now, limit=batch_size, model=model)
    record_ids = [record.id for record in due]
    result.processed = len(record_ids)
    logger.info("Selected %s due %s", result.processed, model.__tablename__)

    for record, record_id in zip(due, record_ids):
        if claim and not _claim(db, dispatcher, record_id, now=now):
            result.claim_conflicts += 1
            continue

        try:
            dispatched = dispatcher.dispatch(record, now=now, claimed=claim)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Dispatch failed for %s %s", model.__tablename__, record_id)
            if dispatcher.reporter is not None:
                dispatcher.reporter.report(
                    message="dispatch failed",
                    source=dispatcher.source,
                    context={"record_id": record_id},
                    error=exc,
                )
            if claim:
                dispatcher.release(record_id)
            result.dispatch_failures += 1
            continue

        if dispatched.write_failed:
            result.write_failures += 1
        elif dispatched.status is None:
            result.not_attempted += 1
        elif dispatched.written and dispatched.status == RecallStatus.contacted:
            result.contacted += 1
        elif dispatched.written and dispatched.status == RecallStatus.skipped:
            result.skipped += 1

    logger.info(
        "%s pass: processed=%s contacted=%s skipped=%s not_attempted=%s "
        "write_failures=%s dispatch_failures=%s",
        model.__tablename__,
        result.processed,
        result.contacted,
        result.skipped,
        result.not_attempted,
        result.write_failures,
        result.dispatch_failures,
    )
    return result


def batch_options(settings: Settings) -> dict[str, object]:
    return {
        "batch_size": settings.dispatch_batch_size,
        "claim": settings.dispatch_claim_recalls,
        "claim_timeout_seconds": settings.dispatch_claim_timeout_seconds,
    }
