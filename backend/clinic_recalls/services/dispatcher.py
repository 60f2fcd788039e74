"""Per-record dispatch: policy, delivery attempts, outcome and status write."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_recalls.models.email_template import EmailTemplate
from clinic_recalls.models.recall import Recall, RecallStatus
from clinic_recalls.models.recall_rule import NotificationChannel
from clinic_recalls.services.channel_policy import ChannelPolicy, resolve_channel_policy
from clinic_recalls.services.delivery import attempt_delivery
from clinic_recalls.services.email import EmailTransport
from clinic_recalls.services.email_templates import get_email_template_by_name
from clinic_recalls.services.error_reporting import ErrorReporter
from clinic_recalls.services.recall_store import release_claim, update_recall_status
from clinic_recalls.services.sms import SmsTransport

logger = logging.getLogger("clinic_recalls.dispatch")

TemplateLookup = Callable[[Session, str | None], EmailTemplate | None]


class DispatchOutcome(str, enum.Enum):
    not_attempted = "NOT_ATTEMPTED"
    attempted_delivered = "ATTEMPTED_DELIVERED"
    attempted_failed = "ATTEMPTED_FAILED"
    not_applicable = "NOT_APPLICABLE"


def status_for_outcome(outcome: DispatchOutcome) -> RecallStatus | None:
    if outcome == DispatchOutcome.attempted_delivered:
        return RecallStatus.contacted
    if outcome in (DispatchOutcome.attempted_failed, DispatchOutcome.not_applicable):
        return RecallStatus.skipped
    return None


@dataclass
class DispatchResult:
    record_id: int
    outcome: DispatchOutcome
    status: RecallStatus | None = None
    written: bool = False
    write_failed: bool = False
    email_sent: bool = False
    sms_sent: bool = False


class RecallDispatcher:
    """Dispatches one due record at a time.

    A record whose policy names at least one channel always ends in a terminal
    status, even when the patient has no address for that channel. A policy
    with no channel leaves the record untouched for the next pass.
    """

    source = "recalls_send"
    model: Any = Recall

    def __init__(
        self,
        db: Session,
        *,
        email_transport: EmailTransport,
        sms_transport: SmsTransport,
        reporter: ErrorReporter | None = None,
        clinic_name: str = "",
        default_channel: NotificationChannel | None = NotificationChannel.email,
        template_lookup: TemplateLookup = get_email_template_by_name,
    ) -> None:
        self.db = db
        self.email_transport = email_transport
        self.sms_transport = sms_transport
        self.reporter = reporter
        self.clinic_name = clinic_name
        self.default_channel = default_channel
        self.template_lookup = template_lookup

    def placeholders(self, record: Any, *, now: datetime) -> dict[str, str]:
        return {"clinicName": self.clinic_name}

    def template_name(self, record: Any) -> str | None:
        return getattr(record.rule, "template_name", None)

    def resolve_policy(self, record: Any, *, now: datetime) -> ChannelPolicy:
        template = self.template_lookup(self.db, self.template_name(record))
        return resolve_channel_policy(
            record.rule,
            record.patient,
            template=template,
            placeholders=self.placeholders(record, now=now),
            default_channel=self.default_channel,
        )

    def skip_reason(self, record: Any, *, now: datetime) -> str | None:
        return None

    def _context(self, record: Any) -> dict[str, Any]:
        return {"record_id": record.id, "patient_id": record.patient_id, "source": self.source}

    def deliver(self, record: Any, policy: ChannelPolicy) -> tuple[DispatchOutcome, bool, bool]:
        patient = record.patient
        context = self._context(record)
        attempted = False
        delivered = False
        email_sent = False
        sms_sent = False

        if policy.wants_email:
            attempted = True
            if patient is not None and patient.email:
                email_sent = attempt_delivery(
                    NotificationChannel.email,
                    self.email_transport,
                    patient.email,
                    policy.subject,
                    policy.body,
                    reporter=self.reporter,
                    source=self.source,
                    context=context,
                )
                delivered = delivered or email_sent

        if policy.wants_sms:
            attempted = True
            if patient is not None and patient.phone:
                sms_sent = attempt_delivery(
                    NotificationChannel.sms,
                    self.sms_transport,
                    patient.phone,
                    policy.subject,
                    policy.body,
                    reporter=self.reporter,
                    source=self.source,
                    context=context,
                )
                delivered = delivered or sms_sent

        if not attempted:
            return DispatchOutcome.not_attempted, email_sent, sms_sent
        if delivered:
            return DispatchOutcome.attempted_delivered, email_sent, sms_sent
        return DispatchOutcome.attempted_failed, email_sent, sms_sent

    def write_status(
        self,
        record_id: int,
        status: RecallStatus,
        *,
        now: datetime,
        expected_status: RecallStatus,
    ) -> tuple[bool, bool]:
        """Commit the terminal status; returns ``(written, failed)``."""
        try:
            written = update_recall_status(
                self.db,
                record_id,
                status=status,
                last_contact_at=now,
                expected_status=expected_status,
                model=self.model,
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Status write failed for %s %s", self.model.__tablename__, record_id)
            if self.reporter is not None:
                self.reporter.report(
                    message="status write failed",
                    source=self.source,
                    context={"record_id": record_id, "status": status.value},
                    error=exc,
                )
            return False, True

        if not written:
            logger.warning(
                "%s %s was no longer %s; status %s not written",
                self.model.__tablename__,
                record_id,
                expected_status.value,
                status.value,
            )
        return written, False

    def release(self, record_id: int) -> None:
        try:
            release_claim(self.db, record_id, model=self.model)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Could not release claim on %s %s", self.model.__tablename__, record_id)
            if self.reporter is not None:
                self.reporter.report(
                    message="claim release failed",
                    source=self.source,
                    context={"record_id": record_id},
                    error=exc,
                )

    def dispatch(self, record: Any, *, now: datetime, claimed: bool = False) -> DispatchResult:
        record_id = record.id
        expected = RecallStatus.in_progress if claimed else RecallStatus.pending

        reason = self.skip_reason(record, now=now)
        if reason is not None:
            logger.info("Skipping %s %s: %s", self.model.__tablename__, record_id, reason)
            outcome, email_sent, sms_sent = DispatchOutcome.not_applicable, False, False
        else:
            policy = self.resolve_policy(record, now=now)
            outcome, email_sent, sms_sent = self.deliver(record, policy)

        status = status_for_outcome(outcome)
        result = DispatchResult(
            record_id=record_id,
            outcome=outcome,
            status=status,
            email_sent=email_sent,
            sms_sent=sms_sent,
        )
        if status is None:
            logger.warning(
                "%s %s resolved to no delivery channel; left pending",
                self.model.__tablename__,
                record_id,
            )
            if claimed:
                self.release(record_id)
            return result

        result.written, result.write_failed = self.write_status(
            record_id, status, now=now, expected_status=expected
        )
        return result
