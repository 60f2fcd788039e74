from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_recalls.models.base import Base, TimestampMixin


class RecallStatus(str, enum.Enum):
    pending = "PENDING"
    in_progress = "IN_PROGRESS"
    contacted = "CONTACTED"
    skipped = "SKIPPED"


class Recall(Base, TimestampMixin):
    __tablename__ = "recalls"
    __table_args__ = (Index("ix_recalls_status_due_at", "status", "due_at"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False, index=True)
    rule_id: Mapped[int] = mapped_column(ForeignKey("recall_rules.id"), nullable=False, index=True)
    due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[RecallStatus] = mapped_column(
        Enum(RecallStatus, name="recall_status"),
        nullable=False,
        default=RecallStatus.pending,
    )
    last_contact_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    patient = relationship("Patient", back_populates="recalls", lazy="joined")
    rule = relationship("RecallRule", back_populates="recalls", lazy="joined")
