from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_recalls.models.base import Base, TimestampMixin
from clinic_recalls.models.recall import RecallStatus
from clinic_recalls.models.recall_rule import NotificationChannel


class ReminderTimingType(str, enum.Enum):
    days_before = "DAYS_BEFORE"
    same_day_time = "SAME_DAY_TIME"


class AppointmentReminderRule(Base, TimestampMixin):
    __tablename__ = "appointment_reminder_rules"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    timing_type: Mapped[ReminderTimingType] = mapped_column(
        Enum(ReminderTimingType, name="reminder_timing_type"),
        nullable=False,
        default=ReminderTimingType.days_before,
    )
    days_before: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    time_of_day_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True, default=540)
    channel: Mapped[str | None] = mapped_column(
        String(16), nullable=True, default=NotificationChannel.email.value
    )
    email_subject: Mapped[str | None] = mapped_column(String(300), nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    template_name: Mapped[str | None] = mapped_column(String(120), nullable=True)

    reminders = relationship("AppointmentReminder", back_populates="rule")


class AppointmentReminder(Base, TimestampMixin):
    __tablename__ = "appointment_reminders"
    __table_args__ = (Index("ix_appointment_reminders_status_due_at", "status", "due_at"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    appointment_id: Mapped[int] = mapped_column(
        ForeignKey("appointments.id"), nullable=False, unique=True
    )
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False, index=True)
    rule_id: Mapped[int] = mapped_column(
        ForeignKey("appointment_reminder_rules.id"), nullable=False, index=True
    )
    due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[RecallStatus] = mapped_column(
        Enum(RecallStatus, name="recall_status"),
        nullable=False,
        default=RecallStatus.pending,
    )
    last_contact_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    appointment = relationship("Appointment", lazy="joined")
    patient = relationship("Patient", lazy="joined")
    rule = relationship("AppointmentReminderRule", back_populates="reminders", lazy="joined")
