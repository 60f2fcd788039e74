from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_recalls.models.base import Base, TimestampMixin


class AppointmentStatus(str, enum.Enum):
    to_confirm = "TO_CONFIRM"
    confirmed = "CONFIRMED"
    in_waiting = "IN_WAITING"
    in_progress = "IN_PROGRESS"
    completed = "COMPLETED"
    cancelled = "CANCELLED"
    no_show = "NO_SHOW"


ACTIVE_APPOINTMENT_STATUSES = (
    AppointmentStatus.to_confirm,
    AppointmentStatus.confirmed,
    AppointmentStatus.in_waiting,
    AppointmentStatus.in_progress,
)


class Appointment(Base, TimestampMixin):
    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False, index=True)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[AppointmentStatus] = mapped_column(
        Enum(AppointmentStatus, name="appointment_status"),
        default=AppointmentStatus.to_confirm,
        nullable=False,
    )
    service_type: Mapped[str | None] = mapped_column(String(120), nullable=True)
    doctor_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    patient = relationship("Patient", back_populates="appointments", lazy="joined")
