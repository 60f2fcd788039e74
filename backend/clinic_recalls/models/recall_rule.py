from __future__ import annotations

import enum

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_recalls.models.base import Base, TimestampMixin

ANY_SERVICE_TYPE = "ANY"


class NotificationChannel(str, enum.Enum):
    email = "EMAIL"
    sms = "SMS"
    both = "BOTH"

    @classmethod
    def parse(
        cls, raw: object, default: NotificationChannel | None = None
    ) -> NotificationChannel | None:
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, str):
            cleaned = raw.strip().upper()
            for member in cls:
                if member.value == cleaned:
                    return member
        return default


class RecallRule(Base, TimestampMixin):
    __tablename__ = "recall_rules"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    service_type: Mapped[str] = mapped_column(String(120), nullable=False)
    interval_days: Mapped[int] = mapped_column(Integer, nullable=False)
    # Free text: rows edited outside the engine may carry values NotificationChannel does not know.
    channel: Mapped[str | None] = mapped_column(
        String(16), nullable=True, default=NotificationChannel.email.value
    )
    email_subject: Mapped[str | None] = mapped_column(String(300), nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    template_name: Mapped[str | None] = mapped_column(String(120), nullable=True)

    recalls = relationship("Recall", back_populates="rule")
