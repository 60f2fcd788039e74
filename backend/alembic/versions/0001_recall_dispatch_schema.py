"""recall dispatch schema

Revision ID: 0001_recall_dispatch_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_recall_dispatch_schema"
down_revision = None
branch_labels = None
depends_on = None

RECALL_STATUS = ("pending", "in_progress", "contacted", "skipped")
APPOINTMENT_STATUS = (
    "to_confirm",
    "confirmed",
    "in_waiting",
    "in_progress",
    "completed",
    "cancelled",
    "no_show",
)
REMINDER_TIMING = ("days_before", "same_day_time")
SMS_LOG_STATUS = ("sent", "simulated", "failed")


def _enum(values, name):
    return postgresql.ENUM(*values, name=name, create_type=False)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    recall_status = _enum(RECALL_STATUS, "recall_status")
    appointment_status = _enum(APPOINTMENT_STATUS, "appointment_status")
    reminder_timing = _enum(REMINDER_TIMING, "reminder_timing_type")
    sms_log_status = _enum(SMS_LOG_STATUS, "sms_log_status")
    for enum_type in (recall_status, appointment_status, reminder_timing, sms_log_status):
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "patients",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("first_name", sa.String(length=120), nullable=True),
        sa.Column("last_name", sa.String(length=120), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("patient_id", sa.Integer(), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", appointment_status, nullable=False),
        sa.Column("service_type", sa.String(length=120), nullable=True),
        sa.Column("doctor_name", sa.String(length=200), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"]),
    )
    op.create_index("ix_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index("ix_appointments_starts_at", "appointments", ["starts_at"])

    op.create_table(
        "recall_rules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("service_type", sa.String(length=120), nullable=False),
        sa.Column("interval_days", sa.Integer(), nullable=False),
        sa.Column("channel", sa.String(length=16), nullable=True),
        sa.Column("email_subject", sa.String(length=300), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("template_name", sa.String(length=120), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "recalls",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("patient_id", sa.Integer(), nullable=False),
        sa.Column("rule_id", sa.Integer(), nullable=False),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", recall_status, nullable=False),
        sa.Column("last_contact_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"]),
        sa.ForeignKeyConstraint(["rule_id"], ["recall_rules.id"]),
    )
    op.create_index("ix_recalls_patient_id", "recalls", ["patient_id"])
    op.create_index("ix_recalls_rule_id", "recalls", ["rule_id"])
    op.create_index("ix_recalls_status_due_at", "recalls", ["status", "due_at"])

    op.create_table(
        "appointment_reminder_rules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("timing_type", reminder_timing, nullable=False),
        sa.Column("days_before", sa.Integer(), nullable=False),
        sa.Column("time_of_day_minutes", sa.Integer(), nullable=True),
        sa.Column("channel", sa.String(length=16), nullable=True),
        sa.Column("email_subject", sa.String(length=300), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("template_name", sa.String(length=120), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "appointment_reminders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("appointment_id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.Integer(), nullable=False),
        sa.Column("rule_id", sa.Integer(), nullable=False),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", recall_status, nullable=False),
        sa.Column("last_contact_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"]),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"]),
        sa.ForeignKeyConstraint(["rule_id"], ["appointment_reminder_rules.id"]),
        sa.UniqueConstraint("appointment_id"),
    )
    op.create_index("ix_appointment_reminders_patient_id", "appointment_reminders", ["patient_id"])
    op.create_index("ix_appointment_reminders_rule_id", "appointment_reminders", ["rule_id"])
    op.create_index(
        "ix_appointment_reminders_status_due_at", "appointment_reminders", ["status", "due_at"]
    )

    op.create_table(
        "email_templates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("subject", sa.String(length=300), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=80), nullable=True),
        sa.Column("description", sa.String(length=300), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "sms_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("to", sa.String(length=50), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("status", sms_log_status, nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("patient_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"]),
    )
    op.create_index("ix_sms_logs_patient_id", "sms_logs", ["patient_id"])
    op.create_index("ix_sms_logs_created_at", "sms_logs", ["created_at"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("request_id", sa.String(length=120), nullable=True),
        sa.Column("metadata_json", sa.JSON(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_index("ix_sms_logs_created_at", table_name="sms_logs")
    op.drop_index("ix_sms_logs_patient_id", table_name="sms_logs")
    op.drop_table("sms_logs")
    op.drop_table("email_templates")
    op.drop_index("ix_appointment_reminders_status_due_at", table_name="appointment_reminders")
    op.drop_index("ix_appointment_reminders_rule_id", table_name="appointment_reminders")
    op.drop_index("ix_appointment_reminders_patient_id", table_name="appointment_reminders")
    op.drop_table("appointment_reminders")
    op.drop_table("appointment_reminder_rules")
    op.drop_index("ix_recalls_status_due_at", table_name="recalls")
    op.drop_index("ix_recalls_rule_id", table_name="recalls")
    op.drop_index("ix_recalls_patient_id", table_name="recalls")
    op.drop_table("recalls")
    op.drop_table("recall_rules")
    op.drop_index("ix_appointments_starts_at", table_name="appointments")
    op.drop_index("ix_appointments_patient_id", table_name="appointments")
    op.drop_table("appointments")
    op.drop_table("patients")

    bind = op.get_bind()
    for values, name in (
        (SMS_LOG_STATUS, "sms_log_status"),
        (REMINDER_TIMING, "reminder_timing_type"),
        (APPOINTMENT_STATUS, "appointment_status"),
        (RECALL_STATUS, "recall_status"),
    ):
        _enum(values, name).drop(bind, checkfirst=True)
