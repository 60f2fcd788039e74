from clinic_recalls.models.base import Base
from clinic_recalls.models.audit_log import AuditLog
from clinic_recalls.models.patient import Patient
from clinic_recalls.models.appointment import Appointment, AppointmentStatus
from clinic_recalls.models.recall_rule import NotificationChannel, RecallRule
from clinic_recalls.models.recall import Recall, RecallStatus
from clinic_recalls.models.appointment_reminder import (
    AppointmentReminder,
    AppointmentReminderRule,
    ReminderTimingType,
)
from clinic_recalls.models.email_template import EmailTemplate
from clinic_recalls.models.sms_log import SmsLog, SmsLogStatus

__all__ = [
    "Base",
    "AuditLog",
    "Patient",
    "Appointment",
    "AppointmentStatus",
    "NotificationChannel",
    "RecallRule",
    "Recall",
    "RecallStatus",
    "AppointmentReminder",
    "AppointmentReminderRule",
    "ReminderTimingType",
    "EmailTemplate",
    "SmsLog",
    "SmsLogStatus",
]
