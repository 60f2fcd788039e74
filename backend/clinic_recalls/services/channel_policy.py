"""Resolve which channels a reminder goes out on and what it says.

Pure functions only: every rule, however incomplete, resolves to a policy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from clinic_recalls.models.email_template import EmailTemplate
from clinic_recalls.models.patient import Patient
from clinic_recalls.models.recall_rule import NotificationChannel
from clinic_recalls.services.message_render import (
    build_patient_fields,
    greeting_name,
    render_placeholders,
    service_label,
)

EMAIL_CHANNELS = (NotificationChannel.email, NotificationChannel.both)
SMS_CHANNELS = (NotificationChannel.sms, NotificationChannel.both)


@dataclass(frozen=True)
class ChannelPolicy:
    wants_email: bool
    wants_sms: bool
    subject: str
    body: str

    @property
    def has_channel(self) -> bool:
        return self.wants_email or self.wants_sms


def resolve_channel(
    raw_channel: Any, default_channel: NotificationChannel | None = NotificationChannel.email
) -> tuple[bool, bool]:
    channel = NotificationChannel.parse(raw_channel, default_channel)
    return channel in EMAIL_CHANNELS, channel in SMS_CHANNELS


def resolve_channel_policy(
    rule: Any,
    patient: Patient | None,
    *,
    template: EmailTemplate | None = None,
    placeholders: dict[str, str] | None = None,
    default_channel: NotificationChannel | None = NotificationChannel.email,
    fallback_subject: str | None = None,
    fallback_body: str | None = None,
) -> ChannelPolicy:
    """Build the delivery policy for one reminder.

    Subject and body come from the email template when one is given, then the
    rule's own overrides, then the fallbacks, then a default synthesised from
    the rule's service type and the patient's name. ``{{placeholder}}`` tokens
    are substituted; unknown tokens are left as written.

    With ``default_channel=None`` an absent or unrecognised channel resolves to
    no channel at all.
    """
    wants_email, wants_sms = resolve_channel(getattr(rule, "channel", None), default_channel)

    label = service_label(getattr(rule, "service_type", None))
    data = {
        **build_patient_fields(patient),
        "serviceType": label,
        "button": "",
        **(placeholders or {}),
    }

    subject_source = (
        (template.subject if template else None)
        or getattr(rule, "email_subject", None)
        or fallback_subject
        or f"Promemoria {label}"
    )
    body_source = (
        (template.body if template else None)
        or getattr(rule, "message", None)
        or fallback_body
        or f"Gentile {greeting_name(patient)}, promemoria per {label}."
    )

    return ChannelPolicy(
        wants_email=wants_email,
        wants_sms=wants_sms,
        subject=render_placeholders(subject_source, data),
        body=render_placeholders(body_source, data),
    )
