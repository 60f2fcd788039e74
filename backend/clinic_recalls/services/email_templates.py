from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clinic_recalls.models.email_template import EmailTemplate

APPOINTMENT_REMINDER_TEMPLATE = "appointment-reminder"
RECALL_REMINDER_TEMPLATE = "recall-reminder"

DEFAULT_EMAIL_TEMPLATES: list[dict[str, str]] = [
    {
        "name": APPOINTMENT_REMINDER_TEMPLATE,
        "category": "Promemoria",
        "description": "Promemoria per appuntamenti programmati.",
        "subject": "Promemoria appuntamento {{appointmentDate}}",
        "body": (
            "Ciao {{patientName}},\n\n"
            "Ti ricordiamo il tuo appuntamento il {{appointmentDate}} alle {{appointmentTime}} "
            "con {{doctorName}}.\n\n"
            "{{button}}\n\n"
            "A presto,\n{{clinicName}}."
        ),
    },
    {
        "name": RECALL_REMINDER_TEMPLATE,
        "category": "Richiami",
        "description": "Richiamo periodico per controlli e igiene.",
        "subject": "Promemoria {{serviceType}}",
        "body": (
            "Gentile {{patientName}},\n\n"
            "è il momento di prenotare {{serviceType}}.\n"
            "Contatta lo studio per fissare un appuntamento.\n\n"
            "{{button}}\n\n"
            "A presto,\n{{clinicName}}."
        ),
    },
]


def ensure_default_templates(db: Session) -> int:
    existing = set(db.scalars(select(EmailTemplate.name)))
    created = 0
    for template in DEFAULT_EMAIL_TEMPLATES:
        if template["name"] in existing:
            continue
        db.add(EmailTemplate(**template))
        created += 1

    if created:
        db.commit()
    return created


def get_email_template_by_name(db: Session, name: str | None) -> EmailTemplate | None:
    normalized = name.strip() if isinstance(name, str) else ""
    if not normalized:
        return None

    template = db.scalar(select(EmailTemplate).where(EmailTemplate.name == normalized))
    if template is None and normalized.isdigit():
        template = db.get(EmailTemplate, int(normalized))
    if template is None:
        template = db.scalar(
            select(EmailTemplate)
            .where(func.lower(EmailTemplate.name) == normalized.lower())
            .limit(1)
        )
    if template is not None:
        return template

    fallback = next((t for t in DEFAULT_EMAIL_TEMPLATES if t["name"] == normalized), None)
    if fallback is None:
        return None
    template = EmailTemplate(**fallback)
    db.add(template)
    db.flush()
    return template
