from __future__ import annotations

import logging
import re

from clinic_recalls.models.patient import Patient
from clinic_recalls.models.recall_rule import ANY_SERVICE_TYPE

logger = logging.getLogger("clinic_recalls.render")

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([\w.-]+)\s*\}\}")
ANY_SERVICE_LABEL = "il prossimo controllo"
DEFAULT_RECIPIENT_NAME = "paziente"


def service_label(service_type: str | None) -> str:
    if service_type == ANY_SERVICE_TYPE:
        return ANY_SERVICE_LABEL
    return service_type or ""


def greeting_name(patient: Patient | None) -> str:
    if patient is None:
        return DEFAULT_RECIPIENT_NAME
    return patient.first_name or patient.last_name or DEFAULT_RECIPIENT_NAME


def build_patient_fields(patient: Patient | None) -> dict[str, str]:
    if patient is None:
        return {
            "patientName": DEFAULT_RECIPIENT_NAME,
            "patientFirstName": "",
            "patientLastName": "",
        }
    return {
        "patientName": patient.display_name or DEFAULT_RECIPIENT_NAME,
        "patientFirstName": patient.first_name or "",
        "patientLastName": patient.last_name or "",
    }


def render_with_warnings(content: str, data: dict[str, str]) -> tuple[str, list[str]]:
    unknown: set[str] = set()

    def replace(match: re.Match[str]) -> str:
        key = match.group(1)
        value = data.get(key)
        if value is None:
            unknown.add(key)
            return match.group(0)
        return value

    rendered = PLACEHOLDER_PATTERN.sub(replace, content)
    return rendered, sorted(unknown)


def render_placeholders(content: str, data: dict[str, str]) -> str:
    rendered, unknown = render_with_warnings(content, data)
    if unknown:
        logger.warning("Unknown placeholders left unrendered: %s", ", ".join(unknown))
    return rendered
