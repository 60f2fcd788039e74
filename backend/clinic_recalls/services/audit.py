from __future__ import annotations

from sqlalchemy.orm import Session

from clinic_recalls.models.audit_log import AuditLog


def log_event(
    db: Session,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    metadata: dict | None = None,
    request_id: str | None = None,
) -> AuditLog:
    entry = AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        request_id=request_id,
        metadata_json=metadata,
    )
    db.add(entry)
    return entry
