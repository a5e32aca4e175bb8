from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from engagement.models.audit import AuditLog

SYSTEM_ACTOR = "system@engagement"

_ENTITY_ID_KEYS = ("letter_id", "client_id", "document_id")


def write_audit_log(
    db: Session,
    user_email: str,
    action: str,
    entity_type: str | None,
    entity_id: str | None,
    details: dict[str, Any] | None = None,
) -> AuditLog:
    entry = AuditLog(
        user_email=user_email,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def audit_entry_from_envelope(envelope: dict[str, Any]) -> dict[str, Any]:
    """Maps a published domain event onto the columns of an audit row."""
    entity_type = None
    entity_id = None
    for key in _ENTITY_ID_KEYS:
        value = envelope.get(key)
        if isinstance(value, str) and value:
            entity_type = key.removesuffix("_id")
            entity_id = value
            break

    actor = envelope.get("actor_email")
    return {
        "user_email": actor if isinstance(actor, str) and actor else SYSTEM_ACTOR,
        "action": str(envelope.get("event_type")),
        "entity_type": entity_type,
        "entity_id": entity_id,
        "details": {
            key: value
            for key, value in envelope.items()
            if key not in {"event_type", "actor_email"} and value is not None
        },
    }
