from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any


logger = logging.getLogger("engagement.esign")


class SignatureStatus(str, Enum):
    UNSENT = "unsent"
    SENT = "sent"
    VIEWED = "viewed"
    SIGNED = "signed"
    COMPLETED = "completed"
    DECLINED = "declined"
    EXPIRED = "expired"
    REVOKED = "revoked"


class ProviderEvent(str, Enum):
    SENT = "Sent"
    VIEWED = "Viewed"
    SIGNED = "Signed"
    COMPLETED = "Completed"
    DECLINED = "Declined"
    EXPIRED = "Expired"
    REVOKED = "Revoked"


# Closed world: a new provider event needs its own entry here.
EVENT_STATUS_MAP: dict[ProviderEvent, SignatureStatus] = {
    ProviderEvent.SENT: SignatureStatus.SENT,
    ProviderEvent.VIEWED: SignatureStatus.VIEWED,
    ProviderEvent.SIGNED: SignatureStatus.SIGNED,
    ProviderEvent.COMPLETED: SignatureStatus.COMPLETED,
    ProviderEvent.DECLINED: SignatureStatus.DECLINED,
    ProviderEvent.EXPIRED: SignatureStatus.EXPIRED,
    ProviderEvent.REVOKED: SignatureStatus.REVOKED,
}

TERMINAL_STATUSES = frozenset(
    {
        SignatureStatus.COMPLETED,
        SignatureStatus.DECLINED,
        SignatureStatus.EXPIRED,
        SignatureStatus.REVOKED,
    }
)


@dataclass(frozen=True, slots=True)
class InboundEvent:
    event_type: str | None
    provider_document_id: str | None
    raw_body: bytes
    signature_header: str | None


def classify(event_type: str | None) -> SignatureStatus | None:
    if not event_type:
        return None
    try:
        return EVENT_STATUS_MAP[ProviderEvent(event_type)]
    except (ValueError, KeyError):
        return None


def _nested(payload: dict[str, Any], *keys: str) -> Any:
    current: Any = payload
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _as_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_event(raw_body: bytes, signature_header: str | None = None) -> InboundEvent:
    """Pull the event type and document id out of a webhook body.

    Bodies that are not a JSON object yield an event with neither field set, which the
    orchestrator acknowledges without touching any letter.
    """
    try:
        payload = json.loads(raw_body.decode("utf-8")) if raw_body else {}
    except (UnicodeDecodeError, json.JSONDecodeError):
        payload = None
    if not isinstance(payload, dict):
        logger.warning("webhook.unparseable_body", extra={"bytes": len(raw_body)})
        return InboundEvent(event_type=None, provider_document_id=None, raw_body=raw_body, signature_header=signature_header)

    event_type = _as_str(_nested(payload, "event", "eventType")) or _as_str(payload.get("eventType"))
    document_id = (
        _as_str(_nested(payload, "event", "document", "documentId"))
        or _as_str(_nested(payload, "data", "documentId"))
        or _as_str(payload.get("documentId"))
    )
    return InboundEvent(
        event_type=event_type,
        provider_document_id=document_id,
        raw_body=raw_body,
        signature_header=signature_header,
    )
