from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from engagement.core.config import get_settings
from engagement.core.context import get_correlation_id


_RESERVED_RECORD_KEYS = frozenset(logging.makeLogRecord({}).__dict__) | {"correlation_id", "message", "asctime"}

# Structured extras allowed into the "fields" object. Anything else passed via
# ``extra=`` is dropped so webhook payloads and PDF bytes never reach the log sink.
ESIGN_LOG_FIELDS = frozenset(
    {
        "method",
        "path",
        "status_code",
        "duration_ms",
        "letter_id",
        "client_id",
        "document_id",
        "event_type",
        "esign_status",
        "provider_status",
        "step",
        "outcome",
        "status",
        "storage_path",
        "bytes",
        "already_stored",
        "environment",
        "error",
    }
)
MAX_ERROR_CHARS = 500

_base_factory = logging.getLogRecordFactory()


def _correlated_record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    record = _base_factory(*args, **kwargs)
    record.correlation_id = get_correlation_id()
    return record


class JsonLogFormatter(logging.Formatter):
    def __init__(self, service: str | None = None) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        fields = {
            key: value
            for key, value in record.__dict__.items()
            if key in ESIGN_LOG_FIELDS and key not in _RESERVED_RECORD_KEYS
        }
        if isinstance(fields.get("error"), str):
            fields["error"] = fields["error"][:MAX_ERROR_CHARS]
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
        }
        if self.service:
            line["service"] = self.service
        line["fields"] = fields
        return json.dumps(line, default=str)


def configure_logging() -> None:
    """Route all loggers to one JSON-lines handler on stdout. Safe to call twice."""
    root = logging.getLogger()
    if getattr(root, "_engagement_configured", False):
        return

    settings = get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter(service=settings.app_name))

    logging.setLogRecordFactory(_correlated_record_factory)
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    root._engagement_configured = True  # type: ignore[attr-defined]
