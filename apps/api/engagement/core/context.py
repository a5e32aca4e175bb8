from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from dataclasses import dataclass

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

CORRELATION_HEADER = "x-correlation-id"
REQUEST_ID_HEADER = "x-request-id"

# Inbound ids end up in logs, spans and audit details.
_ACCEPTED_CORRELATION_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def resolve_correlation_id(header_value: str | None) -> str:
    if header_value and _ACCEPTED_CORRELATION_ID.match(header_value):
        return header_value
    return str(uuid.uuid4())


@dataclass
class RequestContext:
    correlation_id: str
    client_ip: str | None
    principal_email: str | None = None
    principal_sub: str | None = None


def get_request_context(request: Request) -> RequestContext | None:
    return getattr(request.state, "context", None)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds the correlation id for the lifetime of one request.

    The id is echoed back under both headers so callers that only know the
    generic request-id header can still match provider webhook deliveries
    against log lines and audit rows.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = resolve_correlation_id(request.headers.get(CORRELATION_HEADER))
        request.state.context = RequestContext(
            correlation_id=correlation_id,
            client_ip=request.client.host if request.client else None,
        )
        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("correlation_id", correlation_id)

        token = _correlation_id.set(correlation_id)
        try:
            response = await call_next(request)
        finally:
            _correlation_id.reset(token)

        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers[REQUEST_ID_HEADER] = correlation_id
        return response
