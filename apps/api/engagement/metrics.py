from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

esign_webhook_events_total = Counter(
    "esign_webhook_events_total",
    "Inbound e-signature webhook events by event type and outcome",
    ["event_type", "outcome"],
)

esign_document_retrievals_total = Counter(
    "esign_document_retrievals_total",
    "Signed document retrieval attempts by outcome",
    ["outcome"],
)

esign_reconcile_step_failures_total = Counter(
    "esign_reconcile_step_failures_total",
    "Completion side-effect failures by step",
    ["step"],
)

esign_notifications_total = Counter(
    "esign_notifications_total",
    "Team channel notifications by outcome",
    ["outcome"],
)


UNMATCHED_PATH_LABEL = "unmatched"


def resolve_http_path_label(request: Request) -> str:
    # Route templates only; probes against unknown paths share one label.
    route = request.scope.get("route")
    template = getattr(route, "path_format", None) or getattr(route, "path", None)
    if isinstance(template, str) and template:
        return template
    return UNMATCHED_PATH_LABEL


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_webhook_event(event_type: str | None, outcome: str) -> None:
    esign_webhook_events_total.labels(event_type=event_type or "unknown", outcome=outcome).inc()


def observe_document_retrieval(outcome: str) -> None:
    esign_document_retrievals_total.labels(outcome=outcome).inc()


def observe_reconcile_step_failure(step: str) -> None:
    esign_reconcile_step_failures_total.labels(step=step).inc()


def observe_notification(outcome: str) -> None:
    esign_notifications_total.labels(outcome=outcome).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
