from contextlib import asynccontextmanager, contextmanager
import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from engagement.api.routes import router as api_router
from engagement.core.config import get_settings
from engagement.core.context import RequestContextMiddleware
from engagement.core.database import SessionLocal, get_db
from engagement.events import InternalEvent, event_bus
from engagement.logging import configure_logging
from engagement.middleware.request_logging import RequestLoggingMiddleware
from engagement.otel import get_fastapi_server_request_hook, setup_otel
from engagement.services.audit import audit_entry_from_envelope, write_audit_log


configure_logging()
logger = logging.getLogger("engagement.lifecycle")

AUDITED_EVENT_TYPES = (
    "esign.document_sent",
    "esign.status_changed",
    "esign.signed_document_stored",
    "esign.letter_executed",
)


@contextmanager
def _audit_session_scope():
    override = app.dependency_overrides.get(get_db) if "app" in globals() else None
    if override is None:
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()
        return

    generator = override()
    session = next(generator)
    try:
        yield session
    finally:
        try:
            next(generator)
        except StopIteration:
            pass


def _on_esign_event(event: InternalEvent) -> None:
    if not isinstance(event.payload, dict):
        return
    entry = audit_entry_from_envelope(event.payload)
    try:
        with _audit_session_scope() as session:
            try:
                write_audit_log(session, **entry)
            except Exception:
                session.rollback()
                raise
    except Exception as exc:
        logger.exception("audit_write_failed", extra={"event_type": event.name, "error": str(exc)[:500]})


@asynccontextmanager
async def lifespan(app: FastAPI):
    event_bus.subscribe(_on_esign_event, *AUDITED_EVENT_TYPES)

    settings = get_settings()
    if not settings.boldsign_webhook_secret:
        logger.warning("webhook.signature_verification_disabled")
    if not settings.boldsign_api_key:
        logger.warning("boldsign.api_key_missing")
    if not settings.slack_webhook_url:
        logger.warning("notification.webhook_url_missing")

    logger.info("service.started", extra={"environment": settings.app_env})
    yield

    event_bus.unsubscribe(_on_esign_event, *AUDITED_EVENT_TYPES)


app = FastAPI(title="Engagement Letters API", version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RequestContextMiddleware)
app.include_router(api_router)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: list[dict[str, Any]] = [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": {"error": "Invalid request", "errors": errors}},
    )


setup_otel()

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("engagement.main:app", host=settings.api_host, port=settings.api_port, reload=settings.app_debug)


if __name__ == "__main__":
    run()
