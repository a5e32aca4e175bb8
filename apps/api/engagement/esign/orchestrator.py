from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from sqlalchemy.orm import Session

from engagement import events
from engagement.core.context import get_correlation_id
from engagement.esign.classifier import InboundEvent, SignatureStatus, classify
from engagement.esign.retriever import DocumentRetriever
from engagement.letters.models import EngagementLetter
from engagement.letters.repository import ClientRepository, LetterRepository
from engagement.metrics import observe_reconcile_step_failure, observe_webhook_event
from engagement.notifications.dispatcher import NotificationDispatcher


logger = logging.getLogger("engagement.esign")
tracer = trace.get_tracer("engagement.esign.orchestrator")

APPROVAL_EXECUTED = "Executed"
CLIENT_EXECUTED = "Executed"


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass(frozen=True, slots=True)
class WebhookAck:
    status: str | None = None
    message: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"ok": True}
        if self.status is not None:
            payload["status"] = self.status
        if self.message is not None:
            payload["message"] = self.message
        return payload


class ReconciliationOrchestrator:
    """Applies one provider event to the letter it refers to.

    The status column is overwritten with whatever the latest delivery says. Completion
    triggers four side effects (document retrieval, approval flag, client record,
    notification); each runs in its own failure boundary and none of them can turn the
    acknowledgment into an error, otherwise the provider would keep redelivering.
    """

    def __init__(
        self,
        letters: LetterRepository,
        clients: ClientRepository,
        retriever: DocumentRetriever | None,
        notifier: NotificationDispatcher,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self.letters = letters
        self.clients = clients
        self.retriever = retriever
        self.notifier = notifier
        self.today = today

    def handle(self, session: Session, event: InboundEvent) -> WebhookAck:
        if not event.event_type or not event.provider_document_id:
            observe_webhook_event(None, "acknowledged")
            return WebhookAck(message="Acknowledged")

        new_status = classify(event.event_type)
        if new_status is None:
            observe_webhook_event("unhandled", "ignored")
            logger.info("webhook.event_not_handled", extra={"event_type": event.event_type[:64]})
            return WebhookAck(message="Event not handled")

        letter = self.letters.find_by_provider_document_id(session, event.provider_document_id)
        if letter is None:
            observe_webhook_event(event.event_type, "unknown_document")
            logger.warning(
                "webhook.letter_not_found",
                extra={"event_type": event.event_type, "document_id": event.provider_document_id},
            )
            return WebhookAck(message="Document not found in system")

        with tracer.start_as_current_span("esign.reconcile") as span:
            span.set_attribute("letter_id", str(letter.id))
            span.set_attribute("event_type", event.event_type)
            span.set_attribute("esign_status", new_status.value)
            span.set_attribute("correlation_id", get_correlation_id() or "")

            letter_id = letter.id
            client_id = letter.client_id
            previous_status = letter.esign_status

            status_updated = self._attempt(
                session,
                "status_update",
                letter_id,
                lambda: self.letters.update_status(session, letter_id, new_status),
            )
            if not status_updated:
                span.set_status(Status(StatusCode.ERROR, "status update failed"))
            else:
                events.publish(
                    {
                        "event_type": "esign.status_changed",
                        "letter_id": str(letter_id),
                        "client_id": str(client_id),
                        "document_id": event.provider_document_id,
                        "previous_status": previous_status,
                        "status": new_status.value,
                    }
                )

            if new_status is SignatureStatus.COMPLETED:
                self._on_completed(session, letter_id, client_id)

        if not status_updated:
            observe_webhook_event(event.event_type, "status_update_failed")
            logger.warning(
                "webhook.status_update_failed",
                extra={"letter_id": str(letter_id), "document_id": event.provider_document_id, "event_type": event.event_type},
            )
            return WebhookAck(message="Status update failed")

        observe_webhook_event(event.event_type, "applied")
        logger.info(
            "webhook.applied",
            extra={
                "letter_id": str(letter_id),
                "document_id": event.provider_document_id,
                "event_type": event.event_type,
                "esign_status": new_status.value,
            },
        )
        return WebhookAck(status=new_status.value)

    def _on_completed(self, session: Session, letter_id: Any, client_id: Any) -> None:
        executed_on = self.today()

        self._attempt(session, "retrieve_document", letter_id, lambda: self._retrieve(session, letter_id))
        self._attempt(
            session,
            "approval_status",
            letter_id,
            lambda: self.letters.update_fields(session, letter_id, approval_status=APPROVAL_EXECUTED),
        )
        client_updated = self._attempt(
            session,
            "client_status",
            letter_id,
            lambda: self.clients.update(session, client_id, status=CLIENT_EXECUTED, letter_executed=executed_on),
        )
        self._attempt(session, "notify", letter_id, lambda: self._notify(session, client_id, executed_on))

        if client_updated:
            events.publish(
                {
                    "event_type": "esign.letter_executed",
                    "letter_id": str(letter_id),
                    "client_id": str(client_id),
                    "executed_on": executed_on.isoformat(),
                }
            )

    def _retrieve(self, session: Session, letter_id: Any) -> None:
        if self.retriever is None:
            logger.warning("signed_pdf.retrieval_skipped", extra={"letter_id": str(letter_id), "step": "retrieve_document"})
            return
        letter = session.get(EngagementLetter, letter_id, populate_existing=True)
        if letter is None:
            return
        self.retriever.retrieve(session, letter)

    def _notify(self, session: Session, client_id: Any, executed_on: date) -> None:
        if not self.notifier.configured:
            return
        client = self.clients.get(session, client_id)
        client_name = client.display_name if client is not None else "Unknown"
        matter_type = client.matter_type if client is not None else None
        self.notifier.notify(client_name, matter_type, executed_on)

    @staticmethod
    def _attempt(session: Session, step: str, letter_id: Any, action: Callable[[], None]) -> bool:
        try:
            action()
        except Exception as exc:
            session.rollback()
            observe_reconcile_step_failure(step)
            logger.exception(
                "reconcile.step_failed",
                extra={"letter_id": str(letter_id), "step": step, "error": str(exc)[:500]},
            )
            return False
        return True
