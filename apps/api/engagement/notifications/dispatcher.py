from __future__ import annotations

import logging
from datetime import date
from typing import Any

import httpx

from engagement.errors import ConfigurationError, NotificationError
from engagement.metrics import observe_notification


logger = logging.getLogger("engagement.notifications")


def build_signed_letter_message(client_name: str, matter_type: str, date_signed: date) -> dict[str, Any]:
    signed = date_signed.isoformat()
    return {
        "text": f"Engagement letter signed by {client_name}",
        "blocks": [
            {"type": "header", "text": {"type": "plain_text", "text": "Engagement Letter Signed", "emoji": True}},
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Client:*\n{client_name}"},
                    {"type": "mrkdwn", "text": f"*Matter:*\n{matter_type}"},
                ],
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": "*Status:*\nFully Executed"},
                    {"type": "mrkdwn", "text": f"*Signed:*\n{signed}"},
                ],
            },
            {"type": "context", "elements": [{"type": "mrkdwn", "text": "Signed via BoldSign e-signature"}]},
        ],
    }


class NotificationDispatcher:
    """Posts messages to the team's Slack incoming webhook."""

    def __init__(
        self,
        webhook_url: str | None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.webhook_url = webhook_url or None
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return self.webhook_url is not None

    def post(self, payload: dict[str, Any]) -> None:
        if self.webhook_url is None:
            raise ConfigurationError("Slack webhook not configured")

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as exc:
            raise NotificationError("Slack error", detail=str(exc)) from exc
        if not response.is_success:
            raise NotificationError("Slack error", detail=response.text)

    def notify(self, client_name: str, matter_type: str | None, date_signed: date) -> None:
        if self.webhook_url is None:
            return

        try:
            self.post(build_signed_letter_message(client_name, matter_type or "", date_signed))
        except Exception as exc:
            observe_notification("failed")
            logger.warning("notification.failed", extra={"error": str(exc)[:500]})
            return
        observe_notification("sent")
        logger.info("notification.sent", extra={"outcome": "sent"})
