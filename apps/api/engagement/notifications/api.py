from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from engagement.core.auth import AuthUser
from engagement.core.rbac import require_org_member
from engagement.esign.dependencies import get_notification_dispatcher
from engagement.errors import EsignError, to_http_exception
from engagement.notifications.dispatcher import NotificationDispatcher


logger = logging.getLogger("engagement.notifications")

router = APIRouter(prefix="/notifications", tags=["notifications"])


class SlackRelayRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str | None = None
    blocks: list[dict[str, Any]] | None = None


@router.post("/slack")
def relay_slack_message(
    payload: SlackRelayRequest,
    user: AuthUser = Depends(require_org_member),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> dict[str, bool]:
    try:
        dispatcher.post(payload.model_dump(exclude_none=True))
    except EsignError as exc:
        logger.warning("notification.relay_failed", extra={"status_code": exc.status_code, "error": exc.message})
        raise to_http_exception(exc)
    return {"ok": True}
