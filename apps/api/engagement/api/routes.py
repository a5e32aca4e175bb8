from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from engagement.core.auth import AuthUser, get_current_user
from engagement.core.config import Settings, get_settings
from engagement.esign.api import router as esign_router
from engagement.metrics import generate_metrics_payload, metrics_content_type
from engagement.notifications.api import router as notifications_router

METRICS_READ_ROLE = "system.metrics.read"

router = APIRouter()
router.include_router(esign_router)
router.include_router(notifications_router)


@router.get("/health", tags=["system"])
def health(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    # Missing integrations degrade features, they do not fail the probe.
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
        "integrations": {
            "webhook_signature_verification": bool(settings.boldsign_webhook_secret),
            "boldsign_api": bool(settings.boldsign_api_key),
            "slack_notifications": bool(settings.slack_webhook_url),
        },
    }


@router.get("/metrics", tags=["system"])
def metrics(user: AuthUser = Depends(get_current_user), settings: Settings = Depends(get_settings)) -> Response:
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if not user.has_role(METRICS_READ_ROLE):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Missing permission: {METRICS_READ_ROLE}")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
