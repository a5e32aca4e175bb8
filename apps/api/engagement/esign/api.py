from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from engagement.core.auth import AuthUser
from engagement.core.config import Settings, get_settings
from engagement.core.database import get_db
from engagement.core.rbac import is_service_principal, require_org_member
from engagement.errors import EsignError, PayloadTooLargeError, to_http_exception
from engagement.esign.classifier import parse_event
from engagement.esign.dependencies import (
    get_artifact_store,
    get_optional_provider_client,
    get_provider_client,
    get_reconciliation_orchestrator,
    get_signature_verifier,
)
from engagement.esign.fetch import SignedDocumentFetchService
from engagement.esign.orchestrator import ReconciliationOrchestrator
from engagement.esign.provider import ProviderClient
from engagement.esign.retriever import DocumentRetriever
from engagement.esign.schemas import (
    FetchSignedDocumentRequest,
    FetchSignedDocumentResponse,
    SendForSignatureRequest,
    SendForSignatureResponse,
    WebhookAckResponse,
)
from engagement.esign.sending import SendForSignatureService
from engagement.esign.signature import SIGNATURE_HEADER, SignatureVerifier
from engagement.letters.repository import client_repository, letter_repository
from engagement.metrics import observe_webhook_event
from engagement.storage.artifacts import ArtifactStore


logger = logging.getLogger("engagement.esign")

router = APIRouter(prefix="/esign", tags=["esign"])


def enforce_send_body_limit(request: Request, settings: Settings = Depends(get_settings)) -> None:
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > settings.max_send_body_bytes:
        raise to_http_exception(PayloadTooLargeError("Request too large"))


@router.post("/webhook", response_model=WebhookAckResponse, response_model_exclude_none=True)
async def boldsign_webhook(
    request: Request,
    db: Session = Depends(get_db),
    verifier: SignatureVerifier = Depends(get_signature_verifier),
    orchestrator: ReconciliationOrchestrator = Depends(get_reconciliation_orchestrator),
) -> dict:
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    try:
        verifier.verify(raw_body, signature)
    except EsignError as exc:
        observe_webhook_event(None, "rejected")
        logger.warning("webhook.rejected", extra={"status_code": exc.status_code, "error": exc.message})
        raise to_http_exception(exc)

    event = parse_event(raw_body, signature)
    logger.info(
        "webhook.received",
        extra={"event_type": event.event_type, "document_id": event.provider_document_id},
    )
    ack = await run_in_threadpool(orchestrator.handle, db, event)
    return ack.to_payload()


@router.post("/fetch-signed-document", response_model=FetchSignedDocumentResponse)
def fetch_signed_document(
    payload: FetchSignedDocumentRequest,
    user: AuthUser = Depends(require_org_member),
    db: Session = Depends(get_db),
    provider: ProviderClient | None = Depends(get_optional_provider_client),
    store: ArtifactStore = Depends(get_artifact_store),
) -> FetchSignedDocumentResponse:
    service = SignedDocumentFetchService(letter_repository, DocumentRetriever(provider, store, letter_repository))
    try:
        result = service.fetch(db, payload.letter_id, privileged=is_service_principal(user))
    except EsignError as exc:
        logger.warning(
            "signed_pdf.fetch_failed",
            extra={"letter_id": str(payload.letter_id), "status_code": exc.status_code, "error": exc.message},
        )
        raise to_http_exception(exc)
    return FetchSignedDocumentResponse(path=result.path, already_stored=result.already_stored)


@router.post(
    "/send",
    response_model=SendForSignatureResponse,
    dependencies=[Depends(enforce_send_body_limit)],
)
def send_for_signature(
    payload: SendForSignatureRequest,
    user: AuthUser = Depends(require_org_member),
    db: Session = Depends(get_db),
    provider: ProviderClient = Depends(get_provider_client),
    settings: Settings = Depends(get_settings),
) -> SendForSignatureResponse:
    service = SendForSignatureService(
        provider,
        letter_repository,
        client_repository,
        default_signature_page=settings.signature_page_default,
    )
    try:
        document_id = service.send(db, payload, actor_email=user.email)
    except EsignError as exc:
        logger.warning("esign.send_failed", extra={"status_code": exc.status_code, "error": exc.message})
        raise to_http_exception(exc)
    return SendForSignatureResponse(document_id=document_id)
