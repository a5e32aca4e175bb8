from __future__ import annotations

from collections.abc import Generator
from functools import lru_cache

from fastapi import Depends

from engagement.core.config import Settings, get_settings
from engagement.errors import ConfigurationError, to_http_exception
from engagement.esign.orchestrator import ReconciliationOrchestrator
from engagement.esign.provider import BoldSignClient, ProviderClient
from engagement.esign.retriever import DocumentRetriever
from engagement.esign.signature import SignatureVerifier
from engagement.letters.repository import client_repository, letter_repository
from engagement.notifications.dispatcher import NotificationDispatcher
from engagement.storage.artifacts import ArtifactStore, LocalArtifactStore


@lru_cache
def _verifier_for(secret: str) -> SignatureVerifier:
    return SignatureVerifier(secret)


def get_signature_verifier(settings: Settings = Depends(get_settings)) -> SignatureVerifier:
    return _verifier_for(settings.boldsign_webhook_secret)


def get_optional_provider_client(settings: Settings = Depends(get_settings)) -> Generator[ProviderClient | None, None, None]:
    if not settings.boldsign_api_key:
        yield None
        return
    client = BoldSignClient(
        settings.boldsign_api_key,
        base_url=settings.boldsign_api_base_url,
        timeout=settings.provider_timeout_seconds,
    )
    try:
        yield client
    finally:
        client.close()


def get_provider_client(provider: ProviderClient | None = Depends(get_optional_provider_client)) -> ProviderClient:
    if provider is None:
        raise to_http_exception(ConfigurationError("BoldSign API key not configured"))
    return provider


def get_artifact_store(settings: Settings = Depends(get_settings)) -> ArtifactStore:
    return LocalArtifactStore(settings.artifact_store_root, settings.signed_letters_bucket)


def get_notification_dispatcher(settings: Settings = Depends(get_settings)) -> NotificationDispatcher:
    return NotificationDispatcher(settings.slack_webhook_url, timeout=settings.notification_timeout_seconds)


def get_reconciliation_orchestrator(
    provider: ProviderClient | None = Depends(get_optional_provider_client),
    store: ArtifactStore = Depends(get_artifact_store),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> ReconciliationOrchestrator:
    retriever = DocumentRetriever(provider, store, letter_repository) if provider is not None else None
    return ReconciliationOrchestrator(letter_repository, client_repository, retriever, notifier)
