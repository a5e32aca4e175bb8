from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from engagement import events
from engagement.errors import ArtifactStoreError, ConfigurationError, MissingProviderDocumentError, ProviderError
from engagement.esign.classifier import SignatureStatus
from engagement.esign.provider import ProviderClient
from engagement.letters.models import EngagementLetter
from engagement.letters.repository import LetterRepository
from engagement.metrics import observe_document_retrieval
from engagement.storage.artifacts import ArtifactStore, signed_letter_key


logger = logging.getLogger("engagement.esign")

PDF_CONTENT_TYPE = "application/pdf"


@dataclass(frozen=True, slots=True)
class RetrievalResult:
    path: str
    already_stored: bool = False


class DocumentRetriever:
    """Downloads the executed PDF once and pins it to the letter.

    Shared by the webhook and the on-demand fetch endpoint. Both derive the storage key
    from (client_id, letter_id) only, so racing callers write the same object and the
    first persisted path wins. Without a provider client only already-stored letters resolve.
    """

    def __init__(self, provider: ProviderClient | None, store: ArtifactStore, letters: LetterRepository) -> None:
        self.provider = provider
        self.store = store
        self.letters = letters

    def retrieve(self, session: Session, letter: EngagementLetter) -> RetrievalResult:
        if letter.signed_pdf_path:
            observe_document_retrieval("already_stored")
            return RetrievalResult(path=letter.signed_pdf_path, already_stored=True)

        document_id = letter.boldsign_document_id
        if not document_id:
            observe_document_retrieval("missing_document_id")
            raise MissingProviderDocumentError(letter.id, letter.esign_status)
        if self.provider is None:
            observe_document_retrieval("not_configured")
            raise ConfigurationError("BoldSign API key not configured")

        letter_id = letter.id
        client_id = letter.client_id
        previous_status = letter.esign_status

        logger.info(
            "signed_pdf.download_started",
            extra={"letter_id": str(letter_id), "document_id": document_id, "esign_status": previous_status},
        )
        try:
            pdf_bytes = self.provider.download_document(document_id)
        except ProviderError:
            observe_document_retrieval("provider_error")
            raise
        if not pdf_bytes:
            observe_document_retrieval("provider_error")
            raise ProviderError("BoldSign returned empty response", documentId=document_id)

        key = signed_letter_key(client_id, letter_id)
        try:
            self.store.upload(key, pdf_bytes, PDF_CONTENT_TYPE, upsert=True)
        except ArtifactStoreError:
            observe_document_retrieval("store_error")
            raise

        stored_path = self.letters.set_signed_pdf_path(session, letter_id, key)
        if previous_status != SignatureStatus.COMPLETED.value:
            self.letters.update_status(session, letter_id, SignatureStatus.COMPLETED)

        observe_document_retrieval("stored")
        logger.info(
            "signed_pdf.stored",
            extra={
                "letter_id": str(letter_id),
                "document_id": document_id,
                "storage_path": stored_path,
                "bytes": len(pdf_bytes),
            },
        )
        events.publish(
            {
                "event_type": "esign.signed_document_stored",
                "letter_id": str(letter_id),
                "client_id": str(client_id),
                "document_id": document_id,
                "path": stored_path,
            }
        )
        return RetrievalResult(path=stored_path, already_stored=False)
