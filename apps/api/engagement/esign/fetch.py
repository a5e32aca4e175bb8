from __future__ import annotations

import logging
import uuid

from sqlalchemy.orm import Session

from engagement.errors import DocumentNotReadyError, MissingProviderDocumentError, NotFoundError
from engagement.esign.classifier import SignatureStatus
from engagement.esign.retriever import DocumentRetriever, RetrievalResult
from engagement.letters.repository import LetterRepository


logger = logging.getLogger("engagement.esign")

# The provider only serves the executed PDF once the signer has signed.
RETRIEVABLE_STATUSES = frozenset({SignatureStatus.SIGNED.value, SignatureStatus.COMPLETED.value})


class SignedDocumentFetchService:
    def __init__(self, letters: LetterRepository, retriever: DocumentRetriever) -> None:
        self.letters = letters
        self.retriever = retriever

    def fetch(self, session: Session, letter_id: uuid.UUID, *, privileged: bool = False) -> RetrievalResult:
        letter = self.letters.get(session, letter_id)
        if letter is None:
            raise NotFoundError("Letter not found", letter_id=str(letter_id))

        if not letter.signed_pdf_path:
            if not letter.boldsign_document_id:
                raise MissingProviderDocumentError(letter.id, letter.esign_status)
            if not privileged and letter.esign_status not in RETRIEVABLE_STATUSES:
                raise DocumentNotReadyError(letter.id, letter.esign_status)

        logger.info(
            "signed_pdf.fetch_requested",
            extra={
                "letter_id": str(letter.id),
                "document_id": letter.boldsign_document_id,
                "esign_status": letter.esign_status,
                "already_stored": bool(letter.signed_pdf_path),
            },
        )
        return self.retriever.retrieve(session, letter)
