from __future__ import annotations

import base64
import binascii
import logging
import re
import uuid
from collections.abc import Callable
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from engagement import events
from engagement.errors import NotFoundError, ValidationError
from engagement.esign.classifier import SignatureStatus
from engagement.esign.orchestrator import utc_today
from engagement.esign.provider import ProviderClient, SendDocumentRequest
from engagement.esign.schemas import SendForSignatureRequest
from engagement.letters.repository import ClientRepository, LetterRepository


logger = logging.getLogger("engagement.esign")

DEFAULT_FILE_NAME = "Engagement_Letter.pdf"
APPROVAL_APPROVED = "Approved"
CLIENT_LETTER_SENT = "Letter Sent"

_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9._-]")


def safe_file_name(name: str | None) -> str:
    return _UNSAFE_FILENAME_RE.sub("_", name or DEFAULT_FILE_NAME)[:255]


def decode_pdf(pdf_base64: str) -> bytes:
    try:
        pdf_bytes = base64.b64decode(pdf_base64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("pdfBase64 is not valid base64") from exc
    if not pdf_bytes:
        raise ValidationError("pdfBase64 decodes to an empty document")
    return pdf_bytes


class SendForSignatureService:
    def __init__(
        self,
        provider: ProviderClient,
        letters: LetterRepository,
        clients: ClientRepository,
        default_signature_page: int = 2,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self.provider = provider
        self.letters = letters
        self.clients = clients
        self.default_signature_page = default_signature_page
        self.today = today

    def send(self, session: Session, payload: SendForSignatureRequest, actor_email: str | None = None) -> str:
        client_id = payload.client_id
        if payload.letter_id is not None:
            letter = self.letters.get(session, payload.letter_id)
            if letter is None:
                raise NotFoundError("Letter not found", letter_id=str(payload.letter_id))
            if letter.boldsign_document_id:
                raise ValidationError(
                    "Letter has already been sent for e-signature",
                    letter_id=str(letter.id),
                    documentId=letter.boldsign_document_id,
                )
            client_id = client_id or letter.client_id

        page = payload.signature_page_number
        document_id = self.provider.send_document(
            SendDocumentRequest(
                pdf_bytes=decode_pdf(payload.pdf_base64),
                file_name=safe_file_name(payload.file_name),
                signer_name=payload.signer_name,
                signer_email=payload.signer_email,
                title=payload.title,
                message=payload.message,
                signature_page=page if page is not None and page > 0 else self.default_signature_page,
            )
        )
        logger.info(
            "esign.document_sent",
            extra={
                "letter_id": str(payload.letter_id) if payload.letter_id else None,
                "client_id": str(client_id) if client_id else None,
                "document_id": document_id,
            },
        )

        if payload.letter_id is not None:
            self._record_letter_sent(session, payload.letter_id, document_id)
        if client_id is not None:
            self._record_client_sent(session, client_id)

        events.publish(
            {
                "event_type": "esign.document_sent",
                "letter_id": str(payload.letter_id) if payload.letter_id else None,
                "client_id": str(client_id) if client_id else None,
                "document_id": document_id,
                "actor_email": actor_email,
            }
        )
        return document_id

    def _record_letter_sent(self, session: Session, letter_id: uuid.UUID, document_id: str) -> None:
        try:
            if not self.letters.set_provider_document_id(session, letter_id, document_id):
                logger.warning(
                    "esign.document_id_already_set",
                    extra={"letter_id": str(letter_id), "document_id": document_id},
                )
                return
            self.letters.update_status(
                session,
                letter_id,
                SignatureStatus.SENT,
                extra={"approval_status": APPROVAL_APPROVED},
            )
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(
                "esign.letter_update_failed",
                extra={"letter_id": str(letter_id), "document_id": document_id, "error": str(exc)[:500]},
            )

    def _record_client_sent(self, session: Session, client_id: uuid.UUID) -> None:
        try:
            self.clients.update(session, client_id, status=CLIENT_LETTER_SENT, letter_sent=self.today())
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("esign.client_update_failed", extra={"client_id": str(client_id), "error": str(exc)[:500]})
