from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from engagement.letters.models import Client, EngagementLetter, utcnow


logger = logging.getLogger("engagement.esign")


class LetterRepository:
    """Point lookups and point updates on `engagement_letters`; every write commits."""

    def get(self, session: Session, letter_id: uuid.UUID) -> EngagementLetter | None:
        return session.scalar(select(EngagementLetter).where(EngagementLetter.id == letter_id))

    def find_by_provider_document_id(self, session: Session, document_id: str) -> EngagementLetter | None:
        rows = session.scalars(
            select(EngagementLetter).where(EngagementLetter.boldsign_document_id == document_id).limit(2)
        ).all()
        if len(rows) > 1:
            logger.warning("letters.ambiguous_document_id", extra={"document_id": document_id})
            return None
        return rows[0] if rows else None

    def update_status(
        self,
        session: Session,
        letter_id: uuid.UUID,
        status: str | Enum,
        extra: dict[str, Any] | None = None,
    ) -> None:
        values: dict[str, Any] = {
            "esign_status": status.value if isinstance(status, Enum) else status,
            "updated_at": utcnow(),
        }
        if extra:
            values.update(extra)
        session.execute(update(EngagementLetter).where(EngagementLetter.id == letter_id).values(**values))
        session.commit()

    def update_fields(self, session: Session, letter_id: uuid.UUID, **values: Any) -> None:
        values["updated_at"] = utcnow()
        session.execute(update(EngagementLetter).where(EngagementLetter.id == letter_id).values(**values))
        session.commit()

    def set_provider_document_id(self, session: Session, letter_id: uuid.UUID, document_id: str) -> bool:
        result = session.execute(
            update(EngagementLetter)
            .where(EngagementLetter.id == letter_id, EngagementLetter.boldsign_document_id.is_(None))
            .values(boldsign_document_id=document_id, updated_at=utcnow())
        )
        session.commit()
        return result.rowcount == 1

    def set_signed_pdf_path(self, session: Session, letter_id: uuid.UUID, path: str) -> str:
        """Stores `path` unless another writer got there first; returns the stored value."""
        session.execute(
            update(EngagementLetter)
            .where(EngagementLetter.id == letter_id, EngagementLetter.signed_pdf_path.is_(None))
            .values(signed_pdf_path=path, updated_at=utcnow())
        )
        session.commit()
        stored = session.scalar(select(EngagementLetter.signed_pdf_path).where(EngagementLetter.id == letter_id))
        return stored or path


class ClientRepository:
    def get(self, session: Session, client_id: uuid.UUID) -> Client | None:
        return session.scalar(select(Client).where(Client.id == client_id))

    def update(self, session: Session, client_id: uuid.UUID, **values: Any) -> None:
        values["updated_at"] = utcnow()
        session.execute(update(Client).where(Client.id == client_id).values(**values))
        session.commit()


letter_repository = LetterRepository()
client_repository = ClientRepository()
