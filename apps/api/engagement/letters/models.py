from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Date, DateTime, ForeignKey, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from engagement.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    entity_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    matter_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(64), nullable=False, default="Intake", server_default="Intake")
    letter_sent: Mapped[date | None] = mapped_column(Date, nullable=True)
    letter_executed: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    letters: Mapped[list[EngagementLetter]] = relationship(
        "EngagementLetter",
        back_populates="client",
        passive_deletes=True,
    )

    @property
    def display_name(self) -> str:
        return self.entity_name or self.contact_name or "Unknown"


class EngagementLetter(Base):
    __tablename__ = "engagement_letters"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    boldsign_document_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    esign_status: Mapped[str] = mapped_column(String(32), nullable=False, default="unsent", server_default="unsent")
    signed_pdf_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    approval_status: Mapped[str] = mapped_column(String(32), nullable=False, default="Draft", server_default="Draft")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    client: Mapped[Client] = relationship("Client", back_populates="letters")

    __table_args__ = (
        Index(
            "idx_engagement_letters_boldsign_doc_id",
            "boldsign_document_id",
            postgresql_where=text("boldsign_document_id IS NOT NULL"),
        ),
        Index("ix_engagement_letters_client_id", "client_id"),
    )
