from __future__ import annotations

import re
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator


MAX_TITLE_LENGTH = 500
MAX_MESSAGE_LENGTH = 2000

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _reject_line_breaks(value: str) -> str:
    if "\r" in value or "\n" in value:
        raise ValueError("Invalid characters in fields")
    return value


class SendForSignatureRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    pdf_base64: str = Field(alias="pdfBase64", min_length=1)
    file_name: str | None = Field(default=None, alias="fileName")
    signer_name: str = Field(alias="signerName", min_length=1)
    signer_email: str = Field(alias="signerEmail", min_length=1)
    title: str = Field(min_length=1, max_length=MAX_TITLE_LENGTH)
    message: str | None = Field(default=None, max_length=MAX_MESSAGE_LENGTH)
    client_id: uuid.UUID | None = Field(default=None, alias="clientId")
    letter_id: uuid.UUID | None = Field(default=None, alias="letterId")
    signature_page_number: int | None = Field(default=None, alias="signaturePageNumber")

    @field_validator("signer_name", "title")
    @classmethod
    def _single_line(cls, value: str) -> str:
        return _reject_line_breaks(value)

    @field_validator("signer_email")
    @classmethod
    def _valid_email(cls, value: str) -> str:
        _reject_line_breaks(value)
        if not _EMAIL_RE.match(value):
            raise ValueError("Invalid signer email address")
        return value


class SendForSignatureResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    document_id: str = Field(serialization_alias="documentId")


class FetchSignedDocumentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    letter_id: uuid.UUID = Field(alias="letterId")


class FetchSignedDocumentResponse(BaseModel):
    ok: bool = True
    path: str
    already_stored: bool = Field(default=False, serialization_alias="alreadyStored")


class WebhookAckResponse(BaseModel):
    ok: bool = True
    status: str | None = None
    message: str | None = None
