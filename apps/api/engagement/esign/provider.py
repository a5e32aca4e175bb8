from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

import httpx
from opentelemetry import trace

from engagement.core.context import get_correlation_id
from engagement.errors import ConfigurationError, ProviderError


logger = logging.getLogger("engagement.esign")
tracer = trace.get_tracer("engagement.esign.provider")


@dataclass(frozen=True, slots=True)
class FieldBounds:
    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True, slots=True)
class OverlayField:
    id: str
    name: str
    field_type: str
    bounds: FieldBounds


# Positions in points on a US Letter page, over the "By:", "Name:" and "Date:" lines
# of the acknowledgment block.
SIGNATURE_OVERLAY_FIELDS: tuple[OverlayField, ...] = (
    OverlayField("clientSignature", "Client Signature", "Signature", FieldBounds(100, 265, 250, 28)),
    OverlayField("clientName", "Client Name", "TextBox", FieldBounds(130, 290, 220, 18)),
    OverlayField("clientDate", "Date", "DateSigned", FieldBounds(116, 306, 180, 18)),
)


@dataclass(slots=True)
class SendDocumentRequest:
    pdf_bytes: bytes
    file_name: str
    signer_name: str
    signer_email: str
    title: str
    message: str | None = None
    signature_page: int = 2
    overlay_fields: tuple[OverlayField, ...] = field(default=SIGNATURE_OVERLAY_FIELDS)


class ProviderClient(Protocol):
    def send_document(self, request: SendDocumentRequest) -> str: ...

    def download_document(self, document_id: str) -> bytes: ...


def build_send_form(request: SendDocumentRequest) -> dict[str, str]:
    form: dict[str, str] = {"Title": request.title}
    if request.message and request.message.strip():
        form["Message"] = request.message.strip()

    form["Signers[0][Name]"] = request.signer_name
    form["Signers[0][EmailAddress]"] = request.signer_email
    form["Signers[0][SignerType]"] = "Signer"
    for index, overlay in enumerate(request.overlay_fields):
        prefix = f"Signers[0][FormFields][{index}]"
        form.update(
            {
                f"{prefix}[Id]": overlay.id,
                f"{prefix}[Name]": overlay.name,
                f"{prefix}[FieldType]": overlay.field_type,
                f"{prefix}[PageNumber]": str(request.signature_page),
                f"{prefix}[Bounds][X]": str(overlay.bounds.x),
                f"{prefix}[Bounds][Y]": str(overlay.bounds.y),
                f"{prefix}[Bounds][Width]": str(overlay.bounds.width),
                f"{prefix}[Bounds][Height]": str(overlay.bounds.height),
                f"{prefix}[IsRequired]": "true",
            }
        )
    return form


def _error_detail(response: httpx.Response) -> str:
    text = response.text
    try:
        body = response.json()
    except ValueError:
        return text
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return text


class BoldSignClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.boldsign.com",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("BoldSign API key not configured")
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={"X-API-KEY": api_key},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def send_document(self, request: SendDocumentRequest) -> str:
        with tracer.start_as_current_span("boldsign.send_document") as span:
            span.set_attribute("correlation_id", get_correlation_id() or "")
            span.set_attribute("signature_page", request.signature_page)
            try:
                response = self._client.post(
                    "/v1/document/send",
                    data=build_send_form(request),
                    files={"Files": (request.file_name, request.pdf_bytes, "application/pdf")},
                )
            except httpx.HTTPError as exc:
                span.record_exception(exc)
                raise ProviderError("BoldSign API error", detail=str(exc)) from exc

            span.set_attribute("http.status_code", response.status_code)
            if not response.is_success:
                raise ProviderError("BoldSign API error", response.status_code, detail=_error_detail(response))

            try:
                document_id = response.json().get("documentId")
            except (ValueError, AttributeError) as exc:
                raise ProviderError("BoldSign returned an unreadable response", response.status_code) from exc
            if not isinstance(document_id, str) or not document_id:
                raise ProviderError("BoldSign response did not include a documentId", response.status_code)

            span.set_attribute("document_id", document_id)
            return document_id

    def download_document(self, document_id: str) -> bytes:
        with tracer.start_as_current_span("boldsign.download_document") as span:
            span.set_attribute("document_id", document_id)
            span.set_attribute("correlation_id", get_correlation_id() or "")
            try:
                response = self._client.get("/v1/document/download", params={"documentId": document_id})
            except httpx.HTTPError as exc:
                span.record_exception(exc)
                raise ProviderError("Failed to download from BoldSign", detail=str(exc), documentId=document_id) from exc

            span.set_attribute("http.status_code", response.status_code)
            if not response.is_success:
                logger.warning(
                    "boldsign.download_failed",
                    extra={"document_id": document_id, "provider_status": response.status_code, "error": response.text},
                )
                raise ProviderError(
                    "Failed to download from BoldSign",
                    response.status_code,
                    detail=response.text,
                    documentId=document_id,
                )

            content = response.content
            if not content:
                raise ProviderError("BoldSign returned empty response", response.status_code, documentId=document_id)

            logger.info(
                "boldsign.downloaded",
                extra={"document_id": document_id, "bytes": len(content)},
            )
            return content
