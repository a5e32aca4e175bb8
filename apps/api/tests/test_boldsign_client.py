from __future__ import annotations

import httpx
import pytest

from engagement.errors import ConfigurationError, ProviderError
from engagement.esign.provider import (
    SIGNATURE_OVERLAY_FIELDS,
    BoldSignClient,
    SendDocumentRequest,
    build_send_form,
)


def _request(**overrides: object) -> SendDocumentRequest:
    values: dict[str, object] = {
        "pdf_bytes": b"%PDF-1.7 draft",
        "file_name": "Engagement_Letter.pdf",
        "signer_name": "Jane Roe",
        "signer_email": "jane.roe@example.com",
        "title": "Engagement Letter",
        "message": "Please sign.",
    }
    values.update(overrides)
    return SendDocumentRequest(**values)  # type: ignore[arg-type]


def _client(handler) -> BoldSignClient:  # type: ignore[no-untyped-def]
    return BoldSignClient("api-key-1", base_url="https://boldsign.test/", transport=httpx.MockTransport(handler))


def test_send_form_places_three_overlay_fields() -> None:
    form = build_send_form(_request(signature_page=2))

    assert form["Title"] == "Engagement Letter"
    assert form["Message"] == "Please sign."
    assert form["Signers[0][Name]"] == "Jane Roe"
    assert form["Signers[0][EmailAddress]"] == "jane.roe@example.com"
    assert form["Signers[0][SignerType]"] == "Signer"
    assert len(SIGNATURE_OVERLAY_FIELDS) == 3

    expected = [
        ("clientSignature", "Signature", "100", "265", "250", "28"),
        ("clientName", "TextBox", "130", "290", "220", "18"),
        ("clientDate", "DateSigned", "116", "306", "180", "18"),
    ]
    for index, (field_id, field_type, x, y, width, height) in enumerate(expected):
        prefix = f"Signers[0][FormFields][{index}]"
        assert form[f"{prefix}[Id]"] == field_id
        assert form[f"{prefix}[FieldType]"] == field_type
        assert form[f"{prefix}[PageNumber]"] == "2"
        assert (
            form[f"{prefix}[Bounds][X]"],
            form[f"{prefix}[Bounds][Y]"],
            form[f"{prefix}[Bounds][Width]"],
            form[f"{prefix}[Bounds][Height]"],
        ) == (x, y, width, height)
        assert form[f"{prefix}[IsRequired]"] == "true"


def test_blank_message_is_omitted() -> None:
    assert "Message" not in build_send_form(_request(message="   "))
    assert "Message" not in build_send_form(_request(message=None))


def test_empty_api_key_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        BoldSignClient("")


def test_send_document_posts_multipart_form() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(201, json={"documentId": "doc-123"})

    client = _client(handler)
    try:
        document_id = client.send_document(_request(signature_page=4))
    finally:
        client.close()

    assert document_id == "doc-123"
    request = captured[0]
    assert request.method == "POST"
    assert request.url.path == "/v1/document/send"
    assert request.headers["X-API-KEY"] == "api-key-1"
    assert request.headers["content-type"].startswith("multipart/form-data")
    body = request.read()
    assert b'name="Signers[0][EmailAddress]"' in body
    assert b"jane.roe@example.com" in body
    assert b'name="Files"; filename="Engagement_Letter.pdf"' in body
    assert b"%PDF-1.7 draft" in body


def test_send_document_error_carries_provider_status() -> None:
    client = _client(lambda request: httpx.Response(422, json={"message": "Signer email is invalid"}))

    with pytest.raises(ProviderError) as exc_info:
        client.send_document(_request())

    assert exc_info.value.provider_status == 422
    assert exc_info.value.to_payload() == {
        "error": "BoldSign API error",
        "boldsignStatus": 422,
        "detail": "Signer email is invalid",
    }


def test_send_document_without_document_id_fails() -> None:
    client = _client(lambda request: httpx.Response(200, json={}))

    with pytest.raises(ProviderError):
        client.send_document(_request())


def test_download_document_returns_bytes() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, content=b"%PDF-1.7 executed", headers={"content-type": "application/pdf"})

    content = _client(handler).download_document("doc-123")

    assert content == b"%PDF-1.7 executed"
    assert captured[0].method == "GET"
    assert captured[0].url.path == "/v1/document/download"
    assert captured[0].url.params["documentId"] == "doc-123"


def test_download_document_failure_is_provider_error() -> None:
    client = _client(lambda request: httpx.Response(404, text="Document not found"))

    with pytest.raises(ProviderError) as exc_info:
        client.download_document("doc-missing")

    assert exc_info.value.status_code == 502
    assert exc_info.value.to_payload()["boldsignStatus"] == 404
    assert exc_info.value.to_payload()["documentId"] == "doc-missing"


def test_download_empty_body_is_provider_error() -> None:
    client = _client(lambda request: httpx.Response(200, content=b""))

    with pytest.raises(ProviderError) as exc_info:
        client.download_document("doc-empty")

    assert exc_info.value.message == "BoldSign returned empty response"


def test_transport_error_is_provider_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderError) as exc_info:
        _client(handler).download_document("doc-123")

    assert exc_info.value.provider_status is None
