from __future__ import annotations

import base64
import uuid
from collections.abc import Generator
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from engagement import events
from engagement.core.config import get_settings
from engagement.core.database import Base, get_db
from engagement.errors import ProviderError
from engagement.esign.dependencies import get_provider_client
from engagement.esign.provider import SendDocumentRequest
from engagement.letters.models import Client, EngagementLetter
from engagement.main import app


PDF_BASE64 = base64.b64encode(b"%PDF-1.7 draft letter").decode("ascii")


class FakeProvider:
    def __init__(self, document_id: str = "doc-new", error: Exception | None = None) -> None:
        self.document_id = document_id
        self.error = error
        self.sent: list[SendDocumentRequest] = []

    def send_document(self, request: SendDocumentRequest) -> str:
        self.sent.append(request)
        if self.error is not None:
            raise self.error
        return self.document_id

    def download_document(self, document_id: str) -> bytes:
        raise AssertionError("download_document should not be called")


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def setup_env() -> Generator[None, None, None]:
    get_settings.cache_clear()
    events.published_events.clear()
    yield
    get_settings.cache_clear()
    events.published_events.clear()


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
def client(db_session: Session, provider: FakeProvider) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_provider_client] = lambda: provider

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def letter(db_session: Session) -> EngagementLetter:
    client = Client(entity_name="Acme Holdings LLC", contact_name="Jane Roe", matter_type="Estate Planning")
    db_session.add(client)
    db_session.flush()
    letter = EngagementLetter(client_id=client.id, title="Engagement Letter")
    db_session.add(letter)
    db_session.commit()
    return letter


def _auth(email: str = "attorney@margolispllc.com") -> dict[str, str]:
    settings = get_settings()
    token = jwt.encode({"sub": "user-1", "email": email}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return {"Authorization": f"Bearer {token}"}


def _payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "pdfBase64": PDF_BASE64,
        "fileName": "Acme Engagement Letter.pdf",
        "signerName": "Jane Roe",
        "signerEmail": "jane.roe@example.com",
        "title": "Engagement Letter - Acme Holdings LLC",
        "message": "Please review and sign.",
    }
    payload.update(overrides)
    return payload


def test_send_links_document_and_updates_records(
    client: TestClient, db_session: Session, provider: FakeProvider, letter: EngagementLetter
) -> None:
    response = client.post(
        "/esign/send",
        json=_payload(letterId=str(letter.id), clientId=str(letter.client_id)),
        headers=_auth(),
    )

    assert response.status_code == 200
    assert response.json() == {"ok": True, "documentId": "doc-new"}

    request = provider.sent[0]
    assert request.pdf_bytes == b"%PDF-1.7 draft letter"
    assert request.file_name == "Acme_Engagement_Letter.pdf"
    assert request.signature_page == 2
    assert [overlay.id for overlay in request.overlay_fields] == ["clientSignature", "clientName", "clientDate"]

    db_session.expire_all()
    stored = db_session.get(EngagementLetter, letter.id)
    assert stored.boldsign_document_id == "doc-new"
    assert stored.esign_status == "sent"
    assert stored.approval_status == "Approved"
    stored_client = db_session.get(Client, stored.client_id)
    assert stored_client.status == "Letter Sent"
    assert stored_client.letter_sent == datetime.now(timezone.utc).date()

    sent_events = [item for item in events.published_events if item["event_type"] == "esign.document_sent"]
    assert len(sent_events) == 1
    assert sent_events[0]["actor_email"] == "attorney@margolispllc.com"


def test_client_falls_back_to_letter_client(
    client: TestClient, db_session: Session, letter: EngagementLetter
) -> None:
    response = client.post("/esign/send", json=_payload(letterId=str(letter.id)), headers=_auth())

    assert response.status_code == 200
    db_session.expire_all()
    assert db_session.get(Client, letter.client_id).status == "Letter Sent"


def test_signature_page_can_be_overridden(client: TestClient, provider: FakeProvider) -> None:
    response = client.post("/esign/send", json=_payload(signaturePageNumber=3), headers=_auth())

    assert response.status_code == 200
    assert provider.sent[0].signature_page == 3


def test_send_without_letter_only_calls_provider(client: TestClient, db_session: Session, provider: FakeProvider) -> None:
    response = client.post("/esign/send", json=_payload(), headers=_auth())

    assert response.status_code == 200
    assert len(provider.sent) == 1
    assert db_session.scalars(select(EngagementLetter)).all() == []


@pytest.mark.parametrize(
    "overrides",
    [
        {"title": "Line one\r\nBcc: someone@example.com"},
        {"signerName": "Jane\nRoe"},
        {"signerEmail": "jane.roe@example.com\r\n"},
        {"signerEmail": "not-an-email"},
        {"title": "x" * 501},
        {"message": "x" * 2001},
        {"title": ""},
        {"unexpected": "field"},
        {"letterId": "not-a-uuid"},
    ],
)
def test_invalid_input_is_400(client: TestClient, provider: FakeProvider, overrides: dict[str, object]) -> None:
    response = client.post("/esign/send", json=_payload(**overrides), headers=_auth())

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "Invalid request"
    assert provider.sent == []


def test_missing_required_field_is_400(client: TestClient, provider: FakeProvider) -> None:
    payload = _payload()
    payload.pop("pdfBase64")

    response = client.post("/esign/send", json=payload, headers=_auth())

    assert response.status_code == 400
    assert provider.sent == []


def test_invalid_base64_is_400(client: TestClient, provider: FakeProvider) -> None:
    response = client.post("/esign/send", json=_payload(pdfBase64="%%% not base64 %%%"), headers=_auth())

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "pdfBase64 is not valid base64"
    assert provider.sent == []


def test_oversized_body_is_413(client: TestClient, provider: FakeProvider, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAX_SEND_BODY_BYTES", "1024")
    get_settings.cache_clear()

    oversized = base64.b64encode(b"0" * 4096).decode("ascii")
    response = client.post("/esign/send", json=_payload(pdfBase64=oversized), headers=_auth())

    assert response.status_code == 413
    assert provider.sent == []


def test_provider_rejection_is_502(client: TestClient, db_session: Session, provider: FakeProvider, letter: EngagementLetter) -> None:
    provider.error = ProviderError("BoldSign API error", 422, detail="Signer email is invalid")

    response = client.post("/esign/send", json=_payload(letterId=str(letter.id)), headers=_auth())

    assert response.status_code == 502
    assert response.json()["detail"]["boldsignStatus"] == 422
    db_session.expire_all()
    stored = db_session.get(EngagementLetter, letter.id)
    assert stored.boldsign_document_id is None
    assert stored.esign_status == "unsent"


def test_unknown_letter_is_404(client: TestClient, provider: FakeProvider) -> None:
    response = client.post("/esign/send", json=_payload(letterId=str(uuid.uuid4())), headers=_auth())

    assert response.status_code == 404
    assert provider.sent == []


def test_already_sent_letter_is_400(
    client: TestClient, db_session: Session, provider: FakeProvider, letter: EngagementLetter
) -> None:
    first = client.post("/esign/send", json=_payload(letterId=str(letter.id)), headers=_auth())
    second = client.post("/esign/send", json=_payload(letterId=str(letter.id)), headers=_auth())

    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json()["detail"]["documentId"] == "doc-new"
    assert len(provider.sent) == 1


def test_send_requires_authorized_principal(client: TestClient, provider: FakeProvider) -> None:
    unauthenticated = client.post("/esign/send", json=_payload())
    outsider = client.post("/esign/send", json=_payload(), headers=_auth(email="someone@gmail.com"))

    assert unauthenticated.status_code == 401
    assert outsider.status_code == 403
    assert provider.sent == []
