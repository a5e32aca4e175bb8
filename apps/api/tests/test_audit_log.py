from __future__ import annotations

import logging
from collections.abc import Generator

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from engagement import events, main
from engagement.core.database import Base, get_db
from engagement.events import InternalEvent
from engagement.models.audit import AuditLog
from engagement.services.audit import SYSTEM_ACTOR, audit_entry_from_envelope, write_audit_log


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


@pytest.fixture()
def override_db(db_session: Session) -> Generator[None, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    main.app.dependency_overrides[get_db] = override_get_db
    yield
    main.app.dependency_overrides.clear()


def test_write_audit_log_persists_row(db_session: Session) -> None:
    entry = write_audit_log(
        db_session,
        "attorney@margolispllc.com",
        "esign.document_sent",
        "letter",
        "letter-1",
        {"document_id": "doc-1"},
    )

    stored = db_session.scalars(select(AuditLog)).one()
    assert stored.id == entry.id
    assert stored.details == {"document_id": "doc-1"}
    assert stored.created_at is not None


def test_envelope_mapping_prefers_letter_and_actor() -> None:
    entry = audit_entry_from_envelope(
        {
            "event_type": "esign.document_sent",
            "letter_id": "letter-1",
            "client_id": "client-1",
            "document_id": "doc-1",
            "actor_email": "attorney@margolispllc.com",
            "correlation_id": None,
        }
    )

    assert entry == {
        "user_email": "attorney@margolispllc.com",
        "action": "esign.document_sent",
        "entity_type": "letter",
        "entity_id": "letter-1",
        "details": {"letter_id": "letter-1", "client_id": "client-1", "document_id": "doc-1"},
    }


def test_envelope_without_letter_falls_back_to_client_and_system_actor() -> None:
    entry = audit_entry_from_envelope({"event_type": "esign.document_sent", "letter_id": None, "client_id": "client-1"})

    assert entry["user_email"] == SYSTEM_ACTOR
    assert (entry["entity_type"], entry["entity_id"]) == ("client", "client-1")


def test_audit_subscriber_writes_row(db_session: Session, override_db: None) -> None:
    main._on_esign_event(
        InternalEvent(
            name="esign.letter_executed",
            payload={"event_type": "esign.letter_executed", "letter_id": "letter-1", "executed_on": "2026-10-01"},
        )
    )

    stored = db_session.scalars(select(AuditLog)).one()
    assert stored.action == "esign.letter_executed"
    assert stored.entity_id == "letter-1"
    assert stored.user_email == SYSTEM_ACTOR


def test_audit_failures_are_logged_not_raised(
    db_session: Session,
    override_db: None,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.ERROR)

    def failing_write(*args: object, **kwargs: object) -> AuditLog:
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(main, "write_audit_log", failing_write)

    main._on_esign_event(
        InternalEvent(name="esign.status_changed", payload={"event_type": "esign.status_changed", "letter_id": "l-1"})
    )

    assert db_session.scalars(select(AuditLog)).all() == []
    assert any(record.getMessage() == "audit_write_failed" for record in caplog.records)


def test_published_history_is_bounded() -> None:
    events.published_events.clear()
    try:
        for index in range(events.PUBLISHED_HISTORY_LIMIT + 5):
            events.publish({"sequence": index})

        assert len(events.published_events) == events.PUBLISHED_HISTORY_LIMIT
        assert events.published_events[0]["sequence"] == 5
        assert events.published_events[-1]["correlation_id"] is None
    finally:
        events.published_events.clear()
