"""Pytest fixtures for the call ingestion pipeline tests.

This module provides shared fixtures for testing database models, pipeline
settings, and sample calls, agents and companies.
"""

import base64
from collections.abc import Callable, Generator
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from callflow.config import Settings
from callflow.models import Agent, Base, CallRecord, CallStatus, Company
from callflow.services.recording_source import RecordingPayload

EXTENSION_PREFIX = "56360"
COMPANY_DID = "01273806211"


def _word_count(text: str) -> int:
    return len(text.split())


@pytest.fixture(autouse=True)
def word_token_counter() -> Generator[None, None, None]:
    """Count tokens as whitespace-separated words so tests never load tokenizer files."""
    with patch("callflow.services.embedding._count_tokens", side_effect=_word_count):
        yield


@pytest.fixture
def test_settings() -> Settings:
    """Create a Settings object for tests without reading the environment's .env file.

    Returns:
        Settings: Settings with test database credentials, endpoints, and
        small chunk sizes so short transcripts produce several chunks.
    """
    return Settings(
        _env_file=None,
        POSTGRES_HOST="localhost",
        POSTGRES_USER="test_user",
        POSTGRES_PASSWORD="test_password",
        POSTGRES_DB="test_callflow",
        VOLUME_PATH="/Volumes/test/default/call-recordings",
        TRANSCRIPTION_ENDPOINT="test-transcription-endpoint",
        REFINEMENT_ENDPOINT=None,
        LLM_ENDPOINT="test-llm-endpoint",
        EMBEDDING_ENDPOINT="test-embedding-endpoint",
        SKIP_EMBEDDINGS=False,
        EMBEDDING_CHUNK_SIZE_TOKENS=20,
        EMBEDDING_CHUNK_OVERLAP_TOKENS=0,
        EMBEDDING_MAX_TOKENS=8191,
        EXTENSION_PREFIX=EXTENSION_PREFIX,
        COMPANY_DID=COMPANY_DID,
        VOIP_BASE_URL="https://voip.test",
        VOIP_USERNAME="voip_user",
        VOIP_PASSWORD="voip_password",
        VOIP_CUSTOMER_ID="1001",
        DIRECTORY_BASE_URL="https://directory.test/v4_6_release/apis/3.0",
        DIRECTORY_COMPANY_ID="acme",
        DIRECTORY_PUBLIC_KEY="public",
        DIRECTORY_PRIVATE_KEY="private",
        DIRECTORY_CLIENT_ID="client-123",
        WORKER_CONCURRENCY=2,
        JOB_MAX_ATTEMPTS=1,
        JOB_RETRY_BACKOFF_SECONDS=0.01,
    )


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key support for SQLite connections.

    SQLite does not enforce foreign keys by default. This event listener
    enables foreign key constraints for all SQLite connections.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create an in-memory SQLite database session for testing.

    Creates all tables from the Base metadata, yields a session for
    test use, and performs cleanup (rollback, close, drop tables)
    after each test function.

    Yields:
        Session: A SQLAlchemy session connected to an in-memory SQLite database.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = TestSessionLocal()

    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_payload() -> Callable[..., RecordingPayload]:
    """Build RecordingPayload objects with an inbound CDR by default."""

    def _make(
        recording_ref: str = "1700000000.1234",
        cdr: dict | None = None,
        mime_type: str = "audio/mpeg",
        audio: bytes = b"fake mp3 bytes",
    ) -> RecordingPayload:
        if cdr is None:
            cdr = {
                "snumber": "01611234567",
                "cnumber": COMPANY_DID,
                "dnumber": "5636012345",
                "callerid_internal": None,
                "uniqueid": recording_ref,
                "name": None,
            }
        return RecordingPayload(
            recording_ref=recording_ref,
            start_epoch=1_700_000_000,
            end_epoch=1_700_000_185,
            mime_type=mime_type,
            audio_base64=base64.b64encode(audio).decode("ascii"),
            audio_bytes=audio,
            cdr=cdr,
        )

    return _make


@pytest.fixture
def make_call(db_session: Session) -> Callable[..., CallRecord]:
    """Persist CallRecord rows with sensible defaults."""

    def _make(
        recording_ref: str = "1700000000.1234",
        status: CallStatus = CallStatus.PENDING,
        **fields,
    ) -> CallRecord:
        call = CallRecord(recording_ref=recording_ref, status=status.value, **fields)
        db_session.add(call)
        db_session.commit()
        db_session.refresh(call)
        return call

    return _make


@pytest.fixture
def sample_agent(db_session: Session) -> Agent:
    """Create and return an agent with a known extension."""
    agent = Agent(name="Alice Smith", extension="5636012345")
    db_session.add(agent)
    db_session.commit()
    db_session.refresh(agent)
    return agent


@pytest.fixture
def sample_company(db_session: Session) -> Company:
    """Create and return a company known to the directory."""
    company = Company(external_id="42", name="Acme Ltd")
    db_session.add(company)
    db_session.commit()
    db_session.refresh(company)
    return company
