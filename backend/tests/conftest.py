"""
Pytest configuration and fixtures for AI Chatbot tests.

This module provides shared fixtures for testing database models,
repositories, the streaming pipeline and the API.
"""

import os

# Settings are read at import time; keep tests off PostgreSQL and the log dir
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
# Every fixture shares one Session, which must stay on the test thread
os.environ.setdefault("STREAM_LOG_OFFLOAD", "false")

import uuid  # noqa: E402
from contextlib import contextmanager  # noqa: E402
from typing import Generator  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from aichatbot.db.repositories import ConversationRepository  # noqa: E402
from aichatbot.models.db import Base, Conversation  # noqa: E402


@pytest.fixture(scope="session")
def test_engine():
    """Create a test database engine using SQLite in-memory."""
    from sqlalchemy import JSON, event
    from sqlalchemy.dialects import postgresql

    # Replace JSONB with JSON for SQLite
    @event.listens_for(Base.metadata, "before_create")
    def _set_json_type(target, connection, **kw):
        for table in target.tables.values():
            for column in table.columns:
                if isinstance(column.type, postgresql.JSONB):
                    column.type = JSON()

    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={
            "check_same_thread": False
        },  # Allow cross-thread access for TestClient
    )

    # Let SQLAlchemy emit BEGIN so savepoints nest inside the test transaction
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """
    Create a new database session for a test.

    Each test gets a fresh session with a transaction that is rolled back
    after the test completes, ensuring test isolation.
    """
    connection = test_engine.connect()
    transaction = connection.begin()
    session = sessionmaker(bind=connection)()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def session_scope(db_session: Session):
    """
    Session factory for long-lived components, bound to the test session.

    Commits become flushes so everything still rolls back after the test.
    """

    @contextmanager
    def scope() -> Generator[Session, None, None]:
        yield db_session
        db_session.flush()

    return scope


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def conversation(db_session: Session, user_id: uuid.UUID) -> Conversation:
    """Create a sample conversation for testing."""
    conversation = ConversationRepository(db_session).create(
        id=uuid.uuid4(), user_id=user_id, title="Test conversation"
    )
    db_session.flush()
    return conversation


@pytest.fixture
def api_client(db_session: Session, session_scope):
    """Create a test client for FastAPI with database dependency override."""
    from unittest.mock import patch

    from fastapi.testclient import TestClient

    from aichatbot.api.app import app
    from aichatbot.db.connection import get_db
    from aichatbot.streaming import StreamManager

    # Override the get_db dependency to use test database
    def override_get_db():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    # Disable lifespan startup checks for testing
    with patch("aichatbot.api.app.run_all_startup_checks"):
        with TestClient(app) as client:
            client.app.state.stream_manager = StreamManager(
                session_scope, inactivity_timeout=5.0, poll_interval=0.01
            )
            client.app.state.orchestrator = None
            yield client

    # Clean up
    app.dependency_overrides.clear()
