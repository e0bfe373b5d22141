"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Iterator

import pytest
from fastapi.testclient import TestClient
from passlib.context import CryptContext
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.websockets import WebSocketState

ROOT_DIR = Path(__file__).resolve().parents[1]
for path in (ROOT_DIR, ROOT_DIR / "src"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("DATABASE_AUTO_CREATE", "false")
os.environ.setdefault("ATTACHMENT_SWEEP_INTERVAL_SECONDS", "0")
os.environ.setdefault("MEDIA_ROOT", tempfile.mkdtemp(prefix="agora-media-"))

from agora.realtime import managers as realtime_managers
from app.config import get_settings
from app.core import security
from app.database import enable_sqlite_foreign_keys, get_db
from app.main import app
from app.models import Base, User

# A single cheap round keeps password hashing fast in tests
security.pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"], deprecated="auto", pbkdf2_sha256__rounds=1000
)


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def test_engine() -> Iterator[Engine]:
    """Provide an in-memory SQLite engine for isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(test_engine) -> sessionmaker[Session]:
    """Return a session factory bound to the test engine."""

    return sessionmaker(bind=test_engine, autoflush=False, future=True)


@pytest.fixture()
def db_session(session_factory) -> Iterator[Session]:
    """Yield a SQLAlchemy session for unit tests."""

    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def media_root(tmp_path, monkeypatch) -> Path:
    """Point upload storage at a per-test directory."""

    root = tmp_path / "media"
    root.mkdir()
    monkeypatch.setattr(get_settings(), "media_root", root)
    return root


@pytest.fixture()
def gateway(session_factory):
    """Realtime components bound to the test database."""

    configured = realtime_managers.configure_realtime(session_factory)
    try:
        yield configured
    finally:
        realtime_managers.configure_realtime()


@pytest.fixture()
def client(session_factory, gateway, media_root) -> Iterator[TestClient]:
    """Yield a FastAPI TestClient with the database dependency overridden."""

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(session_factory):
    """Insert a user row directly and return its id."""

    def factory(username: str, **fields: Any) -> int:
        with session_factory() as session:
            user = User(username=username, display_name=fields.pop("display_name", username), **fields)
            session.add(user)
            session.commit()
            return user.id

    return factory


class DummyWebSocket:
    """Stand-in socket that records every JSON frame sent to it."""

    def __init__(self) -> None:
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[dict[str, Any]] = []

    async def send_json(self, payload: dict[str, Any]) -> None:
        self.sent.append(payload)

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [frame for frame in self.sent if frame.get("type") == event_type]
