"""
Shared fixtures.

Every test gets its own SQLite file: tables are created through a plain sync
engine, the API talks to the same file through aiosqlite, and tests that
need to plant rows with exact timestamps use the sync `store` session.
"""
import os

# Settings are read at import time — point them at test values first.
os.environ.setdefault("OTEL_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-long-enough-for-hs256-signing")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timedelta  # noqa: E402
from typing import Callable  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from social_api.database import Base, get_db  # noqa: E402
from social_api.main import app  # noqa: E402
from social_api.models import Message  # noqa: E402

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture
def db_file(tmp_path):
    path = tmp_path / "social.db"
    engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(engine)
    engine.dispose()
    return path


@pytest.fixture
def store(db_file):
    """Sync session factory on the test database; commit and close promptly."""
    engine = create_engine(f"sqlite:///{db_file}", poolclass=NullPool)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def client(db_file):
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_file}", poolclass=NullPool)
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(client) -> Callable[..., dict]:
    """Sign up a user; returns {"id", "username", "token", "headers"}."""

    def _make(username: str, display_name: str | None = None) -> dict:
        resp = client.post(
            "/api/auth/signup",
            json={
                "username": username,
                "email": f"{username}@example.com",
                "password": "password123",
                "displayName": display_name,
            },
        )
        assert resp.status_code == 201, resp.text
        body = resp.json()
        return {
            "id": body["user"]["userId"],
            "username": username,
            "token": body["token"],
            "headers": {"Authorization": f"Bearer {body['token']}"},
        }

    return _make


@pytest.fixture
def plant_message(store) -> Callable[..., str]:
    """Insert a message at BASE_TIME + `at` seconds; returns its id."""

    def _plant(
        sender: dict,
        receiver: dict,
        content: str,
        at: float,
        is_read: bool = False,
        message_id: str | None = None,
    ) -> str:
        with store() as session:
            msg = Message(
                sender_id=sender["id"],
                receiver_id=receiver["id"],
                content=content,
                is_read=is_read,
                created_at=BASE_TIME + timedelta(seconds=at),
            )
            if message_id:
                msg.message_id = message_id
            session.add(msg)
            session.commit()
            return msg.message_id

    return _plant
