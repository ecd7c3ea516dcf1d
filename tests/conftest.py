"""
tests/conftest.py -- Shared fixtures for the car listings API tests.

Settings are read once at import time, so the database URL, upload directory
and signing key must be in the environment before any app module is imported.
Every test gets a fresh schema and an empty upload directory.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="car-listings-tests-"))
_UPLOAD_DIR = _TEST_ROOT / "uploads"

os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_ROOT / 'test.db'}"
os.environ["UPLOAD_DIR"] = str(_UPLOAD_DIR)
os.environ["BASE_URL"] = "http://testserver"
os.environ["SECRET_KEY"] = "test-secret-key-0123456789abcdef0123456789abcdef"

import pytest
from fastapi.testclient import TestClient

import app.models  # noqa: F401
from app.db.base import Base
from app.db.sessions import SessionLocal, engine
from app.main import app as fastapi_app

# Minimal payloads; content is never decoded, only the declared type matters
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def upload_dir() -> Path:
    return _UPLOAD_DIR


@pytest.fixture
def client(upload_dir: Path) -> Generator[TestClient, None, None]:
    """TestClient over a clean database and an empty upload directory."""
    Base.metadata.drop_all(bind=engine)
    shutil.rmtree(upload_dir, ignore_errors=True)

    with TestClient(fastapi_app) as test_client:
        yield test_client


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def signup(client: TestClient, email: str = "a@x.com", password: str = "secret1") -> dict:
    """Register a user and return the Authorization header for it."""
    resp = client.post("/api/users/signup", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


def image(name: str = "car.jpg", content: bytes = JPEG_BYTES, content_type: str = "image/jpeg") -> tuple:
    return ("images", (name, content, content_type))


def stored_files(upload_dir: Path) -> set[str]:
    if not upload_dir.exists():
        return set()
    return {p.name for p in upload_dir.iterdir() if p.is_file()}


@pytest.fixture
def auth_headers(client: TestClient) -> dict:
    return signup(client)
