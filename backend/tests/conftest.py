"""
Shared fixtures.

Environment is set before any application module is imported: settings are
read at import time.  Every test gets a fresh in-memory SQLite database and
``get_db`` / ``get_token_codec`` / ``get_bot_verifier`` are overridden so
nothing touches PostgreSQL or Google.
"""

import os
import tempfile

os.environ.setdefault("SECRET_KEY", "test-signing-key-0123456789abcdef0123456789abcdef")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "1000")
os.environ.setdefault("RECAPTCHA_SECRET", "test-recaptcha-secret")
os.environ.setdefault("PREP360_LOG_DIR", tempfile.mkdtemp(prefix="prep360-log-"))

import pyotp  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import models  # noqa: F401, E402
from core.errors import ExternalServiceFailure  # noqa: E402
from core.recaptcha import BotCheckResult, get_bot_verifier  # noqa: E402
from core.security import SessionTokenCodec, get_token_codec, hash_password  # noqa: E402
from database import Base, get_db  # noqa: E402
from main import app  # noqa: E402
from models.user import User  # noqa: E402

PASSWORD = "Secret123"


class StubBotVerifier:
    """Stands in for RecaptchaVerifier; set ``result`` or ``error`` per test."""

    def __init__(self):
        self.result = BotCheckResult(success=True, score=0.9)
        self.error = None
        self.calls = []

    def verify(self, proof, remote_ip=None):
        self.calls.append(proof)
        if self.error is not None:
            raise self.error
        return self.result

    def fail_with_timeout(self):
        self.error = ExternalServiceFailure("Bot verification timed out")


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def codec():
    return SessionTokenCodec("unit-test-key-fedcba9876543210fedcba9876543210")


@pytest.fixture
def bot_verifier():
    return StubBotVerifier()


@pytest.fixture
def client(session_factory, codec, bot_verifier):
    """HTTP test client wired to the per-test database."""

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_token_codec] = lambda: codec
    app.dependency_overrides[get_bot_verifier] = lambda: bot_verifier
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Insert an account directly; returns the refreshed ORM row."""

    def _make(email="alice@example.com", password=PASSWORD, role="normal", **fields):
        user = User(
            username=fields.pop("username", email.split("@")[0]),
            email=email,
            password_hash=hash_password(password),
            role=role,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


# --- Helpers ---

def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client, email="alice@example.com", password=PASSWORD, username="alice"):
    return client.post("/auth/register", json={
        "username": username,
        "email": email,
        "password": password,
    })


def login(client, email="alice@example.com", password=PASSWORD, device_id="d1"):
    return client.post("/auth/login", json={
        "email": email,
        "password": password,
        "device_id": device_id,
    })


def current_code(secret: str) -> str:
    return pyotp.TOTP(secret).now()
