"""Shared test fixtures for credential service tests."""

from unittest.mock import Mock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from credential_service.config import Settings
from credential_service.database import Base, create_session_factory
from credential_service.main import create_app
from credential_service.models import Account  # noqa: F401
from credential_service.services.account_service import AccountService
from credential_service.services.email_service import EmailService
from credential_service.services.password_hasher import PasswordHasher
from credential_service.services.repositories.account_store import AccountStore
from credential_service.services.session_issuer import SessionIssuer

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"


@pytest.fixture
def engine():
    """In-memory SQLite engine with the accounts table."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return AccountStore(session_factory)


@pytest.fixture(scope="session")
def hasher():
    """Low-cost bcrypt so tests stay fast."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def issuer():
    return SessionIssuer(TEST_SECRET, algorithm="HS256", expire_minutes=15)


@pytest.fixture
def notifier():
    """Notification sink that records (address, token) calls."""
    return Mock(return_value=True)


@pytest.fixture
def account_service(store, hasher, issuer, notifier):
    return AccountService(
        store=store,
        hasher=hasher,
        session_issuer=issuer,
        notify=notifier,
        password_min_length=8,
        timeout_seconds=5.0,
    )


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        jwt_secret_key=TEST_SECRET,
        email_delivery_enabled=False,
        bcrypt_rounds=4,
    )


@pytest.fixture
def client(test_settings, engine):
    """Test client over the in-memory database with email delivery mocked.

    Yields a tuple of (TestClient, send_verification_email mock).
    """
    app = create_app(test_settings, engine=engine)
    with patch.object(EmailService, "send_verification_email", return_value=True) as mock_send:
        with TestClient(app) as test_client:
            yield test_client, mock_send


def register_and_verify(test_client: TestClient, mock_send: Mock, email: str, password: str) -> dict:
    """Helper to register and verify an account, then login."""
    response = test_client.post("/api/auth/register", json={"email": email, "password": password})
    assert response.status_code == 201
    token = mock_send.call_args[0][1]

    response = test_client.get("/api/auth/verify", params={"token": token})
    assert response.status_code == 200

    response = test_client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return response.json()
