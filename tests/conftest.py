"""
Test configuration and fixtures for Lockbox tests.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from lockbox.app import create_app
from lockbox.auth.credentials import CredentialStore
from lockbox.core.config import Settings
from lockbox.core.rate_limit import limiter
from lockbox.storage.memory import MemoryObjectBackend

# Cheap bcrypt cost so credential tests stay fast
TEST_BCRYPT_ROUNDS = 4


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated in-memory credential database for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def credential_store(db_engine):
    """A loaded credential store on the test database."""
    store = CredentialStore(db_engine, bcrypt_rounds=TEST_BCRYPT_ROUNDS)
    store.load()
    return store


@pytest.fixture
def test_user_data(credential_store):
    """Create a test user and return their credentials."""
    credential_store.set_credential("testuser", "correct-horse-battery")
    return {"username": "testuser", "password": "correct-horse-battery"}


@pytest.fixture(autouse=True)
def rate_limiting_disabled():
    """Keep the process-wide login limiter off unless a test opts in."""
    previous = limiter.enabled
    limiter.enabled = False
    yield
    limiter.enabled = previous
    limiter.reset()


@pytest.fixture
def rate_limiting(rate_limiting_disabled):
    """Turn the login limiter on for one test."""
    limiter.reset()
    limiter.enabled = True
    return limiter


@pytest.fixture
def client_factory(db_engine):
    """Factory to create started test clients for a given strategy and limits."""
    clients = []

    def create_client(strategy="stateless", backend=None, **overrides):
        options = {
            "auth_strategy": strategy,
            "backend": "memory",
            "log_to_file": False,
        }
        options.update(overrides)
        app = create_app(
            Settings(**options),
            backend=backend if backend is not None else MemoryObjectBackend(),
            engine=db_engine,
            bcrypt_rounds=TEST_BCRYPT_ROUNDS,
        )
        client = TestClient(app)
        # Run the lifespan so the credential store is loaded
        client.__enter__()
        clients.append(client)
        return client

    yield create_client

    # Cleanup
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def login():
    """Log a client in with whatever fields its strategy requires."""

    def do_login(client, username=None, password=None):
        if client.app.state.authenticator.name == "stateless":
            payload = {"token": client.app.state.credentials.access_token}
        else:
            payload = {"username": username, "password": password}
        response = client.post("/api/auth/login", json=payload)
        assert response.status_code == 200, response.text
        return response

    return do_login
