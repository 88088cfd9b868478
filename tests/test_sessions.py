"""
Tests for server-side sessions.
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from lockbox.auth.sessions import ReadWriteLock, Session, SessionAuthenticator, SessionTable
from lockbox.core.errors import (
    InvalidCredentialsError,
    SessionExpiredError,
    SessionNotFoundError,
)

SESSION_SECONDS = 3600
BCRYPT_ROUNDS = 4


@pytest.fixture
def authenticator(credential_store, test_user_data):
    auth = SessionAuthenticator(
        credential_store,
        session_seconds=SESSION_SECONDS,
        clock=lambda: 1000.0,
        bcrypt_rounds=BCRYPT_ROUNDS,
    )
    yield auth
    auth.close()


class TestSessionAuthenticator:
    """Tests for username/password sessions."""

    def test_authenticate_and_validate(self, authenticator, test_user_data):
        """Test that a fresh session resolves to its user."""
        session_id = authenticator.authenticate(test_user_data["username"], test_user_data["password"])
        principal = authenticator.validate(session_id)

        assert principal.strategy == "stateful"
        assert principal.username == test_user_data["username"]

    def test_wrong_password(self, authenticator, test_user_data):
        """Test that a wrong password opens no session."""
        with pytest.raises(InvalidCredentialsError):
            authenticator.authenticate(test_user_data["username"], "not-the-password")

        assert len(authenticator.table) == 0

    def test_unknown_user(self, authenticator):
        """Test that an unknown user is rejected like a wrong password."""
        with pytest.raises(InvalidCredentialsError):
            authenticator.authenticate("ghost", "whatever-password")

    def test_unknown_session(self, authenticator):
        """Test that an id never issued is not found."""
        with pytest.raises(SessionNotFoundError):
            authenticator.validate("never-issued")

    def test_revoke_twice(self, authenticator, test_user_data):
        """Test that revoking is idempotent and kills the session."""
        session_id = authenticator.login(test_user_data)

        authenticator.revoke(session_id)
        authenticator.revoke(session_id)

        with pytest.raises(SessionNotFoundError):
            authenticator.validate(session_id)

    def test_valid_just_before_expiry(self, authenticator, test_user_data):
        """Test that a session is valid one second before it expires."""
        session_id = authenticator.login(test_user_data)

        assert authenticator.validate(session_id, now=1000.0 + SESSION_SECONDS - 1).username == "testuser"

    def test_expired_session_removed(self, authenticator, test_user_data):
        """Test that an expired session is rejected and removed in the background."""
        session_id = authenticator.login(test_user_data)

        with pytest.raises(SessionExpiredError):
            authenticator.validate(session_id, now=1000.0 + SESSION_SECONDS)

        # close() waits for the scheduled removal
        authenticator.close()
        assert authenticator.table.get(session_id) is None

    def test_sweep(self, authenticator, test_user_data):
        """Test that sweep removes expired sessions only."""
        old = authenticator.authenticate(test_user_data["username"], test_user_data["password"], now=0.0)
        fresh = authenticator.authenticate(test_user_data["username"], test_user_data["password"], now=1000.0)

        assert authenticator.sweep(now=float(SESSION_SECONDS)) == 1
        assert authenticator.table.get(old) is None
        assert authenticator.table.get(fresh) is not None

    def test_sessions_are_distinct(self, authenticator, test_user_data):
        """Test that each login gets its own session id."""
        ids = {authenticator.login(test_user_data) for _ in range(5)}

        assert len(ids) == 5
        assert len(authenticator.table) == 5


class TestSessionTable:
    """Tests for the concurrent session map."""

    def test_concurrent_insert_validate_revoke(self):
        """Test that concurrent readers and writers leave a consistent table."""
        table = SessionTable()

        def worker(n):
            session = Session(id=f"s{n}", username="u", created_at=0.0, expires_at=10.0)
            table.insert(session)
            assert table.get(session.id) == session
            if n % 2:
                assert table.discard(session.id)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(worker, range(200)))

        assert len(table) == 100
        assert all(table.get(f"s{n}") is not None for n in range(0, 200, 2))

    def test_discard_if_expired_keeps_live_session(self):
        """Test that a live session is never removed by the expiry reaper."""
        table = SessionTable()
        table.insert(Session(id="a", username="u", created_at=0.0, expires_at=10.0))

        assert not table.discard_if_expired("a", now=5.0)
        assert table.discard_if_expired("a", now=10.0)
        assert not table.discard_if_expired("a", now=10.0)


class TestReadWriteLock:
    """Tests for the reader/writer lock."""

    def test_readers_share(self):
        """Test that two readers can hold the lock at once."""
        lock = ReadWriteLock()
        both_inside = threading.Barrier(2, timeout=2)

        def reader():
            with lock.read_locked():
                both_inside.wait()

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=3)

        assert not both_inside.broken

    def test_writer_excludes_readers(self):
        """Test that a reader waits while a writer holds the lock."""
        lock = ReadWriteLock()
        events = []
        writer_in = threading.Event()

        def writer():
            with lock.write_locked():
                writer_in.set()
                time.sleep(0.1)
                events.append("writer-done")

        def reader():
            writer_in.wait()
            with lock.read_locked():
                events.append("reader")

        threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=3)

        assert events == ["writer-done", "reader"]
