"""
Server-side sessions for per-user login.

Sessions live in a process-wide SessionTable guarded by a reader/writer
lock: validations read concurrently, while login, logout and the periodic
sweep take the lock exclusively.
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator

from lockbox.auth.base import Principal
from lockbox.auth.credentials import CredentialStore
from lockbox.core.errors import (
    InvalidCredentialsError,
    SessionExpiredError,
    SessionNotFoundError,
)
from lockbox.core.logger import get_logger
from lockbox.core.security import hash_password, new_session_id, verify_password

logger = get_logger(__name__)


class ReadWriteLock:
    """
    Many readers or one writer. Waiting writers block new readers so a
    steady stream of validations cannot starve login/logout.

    Not reentrant.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class Session:
    id: str
    username: str
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class SessionTable:
    """Concurrent map of session id -> Session. Entries are immutable once inserted."""

    def __init__(self):
        self._lock = ReadWriteLock()
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._sessions)

    def get(self, session_id: str) -> Session | None:
        with self._lock.read_locked():
            return self._sessions.get(session_id)

    def insert(self, session: Session) -> None:
        with self._lock.write_locked():
            self._sessions[session.id] = session

    def discard(self, session_id: str) -> bool:
        with self._lock.write_locked():
            return self._sessions.pop(session_id, None) is not None

    def discard_if_expired(self, session_id: str, now: float) -> bool:
        with self._lock.write_locked():
            session = self._sessions.get(session_id)
            if session is None or not session.is_expired(now):
                return False
            del self._sessions[session_id]
            return True

    def sweep(self, now: float) -> int:
        with self._lock.write_locked():
            expired = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
            for sid in expired:
                del self._sessions[sid]
            return len(expired)


class SessionAuthenticator:
    """Username/password login backed by the credential store and a SessionTable."""

    name = "stateful"
    required_fields = ("username", "password")

    def __init__(
        self,
        credentials: CredentialStore,
        session_seconds: int,
        table: SessionTable | None = None,
        clock: Callable[[], float] = time.time,
        bcrypt_rounds: int = 12,
    ):
        self._credentials = credentials
        self.session_seconds = session_seconds
        self.table = table if table is not None else SessionTable()
        self._clock = clock
        self._bcrypt_rounds = bcrypt_rounds
        self._dummy_hash: str | None = None
        self._reaper = ThreadPoolExecutor(max_workers=1, thread_name_prefix="session-reaper")

    def _timing_dummy(self) -> str:
        # Checked for unknown users so response time does not reveal which usernames exist
        if self._dummy_hash is None:
            self._dummy_hash = hash_password(new_session_id(), rounds=self._bcrypt_rounds)
        return self._dummy_hash

    def authenticate(self, username: str, password: str, now: float | None = None) -> str:
        """
        Check credentials and open a new session.

        Returns:
            The new session id

        Raises:
            InvalidCredentialsError: If the username is unknown or the password is wrong
        """
        credential = self._credentials.get_credential(username)
        if credential is None:
            verify_password(password, self._timing_dummy())
            raise InvalidCredentialsError("Invalid username or password")

        if not verify_password(password, credential.password_hash):
            raise InvalidCredentialsError("Invalid username or password")

        now = self._clock() if now is None else now
        session = Session(
            id=new_session_id(),
            username=credential.username,
            created_at=now,
            expires_at=now + self.session_seconds,
        )
        self.table.insert(session)
        return session.id

    def login(self, fields: dict[str, str]) -> str:
        return self.authenticate(fields.get("username", ""), fields.get("password", ""))

    def validate(self, artifact: str, now: float | None = None) -> Principal:
        """
        Resolve a session id to its user.

        Raises:
            SessionNotFoundError: If the id is unknown
            SessionExpiredError: If the session has expired; removal is scheduled in the background
        """
        now = self._clock() if now is None else now
        session = self.table.get(artifact)
        if session is None:
            raise SessionNotFoundError("Unknown session")

        if session.is_expired(now):
            self._schedule_removal(session.id, now)
            raise SessionExpiredError("Session expired")

        return Principal(strategy=self.name, username=session.username)

    def _schedule_removal(self, session_id: str, now: float) -> None:
        try:
            self._reaper.submit(self.table.discard_if_expired, session_id, now)
        except RuntimeError:
            # Executor already shut down
            self.table.discard_if_expired(session_id, now)

    def revoke(self, artifact: str) -> None:
        self.table.discard(artifact)

    def sweep(self, now: float | None = None) -> int:
        removed = self.table.sweep(self._clock() if now is None else now)
        if removed:
            logger.info(f"Swept {removed} expired sessions")
        return removed

    def close(self) -> None:
        self._reaper.shutdown(wait=True)
