"""
HMAC-signed stateless session tokens.

Token format: ``{issued_unix}.{hex_hmac_sha256(secret, issued_unix)}``

Validity is a pure function of (token, secret, now): nothing is stored on
the server, so rotating the secret invalidates every outstanding token.
"""
import re
import time
from typing import Callable

from lockbox.auth.base import Principal
from lockbox.core.errors import (
    BadSignatureError,
    InvalidCredentialsError,
    MalformedTokenError,
    SessionExpiredError,
)
from lockbox.core.security import constant_time_compare, sign

TIMESTAMP_PATTERN = re.compile(r"^[0-9]+$")

DEFAULT_SESSION_SECONDS = 12 * 60 * 60


def issue_token(secret: bytes, now: float | None = None) -> str:
    """Issue a session token timestamped at *now*."""
    issued = str(int(time.time() if now is None else now))
    return f"{issued}.{sign(secret, issued)}"


def validate_token(
    token: str,
    secret: bytes,
    now: float | None = None,
    session_seconds: int = DEFAULT_SESSION_SECONDS,
) -> int:
    """
    Validate a session token and return its issue timestamp.

    Raises:
        MalformedTokenError: If the token does not have exactly two fields
        BadSignatureError: If the signature does not match
        SessionExpiredError: If the token is at least session_seconds old
    """
    parts = token.split(".")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise MalformedTokenError("Invalid session token format")

    issued, signature = parts
    if not constant_time_compare(signature, sign(secret, issued)):
        raise BadSignatureError("Invalid session signature")

    if not TIMESTAMP_PATTERN.match(issued):
        raise MalformedTokenError("Invalid session timestamp")

    now = time.time() if now is None else now
    if now - int(issued) >= session_seconds:
        raise SessionExpiredError("Session expired")

    return int(issued)


class StatelessTokenAuthenticator:
    """Authenticates holders of the server secret with signed, self-contained tokens."""

    name = "stateless"
    required_fields = ("token",)

    def __init__(
        self,
        secret_source: Callable[[], bytes],
        access_token_source: Callable[[], str],
        session_seconds: int = DEFAULT_SESSION_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        # Sources are callables so a rotated secret takes effect immediately
        self._secret_source = secret_source
        self._access_token_source = access_token_source
        self.session_seconds = session_seconds
        self._clock = clock

    def issue(self, now: float | None = None) -> str:
        return issue_token(self._secret_source(), self._clock() if now is None else now)

    def login(self, fields: dict[str, str]) -> str:
        if not constant_time_compare(fields.get("token", ""), self._access_token_source()):
            raise InvalidCredentialsError("Invalid access token")
        return self.issue()

    def validate(self, artifact: str, now: float | None = None) -> Principal:
        validate_token(
            artifact,
            self._secret_source(),
            now=self._clock() if now is None else now,
            session_seconds=self.session_seconds,
        )
        return Principal(strategy=self.name)

    def revoke(self, artifact: str) -> None:
        """Tokens carry no server state; logout only clears the client cookie."""

    def sweep(self, now: float | None = None) -> int:
        return 0

    def close(self) -> None:
        pass
