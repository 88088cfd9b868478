"""
Exception hierarchy for Lockbox.

Domain code raises these; the API layer translates them into HTTP
responses at the route boundary.
"""


class LockboxError(Exception):
    """Base class for all Lockbox errors."""


class ConfigurationError(LockboxError):
    """Settings or persisted configuration are unusable. Fatal at startup."""


class WeakCredentialError(LockboxError):
    """A password does not meet the minimum length requirement."""


class AuthError(LockboxError):
    """
    A session artifact or credential was rejected.

    Always recoverable: callers respond 401 or redirect to the login page.
    """

    kind = "auth"


class MalformedTokenError(AuthError):
    kind = "malformed"


class BadSignatureError(AuthError):
    kind = "bad_signature"


class SessionExpiredError(AuthError):
    kind = "expired"


class InvalidCredentialsError(AuthError):
    kind = "invalid_credentials"


class SessionNotFoundError(AuthError):
    kind = "not_found"


class InvalidKeyError(LockboxError):
    """A generated storage key broke the key charset invariant."""


class BackendError(LockboxError):
    """The object backend failed."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message)
        self.key = key


class BackendWriteError(BackendError):
    pass


class BackendReadError(BackendError):
    pass


class ObjectNotFoundError(BackendError):
    pass


class PayloadTooLargeError(LockboxError):
    """An upload exceeded the configured size ceiling."""

    def __init__(self, limit: int):
        super().__init__(f"Payload exceeds {limit} bytes")
        self.limit = limit
