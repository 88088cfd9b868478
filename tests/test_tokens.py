"""
Tests for signed stateless session tokens.
"""
import pytest

from lockbox.auth.tokens import StatelessTokenAuthenticator, issue_token, validate_token
from lockbox.core.errors import (
    AuthError,
    BadSignatureError,
    InvalidCredentialsError,
    MalformedTokenError,
    SessionExpiredError,
)
from lockbox.core.security import new_secret, sign

SESSION_SECONDS = 3600


@pytest.fixture
def secret():
    return new_secret()


class TestTokenValidation:
    """Tests for issue_token/validate_token."""

    def test_round_trip(self, secret):
        """Test that a fresh token validates and yields its issue time."""
        token = issue_token(secret, now=1_700_000_000)

        assert validate_token(token, secret, now=1_700_000_000, session_seconds=SESSION_SECONDS) == 1_700_000_000

    def test_valid_until_just_before_expiry(self, secret):
        """Test that a token is valid one second before the session length elapses."""
        token = issue_token(secret, now=1000)

        assert validate_token(token, secret, now=1000 + SESSION_SECONDS - 1, session_seconds=SESSION_SECONDS) == 1000

    def test_expired_at_boundary(self, secret):
        """Test that a token exactly session_seconds old is expired."""
        token = issue_token(secret, now=1000)

        with pytest.raises(SessionExpiredError):
            validate_token(token, secret, now=1000 + SESSION_SECONDS, session_seconds=SESSION_SECONDS)

    def test_every_flipped_signature_bit_rejected(self, secret):
        """Test that flipping any single bit of the signature is a bad signature."""
        issued, signature = issue_token(secret, now=1000).split(".")
        raw = bytes.fromhex(signature)

        for index in range(len(raw)):
            for bit in range(8):
                tampered = bytearray(raw)
                tampered[index] ^= 1 << bit
                with pytest.raises(BadSignatureError):
                    validate_token(f"{issued}.{tampered.hex()}", secret, now=1000)

    def test_tampered_timestamp_rejected(self, secret):
        """Test that extending the issue time invalidates the signature."""
        issued, signature = issue_token(secret, now=1000).split(".")

        with pytest.raises(BadSignatureError):
            validate_token(f"{int(issued) + 3600}.{signature}", secret, now=1000)

    def test_wrong_secret(self, secret):
        """Test that a token from another secret is rejected."""
        token = issue_token(new_secret(), now=1000)

        with pytest.raises(BadSignatureError):
            validate_token(token, secret, now=1000)

    @pytest.mark.parametrize("token", ["", "abc", "1.2.3", ".abc", "123.", "."])
    def test_malformed(self, secret, token):
        """Test that tokens without exactly two non-empty fields are malformed."""
        with pytest.raises(MalformedTokenError):
            validate_token(token, secret, now=1000)

    def test_signed_non_numeric_timestamp(self, secret):
        """Test that a correctly signed but non-numeric timestamp is malformed."""
        token = f"soon.{sign(secret, 'soon')}"

        with pytest.raises(MalformedTokenError):
            validate_token(token, secret, now=1000)

    def test_errors_are_auth_errors(self, secret):
        """Test that every rejection is recoverable as an AuthError."""
        with pytest.raises(AuthError) as exc_info:
            validate_token("nope", secret)

        assert exc_info.value.kind == "malformed"


class TestStatelessAuthenticator:
    """Tests for the stateless strategy."""

    def _authenticator(self, holder, clock=lambda: 1000.0):
        return StatelessTokenAuthenticator(
            secret_source=lambda: holder["secret"],
            access_token_source=lambda: holder["secret"].hex(),
            session_seconds=SESSION_SECONDS,
            clock=clock,
        )

    def test_login_and_validate(self, secret):
        """Test that the access token logs in and the issued token validates."""
        auth = self._authenticator({"secret": secret})
        token = auth.login({"token": secret.hex()})
        principal = auth.validate(token)

        assert principal.strategy == "stateless"
        assert principal.username is None

    def test_login_wrong_token(self, secret):
        """Test that anything but the access token is rejected."""
        auth = self._authenticator({"secret": secret})

        with pytest.raises(InvalidCredentialsError):
            auth.login({"token": new_secret().hex()})

    def test_rotation_invalidates(self, secret):
        """Test that tokens die as soon as the secret source changes."""
        holder = {"secret": secret}
        auth = self._authenticator(holder)
        token = auth.issue()

        holder["secret"] = new_secret()

        with pytest.raises(BadSignatureError):
            auth.validate(token)

    def test_revoke_is_noop(self, secret):
        """Test that revoking twice does not raise and leaves the token valid."""
        auth = self._authenticator({"secret": secret})
        token = auth.issue()

        auth.revoke(token)
        auth.revoke(token)

        assert auth.validate(token).strategy == "stateless"
        assert auth.sweep() == 0
