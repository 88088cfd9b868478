from lockbox.auth.base import AuthStrategy
from lockbox.auth.credentials import CredentialStore
from lockbox.auth.sessions import SessionAuthenticator
from lockbox.auth.tokens import StatelessTokenAuthenticator
from lockbox.core.config import Settings
from lockbox.core.errors import ConfigurationError


def build_authenticator(
    settings: Settings,
    credentials: CredentialStore,
    bcrypt_rounds: int = 12,
) -> AuthStrategy:
    """Pick the session strategy named by LOCKBOX_AUTH_STRATEGY."""
    if settings.auth_strategy == "stateless":
        return StatelessTokenAuthenticator(
            secret_source=lambda: credentials.secret,
            access_token_source=lambda: credentials.access_token,
            session_seconds=settings.session_seconds,
        )
    if settings.auth_strategy == "stateful":
        return SessionAuthenticator(
            credentials,
            session_seconds=settings.session_seconds,
            bcrypt_rounds=bcrypt_rounds,
        )
    raise ConfigurationError(f"Unknown auth strategy: {settings.auth_strategy}")
