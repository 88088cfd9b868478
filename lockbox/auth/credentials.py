"""
Credential store: the signing secret and per-user password records.

Both live in the application database so they survive restarts. The secret
is generated on first load and persisted before anything can use it.
"""
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from lockbox.core.db.engine import create_tables
from lockbox.core.db.session import make_session_factory, session_scope
from lockbox.core.db.tables.credential import Credential
from lockbox.core.db.tables.server_secret import ServerSecret
from lockbox.core.errors import ConfigurationError, WeakCredentialError
from lockbox.core.logger import get_logger
from lockbox.core.security import (
    MIN_PASSWORD_LENGTH,
    SECRET_BYTES,
    hash_password,
    new_secret,
)

logger = get_logger(__name__)

SECRET_ROW_ID = 1


@dataclass(frozen=True)
class CredentialRecord:
    username: str
    password_hash: str
    is_admin: bool = False


class CredentialStore:
    """Holds the server secret and the username -> credential mapping."""

    def __init__(self, engine: Engine, bcrypt_rounds: int = 12):
        self._engine = engine
        self._factory = make_session_factory(engine)
        self._bcrypt_rounds = bcrypt_rounds
        self._secret: bytes | None = None

    @property
    def secret(self) -> bytes:
        if self._secret is None:
            raise ConfigurationError("Credential store has not been loaded")
        return self._secret

    @property
    def access_token(self) -> str:
        """The secret as presented by clients logging in with the stateless strategy."""
        return self.secret.hex()

    def load(self) -> None:
        """
        Load the server secret, generating and persisting one on first run.

        Raises:
            ConfigurationError: If the database is unusable or the stored secret is malformed
        """
        try:
            create_tables(self._engine)
            with session_scope(self._factory) as db:
                row = db.get(ServerSecret, SECRET_ROW_ID)
                if row is None:
                    secret = new_secret()
                    db.add(ServerSecret(id=SECRET_ROW_ID, secret_hex=secret.hex()))
                    logger.info("Generated and saved new server secret")
                else:
                    secret = _decode_secret(row.secret_hex)
        except SQLAlchemyError as e:
            raise ConfigurationError(f"Credential database unavailable: {e.__class__.__name__}") from e

        self._secret = secret

    def rotate_secret(self) -> None:
        """Replace the server secret. All outstanding stateless tokens become invalid."""
        secret = new_secret()
        try:
            with session_scope(self._factory) as db:
                row = db.get(ServerSecret, SECRET_ROW_ID)
                if row is None:
                    db.add(ServerSecret(id=SECRET_ROW_ID, secret_hex=secret.hex()))
                else:
                    row.secret_hex = secret.hex()
        except SQLAlchemyError as e:
            raise ConfigurationError(f"Credential database unavailable: {e.__class__.__name__}") from e

        self._secret = secret
        logger.warning("Server secret rotated; existing session tokens are now invalid")

    def get_credential(self, username: str) -> CredentialRecord | None:
        with session_scope(self._factory) as db:
            row = db.get(Credential, username)
            if row is None:
                return None
            return CredentialRecord(
                username=row.username,
                password_hash=row.password_hash,
                is_admin=row.is_admin,
            )

    def set_credential(self, username: str, plaintext_password: str, is_admin: bool = False) -> None:
        """
        Create or overwrite a user's credential.

        Raises:
            WeakCredentialError: If the password is shorter than the minimum length
        """
        if not username:
            raise ValueError("username must not be empty")
        if len(plaintext_password) < MIN_PASSWORD_LENGTH:
            raise WeakCredentialError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )

        password_hash = hash_password(plaintext_password, rounds=self._bcrypt_rounds)
        with session_scope(self._factory) as db:
            row = db.get(Credential, username)
            if row is None:
                db.add(Credential(username=username, password_hash=password_hash, is_admin=is_admin))
            else:
                row.password_hash = password_hash
                row.is_admin = is_admin

        logger.info(f"Credential stored for user: {username}")

    def delete_credential(self, username: str) -> bool:
        with session_scope(self._factory) as db:
            row = db.get(Credential, username)
            if row is None:
                return False
            db.delete(row)

        logger.info(f"Credential deleted for user: {username}")
        return True

    def list_usernames(self) -> list[str]:
        with session_scope(self._factory) as db:
            return list(db.execute(select(Credential.username).order_by(Credential.username)).scalars())


def _decode_secret(secret_hex: str) -> bytes:
    try:
        secret = bytes.fromhex(secret_hex)
    except ValueError as e:
        raise ConfigurationError("Stored server secret is not valid hex") from e

    if len(secret) < SECRET_BYTES:
        raise ConfigurationError(
            f"Stored server secret is shorter than {SECRET_BYTES * 8} bits"
        )
    return secret
