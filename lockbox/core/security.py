import hmac
import hashlib
import secrets
import bcrypt


# Minimum secret size in bytes (256 bits)
SECRET_BYTES = 32

# Minimum password length for stored credentials
MIN_PASSWORD_LENGTH = 8


def new_secret() -> bytes:
    """Generate a new server-wide signing secret."""
    return secrets.token_bytes(SECRET_BYTES)


def new_session_id() -> str:
    """Generate an opaque session identifier (256 bits of entropy)."""
    return secrets.token_urlsafe(SECRET_BYTES)


def _prepare_password_for_bcrypt(password: str) -> bytes:
    """
    Prepare a password for bcrypt hashing.
    Bcrypt has a 72 byte limit, so we hash longer passwords with SHA256 first.
    """
    password_bytes = password.encode('utf-8')
    if len(password_bytes) > 72:
        return hashlib.sha256(password_bytes).hexdigest().encode('utf-8')
    return password_bytes


def hash_password(password: str, rounds: int = 12) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: The plain text password to hash
        rounds: bcrypt cost factor

    Returns:
        The bcrypt hash as a string
    """
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(_prepare_password_for_bcrypt(password), salt)
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its bcrypt hash using constant-time comparison.

    Returns:
        True if the password matches, False otherwise
    """
    try:
        return bcrypt.checkpw(
            _prepare_password_for_bcrypt(plain_password),
            hashed_password.encode('utf-8'),
        )
    except (ValueError, TypeError):
        return False


def constant_time_compare(a: str, b: str) -> bool:
    """
    Perform a constant-time string comparison to prevent timing attacks.

    Args:
        a: First string to compare
        b: Second string to compare

    Returns:
        True if strings are equal, False otherwise
    """
    return hmac.compare_digest(a.encode('utf-8'), b.encode('utf-8'))


def sign(secret: bytes, message: str) -> str:
    """Return the hex HMAC-SHA256 of message under secret."""
    return hmac.new(secret, message.encode('utf-8'), hashlib.sha256).hexdigest()
