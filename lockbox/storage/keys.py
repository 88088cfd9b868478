"""
Storage key construction.

Keys are derived from untrusted client filenames and are safe by
construction: ``{unix_seconds}_{sanitized_name}`` with the name reduced to
``[A-Za-z0-9._-]``.
"""
import re
from datetime import datetime

UNNAMED_FILE = "unnamed_file"

DISALLOWED_CHARS = re.compile(r"[^A-Za-z0-9._-]")
KEY_PATTERN = re.compile(r"[A-Za-z0-9._-]+")


def sanitize(raw_name: str) -> str:
    """
    Reduce a client filename to a safe key component.

    Only the final path segment is kept (directory components are dropped to
    prevent path traversal), and every other character outside
    [A-Za-z0-9._-] becomes an underscore.
    """
    base = re.split(r"[/\\]", raw_name or "")[-1]
    cleaned = DISALLOWED_CHARS.sub("_", base)
    if cleaned in ("", "."):
        return UNNAMED_FILE
    return cleaned


def make_key(raw_name: str, now: datetime) -> str:
    """
    Build the storage key for an upload received at *now*.

    The timestamp prefix keeps repeated uploads of one name apart at second
    granularity and makes keys sort by upload order.
    """
    return f"{int(now.timestamp())}_{sanitize(raw_name)}"


def is_valid_key(key: str) -> bool:
    """True if key uses only the key charset and is not a bare dot path."""
    return bool(key.strip(".")) and KEY_PATTERN.fullmatch(key) is not None
