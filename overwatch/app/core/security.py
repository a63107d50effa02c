import hashlib
import secrets

from overwatch.app.core.config import settings

# Length of the hex digest prefix used to key in-memory state
KEY_HASH_LENGTH = 16


def hash_server_key(raw_key: str) -> str:
    """Hash a PRC server key for in-memory state keying.

    Only a truncated SHA256 digest is retained so rate limit state can be
    keyed per credential without keeping the raw key around.

    Args:
        raw_key: The raw PRC server key

    Returns:
        The first KEY_HASH_LENGTH hex characters of the SHA256 digest
    """
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()[:KEY_HASH_LENGTH]


def mask_server_key(raw_key: str, visible: int = 8) -> str:
    """Mask a server key for logs and alerts, keeping only its suffix.

    >>> mask_server_key("abcdefghijklmnop")
    '...ijklmnop'
    """
    if not raw_key:
        return "..."
    return f"...{raw_key[-visible:]}"


def verify_internal_secret(provided: str | None) -> bool:
    """Verify the shared secret guarding the internal trigger API.

    An unset secret disables the internal API entirely.
    """
    expected = settings.internal_sync_secret
    if not expected or not provided:
        return False
    return secrets.compare_digest(provided.strip(), expected)
