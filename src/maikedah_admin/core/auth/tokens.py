"""Secure secrets for sessions and password resets, plus invitation passwords."""

import hashlib
import secrets
import string
from datetime import UTC, datetime, timedelta

SESSION_TOKEN_BYTES = 32  # 256 bits of entropy
SESSION_TTL_HOURS = 24 * 7
RESET_TOKEN_TTL_HOURS = 1

# Look-alike characters (0/O, 1/l/I) are left out so a password read off the
# screen can be typed back without guessing.
TEMP_PASSWORD_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnpqrstuvwxyz23456789"
TEMP_PASSWORD_MIN_LENGTH = 8
TEMP_PASSWORD_DEFAULT_LENGTH = 12


def generate_session_token() -> str:
    """Generate a cryptographically secure session token.

    Returns:
        URL-safe base64 encoded token string.
    """
    return secrets.token_urlsafe(SESSION_TOKEN_BYTES)


def generate_reset_token() -> str:
    """Generate a one-time password reset token."""
    return secrets.token_urlsafe(SESSION_TOKEN_BYTES)


def hash_token(token: str) -> str:
    """Hash a token for storage.

    SHA-256 keeps lookups cheap; the token has enough entropy that a slow
    hash buys nothing.

    Args:
        token: The plaintext token to hash.

    Returns:
        Hex-encoded SHA-256 hash of the token.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def get_session_expiry(hours: int = SESSION_TTL_HOURS) -> datetime:
    """Calculate a session expiry timestamp."""
    return datetime.now(UTC) + timedelta(hours=hours)


def is_expired(expires_at: datetime) -> bool:
    """Check if a timestamp lies in the past.

    Args:
        expires_at: The expiry timestamp.

    Returns:
        True if the timestamp has passed.
    """
    now = datetime.now(UTC)
    # Handle timezone-naive datetimes
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return now > expires_at


def meets_temporary_password_policy(password: str) -> bool:
    """Check the minimum strength policy for generated passwords.

    At least eight characters mixing upper case, lower case and digits.
    """
    return (
        len(password) >= TEMP_PASSWORD_MIN_LENGTH
        and any(c in string.ascii_uppercase for c in password)
        and any(c in string.ascii_lowercase for c in password)
        and any(c in string.digits for c in password)
    )


def generate_temporary_password(length: int = TEMP_PASSWORD_DEFAULT_LENGTH) -> str:
    """Generate a one-time password for an invited staff member.

    Args:
        length: Number of characters; values below the policy minimum are raised to it.

    Returns:
        A random password satisfying ``meets_temporary_password_policy``.
    """
    length = max(length, TEMP_PASSWORD_MIN_LENGTH)
    while True:
        candidate = "".join(secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(length))
        if meets_temporary_password_policy(candidate):
            return candidate
