"""Secure token generation and hashing for CLI sessions and API keys."""

import asyncio
import hashlib
import secrets
from datetime import UTC, datetime, timedelta

import bcrypt

# Token configuration
STATE_TOKEN_BYTES = 32  # 256 bits of entropy
SESSION_TOKEN_BYTES = 32
API_KEY_BYTES = 32

SESSION_TOKEN_PREFIX = "cli_session_"
API_KEY_PREFIX = "sk_live_"

# Hex characters after the fixed prefix used as the non-secret lookup selector
SESSION_LOOKUP_CHARS = 16
API_KEY_DISPLAY_PREFIX_LENGTH = 12

DEFAULT_HASH_ROUNDS = 12


def generate_state_token() -> str:
    """Generate a CSRF state value for the provider redirect.

    Returns:
        URL-safe base64 encoded token string.
    """
    return secrets.token_urlsafe(STATE_TOKEN_BYTES)


def generate_session_token() -> str:
    """Generate an opaque CLI session token.

    Format: ``cli_session_{64 hex chars}``.
    """
    return f"{SESSION_TOKEN_PREFIX}{secrets.token_hex(SESSION_TOKEN_BYTES)}"


def generate_api_key() -> str:
    """Generate a high-entropy API key with a recognizable prefix.

    Format: ``sk_live_{64 hex chars}``.
    """
    return f"{API_KEY_PREFIX}{secrets.token_hex(API_KEY_BYTES)}"


def session_token_lookup(token: str) -> str | None:
    """Extract the lookup selector from a session token.

    Args:
        token: Presented session token.

    Returns:
        The selector, or None when the token is not shaped like a session token.
    """
    if not token.startswith(SESSION_TOKEN_PREFIX):
        return None
    body = token[len(SESSION_TOKEN_PREFIX) :]
    if len(body) < SESSION_LOOKUP_CHARS * 2:
        return None
    return body[:SESSION_LOOKUP_CHARS]


def api_key_display_prefix(key: str) -> str:
    """First characters of a plaintext API key, safe to display and index."""
    return key[:API_KEY_DISPLAY_PREFIX_LENGTH]


def _prehash(secret: str) -> bytes:
    # bcrypt only reads 72 bytes; the tokens are longer than that
    return hashlib.sha256(secret.encode("utf-8")).hexdigest().encode("ascii")


def hash_secret(secret: str, rounds: int = DEFAULT_HASH_ROUNDS) -> str:
    """Hash a token or API key for storage.

    Args:
        secret: Plaintext token.
        rounds: bcrypt cost factor.

    Returns:
        Salted bcrypt hash string.
    """
    hashed = bcrypt.hashpw(_prehash(secret), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_secret(secret: str, hashed: str) -> bool:
    """Verify a token against its stored hash in constant time.

    Args:
        secret: Plaintext token presented by the client.
        hashed: Stored bcrypt hash.

    Returns:
        True if the token matches the hash.
    """
    if not secret or not hashed:
        return False
    try:
        return bcrypt.checkpw(_prehash(secret), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def get_expiry(now: datetime, *, minutes: int = 0, days: int = 0) -> datetime:
    """Calculate an expiry timestamp relative to ``now``."""
    return now + timedelta(minutes=minutes, days=days)


def utcnow() -> datetime:
    """Default clock."""
    return datetime.now(UTC)


def as_aware(value: datetime) -> datetime:
    """Treat timezone-naive datetimes from the store as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


async def hash_secret_async(secret: str, rounds: int = DEFAULT_HASH_ROUNDS) -> str:
    """Run hash_secret in the default executor so bcrypt does not block the loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, hash_secret, secret, rounds)


async def verify_secret_async(secret: str, hashed: str) -> bool:
    """Run verify_secret in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, verify_secret, secret, hashed)
