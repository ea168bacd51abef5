"""One-way hashing for passwords and bearer secrets.

Passwords use bcrypt (adaptive, salted). Tokens and codes are already
high-entropy, so they are hashed with SHA-256 purely to derive a lookup
key that is useless to anyone reading the store.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

import bcrypt

from .exceptions import CredentialValidationError


MIN_PASSWORD_LENGTH = 8
MIN_TOKEN_LENGTH = 16
DEFAULT_BCRYPT_ROUNDS = 10

# bcrypt ignores everything past 72 bytes
_BCRYPT_MAX_BYTES = 72

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")
SHA256_HEX_LENGTH = 64


def _configured_rounds() -> int:
    """The bcrypt cost from ``HashingSettings``.

    Imports lazily so hashing can be used without touching configuration
    files at import time.
    """
    from .config import get_settings

    return get_settings().hashing.bcrypt_rounds


def hash_password(password: str, rounds: int | None = None) -> str:
    """Hash a password with bcrypt.

    Parameters
    ----------
    password : str
        The plaintext password.
    rounds : int, optional
        The bcrypt cost factor. Defaults to ``HashingSettings.bcrypt_rounds``.

    Returns
    -------
    str
        A ``$2a$<rounds>$`` bcrypt hash.

    Raises
    ------
    CredentialValidationError
        If the password is shorter than 8 characters or longer than
        72 bytes once encoded.
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        msg = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        raise CredentialValidationError(msg, length=len(password))
    encoded = password.encode("utf-8")
    if len(encoded) > _BCRYPT_MAX_BYTES:
        msg = f"Password must not exceed {_BCRYPT_MAX_BYTES} bytes"
        raise CredentialValidationError(msg, length=len(encoded))
    if rounds is None:
        rounds = _configured_rounds()
    salt = bcrypt.gensalt(rounds=rounds, prefix=b"2a")
    return bcrypt.hashpw(encoded, salt).decode("ascii")


def verify_password(password: str, hashed: str) -> bool:
    """Check a password against a bcrypt hash.

    Malformed hashes and oversized passwords never match.
    """
    encoded = password.encode("utf-8")
    if len(encoded) > _BCRYPT_MAX_BYTES or not hashed.startswith(BCRYPT_PREFIXES):
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("ascii"))
    except ValueError:
        return False


def hash_token(raw: str) -> str:
    """Hash a raw token or code into its lookup key.

    Parameters
    ----------
    raw : str
        The raw secret.

    Returns
    -------
    str
        Lowercase hex SHA-256 digest (64 characters).

    Raises
    ------
    CredentialValidationError
        If the raw token is shorter than 16 characters.
    """
    if len(raw) < MIN_TOKEN_LENGTH:
        msg = f"Token must be at least {MIN_TOKEN_LENGTH} characters"
        raise CredentialValidationError(msg, length=len(raw))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def verify_token(raw: str, token_hash: str) -> bool:
    """Compare a raw token with a stored hash in constant time."""
    if len(raw) < MIN_TOKEN_LENGTH:
        return False
    return hmac.compare_digest(hash_token(raw), token_hash.lower())


def random_token(nbytes: int = 16) -> str:
    """Return ``nbytes`` of secure randomness as lowercase hex."""
    return secrets.token_hex(nbytes)


def is_sha256_hex(value: str) -> bool:
    """Whether ``value`` looks like a SHA-256 hex digest."""
    if len(value) != SHA256_HEX_LENGTH:
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True
