"""PKCE (Proof Key for Code Exchange) implementation.

RFC 7636 - Proof Key for Code Exchange for OAuth 2.0 public clients.
Uses S256 challenge method (SHA-256 hash of the code verifier).
"""

from __future__ import annotations

import hashlib
import hmac
import math
import secrets

from base64 import urlsafe_b64encode
from dataclasses import dataclass


MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128
MIN_ENTROPY_BYTES = 32


def compute_challenge(verifier: str) -> str:
    """Derive the S256 code challenge for a verifier.

    Parameters
    ----------
    verifier : str
        The code verifier.

    Returns
    -------
    str
        base64url(SHA-256(verifier)) without padding.
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def verify_challenge(verifier: str, challenge: str) -> bool:
    """Check a verifier presented at the token endpoint against a stored challenge.

    Verifiers outside the allowed length range or containing non-ASCII
    characters never match.
    """
    if not MIN_VERIFIER_LENGTH <= len(verifier) <= MAX_VERIFIER_LENGTH:
        return False
    if not verifier.isascii():
        return False
    return hmac.compare_digest(compute_challenge(verifier), challenge)


@dataclass(frozen=True)
class PKCEPair:
    """PKCE code verifier and challenge pair.

    Attributes
    ----------
    verifier : str
        The code verifier (high-entropy random string).
    challenge : str
        The code challenge (base64url-encoded SHA-256 hash of verifier).
    method : str
        The challenge method, always "S256".
    """

    verifier: str
    challenge: str
    method: str = "S256"

    def __repr__(self) -> str:
        return (
            f"PKCEPair(verifier='[hidden]', challenge={self.challenge!r}, "
            f"method={self.method!r})"
        )

    @classmethod
    def generate(cls, length: int = 64) -> PKCEPair:
        """Generate a new PKCE code verifier and challenge.

        Parameters
        ----------
        length : int
            Number of random bytes behind the verifier (default 64).
            Must be between 32 and 96 so the encoded verifier is
            43 to 128 characters long.

        Returns
        -------
        PKCEPair
            A new PKCE pair.

        Raises
        ------
        ValueError
            If ``length`` yields a verifier outside the allowed range.
        """
        encoded_length = math.ceil(length * 4 / 3)
        if length < MIN_ENTROPY_BYTES or encoded_length > MAX_VERIFIER_LENGTH:
            msg = (
                f"PKCE verifier length must use {MIN_ENTROPY_BYTES}-96 random bytes, "
                f"got {length}"
            )
            raise ValueError(msg)
        verifier = secrets.token_urlsafe(length)
        return cls(verifier=verifier, challenge=compute_challenge(verifier))
