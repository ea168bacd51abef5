"""Abstract base classes for pluggable credential and session storage.

These interfaces define the contract every backend honours, so the
in-memory stores can be swapped for durable ones without touching
callers. Implementations must be safe for concurrent use from multiple
tasks and threads without caller-visible locking.
"""

# pylint: disable=unnecessary-ellipsis
# Ellipsis (...) is the standard Python idiom for abstract method bodies

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from .types import (
        AuthorizationCode,
        OAuthAccessToken,
        OAuthClient,
        OAuthRefreshToken,
        Session,
    )


class AuthorizationCodeStore(ABC):
    """Abstract storage for single-use authorization codes."""

    @abstractmethod
    async def store(self, code: AuthorizationCode) -> None:
        """Store a newly issued code.

        Parameters
        ----------
        code : AuthorizationCode
            The code to hold until it is consumed or expires.

        Raises
        ------
        DuplicateCodeError
            If a code with the same value is already stored. The stored
            entry, including its expiry, is left unchanged.
        """
        ...

    @abstractmethod
    async def consume(self, code_value: str) -> AuthorizationCode | None:
        """Atomically remove and return a code.

        Concurrent callers racing on the same value see at most one
        success; every other caller gets None.

        Parameters
        ----------
        code_value : str
            The code presented at the token endpoint.

        Returns
        -------
        AuthorizationCode or None
            The code if it was present and unexpired, None otherwise.
        """
        ...

    @abstractmethod
    async def cleanup(self) -> int:
        """Remove every expired code.

        Returns
        -------
        int
            Number of codes removed.
        """
        ...


class TokenStore(ABC):
    """Abstract storage for access and refresh tokens.

    Tokens are keyed and looked up by the SHA-256 hash of their secret.
    Callers hash raw tokens before calling any method here.
    """

    @abstractmethod
    async def store_access_token(self, token: OAuthAccessToken) -> None:
        """Insert or overwrite an access token keyed by its hash.

        Parameters
        ----------
        token : OAuthAccessToken
            The token record.
        """
        ...

    @abstractmethod
    async def store_refresh_token(self, token: OAuthRefreshToken) -> None:
        """Insert or overwrite a refresh token keyed by its hash.

        Parameters
        ----------
        token : OAuthRefreshToken
            The token record.
        """
        ...

    @abstractmethod
    async def resolve_access_token(self, token_hash: str) -> OAuthAccessToken | None:
        """Look up an access token.

        Parameters
        ----------
        token_hash : str
            SHA-256 hex of the raw access token.

        Returns
        -------
        OAuthAccessToken or None
            The token record if present and unexpired, None otherwise.
        """
        ...

    @abstractmethod
    async def resolve_refresh_token(self, token_hash: str) -> OAuthRefreshToken | None:
        """Look up a refresh token.

        Parameters
        ----------
        token_hash : str
            SHA-256 hex of the raw refresh token.

        Returns
        -------
        OAuthRefreshToken or None
            The token record if present and unexpired, None otherwise.
        """
        ...

    @abstractmethod
    async def revoke_access_token(self, token_hash: str) -> None:
        """Remove an access token. Removing an absent token is a no-op.

        Parameters
        ----------
        token_hash : str
            SHA-256 hex of the raw access token.
        """
        ...

    @abstractmethod
    async def revoke_refresh_token(self, token_hash: str) -> None:
        """Remove a refresh token. Removing an absent token is a no-op.

        Parameters
        ----------
        token_hash : str
            SHA-256 hex of the raw refresh token.
        """
        ...

    @abstractmethod
    async def revoke_all_for_user(self, username: str) -> int:
        """Remove every access and refresh token owned by a subject.

        Atomic with respect to that subject's tokens.

        Parameters
        ----------
        username : str
            The owning subject.

        Returns
        -------
        int
            Number of tokens removed.
        """
        ...

    @abstractmethod
    async def cleanup(self) -> int:
        """Remove expired access and refresh tokens.

        Returns
        -------
        int
            Number of tokens removed.
        """
        ...


class SessionStore(ABC):
    """Abstract storage for cookie-bound sessions."""

    @abstractmethod
    async def get(self, token: str) -> Session | None:
        """Get a session by token.

        Parameters
        ----------
        token : str
            The session token.

        Returns
        -------
        Session or None
            The session if present, None otherwise.
        """
        ...

    @abstractmethod
    async def save(self, session: Session) -> bool:
        """Persist a session.

        Parameters
        ----------
        session : Session
            The session to persist.

        Returns
        -------
        bool
            True if the session was saved.
        """
        ...

    @abstractmethod
    async def delete(self, token: str) -> bool:
        """Delete a session.

        Parameters
        ----------
        token : str
            The session token.

        Returns
        -------
        bool
            True if a session was removed.
        """
        ...

    @abstractmethod
    async def clear_expired(self, max_age_seconds: float) -> int:
        """Remove sessions created more than ``max_age_seconds`` ago.

        Parameters
        ----------
        max_age_seconds : float
            Maximum session age.

        Returns
        -------
        int
            Number of sessions removed.
        """
        ...


class ClientStore(ABC):
    """Abstract registry of OAuth clients. Registration is out-of-band."""

    @abstractmethod
    async def register(self, client: OAuthClient) -> None:
        """Register or replace a client.

        Parameters
        ----------
        client : OAuthClient
            The client registration.
        """
        ...

    @abstractmethod
    async def get_client(self, client_id: str) -> OAuthClient | None:
        """Get a client by ID.

        Parameters
        ----------
        client_id : str
            The client identifier.

        Returns
        -------
        OAuthClient or None
            The registration if known, None otherwise.
        """
        ...

    @abstractmethod
    async def remove(self, client_id: str) -> bool:
        """Remove a client registration.

        Parameters
        ----------
        client_id : str
            The client identifier.

        Returns
        -------
        bool
            True if a registration was removed.
        """
        ...
