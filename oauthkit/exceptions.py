"""oauthkit exception hierarchy.

All oauthkit-specific exceptions inherit from OAuthKitException, enabling
catch-all handling while supporting specific error types.

Well-formed OAuth error responses are not exceptions: they are returned as
``TokenResponse`` objects whose ``is_error`` property is true.
"""

from __future__ import annotations

from typing import Any


class OAuthKitException(Exception):
    """Base exception for all oauthkit errors."""

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize oauthkit exception.

        Parameters
        ----------
        message : str
            Human-readable error message.
        **context : Any
            Additional context (url, line_number, username, etc.).
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Format exception with context."""
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class CredentialValidationError(OAuthKitException):
    """A credential or credential record failed validation.

    Raised for passwords or tokens that are too short (or too long for
    the hashing scheme) and for malformed input handed to the hasher.
    """


class UsersFileError(CredentialValidationError):
    """A users file could not be loaded.

    Loading is fail-fast: one bad line aborts the whole load.
    """

    def __init__(
        self,
        message: str,
        line_number: int | None = None,
        **context: Any,
    ) -> None:
        """Initialize users file error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        line_number : int, optional
            1-based number of the offending line.
        **context : Any
            Additional context.
        """
        super().__init__(message, line_number=line_number, **context)
        self.line_number = line_number


class TransportError(OAuthKitException):
    """Talking to an authorization server failed.

    Distinct from a well-formed OAuth error response, which is returned
    as data. Callers decide whether to retry based on ``retryable``.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        retryable: bool = True,
        **context: Any,
    ) -> None:
        """Initialize transport error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        url : str, optional
            The endpoint that was being called.
        retryable : bool, optional
            Whether repeating the request may succeed (default: True).
        **context : Any
            Additional context.
        """
        super().__init__(message, url=url, **context)
        self.url = url
        self.retryable = retryable


class TransportTimeout(TransportError):
    """The request did not complete within the allotted time."""

    def __init__(
        self,
        message: str,
        timeout: float | None = None,
        url: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize timeout error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        timeout : float, optional
            The timeout value in seconds.
        url : str, optional
            The endpoint that was being called.
        **context : Any
            Additional context.
        """
        super().__init__(message, url=url, retryable=True, timeout=timeout, **context)
        self.timeout = timeout


class TokenEndpointError(TransportError):
    """The token endpoint answered with a body that is not a JSON object."""

    def __init__(
        self,
        message: str,
        status_code: int,
        url: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize token endpoint error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        status_code : int
            HTTP status of the response.
        url : str, optional
            The endpoint that was called.
        **context : Any
            Additional context.
        """
        super().__init__(
            message,
            url=url,
            retryable=status_code >= 500,
            status_code=status_code,
            **context,
        )
        self.status_code = status_code


class StoreConsistencyError(OAuthKitException):
    """A store detected state that must never occur."""


class DuplicateCodeError(StoreConsistencyError):
    """An authorization code value is already present in the store."""


class DuplicateHashError(UsersFileError, StoreConsistencyError):
    """Two users file records resolve to the same hash.

    Hashes double as reverse lookup keys, so the load is rejected.
    """

    def __init__(
        self,
        message: str,
        line_number: int | None = None,
        username: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize duplicate hash error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        line_number : int, optional
            1-based number of the line introducing the duplicate.
        username : str, optional
            The user on that line.
        **context : Any
            Additional context.
        """
        super().__init__(message, line_number=line_number, username=username, **context)
        self.username = username
