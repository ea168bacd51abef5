"""Type definitions for oauthkit state management.

Records held by the code, token, session and client stores, plus the
value objects exchanged with an authorization server.
"""

from __future__ import annotations

import json
import secrets
import threading
import time

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, NamedTuple, TypeVar

from ..hashing import hash_token, verify_token


if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ..pkce import PKCEPair


T = TypeVar("T")

SESSION_TOKEN_BYTES = 16
AUTHORIZATION_CODE_BYTES = 16
ACCESS_TOKEN_BYTES = 32
REFRESH_TOKEN_BYTES = 32


class StateBackend(str, Enum):
    """Available state storage backends."""

    MEMORY = "memory"


class OAuthErrorCode(str, Enum):
    """Error codes defined by RFC 6749 and RFC 7009."""

    INVALID_REQUEST = "invalid_request"
    INVALID_CLIENT = "invalid_client"
    INVALID_GRANT = "invalid_grant"
    UNAUTHORIZED_CLIENT = "unauthorized_client"
    UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
    UNSUPPORTED_RESPONSE_TYPE = "unsupported_response_type"
    INVALID_SCOPE = "invalid_scope"
    ACCESS_DENIED = "access_denied"
    SERVER_ERROR = "server_error"
    TEMPORARILY_UNAVAILABLE = "temporarily_unavailable"
    UNSUPPORTED_TOKEN_TYPE = "unsupported_token_type"


def _expiry(lifetime_seconds: float, now: float | None = None) -> float:
    return (time.time() if now is None else now) + lifetime_seconds


def _configured_lifetime(name: str) -> float:
    """A lifetime from ``StoreSettings``, read lazily."""
    from ..config import get_settings

    return float(getattr(get_settings().store, name))


# ── Authorization server records ─────────────────────────────────────


@dataclass(frozen=True)
class AuthorizationCode:
    """A single-use authorization code.

    Attributes
    ----------
    code : str
        The random code value handed to the client.
    client_id : str
        The client the code was issued to.
    username : str
        The resource owner who approved the request.
    redirect_uri : str
        The redirect URI the code was delivered to.
    code_challenge : str
        The PKCE challenge presented with the authorization request.
    scopes : frozenset[str]
        Approved scopes.
    expires_at : float
        Unix timestamp after which the code is unusable.
    """

    code: str
    client_id: str
    username: str
    redirect_uri: str
    code_challenge: str
    scopes: frozenset[str]
    expires_at: float

    def __repr__(self) -> str:
        return (
            f"AuthorizationCode(client_id={self.client_id!r}, username={self.username!r}, "
            f"expires_at={self.expires_at!r})"
        )

    @classmethod
    def create(
        cls,
        client_id: str,
        username: str,
        redirect_uri: str,
        code_challenge: str,
        scopes: Iterable[str] = (),
        lifetime_seconds: float | None = None,
    ) -> AuthorizationCode:
        """Create a code with a fresh 128-bit random value.

        ``lifetime_seconds`` defaults to ``StoreSettings.code_ttl_seconds``.
        """
        if lifetime_seconds is None:
            lifetime_seconds = _configured_lifetime("code_ttl_seconds")
        return cls(
            code=secrets.token_hex(AUTHORIZATION_CODE_BYTES),
            client_id=client_id,
            username=username,
            redirect_uri=redirect_uri,
            code_challenge=code_challenge,
            scopes=frozenset(scopes),
            expires_at=_expiry(lifetime_seconds),
        )

    def is_expired(self, now: float | None = None) -> bool:
        """Whether the code has reached its expiry time."""
        return (time.time() if now is None else now) >= self.expires_at


class IssuedToken(NamedTuple):
    """A freshly minted token: the raw secret and the record to store.

    The raw secret is given to the client once. Only ``record`` may be
    persisted.
    """

    raw: str
    record: OAuthAccessToken | OAuthRefreshToken


@dataclass(frozen=True)
class OAuthRefreshToken:
    """A stored refresh token, keyed by the hash of its secret.

    Attributes
    ----------
    token_hash : str
        SHA-256 hex digest of the raw refresh token.
    client_id : str
        The client the token was issued to.
    username : str
        The subject owning the token.
    scopes : frozenset[str]
        Granted scopes.
    expires_at : float
        Unix timestamp of expiry.
    """

    token_hash: str
    client_id: str
    username: str
    scopes: frozenset[str]
    expires_at: float

    @classmethod
    def create(
        cls,
        client_id: str,
        username: str,
        scopes: Iterable[str] = (),
        lifetime_seconds: float | None = None,
    ) -> IssuedToken:
        """Mint a refresh token, returning the raw secret and its record.

        ``lifetime_seconds`` defaults to ``StoreSettings.refresh_token_ttl_seconds``.
        """
        if lifetime_seconds is None:
            lifetime_seconds = _configured_lifetime("refresh_token_ttl_seconds")
        raw = secrets.token_urlsafe(REFRESH_TOKEN_BYTES)
        record = cls(
            token_hash=hash_token(raw),
            client_id=client_id,
            username=username,
            scopes=frozenset(scopes),
            expires_at=_expiry(lifetime_seconds),
        )
        return IssuedToken(raw, record)

    def is_expired(self, now: float | None = None) -> bool:
        """Whether the token has reached its expiry time."""
        return (time.time() if now is None else now) >= self.expires_at

    def matches(self, raw: str) -> bool:
        """Whether ``raw`` is the secret this record was created from."""
        return verify_token(raw, self.token_hash)


@dataclass(frozen=True)
class OAuthAccessToken:
    """A stored access token, keyed by the hash of its secret.

    Attributes
    ----------
    token_hash : str
        SHA-256 hex digest of the raw access token.
    client_id : str
        The client the token was issued to.
    username : str
        The subject owning the token.
    scopes : frozenset[str]
        Granted scopes.
    expires_at : float
        Unix timestamp of expiry.
    refresh_token_hash : str or None
        Hash of the refresh token issued alongside, if any.
    """

    token_hash: str
    client_id: str
    username: str
    scopes: frozenset[str]
    expires_at: float
    refresh_token_hash: str | None = None

    @classmethod
    def create(
        cls,
        client_id: str,
        username: str,
        scopes: Iterable[str] = (),
        lifetime_seconds: float | None = None,
        refresh_token_hash: str | None = None,
    ) -> IssuedToken:
        """Mint an access token, returning the raw secret and its record.

        ``lifetime_seconds`` defaults to ``StoreSettings.access_token_ttl_seconds``.
        """
        if lifetime_seconds is None:
            lifetime_seconds = _configured_lifetime("access_token_ttl_seconds")
        raw = secrets.token_urlsafe(ACCESS_TOKEN_BYTES)
        record = cls(
            token_hash=hash_token(raw),
            client_id=client_id,
            username=username,
            scopes=frozenset(scopes),
            expires_at=_expiry(lifetime_seconds),
            refresh_token_hash=refresh_token_hash,
        )
        return IssuedToken(raw, record)

    def is_expired(self, now: float | None = None) -> bool:
        """Whether the token has reached its expiry time."""
        return (time.time() if now is None else now) >= self.expires_at

    def matches(self, raw: str) -> bool:
        """Whether ``raw`` is the secret this record was created from."""
        return verify_token(raw, self.token_hash)


@dataclass(frozen=True)
class OAuthClient:
    """A registered OAuth client.

    Public clients have no secret and must use PKCE. Confidential
    clients authenticate with a secret whose SHA-256 hash is stored.

    Attributes
    ----------
    client_id : str
        The client identifier.
    name : str
        Display name.
    redirect_uris : frozenset[str]
        Exact redirect URIs the client may use.
    allowed_scopes : frozenset[str]
        Scopes the client may request (empty means unrestricted).
    client_secret_hash : str or None
        SHA-256 hex of the client secret, confidential clients only.
    """

    client_id: str
    name: str
    redirect_uris: frozenset[str]
    allowed_scopes: frozenset[str] = frozenset()
    client_secret_hash: str | None = None

    @classmethod
    def public(
        cls,
        client_id: str,
        name: str,
        redirect_uris: Iterable[str],
        allowed_scopes: Iterable[str] = (),
    ) -> OAuthClient:
        """Register a public client."""
        return cls(
            client_id=client_id,
            name=name,
            redirect_uris=frozenset(redirect_uris),
            allowed_scopes=frozenset(allowed_scopes),
        )

    @classmethod
    def confidential_client(
        cls,
        client_id: str,
        name: str,
        client_secret: str,
        redirect_uris: Iterable[str],
        allowed_scopes: Iterable[str] = (),
    ) -> OAuthClient:
        """Register a confidential client; only the secret's hash is kept."""
        return cls(
            client_id=client_id,
            name=name,
            redirect_uris=frozenset(redirect_uris),
            allowed_scopes=frozenset(allowed_scopes),
            client_secret_hash=hash_token(client_secret),
        )

    @property
    def confidential(self) -> bool:
        """Whether the client authenticates with a secret."""
        return self.client_secret_hash is not None

    def validate_redirect_uri(self, uri: str) -> bool:
        """Exact-match ``uri`` against the registered redirect URIs."""
        return uri in self.redirect_uris

    def validate_scopes(self, scopes: Iterable[str]) -> bool:
        """Whether every requested scope is allowed for this client."""
        if not self.allowed_scopes:
            return True
        return self.allowed_scopes.issuperset(scopes)

    def verify_secret(self, client_secret: str) -> bool:
        """Check a presented client secret. Public clients never match."""
        if self.client_secret_hash is None:
            return False
        return verify_token(client_secret, self.client_secret_hash)


# ── Client-side value objects ────────────────────────────────────────


@dataclass(frozen=True)
class AuthorizationRequest:
    """An authorization request ready to be sent to the user agent.

    Attributes
    ----------
    url : str
        Authorization endpoint with all query parameters.
    state : str
        CSRF correlation value to compare on callback.
    pkce : PKCEPair
        The PKCE pair; keep ``pkce.verifier`` until the callback arrives.
    """

    url: str
    state: str
    pkce: PKCEPair


@dataclass(frozen=True)
class TokenResponse:
    """A parsed token endpoint response.

    Exactly one of ``access_token`` and ``error`` is set.

    Attributes
    ----------
    access_token : str or None
        The issued access token.
    token_type : str
        Token type (default "Bearer").
    expires_in : int
        Lifetime in seconds, 0 when the server did not say.
    refresh_token : str or None
        The issued refresh token, if any.
    scope : str
        Space-separated granted scopes.
    error : str or None
        OAuth error code.
    error_description : str or None
        Human-readable error detail.
    """

    access_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int = 0
    refresh_token: str | None = None
    scope: str = ""
    error: str | None = None
    error_description: str | None = None

    def __post_init__(self) -> None:
        if (self.access_token is None) == (self.error is None):
            msg = "TokenResponse requires exactly one of access_token or error"
            raise ValueError(msg)

    def __repr__(self) -> str:
        if self.is_error:
            return (
                f"TokenResponse(error={self.error!r}, "
                f"error_description={self.error_description!r})"
            )
        refresh = "[present]" if self.refresh_token else None
        return (
            f"TokenResponse(access_token='[present]', token_type={self.token_type!r}, "
            f"expires_in={self.expires_in!r}, refresh_token={refresh!r}, scope={self.scope!r})"
        )

    @property
    def is_error(self) -> bool:
        """Whether this is an error response."""
        return self.error is not None

    @property
    def scopes(self) -> list[str]:
        """Granted scopes as a list."""
        return self.scope.split()

    @classmethod
    def error_response(cls, error: str, description: str | None = None) -> TokenResponse:
        """Build an error response."""
        return cls(error=error, error_description=description)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TokenResponse:
        """Parse a decoded token endpoint body.

        The error shape is detected first, so a body carrying ``error``
        (even an empty one) never yields an access token. A body with neither field is
        reported as an ``invalid_request`` error.
        """
        error = data.get("error")
        if error is not None:
            description = data.get("error_description")
            return cls.error_response(
                str(error), str(description) if description is not None else None
            )

        access_token = data.get("access_token")
        if not access_token or not isinstance(access_token, str):
            return cls.error_response(
                OAuthErrorCode.INVALID_REQUEST.value,
                "Token response did not contain an access_token",
            )

        try:
            expires_in = int(data.get("expires_in") or 0)
        except (TypeError, ValueError):
            expires_in = 0

        refresh_token = data.get("refresh_token")
        return cls(
            access_token=access_token,
            token_type=str(data.get("token_type") or "Bearer"),
            expires_in=expires_in,
            refresh_token=str(refresh_token) if refresh_token else None,
            scope=str(data.get("scope") or ""),
        )

    @classmethod
    def from_json(cls, body: str | bytes) -> TokenResponse:
        """Parse a JSON token endpoint body.

        Raises
        ------
        ValueError
            If the body is not a JSON object.
        """
        data = json.loads(body)
        if not isinstance(data, dict):
            msg = "Token response body is not a JSON object"
            raise ValueError(msg)  # noqa: TRY004
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Render in the token endpoint wire shape."""
        if self.is_error:
            result: dict[str, Any] = {"error": self.error}
            if self.error_description:
                result["error_description"] = self.error_description
            return result
        result = {"access_token": self.access_token, "token_type": self.token_type}
        if self.expires_in:
            result["expires_in"] = self.expires_in
        if self.refresh_token:
            result["refresh_token"] = self.refresh_token
        if self.scope:
            result["scope"] = self.scope
        return result


# ── Sessions ─────────────────────────────────────────────────────────


class Session:
    """A cookie-bound session with a thread-safe payload.

    Parameters
    ----------
    token : str
        32 lowercase hex characters (128 random bits).
    created_at : float
        Unix timestamp of creation.
    data : Mapping[str, Any] or None
        Initial payload.
    """

    __slots__ = ("_data", "_lock", "created_at", "token")

    def __init__(
        self,
        token: str,
        created_at: float,
        data: Mapping[str, Any] | None = None,
    ) -> None:
        self.token = token
        self.created_at = created_at
        self._data: dict[str, Any] = dict(data or {})
        self._lock = threading.Lock()

    @classmethod
    def new(cls, data: Mapping[str, Any] | None = None) -> Session:
        """Create a session with a fresh random token."""
        return cls(secrets.token_hex(SESSION_TOKEN_BYTES), time.time(), data)

    def __repr__(self) -> str:
        return f"Session(created_at={self.created_at!r}, keys={sorted(self.keys())!r})"

    def get(self, key: str, default: Any = None, *, expected: type[T] | None = None) -> Any:
        """Get a payload value.

        Parameters
        ----------
        key : str
            The payload key.
        default : Any
            Returned when the key is absent.
        expected : type, optional
            When given, a present value of another type raises TypeError.

        Returns
        -------
        Any
            The stored value, or ``default``.
        """
        with self._lock:
            if key not in self._data:
                return default
            value = self._data[key]
        if expected is not None and not isinstance(value, expected):
            msg = (
                f"Session value {key!r} is {type(value).__name__}, "
                f"expected {expected.__name__}"
            )
            raise TypeError(msg)
        return value

    def put(self, key: str, value: Any) -> Any:
        """Set a payload value, returning the previous one (or None)."""
        with self._lock:
            previous = self._data.get(key)
            self._data[key] = value
            return previous

    def put_if_absent(self, key: str, value: Any) -> Any:
        """Set ``key`` only when absent; return the value now stored."""
        with self._lock:
            return self._data.setdefault(key, value)

    def remove(self, key: str) -> Any:
        """Remove a payload value, returning it (or None)."""
        with self._lock:
            return self._data.pop(key, None)

    def clear(self) -> None:
        """Remove every payload value."""
        with self._lock:
            self._data.clear()

    def keys(self) -> list[str]:
        """Snapshot of the payload keys."""
        with self._lock:
            return list(self._data)

    def snapshot(self) -> dict[str, Any]:
        """Shallow copy of the payload."""
        with self._lock:
            return dict(self._data)

    def age(self, now: float | None = None) -> float:
        """Seconds since creation."""
        return (time.time() if now is None else now) - self.created_at

    def is_expired(self, max_age_seconds: float, now: float | None = None) -> bool:
        """Whether the session was created more than ``max_age_seconds`` ago."""
        return self.age(now) > max_age_seconds


@dataclass(frozen=True)
class CookiePolicy:
    """How the session cookie is written.

    Attributes
    ----------
    name : str
        Cookie name.
    domain : str or None
        Cookie domain, host-only when None.
    path : str
        Cookie path.
    secure : bool
        Send over HTTPS only.
    http_only : bool
        Hide from scripts.
    same_site : str
        "lax", "strict" or "none".
    max_age : int or None
        Max-Age in seconds; a browser-session cookie when None.
    """

    name: str = "sid"
    domain: str | None = None
    path: str = "/"
    secure: bool = True
    http_only: bool = True
    same_site: str = "lax"
    max_age: int | None = None

    def __post_init__(self) -> None:
        if self.same_site not in {"lax", "strict", "none"}:
            msg = f"same_site must be 'lax', 'strict' or 'none', got {self.same_site!r}"
            raise ValueError(msg)


@dataclass
class SessionMetrics:
    """Counters kept by a session manager.

    Attributes
    ----------
    requests : int
        Session lookups performed.
    new : int
        Sessions created.
    expired : int
        Sessions removed by expiry sweeps.
    failed_saves : int
        New sessions the store failed to save.
    """

    requests: int = 0
    new: int = 0
    expired: int = 0
    failed_saves: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def increment(self, name: str, amount: int = 1) -> None:
        """Add ``amount`` to the counter ``name``."""
        with self._lock:
            setattr(self, name, getattr(self, name) + amount)

    def as_dict(self) -> dict[str, int]:
        """Snapshot of the counters."""
        with self._lock:
            return {
                "requests": self.requests,
                "new": self.new,
                "expired": self.expired,
                "failed_saves": self.failed_saves,
            }
