"""OAuth 2.1 Authorization Code with PKCE, client side.

Three steps, stateless between calls:

1. ``build_authorization_request`` produces the URL to redirect the user
   to, plus the ``state`` and PKCE verifier the caller must keep.
2. ``exchange_code`` trades the callback's code for tokens.
3. ``refresh_token`` trades a refresh token for fresh tokens.

Token endpoint error bodies come back as ``TokenResponse`` objects with
``is_error`` set. Failures to reach the endpoint, or bodies that are not
JSON objects, raise ``TransportError``. Nothing here touches a store.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import json
import logging
import secrets

from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlencode

import httpx

from ..exceptions import TokenEndpointError, TransportError, TransportTimeout
from ..log import redact_sensitive_data
from ..pkce import PKCEPair
from ..state.types import AuthorizationRequest, OAuthErrorCode, TokenResponse


if TYPE_CHECKING:
    from collections.abc import Iterable

    from ..config import OAuth2Settings


logger = logging.getLogger("oauthkit.auth")

DEFAULT_TIMEOUT = 30.0


def _append_query(url: str, params: dict[str, str]) -> str:
    separator = "&" if "?" in url else "?"
    # urlencode passes safe="" through, so "/" is escaped and spaces become %20
    return f"{url}{separator}{urlencode(params, quote_via=quote)}"


def error_redirect_url(
    redirect_uri: str,
    error: OAuthErrorCode | str,
    description: str | None = None,
    state: str | None = None,
) -> str:
    """Build the redirect an authorization server sends on failure.

    Parameters
    ----------
    redirect_uri : str
        The client's registered redirect URI.
    error : OAuthErrorCode or str
        The OAuth error code.
    description : str, optional
        Human-readable detail.
    state : str, optional
        The ``state`` from the authorization request, echoed back.

    Returns
    -------
    str
        ``redirect_uri`` with ``error`` and friends appended.
    """
    params = {"error": error.value if isinstance(error, OAuthErrorCode) else error}
    if description:
        params["error_description"] = description
    if state:
        params["state"] = state
    return _append_query(redirect_uri, params)


class OAuthClientFlow:
    """Client side of the authorization code grant with PKCE.

    Parameters
    ----------
    client_id : str
        The OAuth client ID.
    authorize_url : str
        The authorization endpoint.
    token_url : str
        The token endpoint.
    client_secret : str or None
        The client secret. When set, token requests authenticate with
        HTTP Basic auth; public clients leave it unset.
    timeout : float
        Default seconds to wait for the token endpoint.
    http_client : httpx.AsyncClient or None
        Client to send requests with. One is created (and owned) lazily
        when omitted.
    """

    def __init__(
        self,
        client_id: str,
        authorize_url: str,
        token_url: str,
        client_secret: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.client_id = client_id
        self.authorize_url = authorize_url
        self.token_url = token_url
        self.client_secret = client_secret or None
        self.timeout = timeout
        self._http_client = http_client
        self._owns_client = http_client is None

    @classmethod
    def from_settings(
        cls,
        settings: OAuth2Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> OAuthClientFlow:
        """Create a flow from an ``OAuth2Settings`` section.

        Raises
        ------
        ValueError
            If the client ID or an endpoint URL is not configured.
        """
        missing = [
            name
            for name in ("client_id", "authorize_url", "token_url")
            if not getattr(settings, name)
        ]
        if missing:
            msg = f"OAuth2 settings missing: {', '.join(missing)}"
            raise ValueError(msg)
        return cls(
            client_id=settings.client_id,
            authorize_url=settings.authorize_url,
            token_url=settings.token_url,
            client_secret=settings.client_secret or None,
            timeout=settings.request_timeout,
            http_client=http_client,
        )

    @property
    def confidential(self) -> bool:
        """Whether token requests carry client credentials."""
        return self.client_secret is not None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client if this flow created it."""
        if self._owns_client and self._http_client is not None:
            if not self._http_client.is_closed:
                await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> OAuthClientFlow:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def build_authorization_request(
        self,
        redirect_uri: str,
        scopes: Iterable[str] = (),
        state: str | None = None,
    ) -> AuthorizationRequest:
        """Build the authorization URL for a new attempt.

        Parameters
        ----------
        redirect_uri : str
            Where the authorization server sends the user back.
        scopes : Iterable[str]
            Scopes to request; duplicates are dropped, order is kept.
        state : str, optional
            CSRF correlation value. Generated when omitted.

        Returns
        -------
        AuthorizationRequest
            The URL, the state and the PKCE pair to keep until callback.
        """
        pkce = PKCEPair.generate()
        if state is None:
            state = secrets.token_urlsafe(32)

        params: dict[str, str] = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "code_challenge": pkce.challenge,
            "code_challenge_method": pkce.method,
        }
        scope = " ".join(dict.fromkeys(s for s in scopes if s))
        if scope:
            params["scope"] = scope
        params["state"] = state

        url = _append_query(self.authorize_url, params)
        logger.debug("Built authorization request for client %s", self.client_id)
        return AuthorizationRequest(url=url, state=state, pkce=pkce)

    async def exchange_code(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str,
        *,
        timeout: float | None = None,
    ) -> TokenResponse:
        """Exchange an authorization code for tokens.

        Parameters
        ----------
        code : str
            The code from the authorization callback.
        redirect_uri : str
            The redirect URI used in the authorization request.
        code_verifier : str
            The PKCE verifier kept since the authorization request.
        timeout : float, optional
            Overrides the flow's default timeout.

        Returns
        -------
        TokenResponse
            Tokens, or the server's OAuth error.

        Raises
        ------
        TransportError
            If the token endpoint could not be reached or answered with
            something other than a JSON object.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": self.client_id,
            "code_verifier": code_verifier,
        }
        return await self._token_request(data, timeout)

    async def refresh_token(
        self,
        refresh_token: str,
        *,
        timeout: float | None = None,
    ) -> TokenResponse:
        """Exchange a refresh token for fresh tokens.

        Parameters
        ----------
        refresh_token : str
            The refresh token.
        timeout : float, optional
            Overrides the flow's default timeout.

        Returns
        -------
        TokenResponse
            Tokens, or the server's OAuth error.

        Raises
        ------
        TransportError
            If the token endpoint could not be reached or answered with
            something other than a JSON object.
        """
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.client_id,
        }
        return await self._token_request(data, timeout)

    async def _token_request(self, data: dict[str, str], timeout: float | None) -> TokenResponse:
        grant_type = data["grant_type"]
        effective_timeout = self.timeout if timeout is None else timeout
        auth = (self.client_id, self.client_secret) if self.client_secret else None

        try:
            client = await self._get_client()
            resp = await client.post(
                self.token_url,
                data=data,
                auth=auth,
                headers={"Accept": "application/json"},
                timeout=effective_timeout,
            )
        except httpx.TimeoutException as exc:
            msg = f"Token request timed out after {effective_timeout}s"
            raise TransportTimeout(
                msg, timeout=effective_timeout, url=self.token_url, grant_type=grant_type
            ) from exc
        except httpx.HTTPError as exc:
            msg = f"Token request failed: {exc}"
            raise TransportError(msg, url=self.token_url, grant_type=grant_type) from exc

        result = self._parse_response(resp, grant_type)
        if result.is_error:
            logger.warning(
                "Token endpoint returned %s for %s (status %d)",
                result.error,
                grant_type,
                resp.status_code,
            )
        else:
            logger.debug("Token endpoint issued tokens for %s", grant_type)
        return result

    def _parse_response(self, resp: httpx.Response, grant_type: str) -> TokenResponse:
        try:
            body: Any = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            msg = "Token endpoint returned a non-JSON body"
            raise TokenEndpointError(
                msg, status_code=resp.status_code, url=self.token_url, grant_type=grant_type
            ) from exc

        if not isinstance(body, dict):
            msg = "Token endpoint returned JSON that is not an object"
            raise TokenEndpointError(
                msg, status_code=resp.status_code, url=self.token_url, grant_type=grant_type
            )

        logger.debug(
            "Token endpoint answered %d for %s: %s",
            resp.status_code,
            grant_type,
            redact_sensitive_data(body),
        )
        return TokenResponse.from_dict(body)
