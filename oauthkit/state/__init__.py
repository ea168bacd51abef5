"""oauthkit state management package.

Store contracts for authorization codes, tokens, sessions and client
registrations, with in-memory implementations. Durable backends plug in
by implementing the same abstract base classes.

Examples
--------
>>> from oauthkit.state import get_code_store
>>> store = get_code_store()
>>> await store.store(code)
>>> await store.consume(code.code)
"""

from __future__ import annotations

from ._factory import (
    clear_state_caches,
    get_client_store,
    get_code_store,
    get_code_sweeper,
    get_session_store,
    get_state_backend,
    get_token_store,
    get_token_sweeper,
    start_sweepers,
    stop_sweepers,
)
from .base import AuthorizationCodeStore, ClientStore, SessionStore, TokenStore
from .memory import MemoryClientStore, MemoryCodeStore, MemorySessionStore, MemoryTokenStore
from .sweeper import ExpirySweeper
from .types import (
    AuthorizationCode,
    AuthorizationRequest,
    CookiePolicy,
    IssuedToken,
    OAuthAccessToken,
    OAuthClient,
    OAuthErrorCode,
    OAuthRefreshToken,
    Session,
    SessionMetrics,
    StateBackend,
    TokenResponse,
)


__all__ = [
    "AuthorizationCode",
    "AuthorizationCodeStore",
    "AuthorizationRequest",
    "ClientStore",
    "CookiePolicy",
    "ExpirySweeper",
    "IssuedToken",
    "MemoryClientStore",
    "MemoryCodeStore",
    "MemorySessionStore",
    "MemoryTokenStore",
    "OAuthAccessToken",
    "OAuthClient",
    "OAuthErrorCode",
    "OAuthRefreshToken",
    "Session",
    "SessionMetrics",
    "SessionStore",
    "StateBackend",
    "TokenResponse",
    "TokenStore",
    "clear_state_caches",
    "get_client_store",
    "get_code_store",
    "get_code_sweeper",
    "get_session_store",
    "get_state_backend",
    "get_token_store",
    "get_token_sweeper",
    "start_sweepers",
    "stop_sweepers",
]
