"""oauthkit - server-side credential and session lifecycle management.

This package provides an OAuth 2.1 Authorization Code + PKCE client flow,
single-use authorization code and hashed token stores, cookie-bound
sessions with background expiry sweeping, and users file credentials.
"""

from __future__ import annotations

from .auth import (
    HashType,
    OAuthClientFlow,
    SessionManager,
    UserRecord,
    UsersFile,
    error_redirect_url,
    generate_files,
    parse_lines,
    to_secure,
)
from .config import (
    HashingSettings,
    LogSettings,
    OAuth2Settings,
    OAuthKitSettings,
    SessionSettings,
    StoreSettings,
    clear_settings,
    get_settings,
    reload_settings,
)
from .exceptions import (
    CredentialValidationError,
    DuplicateCodeError,
    DuplicateHashError,
    OAuthKitException,
    StoreConsistencyError,
    TokenEndpointError,
    TransportError,
    TransportTimeout,
    UsersFileError,
)
from .hashing import hash_password, hash_token, random_token, verify_password, verify_token
from .log import enable_debug, get_logger, set_level
from .pkce import PKCEPair, compute_challenge, verify_challenge
from .state import (
    AuthorizationCode,
    AuthorizationCodeStore,
    AuthorizationRequest,
    ClientStore,
    CookiePolicy,
    ExpirySweeper,
    IssuedToken,
    MemoryClientStore,
    MemoryCodeStore,
    MemorySessionStore,
    MemoryTokenStore,
    OAuthAccessToken,
    OAuthClient,
    OAuthErrorCode,
    OAuthRefreshToken,
    Session,
    SessionMetrics,
    SessionStore,
    TokenResponse,
    TokenStore,
    clear_state_caches,
    get_client_store,
    get_code_store,
    get_code_sweeper,
    get_session_store,
    get_token_store,
    get_token_sweeper,
    start_sweepers,
    stop_sweepers,
)


__version__ = "0.1.0"

__all__ = [
    "AuthorizationCode",
    "AuthorizationCodeStore",
    "AuthorizationRequest",
    "ClientStore",
    "CookiePolicy",
    "CredentialValidationError",
    "DuplicateCodeError",
    "DuplicateHashError",
    "ExpirySweeper",
    "HashType",
    "HashingSettings",
    "IssuedToken",
    "LogSettings",
    "MemoryClientStore",
    "MemoryCodeStore",
    "MemorySessionStore",
    "MemoryTokenStore",
    "OAuth2Settings",
    "OAuthAccessToken",
    "OAuthClient",
    "OAuthClientFlow",
    "OAuthErrorCode",
    "OAuthKitException",
    "OAuthKitSettings",
    "OAuthRefreshToken",
    "PKCEPair",
    "Session",
    "SessionManager",
    "SessionMetrics",
    "SessionSettings",
    "SessionStore",
    "StoreConsistencyError",
    "StoreSettings",
    "TokenEndpointError",
    "TokenResponse",
    "TokenStore",
    "TransportError",
    "TransportTimeout",
    "UserRecord",
    "UsersFile",
    "UsersFileError",
    "__version__",
    "clear_settings",
    "clear_state_caches",
    "compute_challenge",
    "enable_debug",
    "error_redirect_url",
    "generate_files",
    "get_client_store",
    "get_code_store",
    "get_code_sweeper",
    "get_logger",
    "get_session_store",
    "get_settings",
    "get_token_store",
    "get_token_sweeper",
    "hash_password",
    "hash_token",
    "parse_lines",
    "random_token",
    "reload_settings",
    "set_level",
    "start_sweepers",
    "stop_sweepers",
    "to_secure",
    "verify_challenge",
    "verify_password",
    "verify_token",
]
