"""Authentication flows for oauthkit.

Provides the OAuth 2.1 authorization code client flow, cookie-bound
session management and users file credentials.
"""

from __future__ import annotations

from .flow import OAuthClientFlow, error_redirect_url
from .session import SessionManager
from .users_file import (
    HashType,
    UserRecord,
    UsersFile,
    generate_files,
    parse_lines,
    to_secure,
)


__all__ = [
    "HashType",
    "OAuthClientFlow",
    "SessionManager",
    "UserRecord",
    "UsersFile",
    "error_redirect_url",
    "generate_files",
    "parse_lines",
    "to_secure",
]
