"""In-memory store implementations.

Default backend for single-process deployments and development.

Each store guards its maps with a ``threading.Lock`` whose critical
sections never await, so one instance can be shared by tasks on an
event loop and by threads running their own loops. Expiry sweeps take
the lock per batch rather than for the whole sweep.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time

from typing import TYPE_CHECKING, TypeVar

from ..exceptions import DuplicateCodeError
from .base import AuthorizationCodeStore, ClientStore, SessionStore, TokenStore


if TYPE_CHECKING:
    from collections.abc import Callable

    from .types import (
        AuthorizationCode,
        OAuthAccessToken,
        OAuthClient,
        OAuthRefreshToken,
        Session,
    )


logger = logging.getLogger("oauthkit.state")

V = TypeVar("V")

DEFAULT_SWEEP_BATCH_SIZE = 500


async def _sweep(
    lock: threading.Lock,
    entries: dict[str, V],
    is_expired: Callable[[V], bool],
    on_remove: Callable[[str, V], None] | None = None,
    batch_size: int = DEFAULT_SWEEP_BATCH_SIZE,
    label: str = "entry",
) -> int:
    """Remove expired entries from ``entries`` in batches.

    Keys are snapshotted first; each batch re-checks expiry under the
    lock and yields to the event loop afterwards. ``on_remove`` runs
    before the entry is deleted; if it raises, the entry is kept for the
    next sweep. A failing entry is logged and skipped.
    """
    with lock:
        keys = list(entries)

    removed = 0
    for start in range(0, len(keys), batch_size):
        with lock:
            for key in keys[start : start + batch_size]:
                value = entries.get(key)
                if value is None:
                    continue
                try:
                    if not is_expired(value):
                        continue
                    if on_remove is not None:
                        on_remove(key, value)
                    del entries[key]
                except Exception:
                    logger.exception("Failed to sweep %s", label)
                    continue
                removed += 1
        await asyncio.sleep(0)

    if removed:
        logger.debug("Swept %d expired %s(s)", removed, label)
    return removed


class MemoryCodeStore(AuthorizationCodeStore):
    """In-memory authorization code store."""

    def __init__(self, batch_size: int = DEFAULT_SWEEP_BATCH_SIZE) -> None:
        """Initialize the memory code store."""
        self._codes: dict[str, AuthorizationCode] = {}
        self._lock = threading.Lock()
        self._batch_size = batch_size

    def __len__(self) -> int:
        with self._lock:
            return len(self._codes)

    async def store(self, code: AuthorizationCode) -> None:
        """Store a code, refusing to replace an existing value."""
        with self._lock:
            if code.code in self._codes:
                msg = "Authorization code collision"
                raise DuplicateCodeError(msg, client_id=code.client_id)
            self._codes[code.code] = code

    async def consume(self, code_value: str) -> AuthorizationCode | None:
        """Remove and return a code if it is present and unexpired."""
        with self._lock:
            code = self._codes.pop(code_value, None)
        if code is None:
            return None
        if code.is_expired():
            logger.debug("Rejected expired authorization code for client %s", code.client_id)
            return None
        return code

    async def cleanup(self) -> int:
        """Remove expired codes."""
        now = time.time()
        return await _sweep(
            self._lock,
            self._codes,
            lambda c: c.is_expired(now),
            batch_size=self._batch_size,
            label="authorization code",
        )


class MemoryTokenStore(TokenStore):
    """In-memory access and refresh token store.

    Keeps a per-user index of token hashes so revocation for one subject
    does not scan every token.
    """

    def __init__(self, batch_size: int = DEFAULT_SWEEP_BATCH_SIZE) -> None:
        """Initialize the memory token store."""
        self._access: dict[str, OAuthAccessToken] = {}
        self._refresh: dict[str, OAuthRefreshToken] = {}
        self._user_access: dict[str, set[str]] = {}
        self._user_refresh: dict[str, set[str]] = {}
        self._lock = threading.Lock()
        self._batch_size = batch_size

    @staticmethod
    def _index_add(index: dict[str, set[str]], username: str, token_hash: str) -> None:
        index.setdefault(username, set()).add(token_hash)

    @staticmethod
    def _index_discard(index: dict[str, set[str]], username: str, token_hash: str) -> None:
        hashes = index.get(username)
        if hashes is None:
            return
        hashes.discard(token_hash)
        if not hashes:
            del index[username]

    async def store_access_token(self, token: OAuthAccessToken) -> None:
        """Insert or overwrite an access token."""
        with self._lock:
            previous = self._access.get(token.token_hash)
            if previous is not None:
                self._index_discard(self._user_access, previous.username, previous.token_hash)
            self._access[token.token_hash] = token
            self._index_add(self._user_access, token.username, token.token_hash)

    async def store_refresh_token(self, token: OAuthRefreshToken) -> None:
        """Insert or overwrite a refresh token."""
        with self._lock:
            previous = self._refresh.get(token.token_hash)
            if previous is not None:
                self._index_discard(self._user_refresh, previous.username, previous.token_hash)
            self._refresh[token.token_hash] = token
            self._index_add(self._user_refresh, token.username, token.token_hash)

    async def resolve_access_token(self, token_hash: str) -> OAuthAccessToken | None:
        """Look up an unexpired access token by hash."""
        with self._lock:
            token = self._access.get(token_hash)
        if token is None or token.is_expired():
            return None
        return token

    async def resolve_refresh_token(self, token_hash: str) -> OAuthRefreshToken | None:
        """Look up an unexpired refresh token by hash."""
        with self._lock:
            token = self._refresh.get(token_hash)
        if token is None or token.is_expired():
            return None
        return token

    async def revoke_access_token(self, token_hash: str) -> None:
        """Remove an access token if present."""
        with self._lock:
            token = self._access.pop(token_hash, None)
            if token is not None:
                self._index_discard(self._user_access, token.username, token_hash)

    async def revoke_refresh_token(self, token_hash: str) -> None:
        """Remove a refresh token if present."""
        with self._lock:
            token = self._refresh.pop(token_hash, None)
            if token is not None:
                self._index_discard(self._user_refresh, token.username, token_hash)

    async def revoke_all_for_user(self, username: str) -> int:
        """Remove every token owned by ``username``."""
        with self._lock:
            access_hashes = self._user_access.pop(username, set())
            refresh_hashes = self._user_refresh.pop(username, set())
            for token_hash in access_hashes:
                self._access.pop(token_hash, None)
            for token_hash in refresh_hashes:
                self._refresh.pop(token_hash, None)
        removed = len(access_hashes) + len(refresh_hashes)
        logger.info("Revoked %d token(s) for user %s", removed, username)
        return removed

    async def cleanup(self) -> int:
        """Remove expired access and refresh tokens."""
        now = time.time()
        removed = await _sweep(
            self._lock,
            self._access,
            lambda t: t.is_expired(now),
            on_remove=lambda h, t: self._index_discard(self._user_access, t.username, h),
            batch_size=self._batch_size,
            label="access token",
        )
        removed += await _sweep(
            self._lock,
            self._refresh,
            lambda t: t.is_expired(now),
            on_remove=lambda h, t: self._index_discard(self._user_refresh, t.username, h),
            batch_size=self._batch_size,
            label="refresh token",
        )
        return removed


class MemorySessionStore(SessionStore):
    """In-memory session store.

    Parameters
    ----------
    max_sessions : int or None
        Refuse to save new sessions beyond this many (None for no limit).
    batch_size : int
        Sessions examined per lock acquisition during sweeps.
    """

    def __init__(
        self,
        max_sessions: int | None = None,
        batch_size: int = DEFAULT_SWEEP_BATCH_SIZE,
    ) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()
        self._max_sessions = max_sessions
        self._batch_size = batch_size

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    async def get(self, token: str) -> Session | None:
        """Get a session by token."""
        with self._lock:
            return self._sessions.get(token)

    async def save(self, session: Session) -> bool:
        """Save a session unless the store is full."""
        with self._lock:
            if (
                self._max_sessions is not None
                and session.token not in self._sessions
                and len(self._sessions) >= self._max_sessions
            ):
                logger.warning("Session store full (%d sessions)", self._max_sessions)
                return False
            self._sessions[session.token] = session
            return True

    async def delete(self, token: str) -> bool:
        """Delete a session."""
        with self._lock:
            return self._sessions.pop(token, None) is not None

    async def clear_expired(self, max_age_seconds: float) -> int:
        """Remove sessions older than ``max_age_seconds``."""
        now = time.time()
        return await _sweep(
            self._lock,
            self._sessions,
            lambda s: s.is_expired(max_age_seconds, now),
            batch_size=self._batch_size,
            label="session",
        )


class MemoryClientStore(ClientStore):
    """In-memory OAuth client registry."""

    def __init__(self) -> None:
        """Initialize the memory client store."""
        self._clients: dict[str, OAuthClient] = {}
        self._lock = threading.Lock()

    async def register(self, client: OAuthClient) -> None:
        """Register or replace a client."""
        with self._lock:
            self._clients[client.client_id] = client

    async def get_client(self, client_id: str) -> OAuthClient | None:
        """Get a client by ID."""
        with self._lock:
            return self._clients.get(client_id)

    async def remove(self, client_id: str) -> bool:
        """Remove a client registration."""
        with self._lock:
            return self._clients.pop(client_id, None) is not None
