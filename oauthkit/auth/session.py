"""Cookie-bound sessions.

Binds a ``SessionStore`` to an HTTP cookie on Starlette requests and
responses, keeps counters for lookups, creations, expiries and failed
saves, and runs the store's expiry sweep in the background.

A session moves from created to active, then ends either when it is
found older than ``max_age_seconds`` (by a lookup or a sweep) or when
``end_session`` is called. Ended sessions are never revived.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging
import re

from typing import TYPE_CHECKING, Any

from ..state.sweeper import ExpirySweeper
from ..state.types import CookiePolicy, Session, SessionMetrics


if TYPE_CHECKING:
    from collections.abc import Mapping

    from starlette.requests import HTTPConnection
    from starlette.responses import Response

    from ..config import SessionSettings
    from ..state.base import SessionStore


logger = logging.getLogger("oauthkit.auth")

_TOKEN_RE = re.compile(r"[0-9a-f]{32}")


class SessionManager:
    """Cookie-bound session lifecycle over a session store.

    Parameters
    ----------
    store : SessionStore
        Where sessions live.
    cookie : CookiePolicy or None
        Cookie name and attributes (defaults to ``CookiePolicy()``).
    max_age_seconds : float
        Sessions older than this are removed by the expiry sweep.
    sweep_interval_seconds : float
        Seconds between background sweeps. Zero or less disables them;
        stale sessions are then only removed when looked up or when
        ``clear_expired`` is called.
    """

    def __init__(
        self,
        store: SessionStore,
        cookie: CookiePolicy | None = None,
        max_age_seconds: float = 86400,
        sweep_interval_seconds: float = 60.0,
    ) -> None:
        self.store = store
        self.cookie = cookie or CookiePolicy()
        self.max_age_seconds = max_age_seconds
        self.metrics = SessionMetrics()
        self._sweeper = ExpirySweeper(
            self.clear_expired,
            sweep_interval_seconds,
            name="session-sweep",
        )

    @classmethod
    def from_settings(cls, store: SessionStore, settings: SessionSettings) -> SessionManager:
        """Create a manager from a ``SessionSettings`` section."""
        cookie = CookiePolicy(
            name=settings.cookie_name,
            domain=settings.cookie_domain,
            path=settings.cookie_path,
            secure=settings.secure,
            http_only=settings.http_only,
            same_site=settings.same_site,
            max_age=settings.max_age_seconds,
        )
        return cls(
            store,
            cookie=cookie,
            max_age_seconds=settings.max_age_seconds,
            sweep_interval_seconds=settings.sweep_interval_seconds,
        )

    @property
    def sweeper(self) -> ExpirySweeper:
        """The background expiry sweeper."""
        return self._sweeper

    def start(self) -> None:
        """Start the background expiry sweep on the running loop."""
        self._sweeper.start()

    async def shutdown(self) -> None:
        """Stop the background expiry sweep."""
        await self._sweeper.stop()

    async def __aenter__(self) -> SessionManager:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()

    def token_from_request(self, request: HTTPConnection) -> str | None:
        """Extract a well-formed session token from the request cookie."""
        value = request.cookies.get(self.cookie.name)
        if not value:
            return None
        value = value.strip().lower()
        if not _TOKEN_RE.fullmatch(value):
            logger.debug("Ignoring malformed session cookie")
            return None
        return value

    async def session(self, request: HTTPConnection) -> Session | None:
        """Look up the session named by the request cookie.

        Never creates a session.

        Parameters
        ----------
        request : HTTPConnection
            The incoming request.

        Returns
        -------
        Session or None
            The session, or None when the cookie is missing, malformed,
            names no stored session or names one older than
            ``max_age_seconds``. A stale session is removed on the spot.
        """
        self.metrics.increment("requests")
        token = self.token_from_request(request)
        if token is None:
            return None
        session = await self.store.get(token)
        if session is not None and session.is_expired(self.max_age_seconds):
            if await self.store.delete(token):
                self.metrics.increment("expired")
            return None
        return session

    async def session_or_new(
        self,
        request: HTTPConnection,
        response: Response,
        data: Mapping[str, Any] | None = None,
    ) -> Session:
        """Get the request's session, creating one when there is none.

        A new session is saved before its cookie is written. When the
        save fails the session is still returned, ``failed_saves`` is
        incremented and no cookie is set.

        Parameters
        ----------
        request : HTTPConnection
            The incoming request.
        response : Response
            The response that receives the cookie for a new session.
        data : Mapping[str, Any], optional
            Initial payload for a new session.

        Returns
        -------
        Session
            The existing or newly created session.
        """
        existing = await self.session(request)
        if existing is not None:
            return existing

        session = Session.new(data)
        self.metrics.increment("new")

        try:
            saved = await self.store.save(session)
        except Exception:
            logger.exception("Session store raised while saving a new session")
            saved = False

        if not saved:
            self.metrics.increment("failed_saves")
            logger.warning("New session was not saved; no cookie set")
            return session

        self.set_cookie(response, session)
        return session

    def set_cookie(self, response: Response, session: Session) -> None:
        """Write the session cookie to ``response``."""
        policy = self.cookie
        response.set_cookie(
            key=policy.name,
            value=session.token,
            max_age=policy.max_age,
            path=policy.path,
            domain=policy.domain,
            secure=policy.secure,
            httponly=policy.http_only,
            samesite=policy.same_site,
        )

    async def end_session(self, request: HTTPConnection, response: Response) -> bool:
        """End the request's session and clear its cookie.

        Returns
        -------
        bool
            True if a stored session was removed.
        """
        token = self.token_from_request(request)
        removed = False
        if token is not None:
            removed = await self.store.delete(token)
        policy = self.cookie
        response.delete_cookie(
            key=policy.name,
            path=policy.path,
            domain=policy.domain,
            secure=policy.secure,
            httponly=policy.http_only,
            samesite=policy.same_site,
        )
        return removed

    async def clear_expired(self) -> int:
        """Remove sessions older than ``max_age_seconds`` now.

        Returns
        -------
        int
            Number of sessions removed.
        """
        removed = await self.store.clear_expired(self.max_age_seconds)
        if removed:
            self.metrics.increment("expired", removed)
            logger.info("Expired %d session(s)", removed)
        return removed
