"""Internal factory functions for state stores.

Each getter returns one cached instance per process, selected by
``StoreSettings.backend``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

from .memory import MemoryClientStore, MemoryCodeStore, MemorySessionStore, MemoryTokenStore
from .sweeper import ExpirySweeper
from .types import StateBackend


if TYPE_CHECKING:
    from ..config import StoreSettings
    from .base import AuthorizationCodeStore, ClientStore, SessionStore, TokenStore


def _get_store_settings() -> StoreSettings:
    """Get store settings from configuration.

    Imports lazily so the state package can be used without touching
    configuration files at import time.
    """
    from ..config import get_settings

    return get_settings().store


def get_state_backend() -> StateBackend:
    """Get the configured state backend.

    Returns
    -------
    StateBackend
        The configured backend.

    Raises
    ------
    ValueError
        If the configured backend is unknown.
    """
    return StateBackend(_get_store_settings().backend)


@lru_cache(maxsize=1)
def get_code_store() -> AuthorizationCodeStore:
    """Get the configured authorization code store instance."""
    get_state_backend()
    return MemoryCodeStore(batch_size=_get_store_settings().sweep_batch_size)


@lru_cache(maxsize=1)
def get_token_store() -> TokenStore:
    """Get the configured token store instance."""
    get_state_backend()
    return MemoryTokenStore(batch_size=_get_store_settings().sweep_batch_size)


@lru_cache(maxsize=1)
def get_session_store() -> SessionStore:
    """Get the configured session store instance."""
    get_state_backend()
    return MemorySessionStore(batch_size=_get_store_settings().sweep_batch_size)


@lru_cache(maxsize=1)
def get_client_store() -> ClientStore:
    """Get the configured client registry instance."""
    get_state_backend()
    return MemoryClientStore()


@lru_cache(maxsize=1)
def get_code_sweeper() -> ExpirySweeper:
    """Get the expiry sweeper for the configured code store.

    Runs every ``StoreSettings.code_sweep_interval_seconds``; call
    ``start()`` on the returned sweeper from inside the event loop.
    """
    settings = _get_store_settings()
    return ExpirySweeper(
        get_code_store().cleanup,
        settings.code_sweep_interval_seconds,
        name="code-sweep",
    )


@lru_cache(maxsize=1)
def get_token_sweeper() -> ExpirySweeper:
    """Get the expiry sweeper for the configured token store.

    Runs every ``StoreSettings.token_sweep_interval_seconds``.
    """
    settings = _get_store_settings()
    return ExpirySweeper(
        get_token_store().cleanup,
        settings.token_sweep_interval_seconds,
        name="token-sweep",
    )


def start_sweepers() -> None:
    """Start the code and token store sweepers on the running loop."""
    get_code_sweeper().start()
    get_token_sweeper().start()


async def stop_sweepers() -> None:
    """Stop the code and token store sweepers."""
    await get_code_sweeper().stop()
    await get_token_sweeper().stop()


def clear_state_caches() -> None:
    """Clear all cached store instances.

    Call this to force re-creation of stores (e.g., after config change).
    Stop running sweepers with ``stop_sweepers()`` first.
    """
    get_code_store.cache_clear()
    get_token_store.cache_clear()
    get_session_store.cache_clear()
    get_client_store.cache_clear()
    get_code_sweeper.cache_clear()
    get_token_sweeper.cache_clear()
