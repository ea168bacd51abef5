"""Logging utilities for oauthkit.

Modules log through children of the ``oauthkit`` logger
(``oauthkit.auth``, ``oauthkit.state``). Raw secrets are never passed
to a logger; use ``redact_sensitive_data`` before logging payloads.
"""

from __future__ import annotations

import logging
import sys

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from .config import LogSettings


class _LoggerHolder:
    """Holder for the global logger instance."""

    instance: logging.Logger | None = None


def get_logger() -> logging.Logger:
    """Get the oauthkit logger instance.

    Returns
    -------
    logging.Logger
        The oauthkit logger configured with a stream handler.
    """
    if _LoggerHolder.instance is None:
        logger = logging.getLogger("oauthkit")
        logger.setLevel(logging.WARNING)

        # Only add handler if none exists
        if not logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setLevel(logging.DEBUG)
            formatter = logging.Formatter("%(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)

        _LoggerHolder.instance = logger

    return _LoggerHolder.instance


def set_level(level: int | str) -> None:
    """Set the logging level.

    Parameters
    ----------
    level : int or str
        The logging level (e.g., logging.DEBUG, "DEBUG").
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    get_logger().setLevel(level)


def enable_debug() -> None:
    """Enable debug logging for flows, stores and sweeps."""
    set_level(logging.DEBUG)


def configure_from_settings(settings: LogSettings) -> logging.Logger:
    """Apply level and format from a ``LogSettings`` section.

    Parameters
    ----------
    settings : LogSettings
        The logging configuration section.

    Returns
    -------
    logging.Logger
        The configured oauthkit logger.
    """
    logger = get_logger()
    logger.setLevel(settings.level)
    formatter = logging.Formatter(settings.format)
    for handler in logger.handlers:
        handler.setFormatter(formatter)
    return logger


REDACTED = "[REDACTED]"

# Substrings of field names that carry credentials
_SENSITIVE_MARKERS = (
    "secret",
    "password",
    "token",
    "verifier",
    "credential",
    "authorization",
    "cookie",
)

# Field names redacted only on an exact match
_SENSITIVE_NAMES = frozenset({"code", "sid"})


def _is_sensitive(key: object) -> bool:
    name = str(key).lower()
    return name in _SENSITIVE_NAMES or any(marker in name for marker in _SENSITIVE_MARKERS)


def redact_sensitive_data(data: Any, max_depth: int = 5) -> Any:
    """Copy ``data`` into a form that is safe to log.

    Values under credential-bearing keys (tokens, secrets, verifiers,
    the authorization ``code`` and the like) are replaced with
    ``"[REDACTED]"``. Mappings, lists and tuples are walked; containers
    nested deeper than ``max_depth`` collapse to ``"[...]"``. Other
    values are returned unchanged.

    Parameters
    ----------
    data : Any
        A decoded request or response payload.
    max_depth : int, optional
        Container levels to walk (default: 5).

    Returns
    -------
    Any
        The redacted copy.
    """
    if isinstance(data, Mapping):
        if max_depth <= 0:
            return "[...]"
        return {
            key: REDACTED if _is_sensitive(key) else redact_sensitive_data(value, max_depth - 1)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        if max_depth <= 0:
            return "[...]"
        return [redact_sensitive_data(item, max_depth - 1) for item in data]
    return data
