"""Configuration system for oauthkit using pydantic-settings.

Supports layered configuration:
1. Built-in defaults (lowest priority)
2. pyproject.toml [tool.oauthkit] section (project-level)
3. ./oauthkit.toml (project-level, explicit)
4. ~/.config/oauthkit/config.toml (user-level, overrides project)
5. OAUTHKIT_CONFIG_FILE (explicit file)
6. Environment variables (highest priority)

Environment variables use the OAUTHKIT_ prefix with nested delimiter __.
Example: OAUTHKIT_SESSION__COOKIE_NAME, OAUTHKIT_OAUTH2__TOKEN_URL
"""

from __future__ import annotations

import logging
import os
import sys
import tomllib

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .hashing import DEFAULT_BCRYPT_ROUNDS


logger = logging.getLogger("oauthkit.config")


def _find_config_files() -> list[Path]:
    """Find all configuration files in order of precedence (lowest first)."""
    files = []

    pyproject = Path("pyproject.toml")
    if pyproject.exists():
        files.append(pyproject)

    oauthkit_toml = Path("oauthkit.toml")
    if oauthkit_toml.exists():
        files.append(oauthkit_toml)

    if sys.platform == "win32":
        user_config = Path(os.environ.get("APPDATA", "~")) / "oauthkit" / "config.toml"
    else:
        user_config = Path("~/.config/oauthkit/config.toml")
    user_config = user_config.expanduser()
    if user_config.exists():
        files.append(user_config)

    env_config = os.environ.get("OAUTHKIT_CONFIG_FILE")
    if env_config:
        env_path = Path(env_config)
        if env_path.exists():
            files.append(env_path)

    return files


def _load_toml_config() -> dict[str, Any]:
    """Load and merge all TOML configuration files.

    Unreadable or invalid files are skipped with a warning.
    """
    merged: dict[str, Any] = {}

    for config_file in _find_config_files():
        try:
            data = tomllib.loads(config_file.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            logger.warning("Ignoring config file %s: %s", config_file, exc)
            continue

        if config_file.name == "pyproject.toml":
            data = data.get("tool", {}).get("oauthkit", {})

        merged = _deep_merge(merged, data)

    return merged


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


# Field names that contain sensitive data and must be redacted in output.
_SENSITIVE_FIELDS: set[str] = {"client_secret"}

_REDACTED = "********"


class OAuth2Settings(BaseSettings):
    """OAuth 2.1 client configuration.

    Environment prefix: OAUTHKIT_OAUTH2__
    Example: OAUTHKIT_OAUTH2__CLIENT_ID=your-client-id

    TOML section: [tool.oauthkit.oauth2]
    """

    model_config = SettingsConfigDict(
        env_prefix="OAUTHKIT_OAUTH2__",
        extra="ignore",
    )

    client_id: str = Field(
        default="",
        description="Client identifier registered with the authorization server",
    )
    client_secret: str = Field(
        default="",
        description="Client secret (empty for public clients relying on PKCE alone)",
    )
    authorize_url: str = Field(
        default="",
        description="Authorization endpoint URL",
    )
    token_url: str = Field(
        default="",
        description="Token endpoint URL",
    )
    redirect_uri: str = Field(
        default="",
        description="Default redirect URI sent with authorization requests",
    )
    scopes: str = Field(
        default="",
        description="Space-separated scopes to request",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds to wait for the token endpoint",
    )

    @property
    def scope_list(self) -> list[str]:
        """Scopes as a list, preserving order."""
        return self.scopes.split()


class SessionSettings(BaseSettings):
    """Session cookie and expiry settings.

    Environment prefix: OAUTHKIT_SESSION__
    Example: OAUTHKIT_SESSION__MAX_AGE_SECONDS=3600
    """

    model_config = SettingsConfigDict(
        env_prefix="OAUTHKIT_SESSION__",
        extra="ignore",
    )

    cookie_name: str = "sid"
    cookie_domain: str | None = None
    cookie_path: str = "/"
    secure: bool = True
    http_only: bool = True
    same_site: Literal["lax", "strict", "none"] = "lax"
    max_age_seconds: int = Field(default=86400, gt=0)
    sweep_interval_seconds: float = Field(
        default=60.0,
        description="Seconds between expiry sweeps (0 or less disables the sweep)",
    )

    @field_validator("same_site", mode="before")
    @classmethod
    def _lower_same_site(cls, v: Any) -> Any:
        """Accept SameSite values in any case."""
        return v.lower() if isinstance(v, str) else v


class StoreSettings(BaseSettings):
    """Authorization code and token store settings.

    Environment prefix: OAUTHKIT_STORE__
    Example: OAUTHKIT_STORE__CODE_TTL_SECONDS=60
    """

    model_config = SettingsConfigDict(
        env_prefix="OAUTHKIT_STORE__",
        extra="ignore",
    )

    backend: Literal["memory"] = "memory"
    code_ttl_seconds: int = Field(default=60, gt=0)
    access_token_ttl_seconds: int = Field(default=3600, gt=0)
    refresh_token_ttl_seconds: int = Field(default=30 * 86400, gt=0)
    code_sweep_interval_seconds: float = Field(
        default=30.0,
        description="Seconds between authorization code sweeps (0 or less disables the sweep)",
    )
    token_sweep_interval_seconds: float = Field(
        default=300.0,
        description="Seconds between token sweeps (0 or less disables the sweep)",
    )
    sweep_batch_size: int = Field(default=500, ge=1)


class HashingSettings(BaseSettings):
    """Credential hashing settings.

    Environment prefix: OAUTHKIT_HASHING__
    """

    model_config = SettingsConfigDict(
        env_prefix="OAUTHKIT_HASHING__",
        extra="ignore",
    )

    bcrypt_rounds: int = Field(default=DEFAULT_BCRYPT_ROUNDS, ge=4, le=31)


class LogSettings(BaseSettings):
    """Logging settings.

    Environment prefix: OAUTHKIT_LOG__
    Example: OAUTHKIT_LOG__LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="OAUTHKIT_LOG__",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: str = "%(name)s - %(levelname)s - %(message)s"


class OAuthKitSettings(BaseSettings):
    """Main settings aggregating all configuration sections.

    Environment prefix: OAUTHKIT__

    Configuration sources (in order of precedence):
    1. Built-in defaults
    2. pyproject.toml [tool.oauthkit] section
    3. ./oauthkit.toml (project-level)
    4. ~/.config/oauthkit/config.toml (user-level, overrides project)
    5. OAUTHKIT_CONFIG_FILE
    6. Environment variables (highest priority)
    """

    model_config = SettingsConfigDict(
        env_prefix="OAUTHKIT__",
        env_nested_delimiter="__",
        extra="ignore",
    )

    oauth2: OAuth2Settings = Field(default_factory=OAuth2Settings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    hashing: HashingSettings = Field(default_factory=HashingSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    def __init__(self, **data: Any) -> None:
        # Explicit arguments take precedence over TOML files
        merged = _deep_merge(_load_toml_config(), data)
        super().__init__(**merged)

    def show(self) -> str:
        """Format settings as a readable table."""
        lines = ["oauthkit Configuration", "=" * 60, ""]

        show_sections = [
            ("OAuth2 Client", "oauth2"),
            ("Sessions", "session"),
            ("Stores", "store"),
            ("Hashing", "hashing"),
            ("Logging", "log"),
        ]

        all_data = self.model_dump(
            exclude={attr: _SENSITIVE_FIELDS for _, attr in show_sections},
        )

        for display_name, attr_name in show_sections:
            section_data = all_data.get(attr_name, {})
            lines.append(f"\n{display_name}")
            lines.append("-" * 40)
            for field_name, field_value in section_data.items():
                value_str = str(field_value)
                if len(value_str) > 50:
                    value_str = value_str[:47] + "..."
                lines.append(f"  {field_name:26} = {value_str}")
            section_cls = type(getattr(self, attr_name))
            lines.extend(
                f"  {rn:26} = {_REDACTED}"
                for rn in sorted(_SENSITIVE_FIELDS & section_cls.model_fields.keys())
            )

        return "\n".join(lines)


@lru_cache(maxsize=1)
def get_settings() -> OAuthKitSettings:
    """Get the global settings instance (cached).

    Call clear_settings() to reload configuration.
    """
    return OAuthKitSettings()


def clear_settings() -> None:
    """Clear the cached settings to force reload."""
    get_settings.cache_clear()


def reload_settings() -> OAuthKitSettings:
    """Reload settings from all sources."""
    clear_settings()
    return get_settings()
