"""Unit tests for layered configuration."""

# pylint: disable=redefined-outer-name

from __future__ import annotations

import asyncio
import logging
import time

from pathlib import Path

import pytest

from pydantic import ValidationError

from oauthkit.auth.users_file import parse_lines
from oauthkit.config import (
    OAuthKitSettings,
    SessionSettings,
    clear_settings,
    get_settings,
    reload_settings,
)
from oauthkit.hashing import hash_password
from oauthkit.log import configure_from_settings, get_logger
from oauthkit.state import (
    AuthorizationCode,
    MemoryCodeStore,
    OAuthAccessToken,
    OAuthRefreshToken,
    clear_state_caches,
    get_code_store,
    get_code_sweeper,
    get_session_store,
    get_state_backend,
    get_token_store,
    get_token_sweeper,
    start_sweepers,
    stop_sweepers,
)
from oauthkit.state.types import StateBackend
from tests.constants import (
    CLIENT_ID,
    CLIENT_SECRET,
    PASSWORD,
    REDIRECT_URI,
    SWEEP_INTERVAL,
    TOKEN_URL,
)


class TestDefaults:
    """Built-in defaults."""

    def test_section_defaults(self) -> None:
        """Every section starts from its documented default."""
        settings = OAuthKitSettings()
        assert settings.session.cookie_name == "sid"
        assert settings.session.secure
        assert settings.session.http_only
        assert settings.session.same_site == "lax"
        assert settings.store.backend == "memory"
        assert settings.store.code_ttl_seconds == 60
        assert settings.hashing.bcrypt_rounds == 10
        assert settings.oauth2.request_timeout == 30.0
        assert settings.oauth2.scope_list == []
        assert settings.log.level == "WARNING"


class TestEnvironment:
    """Environment variable overrides."""

    def test_section_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Section prefixed variables override defaults."""
        monkeypatch.setenv("OAUTHKIT_SESSION__MAX_AGE_SECONDS", "3600")
        monkeypatch.setenv("OAUTHKIT_SESSION__SAME_SITE", "Strict")
        monkeypatch.setenv("OAUTHKIT_OAUTH2__SCOPES", "openid email")
        settings = OAuthKitSettings()
        assert settings.session.max_age_seconds == 3600
        assert settings.session.same_site == "strict"
        assert settings.oauth2.scope_list == ["openid", "email"]

    def test_invalid_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Out-of-range values are rejected."""
        monkeypatch.setenv("OAUTHKIT_HASHING__BCRYPT_ROUNDS", "3")
        with pytest.raises(ValidationError):
            OAuthKitSettings()

    def test_unknown_same_site(self) -> None:
        """SameSite must be one of the cookie modes."""
        with pytest.raises(ValidationError):
            SessionSettings(same_site="sometimes")


class TestTomlFiles:
    """TOML file layering."""

    def test_project_file(self) -> None:
        """./oauthkit.toml is read from the working directory."""
        Path("oauthkit.toml").write_text(
            '[oauth2]\ntoken_url = "https://auth.example.com/token"\n\n'
            "[store]\ncode_ttl_seconds = 30\n",
            encoding="utf-8",
        )
        settings = OAuthKitSettings()
        assert settings.oauth2.token_url == TOKEN_URL
        assert settings.store.code_ttl_seconds == 30

    def test_pyproject_section(self) -> None:
        """[tool.oauthkit] in pyproject.toml is read."""
        Path("pyproject.toml").write_text(
            '[project]\nname = "app"\n\n[tool.oauthkit.session]\ncookie_name = "app_sid"\n',
            encoding="utf-8",
        )
        assert OAuthKitSettings().session.cookie_name == "app_sid"

    def test_explicit_file_wins(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """OAUTHKIT_CONFIG_FILE overrides the project file."""
        Path("oauthkit.toml").write_text("[store]\ncode_ttl_seconds = 30\n", encoding="utf-8")
        explicit = tmp_path / "explicit.toml"
        explicit.write_text("[store]\ncode_ttl_seconds = 45\n", encoding="utf-8")
        monkeypatch.setenv("OAUTHKIT_CONFIG_FILE", str(explicit))
        assert OAuthKitSettings().store.code_ttl_seconds == 45

    def test_arguments_win(self) -> None:
        """Explicit constructor arguments override files."""
        Path("oauthkit.toml").write_text("[store]\ncode_ttl_seconds = 30\n", encoding="utf-8")
        settings = OAuthKitSettings(store={"code_ttl_seconds": 90})
        assert settings.store.code_ttl_seconds == 90

    def test_invalid_toml_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        """A broken file is ignored with a warning."""
        Path("oauthkit.toml").write_text("[store\n", encoding="utf-8")
        with caplog.at_level(logging.WARNING, logger="oauthkit.config"):
            settings = OAuthKitSettings()
        assert settings.store.code_ttl_seconds == 60
        assert "Ignoring config file" in caplog.text


class TestShow:
    """Tests for OAuthKitSettings.show()."""

    def test_secret_redacted(self) -> None:
        """The client secret is never printed."""
        settings = OAuthKitSettings(oauth2={"client_secret": CLIENT_SECRET})
        text = settings.show()
        assert CLIENT_SECRET not in text
        assert "client_secret" in text
        assert "********" in text
        assert "cookie_name" in text


class TestCaching:
    """Settings and store factory caching."""

    def test_get_settings_cached(self) -> None:
        """get_settings() returns one instance until reloaded."""
        first = get_settings()
        assert get_settings() is first
        assert reload_settings() is not first

    def test_store_factories(self) -> None:
        """Factories return one shared store per kind."""
        assert get_state_backend() is StateBackend.MEMORY
        store = get_code_store()
        assert isinstance(store, MemoryCodeStore)
        assert get_code_store() is store
        assert get_token_store() is get_token_store()
        assert get_session_store() is get_session_store()


class TestSettingsDrivenDefaults:
    """Hashing cost, lifetimes and sweep intervals come from settings."""

    def test_bcrypt_rounds(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """hash_password() and password directives use the configured cost."""
        monkeypatch.setenv("OAUTHKIT_HASHING__BCRYPT_ROUNDS", "4")
        clear_settings()
        assert hash_password(PASSWORD).startswith("$2a$04$")
        record = parse_lines([f"tester:$password${PASSWORD}"])[0]
        assert record.hash_code is not None
        assert record.hash_code.startswith("$2a$04$")

    def test_explicit_rounds_win(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """An explicit cost overrides the configured one."""
        monkeypatch.setenv("OAUTHKIT_HASHING__BCRYPT_ROUNDS", "4")
        clear_settings()
        assert hash_password(PASSWORD, rounds=5).startswith("$2a$05$")

    def test_lifetimes(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Codes and tokens expire after the configured lifetimes."""
        monkeypatch.setenv("OAUTHKIT_STORE__CODE_TTL_SECONDS", "5")
        monkeypatch.setenv("OAUTHKIT_STORE__ACCESS_TOKEN_TTL_SECONDS", "120")
        monkeypatch.setenv("OAUTHKIT_STORE__REFRESH_TOKEN_TTL_SECONDS", "600")
        clear_settings()

        before = time.time()
        code = AuthorizationCode.create(CLIENT_ID, "alice", REDIRECT_URI, "challenge")
        access = OAuthAccessToken.create(CLIENT_ID, "alice").record
        refresh = OAuthRefreshToken.create(CLIENT_ID, "alice").record
        after = time.time()

        assert before + 5 <= code.expires_at <= after + 5
        assert before + 120 <= access.expires_at <= after + 120
        assert before + 600 <= refresh.expires_at <= after + 600

    def test_explicit_lifetime_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """An explicit lifetime overrides the configured one."""
        monkeypatch.setenv("OAUTHKIT_STORE__CODE_TTL_SECONDS", "5")
        clear_settings()
        code = AuthorizationCode.create(
            CLIENT_ID, "alice", REDIRECT_URI, "challenge", lifetime_seconds=1000
        )
        assert code.expires_at > time.time() + 900

    def test_sweeper_intervals(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Store sweepers are cached and use the configured intervals."""
        monkeypatch.setenv("OAUTHKIT_STORE__CODE_SWEEP_INTERVAL_SECONDS", "7")
        monkeypatch.setenv("OAUTHKIT_STORE__TOKEN_SWEEP_INTERVAL_SECONDS", "0")
        clear_settings()
        code_sweeper = get_code_sweeper()
        assert code_sweeper is get_code_sweeper()
        assert code_sweeper.interval == 7.0
        assert code_sweeper.enabled
        assert not get_token_sweeper().enabled
        clear_state_caches()
        assert get_code_sweeper() is not code_sweeper

    def test_sweepers_clean_factory_stores(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Started sweepers remove expired entries from the shared stores."""
        monkeypatch.setenv("OAUTHKIT_STORE__CODE_SWEEP_INTERVAL_SECONDS", str(SWEEP_INTERVAL))
        monkeypatch.setenv("OAUTHKIT_STORE__TOKEN_SWEEP_INTERVAL_SECONDS", str(SWEEP_INTERVAL))
        clear_settings()

        async def run() -> tuple[int, int, bool]:
            code_store = get_code_store()
            token_store = get_token_store()
            assert isinstance(code_store, MemoryCodeStore)
            await code_store.store(
                AuthorizationCode.create(
                    CLIENT_ID, "alice", REDIRECT_URI, "challenge", lifetime_seconds=-1
                )
            )
            stale = OAuthAccessToken.create(CLIENT_ID, "alice", lifetime_seconds=-1).record
            await token_store.store_access_token(stale)  # type: ignore[arg-type]
            # pylint: disable-next=protected-access
            tokens = token_store._access  # type: ignore[attr-defined]

            start_sweepers()
            running = get_code_sweeper().running and get_token_sweeper().running
            try:
                for _ in range(200):
                    if len(code_store) == 0 and not tokens:
                        break
                    await asyncio.sleep(SWEEP_INTERVAL)
            finally:
                await stop_sweepers()
            return len(code_store), len(tokens), running

        codes_left, tokens_left, was_running = asyncio.run(run())
        assert codes_left == 0
        assert tokens_left == 0
        assert was_running
        assert not get_code_sweeper().running
        assert not get_token_sweeper().running


class TestLogConfiguration:
    """Applying LogSettings to the oauthkit logger."""

    def test_configure_from_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Level and format come from settings."""
        monkeypatch.setenv("OAUTHKIT_LOG__LEVEL", "DEBUG")
        monkeypatch.setenv("OAUTHKIT_LOG__FORMAT", "%(levelname)s %(message)s")
        logger = configure_from_settings(OAuthKitSettings().log)
        try:
            assert logger is get_logger()
            assert logger.level == logging.DEBUG
            assert all(
                handler.formatter is not None
                and handler.formatter._fmt == "%(levelname)s %(message)s"  # pylint: disable=protected-access
                for handler in logger.handlers
            )
        finally:
            logger.setLevel(logging.WARNING)
