"""Pytest configuration and fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from oauthkit.config import clear_settings
from oauthkit.state import clear_state_caches


if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture(autouse=True)
def _isolated_config(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
) -> Generator[None, None, None]:
    """Run each test away from any real config file and with fresh caches."""
    workdir = tmp_path_factory.mktemp("cwd")
    monkeypatch.chdir(workdir)
    monkeypatch.setenv("HOME", str(workdir))
    monkeypatch.delenv("OAUTHKIT_CONFIG_FILE", raising=False)
    clear_settings()
    clear_state_caches()
    yield
    clear_settings()
    clear_state_caches()
