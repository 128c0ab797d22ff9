"""Root pytest configuration for all tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from termdeck.config import reset_config

# Configure pytest-asyncio to use auto mode
# This is redundant with pyproject.toml but ensures it's set
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(scope="session")
def anyio_backend():
    """Set anyio backend to asyncio."""
    return "asyncio"


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch):
    """Keep the developer's own config files and env out of every test."""
    config_home: Path = tmp_path_factory.mktemp("xdg-config")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.delenv("TERMDECK_LOG", raising=False)
    monkeypatch.delenv("TERMDECK_API_BASE", raising=False)
    reset_config()
    yield
    reset_config()
