"""Shared test fixtures for swrcache.

Provides isolated config/cache/data directories, fresh stores, output
state management, and a CLI runner. These fixtures are discovered by
pytest automatically.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest

from swrcache.cache.registry import StoreRegistry
from swrcache.cache.store import CacheStore
from swrcache.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> Iterator[None]:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams and the
    test finishes, the cached references go stale.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _reset_logging_between_tests() -> Iterator[None]:
    """Drop the handler and level the CLI callback installs on ``swrcache``."""
    yield
    logger = logging.getLogger("swrcache")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration and stores to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path, forces the XDG code path, and clears all
    SWRCACHE_* environment variables.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setattr("swrcache.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in ["SWRCACHE_BASE_URL", "SWRCACHE_CACHE_ENABLED"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    return tmp_path / "store"


@pytest.fixture
def store(store_root: Path) -> Iterator[CacheStore]:
    """A fresh purgeable store, closed after the test."""
    with CacheStore(store_root) as s:
        yield s


@pytest.fixture
def registry(tmp_path: Path) -> Iterator[StoreRegistry]:
    with StoreRegistry(tmp_path / "purgeable", tmp_path / "persistent") as r:
        yield r


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> Iterator[OutputManager]:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
