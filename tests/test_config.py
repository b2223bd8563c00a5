"""Tests for swrcache.config — XDG paths, store roots, atomic writes, precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from swrcache.config import (
    _atomic_write,
    atomic_write_bytes,
    get_cache_dir,
    get_config_dir,
    get_data_dir,
    get_store_root,
    load_global_config,
    resolve_config,
    save_global_config,
)
from swrcache.exceptions import ConfigError
from swrcache.models import (
    CacheBehavior,
    CacheConfig,
    CachePolicyKind,
    GlobalConfig,
    OutputConfig,
    RequestConfig,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPathsLinux:
    """XDG paths on Linux (the default XDG platform)."""

    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("swrcache.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "swrcache"
        assert result.is_dir()

    def test_cache_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_cache"
        monkeypatch.setattr("swrcache.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CACHE_HOME", str(custom))

        result = get_cache_dir()
        assert result == custom / "swrcache"
        assert result.is_dir()

    def test_data_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("swrcache.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_data_dir()
        assert result == tmp_path / ".local" / "share" / "swrcache"
        assert result.is_dir()


class TestXDGPathsFallback:
    """Fallback paths on non-XDG platforms (macOS, Windows)."""

    def test_config_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("swrcache.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_config_dir() == tmp_path / ".swrcache"

    def test_cache_and_data_dirs_are_separate(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr("swrcache.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_cache_dir() == tmp_path / ".swrcache" / "cache"
        assert get_data_dir() == tmp_path / ".swrcache" / "data"


class TestStoreRoot:
    def test_purgeable_store_lives_in_cache_dir(self, isolated_config: Path) -> None:
        assert get_store_root(CacheBehavior.PURGEABLE) == isolated_config / "cache" / "swrcache"

    def test_persistent_store_lives_in_data_dir(self, isolated_config: Path) -> None:
        assert get_store_root(CacheBehavior.PERSISTENT) == isolated_config / "data" / "swrcache"

    def test_config_overrides_roots(self, tmp_path: Path) -> None:
        config = GlobalConfig(
            cache=CacheConfig(
                purgeable_root=str(tmp_path / "p"),
                persistent_root=str(tmp_path / "d"),
            )
        )
        assert get_store_root(CacheBehavior.PURGEABLE, config) == tmp_path / "p"
        assert get_store_root(CacheBehavior.PERSISTENT, config) == tmp_path / "d"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_with_content(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        _atomic_write(target, "hello world")
        assert target.read_text(encoding="utf-8") == "hello world"

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "blob.cache"
        target.write_bytes(b"old")
        atomic_write_bytes(target, b"\x00\x01new")
        assert target.read_bytes() == b"\x00\x01new"

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "test.txt"
        _atomic_write(target, "deep write")
        assert target.read_text(encoding="utf-8") == "deep write"

    def test_no_temp_files_left_on_success(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        _atomic_write(target, "content")
        assert list(tmp_path.iterdir()) == [target]

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        with patch("swrcache.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                atomic_write_bytes(target, b"will fail")
        assert list(tmp_path.iterdir()) == []

    def test_failed_write_keeps_previous_content(self, tmp_path: Path) -> None:
        target = tmp_path / "journal.json"
        target.write_text("[]", encoding="utf-8")
        with patch("swrcache.config.os.replace", side_effect=OSError("rename failed")):
            with pytest.raises(OSError):
                _atomic_write(target, '[{"broken": true}]')
        assert target.read_text(encoding="utf-8") == "[]"


# ---------------------------------------------------------------------------
# Global config
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_load_returns_defaults_when_missing(self, isolated_config: Path) -> None:
        cfg = load_global_config()
        assert cfg == GlobalConfig()
        assert cfg.cache.enabled is True
        assert cfg.cache.default_policy == CachePolicyKind.FROM_RESPONSE_HEADERS
        assert cfg.cache.default_behavior == CacheBehavior.PURGEABLE

    def test_save_and_load_roundtrip(self, isolated_config: Path) -> None:
        original = GlobalConfig(
            base_url="https://api.example.com",
            cache=CacheConfig(default_policy=CachePolicyKind.NEVER_EXPIRES),
            request=RequestConfig(max_retries=0),
            output=OutputConfig(format="json"),
        )
        save_global_config(original)
        assert load_global_config() == original

    def test_load_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        path = isolated_config / "config" / "swrcache" / "config.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{invalid json!!!", encoding="utf-8")

        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_load_invalid_schema_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "config" / "swrcache" / "config.json", {"cache": "not-a-dict"})
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_expire_at_cannot_be_default_policy(self, isolated_config: Path) -> None:
        _write_json(
            isolated_config / "config" / "swrcache" / "config.json",
            {"cache": {"default_policy": "expire_at"}},
        )
        with pytest.raises(ConfigError):
            load_global_config()


# ---------------------------------------------------------------------------
# Precedence resolution
# ---------------------------------------------------------------------------


class TestResolveConfig:
    """CLI > env > config file > defaults."""

    def test_defaults(self, isolated_config: Path) -> None:
        cfg = resolve_config()
        assert cfg.base_url is None
        assert cfg.cache.enabled is True

    def test_file_value_used(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(base_url="https://file.example.com"))
        assert resolve_config().base_url == "https://file.example.com"

    def test_env_overrides_file(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        save_global_config(GlobalConfig(base_url="https://file.example.com"))
        monkeypatch.setenv("SWRCACHE_BASE_URL", "https://env.example.com")
        assert resolve_config().base_url == "https://env.example.com"

    def test_cli_overrides_env(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SWRCACHE_BASE_URL", "https://env.example.com")
        cfg = resolve_config(cli_base_url="https://cli.example.com", cli_format="json")
        assert cfg.base_url == "https://cli.example.com"
        assert cfg.output.format == "json"

    @pytest.mark.parametrize(
        "value, expected",
        [("0", False), ("false", False), ("1", True), ("yes", True)],
    )
    def test_cache_enabled_env(
        self,
        isolated_config: Path,
        monkeypatch: pytest.MonkeyPatch,
        value: str,
        expected: bool,
    ) -> None:
        monkeypatch.setenv("SWRCACHE_CACHE_ENABLED", value)
        assert resolve_config().cache.enabled is expected
