"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for swrcache:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.swrcache/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Store roots** -- the purgeable response store lives under the cache
  directory, the persistent one under the data directory. See
  :func:`get_store_root`.
* **Global config** -- A single :class:`~swrcache.models.GlobalConfig`
  JSON file storing defaults (cache policy, request settings, output).
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, and the config file into the effective config.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write_bytes`) so a crash never leaves a half-written file.
The cache store uses the same helper for its blobs and journal.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from swrcache.exceptions import ConfigError
from swrcache.models import CacheBehavior, GlobalConfig

_APP_NAME = "swrcache"
_CONFIG_FILENAME = "config.json"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/swrcache/`` (default ``~/.config/swrcache/``).
    On macOS/Windows: ``~/.swrcache/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CONFIG_HOME", (".config",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Root of the purgeable response store. Anything here can be deleted at
    any time by the user or the OS.

    On Linux/BSD: ``$XDG_CACHE_HOME/swrcache/`` (default ``~/.cache/swrcache/``).
    On macOS/Windows: ``~/.swrcache/cache/``.

    Returns:
        Absolute path to the cache directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CACHE_HOME", (".cache",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (persistent store, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/swrcache/`` (default ``~/.local/share/swrcache/``).
    On macOS/Windows: ``~/.swrcache/data/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_store_root(behavior: CacheBehavior, config: Optional[GlobalConfig] = None) -> Path:
    """Return the storage root for the store with the given *behavior*.

    An explicit ``cache.purgeable_root`` / ``cache.persistent_root`` in
    *config* wins over the XDG default.

    Args:
        behavior: Which store lifecycle to locate.
        config: Optional configuration carrying root overrides.

    Returns:
        The root directory. The store creates its own subdirectory inside it.
    """
    cache_cfg = config.cache if config is not None else None
    if behavior == CacheBehavior.PERSISTENT:
        override = cache_cfg.persistent_root if cache_cfg else None
        return Path(override).expanduser() if override else get_data_dir()
    override = cache_cfg.purgeable_root if cache_cfg else None
    return Path(override).expanduser() if override else get_cache_dir()


# --- Atomic file writes ---


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write *data* to *path* atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    On success the temp file is renamed over *path*; on any failure the temp
    file is cleaned up and the original exception propagates.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


def _atomic_write(path: Path, data: str) -> None:
    """Text variant of :func:`atomic_write_bytes` (UTF-8)."""
    atomic_write_bytes(path, data.encode("utf-8"))


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~swrcache.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk.

    Args:
        config: The configuration to save.
    """
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def _env_flag(name: str) -> Optional[bool]:
    """Read a boolean environment variable, or ``None`` when unset/empty."""
    value = os.environ.get(name, "")
    if not value:
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")


def resolve_config(
    cli_base_url: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_base_url``, ``cli_format``)
        2. Environment variables (``SWRCACHE_BASE_URL``,
           ``SWRCACHE_CACHE_ENABLED``)
        3. User config (``~/.config/swrcache/config.json``)
        4. Defaults

    Returns:
        The effective :class:`~swrcache.models.GlobalConfig`.
    """
    # 4 + 3. Load base global config (fills in defaults automatically)
    global_cfg = load_global_config()

    # 2. Environment variables
    env_base_url = os.environ.get("SWRCACHE_BASE_URL")
    if env_base_url:
        global_cfg.base_url = env_base_url
    env_enabled = _env_flag("SWRCACHE_CACHE_ENABLED")
    if env_enabled is not None:
        global_cfg.cache.enabled = env_enabled

    # 1. CLI flags (highest precedence)
    if cli_base_url is not None:
        global_cfg.base_url = cli_base_url
    if cli_format is not None:
        global_cfg.output.format = cli_format

    return global_cfg
