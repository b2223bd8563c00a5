"""Explicit owner of the purgeable and persistent response stores.

One :class:`StoreRegistry` is built at startup and handed to every client
that needs a store. Stores are opened lazily on first use, so a process
that only ever touches the purgeable store never creates the persistent
directory.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from swrcache.cache.store import CacheStore
from swrcache.config import get_store_root
from swrcache.models import CacheBehavior, GlobalConfig

logger = logging.getLogger(__name__)


class StoreRegistry:
    """Lazily opens one :class:`CacheStore` per :class:`CacheBehavior`.

    Args:
        purgeable_root: Root directory for the purgeable store.
        persistent_root: Root directory for the persistent store.

    Example::

        with StoreRegistry(cache_dir, data_dir) as registry:
            store = registry.get(CacheBehavior.PERSISTENT)
    """

    def __init__(self, purgeable_root: str | Path, persistent_root: str | Path) -> None:
        self._roots = {
            CacheBehavior.PURGEABLE: Path(purgeable_root),
            CacheBehavior.PERSISTENT: Path(persistent_root),
        }
        self._stores: dict[CacheBehavior, CacheStore] = {}
        self._lock = threading.Lock()

    def root_for(self, behavior: CacheBehavior) -> Path:
        return self._roots[behavior]

    def get(self, behavior: CacheBehavior = CacheBehavior.PURGEABLE) -> CacheStore:
        """Return the store for *behavior*, opening it on first use.

        Raises:
            CacheLockError: If another store outside this registry already
                owns the directory.
        """
        with self._lock:
            store = self._stores.get(behavior)
            if store is None:
                logger.debug("Opening %s store at %s", behavior.value, self._roots[behavior])
                store = CacheStore(self._roots[behavior], behavior=behavior)
                self._stores[behavior] = store
            return store

    def opened(self) -> list[CacheStore]:
        """Stores opened so far, purgeable first."""
        with self._lock:
            return [self._stores[b] for b in CacheBehavior if b in self._stores]

    def close(self) -> None:
        """Close every opened store and forget it."""
        with self._lock:
            for store in self._stores.values():
                store.close()
            self._stores.clear()

    def __enter__(self) -> StoreRegistry:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def create_default_registry(config: Optional[GlobalConfig] = None) -> StoreRegistry:
    """Build a registry rooted in the user's XDG cache and data directories.

    Root overrides in ``config.cache`` take precedence over the defaults.
    """
    return StoreRegistry(
        purgeable_root=get_store_root(CacheBehavior.PURGEABLE, config),
        persistent_root=get_store_root(CacheBehavior.PERSISTENT, config),
    )
