"""On-disk response cache for swrcache.

:class:`CacheStore` keeps one blob file per cached response plus a JSON
journal of :class:`CacheEntry` records. :class:`StoreRegistry` owns the
purgeable and persistent stores for a process, and
:func:`resolve_expiration` turns a request's
:class:`~swrcache.models.CachePolicy` into a concrete expiration.

The store is consumed by
:class:`~swrcache.client.coordinator.RevalidationCoordinator` and, through
it, by both caching clients.
"""

from swrcache.cache.entry import CacheEntry
from swrcache.cache.expiration import ExpirationDecision, parse_max_cache_age, resolve_expiration
from swrcache.cache.registry import StoreRegistry, create_default_registry
from swrcache.cache.store import CacheStore

__all__ = [
    "CacheEntry",
    "CacheStore",
    "ExpirationDecision",
    "StoreRegistry",
    "create_default_registry",
    "parse_max_cache_age",
    "resolve_expiration",
]
