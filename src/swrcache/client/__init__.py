"""Caching HTTP clients for swrcache.

Provides synchronous and asynchronous clients that wrap :mod:`httpx` with
stale-while-revalidate delivery and retry with exponential backoff.

Classes:
    :class:`CachingClient` -- blocking client backed by :class:`httpx.Client`.
    :class:`AsyncCachingClient` -- non-blocking client backed by :class:`httpx.AsyncClient`.
    :class:`RevalidationCoordinator` -- the per-request delivery state machine
    both clients drive.

Example::

    from swrcache.client import CachingClient

    with CachingClient(registry=registry) as client:
        delivery = client.get("https://api.example.com/users", on_delivery=print)
"""

from swrcache.client.async_client import AsyncCachingClient
from swrcache.client.coordinator import CoordinatorState, RevalidationCoordinator
from swrcache.client.sync_client import CachingClient

__all__ = ["AsyncCachingClient", "CachingClient", "CoordinatorState", "RevalidationCoordinator"]
