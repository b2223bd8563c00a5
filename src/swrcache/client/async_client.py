"""Asynchronous caching HTTP client -- mirrors :class:`~swrcache.client.sync_client.CachingClient`.

This module provides :class:`AsyncCachingClient`, the non-blocking
counterpart to :class:`~swrcache.client.sync_client.CachingClient`. It wraps
:class:`httpx.AsyncClient` and offers the same stale-while-revalidate
delivery and retry behaviour, using ``await`` and :func:`asyncio.sleep`.

.. note::
   The cache lookup runs inline on the event loop before the request is
   sent. Completion (write-back with its journal rewrite and fsyncs) runs in
   a worker thread via :func:`asyncio.to_thread`, so handlers receiving the
   network delivery are called from that thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from swrcache.cache.registry import StoreRegistry
from swrcache.client.coordinator import DeliveryHandler, RevalidationCoordinator
from swrcache.exceptions import ConnectionError_
from swrcache.models import CacheBehavior, CachePolicy, Delivery, GlobalConfig, TransportResult

logger = logging.getLogger(__name__)

_RETRYABLE_ERRORS = (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError)


class AsyncCachingClient:
    """Asynchronous HTTP client with a stale-while-revalidate response cache.

    Must be used as an async context manager.

    Args:
        registry: Stores to cache into. ``None`` disables caching.
        config: Request, cache, and base-URL settings.
        transport: Optional httpx async transport.

    Example::

        async with AsyncCachingClient(registry=registry) as client:
            delivery = await client.get("https://api.example.com/users")
    """

    def __init__(
        self,
        registry: Optional[StoreRegistry] = None,
        config: Optional[GlobalConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._registry = registry
        self._config = config or GlobalConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> AsyncCachingClient:
        settings = self._config.request
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url or "",
            timeout=settings.timeout,
            verify=settings.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        url: str,
        policy: Optional[CachePolicy] = None,
        behavior: Optional[CacheBehavior] = None,
        on_delivery: Optional[DeliveryHandler] = None,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[Any] = None,
        body: Optional[str | bytes] = None,
    ) -> Delivery:
        """Send a request, delivering a cached copy first when one exists.

        Accepts the same arguments as
        :meth:`~swrcache.client.sync_client.CachingClient.request`.

        Returns:
            The last delivery made.
        """
        assert self._client is not None, "Client not initialised -- use as async context manager"

        request = self._client.build_request(
            method,
            url,
            headers=headers,
            params=params,
            json=json_body,
            content=body,
        )
        coordinator = self._coordinator_for(request, policy, behavior)
        if on_delivery is not None:
            coordinator.add_completion(on_delivery)

        coordinator.dispatch()
        result = await self._send_with_retry(request)
        await asyncio.to_thread(coordinator.complete, result)

        delivery = coordinator.last_delivery
        assert delivery is not None
        return delivery

    async def get(self, url: str, **kwargs: Any) -> Delivery:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> Delivery:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> Delivery:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> Delivery:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> Delivery:
        return await self.request("DELETE", url, **kwargs)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _coordinator_for(
        self,
        request: httpx.Request,
        policy: Optional[CachePolicy],
        behavior: Optional[CacheBehavior],
    ) -> RevalidationCoordinator:
        cache_cfg = self._config.cache
        key = str(request.url)
        if self._registry is None or not cache_cfg.enabled:
            return RevalidationCoordinator(key, request.method, CachePolicy.do_not_cache())

        effective = policy or CachePolicy(kind=cache_cfg.default_policy)
        store = None
        if effective.uses_cache and request.method == "GET":
            store = self._registry.get(behavior or cache_cfg.default_behavior)
        return RevalidationCoordinator(key, request.method, effective, store)

    async def _send_with_retry(self, request: httpx.Request) -> TransportResult:
        """Send *request* with exponential-backoff retry.

        Same policy as the sync client, using :func:`asyncio.sleep`
        between attempts.
        """
        assert self._client is not None

        max_retries = self._config.request.max_retries
        for attempt in range(max_retries + 1):
            try:
                response = await self._client.send(request)
            except _RETRYABLE_ERRORS as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    logger.debug(
                        "Connection error: %s, retrying in %ss (attempt %d/%d)",
                        exc, delay, attempt + 1, max_retries,
                    )
                    await asyncio.sleep(delay)
                    continue
                error = ConnectionError_(
                    f"Connection failed after {max_retries + 1} attempts: {exc}"
                )
                error.__cause__ = exc
                return TransportResult(error=error)

            if response.status_code >= 500 and attempt < max_retries:
                delay = 2 ** attempt
                logger.debug(
                    "Server error %d, retrying in %ss (attempt %d/%d)",
                    response.status_code, delay, attempt + 1, max_retries,
                )
                await asyncio.sleep(delay)
                continue

            return TransportResult(
                status_code=response.status_code,
                headers=response.headers,
                body=response.content,
            )

        raise AssertionError("unreachable")  # pragma: no cover
