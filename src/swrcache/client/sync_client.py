"""Synchronous caching HTTP client.

This module provides :class:`CachingClient`, a blocking client that wraps
:class:`httpx.Client` and routes every request through a
:class:`~swrcache.client.coordinator.RevalidationCoordinator`:

- **Stale-while-revalidate** -- a cached GET response is delivered to the
  caller's handler before the network request is even sent.
- **Write-back** -- successful GET responses are stored according to the
  request's :class:`~swrcache.models.CachePolicy`.
- **Retry with backoff** -- retries on 5xx and network errors with
  exponential delay (1 s, 2 s, 4 s, ...).

Network failures never raise out of :meth:`CachingClient.request`; they
arrive as a failure :class:`~swrcache.models.Delivery`.

See Also:
    :class:`~swrcache.client.async_client.AsyncCachingClient` for the
    equivalent non-blocking implementation.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx

from swrcache.cache.registry import StoreRegistry
from swrcache.client.coordinator import DeliveryHandler, RevalidationCoordinator
from swrcache.exceptions import ConnectionError_
from swrcache.models import CacheBehavior, CachePolicy, Delivery, GlobalConfig, TransportResult

logger = logging.getLogger(__name__)

_RETRYABLE_ERRORS = (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError)


class CachingClient:
    """Synchronous HTTP client with a stale-while-revalidate response cache.

    Must be used as a context manager so that the underlying transport is
    properly opened and closed.

    Args:
        registry: Stores to cache into. ``None`` disables caching.
        config: Request, cache, and base-URL settings. Defaults to
            :class:`~swrcache.models.GlobalConfig` defaults.
        transport: Optional httpx transport (e.g. :class:`httpx.MockTransport`).

    Example::

        with CachingClient(registry=registry) as client:
            delivery = client.get("https://api.example.com/users", on_delivery=print)
    """

    def __init__(
        self,
        registry: Optional[StoreRegistry] = None,
        config: Optional[GlobalConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._registry = registry
        self._config = config or GlobalConfig()
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> CachingClient:
        settings = self._config.request
        self._client = httpx.Client(
            base_url=self._config.base_url or "",
            timeout=settings.timeout,
            verify=settings.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    def request(
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

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE).
            url: Absolute URL, or a path appended to the configured base URL.
            policy: Caching policy. Defaults to ``cache.default_policy``.
            behavior: Which store to use. Defaults to ``cache.default_behavior``.
            on_delivery: Called once per delivery: optionally ``FROM_CACHE``
                first, then the network result unless it matched.
            headers: Extra request headers.
            params: Query parameters. They are part of the cache key.
            json_body: JSON-serialisable body.
            body: Raw body.

        Returns:
            The last delivery made. When the fresh response matched the
            cache, that is the ``FROM_CACHE`` delivery.
        """
        assert self._client is not None, "Client not initialised -- use as context manager"

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
        coordinator.complete(self._send_with_retry(request))

        delivery = coordinator.last_delivery
        assert delivery is not None
        return delivery

    def get(self, url: str, **kwargs: Any) -> Delivery:
        """Send a GET request. See :meth:`request` for keyword arguments."""
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> Delivery:
        return self.request("POST", url, **kwargs)

    def put(self, url: str, **kwargs: Any) -> Delivery:
        return self.request("PUT", url, **kwargs)

    def patch(self, url: str, **kwargs: Any) -> Delivery:
        return self.request("PATCH", url, **kwargs)

    def delete(self, url: str, **kwargs: Any) -> Delivery:
        return self.request("DELETE", url, **kwargs)

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

    def _send_with_retry(self, request: httpx.Request) -> TransportResult:
        """Send *request* with exponential-backoff retry.

        Retries on 5xx status codes and connection / timeout errors up to
        ``max_retries`` times. The delay doubles each attempt: 1 s, 2 s, 4 s, ...
        The last 5xx response is returned as-is once retries run out.
        """
        assert self._client is not None

        max_retries = self._config.request.max_retries
        for attempt in range(max_retries + 1):
            try:
                response = self._client.send(request)
            except _RETRYABLE_ERRORS as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    logger.debug(
                        "Connection error: %s, retrying in %ss (attempt %d/%d)",
                        exc, delay, attempt + 1, max_retries,
                    )
                    time.sleep(delay)
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
                time.sleep(delay)
                continue

            return TransportResult(
                status_code=response.status_code,
                headers=response.headers,
                body=response.content,
            )

        raise AssertionError("unreachable")  # pragma: no cover
