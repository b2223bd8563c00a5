"""Stale-while-revalidate delivery for a single request.

A :class:`RevalidationCoordinator` sits between the cache store and the
transport for exactly one outbound request:

1. :meth:`~RevalidationCoordinator.dispatch` looks the URL up in the store
   (GET requests with a caching policy only) and, on a hit, delivers the
   cached bytes to every completion handler right away.
2. The caller then performs the network fetch, which always happens.
3. :meth:`~RevalidationCoordinator.complete` receives the transport result,
   delivers it unless it is byte-identical to what was already delivered,
   and writes the fresh response back to the store.

The coordinator never performs network I/O itself and is discarded after
its terminal delivery.
"""

from __future__ import annotations

import enum
import logging
from typing import Callable, Optional

from swrcache.cache.expiration import resolve_expiration
from swrcache.cache.store import CacheStore
from swrcache.exceptions import CoordinatorStateError
from swrcache.models import CachePolicy, Delivery, DeliveryTag, TransportResult

logger = logging.getLogger(__name__)

DeliveryHandler = Callable[[Delivery], None]


class CoordinatorState(str, enum.Enum):
    IDLE = "idle"
    LOOKED_UP = "looked_up"
    AWAITING_NETWORK = "awaiting_network"
    DELIVERED = "delivered"


class RevalidationCoordinator:
    """Drives lookup, delivery, and write-back for one request.

    Args:
        url: Canonical request URL; also the cache key.
        method: HTTP method. Only ``GET`` touches the store.
        policy: The request's caching policy.
        store: Store to read from and write to. ``None`` bypasses caching.
        handlers: Completion handlers, called in registration order for
            every delivery.

    Example::

        coordinator = RevalidationCoordinator(url, "GET", policy, store)
        coordinator.add_completion(print)
        coordinator.dispatch()
        coordinator.complete(TransportResult(status_code=200, body=b"..."))
    """

    def __init__(
        self,
        url: str,
        method: str,
        policy: CachePolicy,
        store: Optional[CacheStore] = None,
        handlers: Optional[list[DeliveryHandler]] = None,
    ) -> None:
        self.url = url
        self.method = method.upper()
        self.policy = policy
        self._store = store
        self._handlers: list[DeliveryHandler] = list(handlers or [])
        self._state = CoordinatorState.IDLE
        self._prior_body: Optional[bytes] = None
        self._deliveries: list[Delivery] = []

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def uses_store(self) -> bool:
        """Whether this request reads from and writes to the store."""
        return self.method == "GET" and self.policy.uses_cache and self._store is not None

    @property
    def deliveries(self) -> list[Delivery]:
        """Every delivery made so far, in order."""
        return list(self._deliveries)

    @property
    def last_delivery(self) -> Optional[Delivery]:
        return self._deliveries[-1] if self._deliveries else None

    def add_completion(self, handler: DeliveryHandler) -> None:
        """Register another handler. Only allowed before :meth:`dispatch`."""
        if self._state != CoordinatorState.IDLE:
            raise CoordinatorStateError(
                f"Cannot add a completion handler in state {self._state.value}"
            )
        self._handlers.append(handler)

    def dispatch(self) -> Optional[Delivery]:
        """Look the request up and deliver a cache hit immediately.

        Returns:
            The ``FROM_CACHE`` delivery on a hit, otherwise ``None``.

        Raises:
            CoordinatorStateError: If called more than once.
        """
        if self._state != CoordinatorState.IDLE:
            raise CoordinatorStateError(f"dispatch() called in state {self._state.value}")

        delivery: Optional[Delivery] = None
        if self.uses_store:
            assert self._store is not None
            cached = self._store.get(self.url)
            if cached is not None:
                self._prior_body = cached.body
                delivery = Delivery.from_cache(cached)
        self._state = CoordinatorState.LOOKED_UP

        if delivery is not None:
            self._deliver(delivery)
        self._state = CoordinatorState.AWAITING_NETWORK
        return delivery

    def complete(self, result: TransportResult) -> Optional[Delivery]:
        """Handle the transport's completion signal.

        Returns:
            The delivery made for the network result, or ``None`` when it
            was suppressed because it matched the cached bytes.

        Raises:
            CoordinatorStateError: If :meth:`dispatch` has not run yet or
                the request was already completed.
        """
        if self._state != CoordinatorState.AWAITING_NETWORK:
            raise CoordinatorStateError(f"complete() called in state {self._state.value}")
        self._state = CoordinatorState.DELIVERED

        if not result.succeeded:
            # An earlier cache hit stands; the failure is reported on top of it.
            logger.debug("Request for %s failed: %s", self.url, result.error)
            return self._deliver(Delivery.failure(result.error))

        assert result.status_code is not None
        status = result.status_code
        body = result.body if result.body is not None else b""

        if not self.uses_store or not 200 <= status < 300:
            return self._deliver(self._network_delivery(result, body, DeliveryTag.NOT_CACHED))

        assert self._store is not None
        decision = resolve_expiration(self.policy, result.headers)

        delivery: Optional[Delivery]
        if self._prior_body is None:
            delivery = self._deliver(self._network_delivery(result, body, DeliveryTag.NOT_CACHED))
        elif body == self._prior_body:
            logger.debug("Fresh response for %s matches the cached copy", self.url)
            delivery = None
        else:
            delivery = self._deliver(self._network_delivery(result, body, DeliveryTag.UPDATED_CACHE))

        if decision.store:
            self._store.put(self.url, body, status, decision.expires_at)
        elif self._prior_body is not None:
            self._store.remove(self.url)
        return delivery

    # ------------------------------------------------------------------ #

    @staticmethod
    def _network_delivery(result: TransportResult, body: bytes, tag: DeliveryTag) -> Delivery:
        return Delivery(status_code=result.status_code, body=body, tag=tag, headers=result.headers)

    def _deliver(self, delivery: Delivery) -> Delivery:
        self._deliveries.append(delivery)
        for handler in self._handlers:
            handler(delivery)
        return delivery
