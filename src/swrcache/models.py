"""Canonical models shared across all swrcache modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CacheConfig`, :class:`RequestConfig`, :class:`OutputConfig`,
    and :class:`GlobalConfig`.

**Caching policy** -- attached to each outbound request:
    :class:`CachePolicyKind`, :class:`CachePolicy`, and
    :class:`CacheBehavior` (which store a request uses).

**Delivery values** -- exchanged between the cache store, the revalidation
coordinator, the transport, and the caller:
    :class:`CachedResponse`, :class:`TransportResult`, :class:`DeliveryTag`,
    and :class:`Delivery`.

Persisted and user-facing models use Pydantic v2; the short-lived delivery
values are frozen dataclasses. The on-disk journal record
(:class:`~swrcache.cache.entry.CacheEntry`) lives with the store that owns it.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def ensure_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# --- Caching policy ---


class CachePolicyKind(str, enum.Enum):
    """How a request's response may be cached.

    ``DO_NOT_CACHE`` routes the request around the store entirely.
    ``NEVER_EXPIRES`` stores the response until it is removed by hand.
    ``EXPIRE_AT`` stores it until a fixed instant.
    ``FROM_RESPONSE_HEADERS`` lets the server's ``Cache-Control`` max-age
    decide, and does not store at all when the server gives none.
    """

    DO_NOT_CACHE = "do_not_cache"
    NEVER_EXPIRES = "never_expires"
    EXPIRE_AT = "expire_at"
    FROM_RESPONSE_HEADERS = "from_response_headers"


class CacheBehavior(str, enum.Enum):
    """Which store lifecycle a request uses.

    The purgeable store lives in the user cache directory, which the OS or
    the user may clear at any time. The persistent store lives in the user
    data directory and is only emptied by explicit removal or expiration.
    """

    PURGEABLE = "purgeable"
    PERSISTENT = "persistent"


class CachePolicy(BaseModel):
    """Per-request caching policy. Immutable once a request is issued.

    Build instances through the named constructors rather than by hand::

        CachePolicy.do_not_cache()
        CachePolicy.never_expires()
        CachePolicy.expire_at(datetime(2030, 1, 1, tzinfo=timezone.utc))
        CachePolicy.from_response_headers()
    """

    model_config = ConfigDict(frozen=True)

    kind: CachePolicyKind
    expires_at: Optional[datetime] = Field(
        default=None, description="Fixed expiration instant (EXPIRE_AT only)"
    )

    @field_validator("expires_at")
    @classmethod
    def _normalise_expires_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _check_expires_at(self) -> CachePolicy:
        if self.kind == CachePolicyKind.EXPIRE_AT and self.expires_at is None:
            raise ValueError("expire_at policy requires an expires_at instant")
        if self.kind != CachePolicyKind.EXPIRE_AT and self.expires_at is not None:
            raise ValueError(f"{self.kind.value} policy does not take an expires_at instant")
        return self

    @classmethod
    def do_not_cache(cls) -> CachePolicy:
        return cls(kind=CachePolicyKind.DO_NOT_CACHE)

    @classmethod
    def never_expires(cls) -> CachePolicy:
        return cls(kind=CachePolicyKind.NEVER_EXPIRES)

    @classmethod
    def expire_at(cls, when: datetime) -> CachePolicy:
        return cls(kind=CachePolicyKind.EXPIRE_AT, expires_at=when)

    @classmethod
    def from_response_headers(cls) -> CachePolicy:
        return cls(kind=CachePolicyKind.FROM_RESPONSE_HEADERS)

    @property
    def uses_cache(self) -> bool:
        """``False`` only for :attr:`CachePolicyKind.DO_NOT_CACHE`."""
        return self.kind != CachePolicyKind.DO_NOT_CACHE


# --- Delivery values ---


class DeliveryTag(str, enum.Enum):
    """Tells the caller where a particular delivery came from.

    ``FROM_CACHE`` -- read from disk before the network answered.
    ``NOT_CACHED`` -- a network response with nothing cached before it. Also
    used for a non-2xx response, which is never cached, even when a
    ``FROM_CACHE`` delivery came first.
    ``UPDATED_CACHE`` -- a network response that replaced different cached data.
    """

    FROM_CACHE = "from_cache"
    NOT_CACHED = "not_cached"
    UPDATED_CACHE = "updated_cache"


@dataclass(frozen=True)
class CachedResponse:
    """A cache hit as returned by :meth:`~swrcache.cache.store.CacheStore.get`."""

    body: bytes
    status_code: int
    cached_at: datetime


@dataclass(frozen=True)
class TransportResult:
    """Completion signal reported by the transport for one request.

    Exactly one of ``status_code`` and ``error`` is normally set: a status
    code means the server answered (whatever the status), an error means it
    was never reached.

    Attributes:
        status_code: HTTP status, or ``None`` if no response was received.
        headers: Response headers. Lookups should be case-insensitive;
            :class:`httpx.Headers` already is.
        body: Response body bytes, if any.
        error: The exception that ended the request, if any.
    """

    status_code: Optional[int] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.status_code is not None and self.error is None


@dataclass(frozen=True)
class Delivery:
    """One result handed to a caller's completion handler.

    A single request produces one or two deliveries: an optional
    ``FROM_CACHE`` preview followed by the network result (which may be
    suppressed when it matches the preview). Failures carry ``error`` and
    no ``tag``.
    """

    status_code: Optional[int] = None
    body: Optional[bytes] = None
    tag: Optional[DeliveryTag] = None
    cached_at: Optional[datetime] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    error: Optional[BaseException] = None

    @classmethod
    def from_cache(cls, cached: CachedResponse) -> Delivery:
        return cls(
            status_code=cached.status_code,
            body=cached.body,
            tag=DeliveryTag.FROM_CACHE,
            cached_at=cached.cached_at,
        )

    @classmethod
    def failure(cls, error: Optional[BaseException]) -> Delivery:
        return cls(error=error)

    @property
    def is_failure(self) -> bool:
        return self.error is not None or self.status_code is None

    @property
    def from_cache_hit(self) -> bool:
        return self.tag == DeliveryTag.FROM_CACHE


# --- Configuration ---


class CacheConfig(BaseModel):
    """Response cache settings stored in :class:`GlobalConfig`."""

    enabled: bool = Field(default=True, description="Enable response caching")
    default_policy: CachePolicyKind = Field(
        default=CachePolicyKind.FROM_RESPONSE_HEADERS,
        description="Policy used when a request does not name one",
    )
    default_behavior: CacheBehavior = Field(
        default=CacheBehavior.PURGEABLE,
        description="Store used when a request does not name one",
    )
    purgeable_root: Optional[str] = Field(
        default=None, description="Override the purgeable store root directory"
    )
    persistent_root: Optional[str] = Field(
        default=None, description="Override the persistent store root directory"
    )

    @field_validator("default_policy")
    @classmethod
    def _no_fixed_instant_default(cls, value: CachePolicyKind) -> CachePolicyKind:
        if value == CachePolicyKind.EXPIRE_AT:
            raise ValueError("expire_at needs an instant and cannot be the default policy")
        return value


class RequestConfig(BaseModel):
    """Default HTTP request settings applied to every request."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(default=3, description="Max retry attempts")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/swrcache/config.json``.

    Loaded and saved by :func:`~swrcache.config.load_global_config` and
    :func:`~swrcache.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by environment variables or CLI
    flags. See :func:`~swrcache.config.resolve_config`.
    """

    base_url: Optional[str] = Field(
        default=None, description="Prefix for relative URLs passed to the client"
    )
    cache: CacheConfig = Field(default_factory=CacheConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
