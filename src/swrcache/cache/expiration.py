"""Turn a request's caching policy into a concrete expiration decision.

:func:`resolve_expiration` is a pure function of the policy, the response
headers, and the current time. It distinguishes three outcomes:

* do not store the response at all,
* store it with no expiration,
* store it until a given instant.

For :attr:`~swrcache.models.CachePolicyKind.FROM_RESPONSE_HEADERS` only
``max-age`` and ``s-maxage`` in ``Cache-Control`` are honoured. Anything the
parser cannot read means "do not store"; there is no fallback to an
unbounded lifetime.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional

from swrcache.models import CachePolicy, CachePolicyKind, ensure_utc

CACHE_CONTROL = "Cache-Control"


@dataclass(frozen=True)
class ExpirationDecision:
    """Outcome of :func:`resolve_expiration`.

    Attributes:
        store: Whether the response may be written to the cache.
        expires_at: Expiration instant when storing; ``None`` means the
            entry never expires. Always ``None`` when ``store`` is false.
    """

    store: bool
    expires_at: Optional[datetime] = None

    @classmethod
    def do_not_store(cls) -> ExpirationDecision:
        return cls(store=False)

    @classmethod
    def until(cls, expires_at: Optional[datetime]) -> ExpirationDecision:
        return cls(store=True, expires_at=expires_at)


def parse_max_cache_age(cache_control: str) -> Optional[int]:
    """Extract the max-age in seconds from a ``Cache-Control`` value.

    The value is split on commas and scanned left to right; the first
    directive mentioning ``max-age`` or ``s-maxage`` decides the result.

    >>> parse_max_cache_age("public, max-age=14400")
    14400
    >>> parse_max_cache_age("no-cache") is None
    True

    Returns:
        The number of seconds (possibly zero or negative), or ``None`` if no
        directive matched or the matching one could not be parsed.
    """
    for directive in cache_control.split(","):
        if "max-age" in directive or "s-maxage" in directive:
            parts = directive.split("=")
            if len(parts) != 2:
                return None
            try:
                return int(parts[1].strip())
            except ValueError:
                return None
    return None


def get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup that works for plain dicts too."""
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def resolve_expiration(
    policy: CachePolicy,
    response_headers: Optional[Mapping[str, str]] = None,
    now: Optional[datetime] = None,
) -> ExpirationDecision:
    """Resolve *policy* (and possibly *response_headers*) into a decision.

    Args:
        policy: The request's caching policy.
        response_headers: Headers of the network response. Only consulted
            for ``FROM_RESPONSE_HEADERS``.
        now: Reference time for relative max-age values. Defaults to the
            current UTC time.

    Returns:
        An :class:`ExpirationDecision`. A zero or negative max-age produces
        an already-expired instant, which the store refuses to write.
    """
    if policy.kind == CachePolicyKind.DO_NOT_CACHE:
        return ExpirationDecision.do_not_store()
    if policy.kind == CachePolicyKind.NEVER_EXPIRES:
        return ExpirationDecision.until(None)
    if policy.kind == CachePolicyKind.EXPIRE_AT:
        return ExpirationDecision.until(policy.expires_at)

    if not response_headers:
        return ExpirationDecision.do_not_store()
    cache_control = get_header(response_headers, CACHE_CONTROL)
    if cache_control is None:
        return ExpirationDecision.do_not_store()
    max_age = parse_max_cache_age(cache_control)
    if max_age is None:
        return ExpirationDecision.do_not_store()

    # Measured from now rather than from the request start; close enough.
    reference = ensure_utc(now) if now is not None else datetime.now(timezone.utc)
    try:
        return ExpirationDecision.until(reference + timedelta(seconds=max_age))
    except OverflowError:
        # Beyond the datetime range: unbounded one way, long expired the other.
        return ExpirationDecision.until(None) if max_age > 0 else ExpirationDecision.do_not_store()
