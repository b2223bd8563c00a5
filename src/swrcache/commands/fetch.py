"""The ``swrcache fetch`` command -- request a URL through the cache.

Every delivery the request produces is reported: a status line on stderr
(status code, delivery tag, and cache age for hits) followed by the body
on stdout. With ``--output`` only the final body ends up in the file.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, List, Optional

import typer

from swrcache.cache.registry import create_default_registry
from swrcache.client.sync_client import CachingClient
from swrcache.commands import context_config
from swrcache.exceptions import ConnectionError_, InvalidUsageError, ServerError, SwrcacheError
from swrcache.models import CacheBehavior, CachePolicy, Delivery, DeliveryTag
from swrcache.output import get_output

_POLICY_NAMES = ("never", "headers", "none", "expire-at")


def _parse_policy(name: Optional[str], expires_at: Optional[str]) -> Optional[CachePolicy]:
    """Map ``--policy`` / ``--expires-at`` to a :class:`CachePolicy`.

    ``None`` means "use the configured default". ``--expires-at`` alone
    implies ``--policy expire-at``.
    """
    if name is None and expires_at is None:
        return None
    name = name or "expire-at"
    if name == "never":
        return CachePolicy.never_expires()
    if name == "headers":
        return CachePolicy.from_response_headers()
    if name == "none":
        return CachePolicy.do_not_cache()
    if name != "expire-at":
        raise InvalidUsageError(
            f"Unknown policy {name!r}; expected one of: {', '.join(_POLICY_NAMES)}"
        )
    if expires_at is None:
        raise InvalidUsageError("--policy expire-at requires --expires-at")
    try:
        when = datetime.fromisoformat(expires_at)
    except ValueError as exc:
        raise InvalidUsageError(f"Invalid --expires-at value {expires_at!r}: {exc}") from exc
    if when.tzinfo is None:
        # Naive input is local wall-clock time.
        when = when.astimezone()
    return CachePolicy.expire_at(when)


def _parse_headers(raw: Optional[List[str]]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for item in raw or []:
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            raise InvalidUsageError(f"Invalid header {item!r}; expected 'Name: value'")
        headers[name.strip()] = value.strip()
    return headers


def _parse_data(data: Optional[str]) -> tuple[Any, Optional[str]]:
    """Split ``--data`` into a JSON body or a raw body."""
    if data is None:
        return None, None
    try:
        return json.loads(data), None
    except ValueError:
        return None, data


def _report(delivery: Delivery) -> None:
    output = get_output()
    if delivery.is_failure:
        output.warning(f"Request failed: {delivery.error}")
        return

    status = f"HTTP {delivery.status_code}"
    if delivery.tag == DeliveryTag.FROM_CACHE and delivery.cached_at is not None:
        output.info(f"{status} ({delivery.tag.value}, cached at {delivery.cached_at.isoformat()})")
    elif delivery.tag is not None:
        output.info(f"{status} ({delivery.tag.value})")
    else:
        output.info(status)

    content_type = delivery.headers.get("content-type", "") if delivery.headers else ""
    output.print_body(delivery.body or b"", content_type)


def fetch_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Absolute URL, or a path relative to the base URL."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    policy: Optional[str] = typer.Option(
        None, "--policy", help="Caching policy: never, headers, none, expire-at."
    ),
    expires_at: Optional[str] = typer.Option(
        None,
        "--expires-at",
        help="ISO 8601 expiration for --policy expire-at (local time unless an offset is given).",
    ),
    persistent: bool = typer.Option(
        False, "--persistent", help="Use the persistent store instead of the purgeable one."
    ),
    data: Optional[str] = typer.Option(
        None, "--data", "-d", help="Request body (sent as JSON when it parses as JSON)."
    ),
    header: Optional[List[str]] = typer.Option(
        None, "--header", "-H", help="Extra request header 'Name: value' (repeatable)."
    ),
) -> None:
    """Fetch a URL, showing a cached copy first when one exists.

    Example::

        swrcache fetch https://api.example.com/users --policy never
        swrcache fetch /users --base-url https://api.example.com -o users.json

    Raises:
        InvalidUsageError: For an unknown policy or malformed header.
        ConnectionError_: When the network request failed.
        ServerError: When the final response is a 5xx.
    """
    config = context_config(ctx)
    cache_policy = _parse_policy(policy, expires_at)
    behavior = CacheBehavior.PERSISTENT if persistent else None
    json_body, raw_body = _parse_data(data)

    with create_default_registry(config) as registry:
        with CachingClient(registry if config.cache.enabled else None, config) as client:
            delivery = client.request(
                method.upper(),
                url,
                policy=cache_policy,
                behavior=behavior,
                on_delivery=_report,
                headers=_parse_headers(header),
                json_body=json_body,
                body=raw_body,
            )

    if delivery.is_failure:
        if isinstance(delivery.error, SwrcacheError):
            raise delivery.error
        raise ConnectionError_(f"Request to {url} failed: {delivery.error}")
    if delivery.status_code is not None and delivery.status_code >= 500:
        raise ServerError(f"HTTP {delivery.status_code} from {url}")
