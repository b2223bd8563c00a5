"""Cache commands -- inspect and maintain the response stores.

Provides the ``swrcache cache`` sub-command group. Every command works on
the purgeable store unless ``--persistent`` is given; ``stats`` reports on
both.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

import typer

from swrcache.cache.registry import create_default_registry
from swrcache.cache.store import CacheStore
from swrcache.commands import context_config
from swrcache.exceptions import NotFoundError
from swrcache.models import CacheBehavior
from swrcache.output import get_output


cache_app = typer.Typer(no_args_is_help=True)

_PERSISTENT_HELP = "Use the persistent store instead of the purgeable one."


@contextmanager
def _open_store(ctx: typer.Context, persistent: bool) -> Iterator[CacheStore]:
    behavior = CacheBehavior.PERSISTENT if persistent else CacheBehavior.PURGEABLE
    with create_default_registry(context_config(ctx)) as registry:
        yield registry.get(behavior)


def _fmt_time(value: Optional[datetime]) -> str:
    return value.isoformat() if value is not None else "never"


@cache_app.command("list")
def cache_list(
    ctx: typer.Context,
    persistent: bool = typer.Option(False, "--persistent", help=_PERSISTENT_HELP),
) -> None:
    """List cached URLs with their status and timestamps.

    Example::

        swrcache cache list
        swrcache --json cache list --persistent
    """
    with _open_store(ctx, persistent) as store:
        entries = store.entries()

    if not entries:
        get_output().info("No cached responses.")
        return

    rows = [
        [
            entry.key,
            str(entry.status_code),
            entry.cached_at.isoformat(),
            _fmt_time(entry.expires_at),
        ]
        for entry in entries
    ]
    get_output().print_table(
        ["URL", "Status", "Cached At", "Expires"], rows, title="Cached responses"
    )


@cache_app.command("show")
def cache_show(
    ctx: typer.Context,
    url: str = typer.Argument(help="Cached request URL."),
    persistent: bool = typer.Option(False, "--persistent", help=_PERSISTENT_HELP),
) -> None:
    """Print the cached body for URL.

    Raises:
        NotFoundError: If nothing (unexpired) is cached for URL.
    """
    with _open_store(ctx, persistent) as store:
        cached = store.get(url)

    if cached is None:
        raise NotFoundError(f"No cached response for {url}")
    output = get_output()
    output.info(f"HTTP {cached.status_code} (cached at {cached.cached_at.isoformat()})")
    output.print_body(cached.body)


@cache_app.command("invalidate")
def cache_invalidate(
    ctx: typer.Context,
    url: str = typer.Argument(help="Cached request URL."),
    persistent: bool = typer.Option(False, "--persistent", help=_PERSISTENT_HELP),
) -> None:
    """Remove the cached response for URL.

    Raises:
        NotFoundError: If nothing is cached for URL.
    """
    with _open_store(ctx, persistent) as store:
        if url not in store:
            raise NotFoundError(f"No cached response for {url}")
        store.invalidate(url)
    get_output().success(f"Invalidated {url}")


@cache_app.command("purge")
def cache_purge(
    ctx: typer.Context,
    persistent: bool = typer.Option(False, "--persistent", help=_PERSISTENT_HELP),
) -> None:
    """Remove every expired entry."""
    with _open_store(ctx, persistent) as store:
        purged = store.purge_expired()
    get_output().success(f"Purged {purged} expired response(s).")


@cache_app.command("clear")
def cache_clear(
    ctx: typer.Context,
    persistent: bool = typer.Option(False, "--persistent", help=_PERSISTENT_HELP),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Delete every cached response in the store.

    Asks for confirmation unless ``--force`` is given.
    """
    label = "persistent" if persistent else "purgeable"
    if not force:
        if not typer.confirm(f"Delete all responses in the {label} store?"):
            get_output().info("Cancelled.")
            raise typer.Exit()

    with _open_store(ctx, persistent) as store:
        store.clear()
    get_output().success(f"Cleared the {label} store.")


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show entry counts, sizes, and locations of both stores."""
    output = get_output()
    with create_default_registry(context_config(ctx)) as registry:
        for behavior in CacheBehavior:
            stats = registry.get(behavior).stats()
            output.print_record(stats, title=f"{behavior.value} store")
