"""Built-in CLI sub-commands for swrcache.

* :mod:`~swrcache.commands.fetch` -- request a URL through the cache.
* :mod:`~swrcache.commands.cache` -- list, inspect, and purge stored responses.
* :mod:`~swrcache.commands.config` -- view and modify global settings.

Multi-command groups export a :class:`typer.Typer` sub-application; single
commands export a plain callback registered on the root app.
"""

from __future__ import annotations

import typer

from swrcache.config import resolve_config
from swrcache.models import GlobalConfig


def context_config(ctx: typer.Context) -> GlobalConfig:
    """Resolve the effective configuration using root-level CLI flags."""
    obj = ctx.obj or {}
    return resolve_config(cli_base_url=obj.get("base_url"))
