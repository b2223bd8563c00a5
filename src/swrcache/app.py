"""Typer application and CLI entry point for swrcache.

This module wires together the top-level Typer application and registers
the built-in sub-commands (``fetch``, ``cache``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
:class:`~swrcache.exceptions.SwrcacheError` exits with its own code; any
other exception is written to a crash log under the data directory.

See Also:
    :mod:`swrcache.config`: Global configuration resolution.
    :mod:`swrcache.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from swrcache import __version__
from swrcache.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="swrcache",
    help="Fetch HTTP resources through a stale-while-revalidate disk cache.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

# ------------------------------------------------------------------ #
# Sub-commands
# ------------------------------------------------------------------ #

from swrcache.commands.cache import cache_app  # noqa: E402
from swrcache.commands.config import config_app  # noqa: E402
from swrcache.commands.fetch import fetch_command  # noqa: E402

app.command("fetch")(fetch_command)
app.add_typer(cache_app, name="cache", help="Inspect and maintain the response stores.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"swrcache {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Route ``swrcache.*`` log records to stderr through Rich.

    Debug records are shown with ``--verbose``; otherwise only warnings
    (e.g. cache files that could not be written) get through.
    """
    logger = logging.getLogger("swrcache")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        show_time=verbose,
        rich_tracebacks=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Prefix for relative URLs."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
    output_file: Optional[str] = typer.Option(
        None, "-o", "--output", help="Write the response body to this file."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~swrcache.output.OutputManager` and
    logging from CLI flags, and stores shared options in ``ctx.obj`` so
    that sub-commands can resolve the effective configuration.
    """
    from swrcache.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(
        OutputManager(
            format=fmt,
            no_color=no_color,
            quiet=quiet,
            verbose=verbose,
            output_file=output_file,
        )
    )
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["base_url"] = base_url
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback to ``<data dir>/logs`` and return the path."""
    from swrcache.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``swrcache`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from swrcache.exceptions import SwrcacheError
        from swrcache.output import get_output

        if isinstance(exc, SwrcacheError):
            get_output().error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        get_output().error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
