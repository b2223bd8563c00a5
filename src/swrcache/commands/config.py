"""Config commands -- view and modify global configuration.

Provides the ``swrcache config`` sub-command group for reading, updating,
and resetting the user's :class:`~swrcache.models.GlobalConfig`.
"""

from __future__ import annotations

import json
from typing import Any

import typer
from pydantic import ValidationError

from swrcache.config import get_config_dir, load_global_config, save_global_config
from swrcache.models import GlobalConfig
from swrcache.output import get_output


config_app = typer.Typer(no_args_is_help=True)

_NULL_WORDS = ("null", "none")


@config_app.command("show")
def config_show() -> None:
    """Show the saved configuration.

    Example::

        swrcache config show
        swrcache --json config show
    """
    config = load_global_config()
    output = get_output()
    output.info(f"Config directory: {get_config_dir()}")
    output.print_body(
        json.dumps(config.model_dump(mode="json"), indent=2).encode("utf-8"),
        "application/json",
    )


def _coerce(key: str, current: Any, value: str) -> Any:
    """Coerce *value* to the type of the field's current value."""
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes", "on")
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError:
            get_output().error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    if value.lower() in _NULL_WORDS:
        return None
    return value


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g. 'cache.default_policy')."
    ),
    value: str = typer.Argument(help="Value to set ('null' clears optional keys)."),
) -> None:
    """Set a configuration value.

    The value is coerced to the existing field's type and the result is
    validated before saving.

    Example::

        swrcache config set cache.default_policy never_expires
        swrcache config set request.max_retries 0
        swrcache config set cache.persistent_root null
    """
    output = get_output()
    data = load_global_config().model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            output.error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        output.error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    coerced = _coerce(key, target[final_key], value)
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        output.error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    output.success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Reset configuration to defaults."""
    if not force and not typer.confirm("Reset all config to defaults?"):
        get_output().info("Cancelled.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    get_output().success("Configuration reset to defaults.")
