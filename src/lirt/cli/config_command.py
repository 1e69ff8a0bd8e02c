"""Commands reading and writing profile settings."""

from __future__ import annotations
from typing import Annotated
import typer
from rich.markup import escape
from lirt.config import SETTABLE_KEYS, SETTINGS_KEYS, validate_setting
from lirt.errors import ValidationError
from .render import SETTING_COLUMNS, emit
from .utils import get_context


config_app = typer.Typer(help="Read and write settings of the active profile.")

KeyArgument = Annotated[str, typer.Argument(help="Setting name.")]


def _check_key(key: str, allowed: tuple[str, ...]) -> None:
    if key not in allowed:
        valid = ", ".join(allowed)
        raise ValidationError(f"Invalid config key '{key}' (valid keys: {valid})")


@config_app.command("list")
def list_settings(ctx: typer.Context) -> None:
    """Show every setting of the active profile, defaults included."""
    context = get_context(ctx)
    rows = [
        {"key": key, "value": getattr(context.profile, key)} for key in SETTINGS_KEYS
    ]
    emit(
        context.console,
        context.output_format,
        title=f"Profile '{context.profile_name}'",
        columns=SETTING_COLUMNS,
        items=rows,
    )


@config_app.command("get")
def get_setting(ctx: typer.Context, key: KeyArgument) -> None:
    """Print the value of one setting; unset values print nothing."""
    context = get_context(ctx)
    _check_key(key, SETTINGS_KEYS)
    value = getattr(context.profile, key)
    typer.echo("" if value is None else str(value))


@config_app.command("set")
def set_setting(
    ctx: typer.Context,
    key: KeyArgument,
    value: Annotated[str, typer.Argument(help="New value.")],
) -> None:
    """Persist a setting for the active profile."""
    context = get_context(ctx)
    _check_key(key, SETTABLE_KEYS)
    normalized = validate_setting(key, value)
    context.store.set_value(context.profile_name, key, normalized)
    context.info(
        f"Set {key} = {escape(normalized)} "
        f"for profile '{escape(context.profile_name)}'."
    )


@config_app.command("unset")
def unset_setting(ctx: typer.Context, key: KeyArgument) -> None:
    """Remove a setting so the default applies again."""
    context = get_context(ctx)
    _check_key(key, SETTABLE_KEYS)
    if context.store.unset_value(context.profile_name, key):
        context.info(f"Unset {key} for profile '{escape(context.profile_name)}'.")
    else:
        context.info(f"[yellow]{key} was not set.[/yellow]")


__all__ = ["config_app"]
