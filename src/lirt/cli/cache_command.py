"""Commands inspecting and clearing the local response cache."""

from __future__ import annotations
import typer
from rich.markup import escape
from .render import CACHE_COLUMNS, emit
from .utils import get_context


cache_app = typer.Typer(help="Inspect or clear cached reference data.")


@cache_app.command("info")
def info(ctx: typer.Context) -> None:
    """List the cache entries stored for the active profile."""
    context = get_context(ctx)
    entries = context.cache.entries(context.profile_name)
    rows = [
        {
            "key": entry.key,
            "fetched_at": entry.fetched_at.isoformat() if entry.fetched_at else None,
            "size": entry.size,
        }
        for entry in entries
    ]
    directory = context.cache.profile_dir(context.profile_name)
    context.info(f"[dim]{escape(str(directory))}[/dim]")
    emit(
        context.console,
        context.output_format,
        title="Cache",
        columns=CACHE_COLUMNS,
        items=rows,
        empty_message="Cache is empty.",
    )


@cache_app.command("clear")
def clear(ctx: typer.Context) -> None:
    """Remove every cache entry of the active profile."""
    context = get_context(ctx)
    context.cache.clear(context.profile_name)
    context.info(f"Cleared cache for profile '{escape(context.profile_name)}'.")


__all__ = ["cache_app"]
