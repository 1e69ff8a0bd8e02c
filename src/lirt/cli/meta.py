"""Reference data commands."""

from __future__ import annotations
from typing import Annotated
import typer
from .render import PRIORITY_COLUMNS, emit
from .team import show_states
from .utils import PRIORITIES, get_context


meta_app = typer.Typer(help="Show reference values accepted by other commands.")


@meta_app.command("priorities")
def priorities(ctx: typer.Context) -> None:
    """List the priority values accepted by ``issue create`` and ``issue edit``."""
    context = get_context(ctx)
    rows = [
        {"value": value, "name": name, "label": label}
        for value, name, label in PRIORITIES
    ]
    emit(
        context.console,
        context.output_format,
        title="Priorities",
        columns=PRIORITY_COLUMNS,
        items=rows,
    )


@meta_app.command("states")
def states(
    ctx: typer.Context,
    team: Annotated[
        str | None,
        typer.Argument(help="Team key or id. Defaults to the configured team."),
    ] = None,
) -> None:
    """List the workflow states of a team."""
    show_states(get_context(ctx), team)


__all__ = ["meta_app"]
