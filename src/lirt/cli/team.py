"""Team commands."""

from __future__ import annotations
from typing import Annotated
import typer
from .render import STATE_COLUMNS, TEAM_COLUMNS, emit
from .state import CLIContext
from .utils import get_context, load_states, load_teams, resolve_team_id


team_app = typer.Typer(help="Browse teams and their workflow states.")


def show_states(context: CLIContext, team: str | None) -> None:
    """Render the workflow states of ``team`` or the default team."""
    team_id = resolve_team_id(context, team)
    emit(
        context.console,
        context.output_format,
        title="Workflow states",
        columns=STATE_COLUMNS,
        items=load_states(context, team_id),
        empty_message="No workflow states found.",
    )


@team_app.command("list")
def list_teams(ctx: typer.Context) -> None:
    """List the teams visible to the caller."""
    context = get_context(ctx)
    emit(
        context.console,
        context.output_format,
        title="Teams",
        columns=TEAM_COLUMNS,
        items=load_teams(context),
        empty_message="No teams found.",
    )


@team_app.command("states")
def states(
    ctx: typer.Context,
    team: Annotated[
        str | None,
        typer.Argument(help="Team key or id. Defaults to the configured team."),
    ] = None,
) -> None:
    """List the workflow states of a team."""
    show_states(get_context(ctx), team)


__all__ = ["show_states", "team_app"]
