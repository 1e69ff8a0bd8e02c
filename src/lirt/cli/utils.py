"""Shared helpers used across CLI command modules."""

from __future__ import annotations
import logging
from collections.abc import Callable
from typing import Any
import typer
from lirt.cache import build_key
from lirt.errors import NotFoundError, ValidationError
from lirt.queries import TEAMS_QUERY, WORKFLOW_STATES_QUERY
from lirt.resolver import IdentifierResolver
from .state import CLIContext


logger = logging.getLogger(__name__)

TEAMS_NAMESPACE = "teams"
STATES_NAMESPACE = "states"
ISSUES_NAMESPACE = "issues"
ISSUE_NAMESPACE = "issue"
CACHED_NAMESPACES = (
    TEAMS_NAMESPACE,
    STATES_NAMESPACE,
    ISSUES_NAMESPACE,
    ISSUE_NAMESPACE,
)

PRIORITIES: tuple[tuple[int, str, str], ...] = (
    (0, "none", "No priority"),
    (1, "urgent", "Urgent"),
    (2, "high", "High"),
    (3, "medium", "Medium"),
    (4, "low", "Low"),
)


def get_context(ctx: typer.Context) -> CLIContext:
    """Return the CLI context stored on the Typer context object."""
    obj = ctx.find_object(CLIContext)
    if obj is None:  # pragma: no cover - the root callback always sets it
        msg = "CLI context has not been initialised"
        raise RuntimeError(msg)
    return obj


def cached_read(context: CLIContext, key: str, loader: Callable[[], Any]) -> Any:
    """Return the cached payload for ``key`` or load and store it.

    ``--no-cache`` skips both the lookup and the store, and a TTL of zero
    disables caching for the profile.
    """
    if context.no_cache:
        return loader()
    ttl = context.profile.ttl()
    payload, hit = context.cache.get(context.profile_name, key, ttl)
    if hit:
        return payload
    payload = loader()
    if ttl.total_seconds() > 0:
        try:
            context.cache.set(context.profile_name, key, payload)
        except OSError as exc:
            logger.warning("Could not write cache entry %s: %s", key, exc)
    return payload


def load_teams(context: CLIContext) -> list[dict[str, Any]]:
    """Return every team visible to the caller, served from cache when fresh."""
    return cached_read(
        context,
        build_key(TEAMS_NAMESPACE),
        lambda: list(context.pager().fetch_all(TEAMS_QUERY, connection="teams")),
    )


def load_states(context: CLIContext, team_id: str) -> list[dict[str, Any]]:
    """Return the workflow states of ``team_id`` ordered by position."""
    states = cached_read(
        context,
        build_key(STATES_NAMESPACE, team_id),
        lambda: list(
            context.pager().fetch_all(
                WORKFLOW_STATES_QUERY,
                {"teamId": team_id},
                connection="workflowStates",
            )
        ),
    )
    return sorted(states, key=lambda state: state.get("position") or 0)


def make_resolver(context: CLIContext) -> IdentifierResolver:
    """Return an identifier resolver backed by the cached team list."""
    return IdentifierResolver(
        context.require_client(), teams=lambda: load_teams(context)
    )


def resolve_team_id(context: CLIContext, team: str | None = None) -> str:
    """Return the id of ``team`` or of the invocation's default team."""
    token = team or context.team
    if not token:
        raise ValidationError(
            "No team specified. Use --team or set a default with "
            "'lirt config set team <KEY>'."
        )
    return make_resolver(context).resolve_team(token)


def resolve_state_id(context: CLIContext, team_id: str, state: str) -> str:
    """Return the id of the workflow state named ``state`` in ``team_id``."""
    wanted = state.strip().lower()
    for candidate in load_states(context, team_id):
        if str(candidate.get("name", "")).lower() == wanted:
            return str(candidate["id"])
        if candidate.get("id") == state:
            return state
    raise NotFoundError(f"Workflow state not found: {state}")


def parse_priority(value: str) -> int:
    """Parse ``0``-``4`` or a priority name such as ``urgent``."""
    text = value.strip().lower()
    for number, name, _ in PRIORITIES:
        if text in (str(number), name):
            return number
    names = ", ".join(name for _, name, _ in PRIORITIES)
    msg = f"Invalid priority '{value}' (expected 0-4 or one of: {names})"
    raise ValidationError(msg)


def confirm(context: CLIContext, message: str, *, assume_yes: bool) -> None:
    """Ask for confirmation unless ``--yes`` was given; abort when declined."""
    if assume_yes:
        return
    if not typer.confirm(message, default=False, err=True):
        context.info("[yellow]Aborted.[/yellow]")
        raise typer.Exit(code=1)


__all__ = [
    "CACHED_NAMESPACES",
    "ISSUES_NAMESPACE",
    "ISSUE_NAMESPACE",
    "PRIORITIES",
    "STATES_NAMESPACE",
    "TEAMS_NAMESPACE",
    "cached_read",
    "confirm",
    "get_context",
    "load_states",
    "load_teams",
    "make_resolver",
    "parse_priority",
    "resolve_state_id",
    "resolve_team_id",
]
