"""Issue commands."""

from __future__ import annotations
from typing import Annotated, Any
import typer
from rich.markup import escape
from lirt.cache import build_key, invalidate_for
from lirt.errors import NotFoundError, PartialAPIError, TransportError, ValidationError
from lirt.queries import (
    CREATE_ISSUE_MUTATION,
    DELETE_ISSUE_MUTATION,
    ISSUE_QUERY,
    ISSUES_QUERY,
    UPDATE_ISSUE_MUTATION,
)
from lirt.resolver import IdentifierKind
from .render import (
    ISSUE_COLUMNS,
    ISSUE_DETAIL_COLUMNS,
    MUTATION_COLUMNS,
    emit,
    emit_record,
)
from .state import CLIContext
from .utils import (
    ISSUE_NAMESPACE,
    ISSUES_NAMESPACE,
    cached_read,
    confirm,
    get_context,
    make_resolver,
    parse_priority,
    resolve_state_id,
    resolve_team_id,
)


issue_app = typer.Typer(help="List, view and change issues.")

# Command name -> mutation name declared in ``lirt.cache.INVALIDATIONS``.
MUTATIONS = {
    "create": "issue.create",
    "edit": "issue.update",
    "delete": "issue.delete",
}

IdentifierArgument = Annotated[
    str, typer.Argument(help="Issue identifier such as ENG-123, or an internal id.")
]
KindOption = Annotated[
    IdentifierKind,
    typer.Option("--kind", help="How to interpret the identifier."),
]
PriorityOption = Annotated[
    str | None,
    typer.Option(
        "--priority", "-p", help="Priority: 0-4 or urgent, high, medium, low, none."
    ),
]
StateOption = Annotated[
    str | None,
    typer.Option("--state", "-s", help="Workflow state name."),
]
DescriptionOption = Annotated[
    str | None,
    typer.Option("--description", "-d", help="Issue description (markdown)."),
]


def build_filter(
    *,
    team_id: str | None = None,
    state: str | None = None,
    assignee: str | None = None,
    priority: int | None = None,
    search: str | None = None,
) -> dict[str, Any]:
    """Return the ``IssueFilter`` object for the list options."""
    issue_filter: dict[str, Any] = {}
    if team_id:
        issue_filter["team"] = {"id": {"eq": team_id}}
    if state:
        issue_filter["state"] = {"name": {"eqIgnoreCase": state}}
    if assignee:
        if assignee == "me":
            issue_filter["assignee"] = {"isMe": {"eq": True}}
        elif "@" in assignee:
            issue_filter["assignee"] = {"email": {"eq": assignee}}
        else:
            issue_filter["assignee"] = {"name": {"eqIgnoreCase": assignee}}
    if priority is not None:
        issue_filter["priority"] = {"eq": priority}
    if search:
        issue_filter["title"] = {"containsIgnoreCase": search}
    return issue_filter


def _resolve_issue(context: CLIContext, token: str, kind: IdentifierKind) -> str:
    return make_resolver(context).resolve(token, kind)


def _load_issue(context: CLIContext, issue_id: str) -> dict[str, Any]:
    try:
        result = context.require_client().query(ISSUE_QUERY, {"id": issue_id})
    except PartialAPIError as exc:
        if exc.not_found:
            raise NotFoundError(f"Issue not found: {issue_id}") from exc
        raise
    issue = result.data.get("issue")
    if not isinstance(issue, dict):
        raise NotFoundError(f"Issue not found: {issue_id}")
    return issue


def _mutation_payload(result_data: dict[str, Any], field: str, action: str) -> Any:
    payload = result_data.get(field)
    if not isinstance(payload, dict) or not payload.get("success"):
        raise TransportError(f"Issue {action} was not acknowledged by the API")
    return payload


@issue_app.command("list")
def list_issues(
    ctx: typer.Context,
    state: StateOption = None,
    assignee: Annotated[
        str | None,
        typer.Option("--assignee", "-a", help="Assignee name, email, or 'me'."),
    ] = None,
    priority: PriorityOption = None,
    search: Annotated[
        str | None,
        typer.Option("--search", help="Only issues whose title contains this text."),
    ] = None,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", min=1, help="Maximum number of issues."),
    ] = None,
    fetch_all: Annotated[
        bool,
        typer.Option("--all", help="Fetch every matching issue."),
    ] = False,
) -> None:
    """List issues, filtered by the default team when one is configured."""
    context = get_context(ctx)
    team_id = resolve_team_id(context) if context.team else None
    issue_filter = build_filter(
        team_id=team_id,
        state=state,
        assignee=assignee,
        priority=parse_priority(priority) if priority is not None else None,
        search=search,
    )
    max_items = None if fetch_all else (limit or context.page_size)
    issues = cached_read(
        context,
        build_key(ISSUES_NAMESPACE, issue_filter, max_items),
        lambda: list(
            context.pager().fetch_all(
                ISSUES_QUERY,
                {"filter": issue_filter},
                connection="issues",
                limit=max_items,
            )
        ),
    )
    emit(
        context.console,
        context.output_format,
        title="Issues",
        columns=ISSUE_COLUMNS,
        items=issues,
        empty_message="No issues found.",
    )


@issue_app.command("view")
def view_issue(
    ctx: typer.Context,
    identifier: IdentifierArgument,
    kind: KindOption = IdentifierKind.AUTO,
) -> None:
    """Show one issue in detail."""
    context = get_context(ctx)
    issue_id = _resolve_issue(context, identifier, kind)
    issue = cached_read(
        context,
        build_key(ISSUE_NAMESPACE, issue_id),
        lambda: _load_issue(context, issue_id),
    )
    emit_record(
        context.console,
        context.output_format,
        title=str(issue.get("identifier") or identifier),
        columns=ISSUE_DETAIL_COLUMNS,
        item=issue,
    )


@issue_app.command("create")
def create_issue(
    ctx: typer.Context,
    title: Annotated[str, typer.Option("--title", help="Issue title.")],
    description: DescriptionOption = None,
    priority: PriorityOption = None,
    state: StateOption = None,
    parent: Annotated[
        str | None,
        typer.Option("--parent", help="Parent issue identifier."),
    ] = None,
) -> None:
    """Create an issue in the selected team."""
    context = get_context(ctx)
    if not title.strip():
        raise ValidationError("Title cannot be empty")
    team_id = resolve_team_id(context)
    issue_input: dict[str, Any] = {"teamId": team_id, "title": title}
    if description is not None:
        issue_input["description"] = description
    if priority is not None:
        issue_input["priority"] = parse_priority(priority)
    if state is not None:
        issue_input["stateId"] = resolve_state_id(context, team_id, state)
    if parent is not None:
        issue_input["parentId"] = _resolve_issue(context, parent, IdentifierKind.AUTO)

    result = context.require_client().mutate(
        CREATE_ISSUE_MUTATION, {"input": issue_input}
    )
    payload = _mutation_payload(result.data, "issueCreate", "creation")
    invalidate_for(context.cache, context.profile_name, MUTATIONS["create"])
    issue = payload.get("issue") or {}
    context.info(f"[green]Created {escape(str(issue.get('identifier', '')))}.[/green]")
    emit_record(
        context.console,
        context.output_format,
        title="Created issue",
        columns=MUTATION_COLUMNS,
        item=issue,
    )


@issue_app.command("edit")
def edit_issue(
    ctx: typer.Context,
    identifier: IdentifierArgument,
    title: Annotated[str | None, typer.Option("--title", help="New title.")] = None,
    description: DescriptionOption = None,
    priority: PriorityOption = None,
    state: StateOption = None,
    kind: KindOption = IdentifierKind.AUTO,
) -> None:
    """Change fields of an existing issue."""
    context = get_context(ctx)
    if title is None and description is None and priority is None and state is None:
        raise ValidationError(
            "Nothing to update (use --title, --description, --priority or --state)"
        )
    if title is not None and not title.strip():
        raise ValidationError("Title cannot be empty")
    issue_id = _resolve_issue(context, identifier, kind)
    issue_input: dict[str, Any] = {}
    if title is not None:
        issue_input["title"] = title
    if description is not None:
        issue_input["description"] = description
    if priority is not None:
        issue_input["priority"] = parse_priority(priority)
    if state is not None:
        team = _load_issue(context, issue_id).get("team") or {}
        issue_input["stateId"] = resolve_state_id(context, str(team.get("id")), state)

    result = context.require_client().mutate(
        UPDATE_ISSUE_MUTATION, {"id": issue_id, "input": issue_input}
    )
    payload = _mutation_payload(result.data, "issueUpdate", "update")
    invalidate_for(context.cache, context.profile_name, MUTATIONS["edit"])
    issue = payload.get("issue") or {}
    context.info(f"[green]Updated {escape(str(issue.get('identifier', '')))}.[/green]")
    emit_record(
        context.console,
        context.output_format,
        title="Updated issue",
        columns=MUTATION_COLUMNS,
        item=issue,
    )


@issue_app.command("delete")
def delete_issue(
    ctx: typer.Context,
    identifier: IdentifierArgument,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip the confirmation prompt."),
    ] = False,
    kind: KindOption = IdentifierKind.AUTO,
) -> None:
    """Move an issue to the trash."""
    context = get_context(ctx)
    issue_id = _resolve_issue(context, identifier, kind)
    confirm(context, f"Delete issue {identifier}?", assume_yes=yes)
    try:
        result = context.require_client().mutate(
            DELETE_ISSUE_MUTATION, {"id": issue_id}
        )
    except PartialAPIError as exc:
        if exc.not_found:
            raise NotFoundError(f"Issue not found: {identifier}") from exc
        raise
    _mutation_payload(result.data, "issueDelete", "deletion")
    invalidate_for(context.cache, context.profile_name, MUTATIONS["delete"])
    context.info(f"[green]Deleted {escape(identifier)}.[/green]")


__all__ = ["MUTATIONS", "build_filter", "issue_app"]
