"""Authentication and profile management commands."""

from __future__ import annotations
import shlex
from typing import Annotated, Any
import typer
from rich.markup import escape
from lirt.config import validate_profile_name
from lirt.credentials import mask_api_key
from lirt.errors import AuthenticationError, NotFoundError
from lirt.queries import VIEWER_QUERY
from lirt.transport import GraphQLClient
from .render import PROFILE_COLUMNS, Column, emit, emit_record
from .utils import confirm, get_context


auth_app = typer.Typer(help="Log in, inspect and switch between profiles.")

YesOption = Annotated[
    bool,
    typer.Option("--yes", "-y", help="Skip the confirmation prompt."),
]

STATUS_COLUMNS: tuple[Column, ...] = (
    ("profile", "Profile", "profile"),
    ("workspace", "Workspace", "workspace"),
    ("user", "User", "user"),
    ("email", "Email", "email"),
    ("api_key", "API key", "api_key"),
)


def _fetch_viewer(client: GraphQLClient) -> dict[str, Any]:
    viewer = client.query(VIEWER_QUERY).data.get("viewer")
    if not isinstance(viewer, dict):
        raise AuthenticationError("The API key did not resolve to a user")
    return viewer


@auth_app.command("login")
def login(
    ctx: typer.Context,
    api_key: Annotated[
        str | None,
        typer.Option(
            "--api-key",
            help="API key to store. Prompted for when omitted.",
        ),
    ] = None,
    yes: YesOption = False,
) -> None:
    """Validate an API key and store it in the active profile."""
    context = get_context(ctx)
    name = context.profile_name
    key = api_key or context.api_key_override
    if not key:
        key = typer.prompt("Linear API key", hide_input=True, err=True)
    key = key.strip()

    with context.client_for(key) as client:
        viewer = _fetch_viewer(client)
    organization = viewer.get("organization") or {}
    workspace = organization.get("name") or organization.get("urlKey")

    if context.store.exists(name):
        confirm(
            context,
            f"Profile '{name}' already exists. Overwrite it?",
            assume_yes=yes,
        )

    profile = context.profile
    profile.workspace = workspace
    context.store.save(profile, api_key=key)
    context.cache.clear(name)
    context.info(
        f"[green]Logged in to {escape(str(workspace or 'Linear'))} as "
        f"{escape(str(viewer.get('name', '')))} (profile '{escape(name)}').[/green]"
    )


@auth_app.command("status")
def status(ctx: typer.Context) -> None:
    """Show which user and workspace the active credentials belong to."""
    context = get_context(ctx)
    key = context.api_key()
    viewer = _fetch_viewer(context.require_client())
    record = {
        "profile": context.profile_name,
        "workspace": (viewer.get("organization") or {}).get("name"),
        "user": viewer.get("name"),
        "email": viewer.get("email"),
        "api_key": mask_api_key(key),
    }
    emit_record(
        context.console,
        context.output_format,
        title="Authenticated",
        columns=STATUS_COLUMNS,
        item=record,
    )


@auth_app.command("token")
def token(ctx: typer.Context) -> None:
    """Print the full API key of the active profile to stdout."""
    context = get_context(ctx)
    typer.echo(context.api_key())


@auth_app.command("logout")
def logout(ctx: typer.Context, yes: YesOption = False) -> None:
    """Remove the active profile, its stored key and its cache."""
    context = get_context(ctx)
    name = context.profile_name
    if not context.store.exists(name):
        raise NotFoundError(f"Profile '{name}' not found")
    confirm(context, f"Remove profile '{name}'?", assume_yes=yes)
    context.store.delete(name)
    context.cache.clear(name)
    context.info(f"[green]Logged out of profile '{escape(name)}'.[/green]")


@auth_app.command("list")
def list_profiles(ctx: typer.Context) -> None:
    """List every stored profile with its workspace and masked key."""
    context = get_context(ctx)
    rows = [
        {
            "name": name,
            "workspace": workspace,
            "api_key": mask_api_key(context.store.load_api_key(name)),
            "active": name == context.profile_name,
        }
        for name, workspace in context.store.list()
    ]
    emit(
        context.console,
        context.output_format,
        title="Profiles",
        columns=PROFILE_COLUMNS,
        items=rows,
        empty_message="No profiles found. Run 'lirt auth login' to create one.",
    )


@auth_app.command("switch")
def switch(
    ctx: typer.Context,
    profile: Annotated[str, typer.Argument(help="Profile to activate.")],
) -> None:
    """Print the shell command that selects ``profile`` for later invocations."""
    context = get_context(ctx)
    validate_profile_name(profile)
    if not context.store.exists(profile):
        raise NotFoundError(f"Profile '{profile}' not found")
    typer.echo(f"export LIRT_PROFILE={shlex.quote(profile)}")


__all__ = ["auth_app"]
