"""Typer application wiring for the lirt CLI."""

from __future__ import annotations
import logging
import os
from typing import Annotated, Any
import click
import typer
from rich.console import Console
from rich.markup import escape
from typer.core import TyperGroup
from lirt.cache import CacheStore
from lirt.config import (
    API_URL_ENV,
    FORMAT_ENV,
    OUTPUT_FORMATS,
    TEAM_ENV,
    ProfileStore,
    resolve_paths,
    resolve_profile_name,
)
from lirt.errors import LirtError, ValidationError
from lirt.logging_config import SecretRedactingFilter, configure_logging
from lirt.transport import LINEAR_API_ENDPOINT
from .api import api_command
from .auth import auth_app
from .cache_command import cache_app
from .config_command import config_app
from .issue import issue_app
from .meta import meta_app
from .state import CLIContext
from .team import team_app


logger = logging.getLogger(__name__)

REDACTOR_META_KEY = "lirt.redactor"


def report_error(
    error: LirtError, redactor: SecretRedactingFilter | None = None
) -> None:
    """Print ``error`` on stderr with the secrets known to ``redactor`` masked."""
    message = str(error)
    if redactor is not None:
        message = redactor.redact(message)
    Console(stderr=True).print(f"[red]Error:[/red] {escape(message)}", soft_wrap=True)


class LirtGroup(TyperGroup):
    """Root command group translating domain errors into exit codes."""

    def invoke(self, ctx: click.Context) -> Any:
        """Run the command, mapping :class:`LirtError` to its exit code."""
        try:
            return super().invoke(ctx)
        except LirtError as exc:
            logger.debug("Command failed", exc_info=True)
            report_error(exc, ctx.meta.get(REDACTOR_META_KEY))
            raise typer.Exit(code=int(exc.exit_code)) from exc


app = typer.Typer(
    cls=LirtGroup,
    help="Command line client for the Linear issue tracker.",
    no_args_is_help=True,
)
app.add_typer(auth_app, name="auth")
app.add_typer(config_app, name="config")
app.add_typer(cache_app, name="cache")
app.add_typer(team_app, name="team")
app.add_typer(meta_app, name="meta")
app.add_typer(issue_app, name="issue")
app.command("api")(api_command)


def build_context(
    env: dict[str, str],
    *,
    profile: str | None = None,
    api_key: str | None = None,
    team: str | None = None,
    output_format: str | None = None,
    no_cache: bool = False,
    quiet: bool = False,
    redactor: SecretRedactingFilter | None = None,
) -> CLIContext:
    """Assemble the per-invocation state from flags and ``env``.

    Flags win over environment variables, which win over profile settings.
    """
    name = resolve_profile_name(profile, env)
    paths = resolve_paths(env)
    store = ProfileStore(paths)
    loaded = store.load(name)

    fmt = output_format or env.get(FORMAT_ENV) or loaded.format
    if fmt not in OUTPUT_FORMATS:
        valid = ", ".join(OUTPUT_FORMATS)
        raise ValidationError(f"Invalid format '{fmt}' (expected one of: {valid})")
    if redactor is None:
        redactor = SecretRedactingFilter()
    redactor.register(api_key)

    return CLIContext(
        env=env,
        store=store,
        profile=loaded,
        cache=CacheStore(paths.cache_dir),
        console=Console(),
        endpoint=env.get(API_URL_ENV) or LINEAR_API_ENDPOINT,
        team=team or env.get(TEAM_ENV) or loaded.team,
        output_format=fmt,
        api_key_override=api_key,
        no_cache=no_cache,
        quiet=quiet,
        redactor=redactor,
    )


@app.callback()
def _configure(
    ctx: typer.Context,
    profile: Annotated[
        str | None,
        typer.Option("--profile", "-P", help="Profile to use for this command."),
    ] = None,
    api_key: Annotated[
        str | None,
        typer.Option("--api-key", help="API key for this command only."),
    ] = None,
    team: Annotated[
        str | None,
        typer.Option("--team", "-t", help="Team key for this command."),
    ] = None,
    output_format: Annotated[
        str | None,
        typer.Option("--format", "-f", help="Output format: table, json or csv."),
    ] = None,
    no_cache: Annotated[
        bool,
        typer.Option("--no-cache", help="Bypass the local cache."),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Suppress status messages."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging on stderr."),
    ] = False,
) -> None:
    """Initialise shared CLI state before executing a command."""
    env = dict(os.environ)
    redactor = SecretRedactingFilter()
    ctx.meta[REDACTOR_META_KEY] = redactor
    configure_logging(logging.DEBUG if verbose else None, env=env, redactor=redactor)
    context = build_context(
        env,
        profile=profile,
        api_key=api_key,
        team=team,
        output_format=output_format,
        no_cache=no_cache,
        quiet=quiet,
        redactor=redactor,
    )
    ctx.obj = context
    ctx.call_on_close(context.close)


def main() -> None:
    """Entry point for console script execution."""
    app()


__all__ = ["LirtGroup", "app", "build_context", "main", "report_error"]
