"""Raw GraphQL escape hatch."""

from __future__ import annotations
import json
from pathlib import Path
from typing import Annotated, Any
import typer
from lirt.errors import ValidationError
from .utils import get_context


def parse_variables(pairs: list[str] | None) -> dict[str, Any]:
    """Parse ``key=value`` pairs; values are decoded as JSON when possible."""
    variables: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, raw = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValidationError(f"Invalid variable '{pair}' (expected key=value)")
        try:
            variables[key] = json.loads(raw)
        except json.JSONDecodeError:
            variables[key] = raw
    return variables


def api_command(
    ctx: typer.Context,
    query: Annotated[
        str | None,
        typer.Argument(help="GraphQL document. Use --input to read it from a file."),
    ] = None,
    input_file: Annotated[
        Path | None,
        typer.Option(
            "--input",
            "-i",
            exists=True,
            dir_okay=False,
            readable=True,
            help="Read the GraphQL document from a file.",
        ),
    ] = None,
    var: Annotated[
        list[str] | None,
        typer.Option("--var", help="Query variable as key=value. Repeatable."),
    ] = None,
) -> None:
    """Run a GraphQL document and print the JSON data. Never cached."""
    context = get_context(ctx)
    if query and input_file:
        raise ValidationError("Pass the query as an argument or with --input, not both")
    document = input_file.read_text(encoding="utf-8") if input_file else query
    if not document or not document.strip():
        raise ValidationError("A GraphQL query is required")
    variables = parse_variables(var)
    result = context.require_client().execute(document, variables or None)
    typer.echo(json.dumps(result.data, indent=2, ensure_ascii=False))


__all__ = ["api_command", "parse_variables"]
