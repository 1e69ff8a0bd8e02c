"""Rendering helpers for CLI output.

Every domain type has an explicit projection: a tuple of columns naming the
output key, the table header and the dotted path read from the API record.
The same projection drives the table, JSON and CSV renderings, so the three
formats always agree on which fields are shown.
"""

from __future__ import annotations
import csv
import io
import json
from collections.abc import Iterable, Mapping, Sequence
from typing import Any
import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table


Column = tuple[str, str, str]

TEAM_COLUMNS: tuple[Column, ...] = (
    ("key", "Key", "key"),
    ("name", "Name", "name"),
    ("id", "ID", "id"),
)
STATE_COLUMNS: tuple[Column, ...] = (
    ("name", "Name", "name"),
    ("type", "Type", "type"),
    ("id", "ID", "id"),
)
ISSUE_COLUMNS: tuple[Column, ...] = (
    ("identifier", "ID", "identifier"),
    ("title", "Title", "title"),
    ("state", "State", "state.name"),
    ("priority", "Priority", "priorityLabel"),
    ("assignee", "Assignee", "assignee.name"),
)
ISSUE_DETAIL_COLUMNS: tuple[Column, ...] = (
    ("identifier", "ID", "identifier"),
    ("title", "Title", "title"),
    ("team", "Team", "team.key"),
    ("state", "State", "state.name"),
    ("priority", "Priority", "priorityLabel"),
    ("assignee", "Assignee", "assignee.name"),
    ("project", "Project", "project.name"),
    ("parent", "Parent", "parent.identifier"),
    ("url", "URL", "url"),
    ("created_at", "Created", "createdAt"),
    ("updated_at", "Updated", "updatedAt"),
    ("description", "Description", "description"),
)
MUTATION_COLUMNS: tuple[Column, ...] = (
    ("identifier", "ID", "identifier"),
    ("title", "Title", "title"),
    ("url", "URL", "url"),
)
PRIORITY_COLUMNS: tuple[Column, ...] = (
    ("value", "Value", "value"),
    ("name", "Name", "name"),
    ("label", "Label", "label"),
)
PROFILE_COLUMNS: tuple[Column, ...] = (
    ("profile", "Profile", "name"),
    ("workspace", "Workspace", "workspace"),
    ("api_key", "API Key", "api_key"),
    ("active", "Active", "active"),
)
SETTING_COLUMNS: tuple[Column, ...] = (
    ("key", "Key", "key"),
    ("value", "Value", "value"),
)
CACHE_COLUMNS: tuple[Column, ...] = (
    ("key", "Key", "key"),
    ("fetched_at", "Fetched", "fetched_at"),
    ("size", "Bytes", "size"),
)


def pluck(item: Any, path: str) -> Any:
    """Return the value at dotted ``path`` in ``item`` or ``None``."""
    node = item
    for part in path.split("."):
        if not isinstance(node, Mapping):
            return None
        node = node.get(part)
    return node


def project(item: Any, columns: Sequence[Column]) -> dict[str, Any]:
    """Return ``item`` reduced to the keys named by ``columns``."""
    return {key: pluck(item, path) for key, _, path in columns}


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


def render_table(
    console: Console,
    *,
    title: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[str]],
) -> None:
    """Render a simple table using :mod:`rich`."""
    table = Table(title=title, show_lines=False)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*(escape(cell) for cell in row))
    console.print(table)


def render_kv_section(
    console: Console,
    *,
    title: str,
    pairs: Sequence[tuple[str, str]],
) -> None:
    """Render key/value pairs in a bordered panel."""
    lines = [f"[bold]{key}[/]: {escape(value)}" for key, value in pairs]
    panel = Panel("\n".join(lines), title=escape(title), expand=False)
    console.print(panel)


def _csv_text(columns: Sequence[Column], records: Iterable[Mapping[str, Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow([key for key, _, _ in columns])
    for record in records:
        writer.writerow([_cell(record[key]) for key, _, _ in columns])
    return buffer.getvalue().rstrip("\n")


def emit(
    console: Console,
    output_format: str,
    *,
    title: str,
    columns: Sequence[Column],
    items: Iterable[Any],
    empty_message: str | None = None,
) -> None:
    """Render a collection of records in ``output_format``."""
    records = [project(item, columns) for item in items]
    if output_format == "json":
        typer.echo(json.dumps(records, indent=2, ensure_ascii=False))
        return
    if output_format == "csv":
        typer.echo(_csv_text(columns, records))
        return
    if not records and empty_message:
        console.print(f"[yellow]{escape(empty_message)}[/yellow]")
        return
    render_table(
        console,
        title=title,
        columns=[header for _, header, _ in columns],
        rows=[[_cell(record[key]) for key, _, _ in columns] for record in records],
    )


def emit_record(
    console: Console,
    output_format: str,
    *,
    title: str,
    columns: Sequence[Column],
    item: Any,
) -> None:
    """Render a single record in ``output_format``."""
    record = project(item, columns)
    if output_format == "json":
        typer.echo(json.dumps(record, indent=2, ensure_ascii=False))
        return
    if output_format == "csv":
        typer.echo(_csv_text(columns, [record]))
        return
    pairs = [
        (header, _cell(record[key]))
        for key, header, _ in columns
        if record[key] not in (None, "")
    ]
    render_kv_section(console, title=title, pairs=pairs)


__all__ = [
    "CACHE_COLUMNS",
    "ISSUE_COLUMNS",
    "ISSUE_DETAIL_COLUMNS",
    "MUTATION_COLUMNS",
    "PRIORITY_COLUMNS",
    "PROFILE_COLUMNS",
    "SETTING_COLUMNS",
    "STATE_COLUMNS",
    "TEAM_COLUMNS",
    "Column",
    "emit",
    "emit_record",
    "pluck",
    "project",
    "render_kv_section",
    "render_table",
]
