"""
CLI output helpers -- rich consoles, tables and error rendering.
"""

from __future__ import annotations

import json
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from keyspine.core.errors import KeySpineError

console = Console()
err_console = Console(stderr=True)


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def print_mapping(data: dict[str, Any], *, title: str = "") -> None:
    """Render a flat mapping as a two-column table."""
    table = Table(title=title or None, show_header=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key, value in data.items():
        table.add_row(str(key), "" if value is None else str(value))
    console.print(table)


def print_rows(rows: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of same-shaped dicts as a table."""
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None)
    for column in rows[0]:
        table.add_column(str(column))
    for row in rows:
        table.add_row(*("" if v is None else str(v) for v in row.values()))
    console.print(table)


def fail(error: Exception, *, as_json: bool = False, code: int = 1) -> NoReturn:
    """Print an error and exit with ``code``."""
    if as_json:
        payload = error.to_dict() if isinstance(error, KeySpineError) else {"message": str(error)}
        print_json({"ok": False, "error": payload})
    else:
        err_console.print(f"[bold red]Error[/bold red]: {error}")
        if isinstance(error, KeySpineError):
            for key, value in error.context.to_dict().items():
                if key == "errors":
                    for message in value:
                        err_console.print(f"  - {message}")
                elif key != "error_count":
                    err_console.print(f"  {key}: {value}")
    raise typer.Exit(code=code)


def parse_assignments(items: list[str] | None, *, option: str) -> dict[str, str]:
    """Split ``NAME=VALUE`` option values into a dict, keeping order."""
    result: dict[str, str] = {}
    for item in items or []:
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise typer.BadParameter(f"expected NAME=VALUE, got {item!r}", param_hint=option)
        result[name] = value
    return result
