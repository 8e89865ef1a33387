"""Commands that print the merged configuration."""

from __future__ import annotations

import json

import click
from rich.console import Console
from rich.table import Table

from configwatch.domain.errors import TypeMismatchError
from configwatch.domain.models import ConfigSnapshot, ValueType

from .context import get_cli_context, refresh_once

console = Console()

_TYPE_CHOICES = {
    "any": None,
    "string": str,
    "integer": int,
    "float": float,
    "number": ValueType.NUMBER,
    "boolean": bool,
    "mapping": dict,
    "list": list,
}


def _snapshot_payload(snapshot: ConfigSnapshot) -> dict:
    return {
        "version": snapshot.version,
        "created_at": snapshot.created_at.isoformat(),
        "profiles": list(snapshot.profiles),
        "values": snapshot.as_dict(),
    }


def _render(value: object) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, indent=2, sort_keys=True)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@click.command()
@click.option("--json", "json_output", is_flag=True, help="Output the snapshot as JSON.")
@click.option("--origins/--no-origins", default=True, show_default=True, help="Show where each key came from.")
@click.pass_context
def show(ctx: click.Context, json_output: bool, origins: bool) -> None:
    """Fetch and merge once, then print every key."""
    watcher = get_cli_context(ctx).build_watcher()
    refresh_once(watcher)
    snapshot = watcher.current()

    if json_output:
        click.echo(json.dumps(_snapshot_payload(snapshot), indent=2, sort_keys=True))
        return

    if not len(snapshot):
        console.print("[yellow]No configuration keys found.[/yellow]")
        return

    table = Table(title=f"Configuration v{snapshot.version} ({', '.join(snapshot.profiles)})")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value")
    table.add_column("Type", style="magenta")
    if origins:
        table.add_column("Origin", style="dim")
    for key in snapshot.keys():
        value = snapshot.value(key)
        row = [key, value.render(), value.type.value]
        if origins:
            row.append(snapshot.origin(key) or "-")
        table.add_row(*row)
    console.print(table)


@click.command()
@click.argument("key")
@click.option(
    "--type",
    "type_name",
    type=click.Choice(sorted(_TYPE_CHOICES)),
    default="any",
    show_default=True,
    help="Coerce the value to this type.",
)
@click.pass_context
def get(ctx: click.Context, key: str, type_name: str) -> None:
    """Print the value of KEY (a dotted path such as db.timeout)."""
    watcher = get_cli_context(ctx).build_watcher()
    refresh_once(watcher)

    try:
        value = watcher.get(key, _TYPE_CHOICES[type_name])
    except TypeMismatchError as exc:
        raise click.ClickException(str(exc)) from exc
    if value is None:
        raise click.ClickException(f"Key not found: {key}")
    click.echo(_render(value))
