"""List the configured sources."""

from __future__ import annotations

import json

import click
from rich.console import Console
from rich.table import Table

from configwatch.domain.models import SourceKind

from .context import get_cli_context

console = Console()


@click.command()
@click.option("--json", "json_output", is_flag=True, help="Output the sources as JSON.")
@click.pass_context
def sources(ctx: click.Context, json_output: bool) -> None:
    """Show the sources from the settings file in precedence order."""
    settings = get_cli_context(ctx).settings()
    configured = settings.to_sources()

    if json_output:
        payload = [
            {
                "kind": source.kind.value,
                "location": source.location,
                "ref": source.ref if source.kind is SourceKind.REPOSITORY else None,
                "poll_interval_seconds": source.poll_interval_seconds,
                "timeout_seconds": source.timeout_seconds,
                "optional": source.optional,
                "credentials": bool(source.credentials_ref),
            }
            for source in configured
        ]
        click.echo(json.dumps(payload, indent=2))
        return

    if not configured:
        console.print("[yellow]No sources configured.[/yellow]")
        return

    table = Table(title=f"{len(configured)} source(s)")
    table.add_column("#", justify="right")
    table.add_column("Kind", style="cyan")
    table.add_column("Location")
    table.add_column("Poll (s)", justify="right")
    table.add_column("Optional")
    table.add_column("Credentials")
    for index, source in enumerate(configured, start=1):
        poll = source.poll_interval_seconds
        table.add_row(
            str(index),
            source.kind.value,
            source.description,
            f"{poll:g}" if poll else "-",
            "yes" if source.optional else "no",
            source.credentials_ref.split(":", 1)[0] if source.credentials_ref else "-",
        )
    console.print(table)
