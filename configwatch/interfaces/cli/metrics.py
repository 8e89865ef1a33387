"""Print refresh metrics in Prometheus text format."""

from __future__ import annotations

import json

import click

from configwatch.infrastructure.observability import format_prometheus, get_metrics_summary

from .context import get_cli_context, refresh_once


@click.command()
@click.option("--json", "json_output", is_flag=True, help="Output a JSON summary instead.")
@click.pass_context
def metrics(ctx: click.Context, json_output: bool) -> None:
    """Run one refresh cycle and print the collected metrics."""
    watcher = get_cli_context(ctx).build_watcher()
    refresh_once(watcher)
    if json_output:
        payload = {"metrics": get_metrics_summary(), "status": watcher.status()}
        click.echo(json.dumps(payload, indent=2, default=str))
        return
    click.echo(format_prometheus())
