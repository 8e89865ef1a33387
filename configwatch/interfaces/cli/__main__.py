"""Entry point for running the Configwatch CLI.

This module defines the top-level Click group that aggregates the subcommands
of the ``configwatch.interfaces.cli`` package. Executing
``python -m configwatch.interfaces.cli`` invokes this group.
"""

from __future__ import annotations

from pathlib import Path

import click

from configwatch.infrastructure.observability import configure_logging, configure_tracing

from .context import CLIContext
from .metrics import metrics
from .show import get, show
from .sources import sources
from .watch import watch


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    envvar="CONFIGWATCH_CONFIG",
    help="Settings file (defaults to ./configwatch.yaml).",
)
@click.option(
    "--profile",
    "profiles",
    multiple=True,
    help="Active profile; repeat or comma separate for several.",
)
@click.option(
    "--log-level",
    default="WARNING",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level for messages written to stderr.",
)
@click.option(
    "--trace/--no-trace",
    default=False,
    envvar="CONFIGWATCH_TRACING",
    help="Export OpenTelemetry traces (requires the tracing extra).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    profiles: tuple[str, ...],
    log_level: str,
    trace: bool,
) -> None:
    """Configwatch command-line interface."""
    configure_logging(log_level.upper())
    if trace:
        configure_tracing(service_name="configwatch")
    ctx.obj = CLIContext(config_path=config_path, profiles=profiles)


cli.add_command(show)
cli.add_command(get)
cli.add_command(watch)
cli.add_command(sources)
cli.add_command(metrics)


if __name__ == "__main__":
    cli()
