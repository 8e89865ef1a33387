"""Keep refreshing in the foreground and report version changes."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console

from configwatch.domain.models import ConfigSnapshot
from configwatch.services import ConfigWatcher, RefreshStatus

from .context import get_cli_context

console = Console()

DEFAULT_WATCH_INTERVAL = 30.0


def _describe_change(old: ConfigSnapshot, new: ConfigSnapshot) -> str:
    old_flat, new_flat = old.as_flat(), new.as_flat()
    added = len(new_flat.keys() - old_flat.keys())
    removed = len(old_flat.keys() - new_flat.keys())
    changed = sum(1 for key in new_flat.keys() & old_flat.keys() if new_flat[key] != old_flat[key])
    return (
        f"[green]v{old.version} -> v{new.version}[/green] "
        f"({len(new)} keys: +{added} -{removed} ~{changed})"
    )


async def _watch(watcher: ConfigWatcher, cycles: int | None) -> None:
    status = watcher.controller.status
    await watcher.start()
    try:
        while cycles is None or status.total_successes + status.total_failures < cycles:
            await asyncio.sleep(0.05)
    finally:
        await watcher.stop()


@click.command()
@click.option(
    "--interval",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help=f"Poll interval in seconds (default: from settings, else {DEFAULT_WATCH_INTERVAL:g}).",
)
@click.option(
    "--cycles",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after this many refresh cycles.",
)
@click.pass_context
def watch(ctx: click.Context, interval: float | None, cycles: int | None) -> None:
    """Refresh continuously and print each new configuration version."""
    cli_context = get_cli_context(ctx)
    watcher = cli_context.build_watcher(poll_interval_seconds=interval)
    if watcher.controller.poll_interval_seconds is None:
        watcher = cli_context.build_watcher(poll_interval_seconds=DEFAULT_WATCH_INTERVAL)

    def on_failure_streak(status: RefreshStatus) -> None:
        console.print(
            f"[red]Refresh failing ({status.consecutive_failures} in a row): "
            f"{status.last_error}[/red]"
        )

    def on_recovered(status: RefreshStatus) -> None:
        console.print("[green]Refresh recovered.[/green]")

    watcher.on_change(lambda old, new: console.print(_describe_change(old, new)))
    watcher.on_degraded(on_failure_streak)
    watcher.on_recovered(on_recovered)

    console.print(
        f"Watching {len(watcher.controller.sources)} source(s) for profiles "
        f"{', '.join(watcher.plan.profiles)} every {watcher.controller.poll_interval_seconds:g}s"
    )
    try:
        asyncio.run(_watch(watcher, cycles))
    except KeyboardInterrupt:
        console.print("Stopped.")
    console.print(f"Final version: {watcher.current().version}")
