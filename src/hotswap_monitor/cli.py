"""
Command line interface for the hotswap monitor.

Usage:
    hotswap-monitor watch --classes /abs/classes [--jars /abs/jars] [--period 1000]
    hotswap-monitor watch --agent-args "classes=/abs/classes,jars=/abs/jars,period=1000"
    hotswap-monitor scan /abs/classes --extension class
"""

import logging
import logging.config
import os
import time
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from hotswap_monitor.config import MonitorConfig
from hotswap_monitor.core.interfaces import IChangeHandler
from hotswap_monitor.models import ArchiveEntryChangeEvent, BaseError, ConfigurationError, FileChangeEvent
from hotswap_monitor.monitoring import FileMonitor, MonitoringCoordinator

logger = logging.getLogger(__name__)

console = Console()

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ConsoleChangeHandler(IChangeHandler):
    """Prints every forwarded change instead of reloading it."""

    def __init__(self, output: Console | None = None):
        self.output = output or console

    def on_file_changed(self, event: FileChangeEvent) -> None:
        self.output.print(f"[yellow]modified[/yellow] {event.relative_path}")

    def on_archive_entry_changed(self, event: ArchiveEntryChangeEvent) -> None:
        self.output.print(f"[yellow]modified[/yellow] {event.entry_name} [dim]in {event.archive.relative_path}[/dim]")


def _fail(message: str) -> None:
    console.print(f"[red]Configuration error:[/red] {escape(message)}")
    raise SystemExit(2)


@click.group()
def main():
    """Poll class folders and jar archives for rebuilt code."""


@main.command()
@click.option("--classes", "-c", type=click.Path(path_type=Path), help="Absolute folder of class files")
@click.option("--jars", "-j", type=click.Path(path_type=Path), help="Absolute folder of jar archives")
@click.option("--period", "-p", type=int, help="Delay between scans in milliseconds (minimum 500)")
@click.option("--agent-args", "-a", help="Agent argument string, e.g. classes=/a,jars=/b,period=1000")
@click.option("--duration", "-t", type=float, default=0, show_default=True, help="Seconds to run; 0 runs until Ctrl-C")
@click.option("--log-level", type=click.Choice(LOG_LEVELS, case_sensitive=False), help="Logging level")
def watch(classes: Path | None, jars: Path | None, period: int | None, agent_args: str | None, duration: float,
          log_level: str | None):
    """
    Watch folders and print every modified class or archive entry.

    Explicit options override values given in --agent-args.
    """
    try:
        config = MonitorConfig.from_agent_args(
            agent_args,
            class_folder=classes,
            jar_folder=jars,
            period_ms=period,
            log_level=log_level.upper() if log_level else None,
        )
    except (BaseError, ValidationError) as e:
        _fail(str(e))

    logging.config.dictConfig(config.get_log_config())
    logger.debug("Effective agent arguments: %s", config.to_agent_args())

    coordinator = MonitoringCoordinator(config, ConsoleChangeHandler())
    try:
        coordinator.start()
    except ConfigurationError as e:
        _fail(str(e))

    console.print(
        Panel.fit(
            f"[bold]classes:[/bold] {config.class_folder}\n"
            f"[bold]jars:[/bold] {config.jar_folder or '-'}\n"
            f"[bold]period:[/bold] {config.period_ms} ms",
            title="hotswap-monitor",
            border_style="blue",
        )
    )

    try:
        deadline = time.monotonic() + duration if duration > 0 else None
        while deadline is None or time.monotonic() < deadline:
            time.sleep(0.2)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
    finally:
        coordinator.stop()

    stats = coordinator.get_monitoring_stats()["processing_stats"]
    console.print(
        f"Forwarded {stats['changes_forwarded']} change(s), "
        f"{stats['operations']['failed']} handler failure(s), {len(stats['errors'])} error(s)"
    )


@main.command()
@click.argument("folder", type=click.Path(path_type=Path))
@click.option("--extension", "-e", default="class", show_default=True, help="Extension of files to list")
def scan(folder: Path, extension: str):
    """List the files a monitor would track under FOLDER."""
    try:
        monitor = FileMonitor(str(folder), extension)
    except ConfigurationError as e:
        _fail(str(e))

    events = monitor.scan()

    table = Table(title=f"*.{monitor.extension} under {monitor.root}", show_header=True)
    table.add_column("File", style="cyan")
    table.add_column("Modified (ms)", style="dim")
    state = monitor.tracked_paths()
    for event in events:
        table.add_row(event.relative_path, str(state.get(os.path.join(monitor.root, event.relative_path), "")))
    console.print(table)
    console.print(f"{len(events)} file(s) under {monitor.root}")


if __name__ == "__main__":
    main()
