"""
sftpstream poll - Run poll ticks once and report.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from sftpstream.exceptions import SftpStreamError
from sftpstream.utils.logging import get_logger

logger = get_logger("sftpstream.cli.poll")

app = typer.Typer(name="poll", help="Run poll ticks and print a summary", invoke_without_command=True)

console = Console()


@app.callback()
def poll(
    ctx: typer.Context,
    ticks: int = typer.Option(1, "--ticks", "-n", min=1, help="Number of ticks to run"),
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
) -> None:
    """
    Run a fixed number of ticks without waiting between them.
    """
    if ctx.invoked_subcommand is None:
        from sftpstream.app import build_poller, initialize

        try:
            _, props = initialize(project_dir, env=env, verbose=verbose)
            poller = build_poller(props)
        except SftpStreamError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from e

        table = Table(title="Poll results")
        for column in ("Tick", "Server", "Directory", "Received", "Emitted", "Duplicates", "Errors"):
            table.add_column(column)

        failed = False
        try:
            for tick in range(1, ticks + 1):
                try:
                    summary = poller.poll_once()
                except SftpStreamError as e:
                    failed = True
                    logger.error(f"Tick {tick} failed: {e}")
                    table.add_row(str(tick), "-", "-", "-", "-", "-", f"[red]{e.message}[/red]")
                    continue
                table.add_row(
                    str(tick),
                    summary.key or "default",
                    summary.directory,
                    str(summary.received),
                    str(summary.emitted),
                    str(summary.duplicates),
                    str(summary.errors),
                )
        finally:
            poller.close()

        console.print(table)
        if failed:
            raise typer.Exit(1)
