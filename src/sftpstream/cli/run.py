"""
sftpstream run - Poll continuously.

Polls on the configured fixed delay until interrupted.
"""

from pathlib import Path

import typer

from sftpstream.exceptions import SftpStreamError
from sftpstream.utils.logging import get_logger

logger = get_logger("sftpstream.cli.run")


app = typer.Typer(name="run", help="Poll the configured SFTP source until stopped", invoke_without_command=True)


@app.callback()
def run(
    ctx: typer.Context,
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
    max_ticks: int | None = typer.Option(None, "--max-ticks", help="Stop after this many ticks"),
) -> None:
    """
    Poll continuously.

    Press Ctrl+C to stop; the tick in flight completes first.
    """
    if ctx.invoked_subcommand is None:
        from sftpstream.app import build_poller, initialize

        try:
            _, props = initialize(project_dir, env=env, verbose=verbose)
            poller = build_poller(props)
        except SftpStreamError as e:
            logger.error(f"Initialization failed: {e}")
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from e

        try:
            poller.run(max_ticks=max_ticks)
        except KeyboardInterrupt:
            poller.stop()
            logger.info("Interrupted")
        finally:
            poller.close()
