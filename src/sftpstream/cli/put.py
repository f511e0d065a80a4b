"""
sftpstream put - Upload local files through the SFTP sink.
"""

from pathlib import Path

import typer
from rich.console import Console

from sftpstream.exceptions import SftpStreamError
from sftpstream.messaging import FILENAME, Message

app = typer.Typer(name="put", help="Upload files to the configured sink", invoke_without_command=True)

console = Console()


@app.callback()
def put(
    ctx: typer.Context,
    files: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Files to upload"),
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
) -> None:
    """
    Upload each file to sink.remote_dir using the configured mode.
    """
    if ctx.invoked_subcommand is None:
        from sftpstream.app import build_sink, initialize

        try:
            _, props = initialize(project_dir, env=env, verbose=verbose)
        except SftpStreamError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from e

        failed = 0
        with build_sink(props) as sink:
            for path in files:
                try:
                    remote = sink.handle(Message(payload=str(path), headers={FILENAME: path.name}))
                except SftpStreamError as e:
                    failed += 1
                    console.print(f"[red]✗[/red] {path}: {e.message}")
                    continue
                if remote is None:
                    console.print(f"[yellow]-[/yellow] {path}: exists, skipped")
                else:
                    console.print(f"[green]✓[/green] {path} -> {remote}")

        if failed:
            raise typer.Exit(1)
