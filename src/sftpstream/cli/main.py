"""
Main CLI entry point.
"""

import typer

from sftpstream import __version__
from sftpstream.cli import config, poll, put, run


def version_callback(value: bool):
    """Callback to display version and exit."""
    if value:
        typer.echo(f"sftpstream version {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="sftpstream",
    help="sftpstream - Poll SFTP servers and stream their files downstream",
    add_completion=False,
)

# Register subcommands
app.add_typer(run.app, name="run")
app.add_typer(poll.app, name="poll")
app.add_typer(put.app, name="put")
app.add_typer(config.app, name="config")


@app.callback(invoke_without_command=True)
def entrypoint(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """
    sftpstream - Poll SFTP servers and stream their files downstream.

    Run 'sftpstream <command> --help' for help on a specific command.
    """
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
