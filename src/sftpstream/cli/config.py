"""
sftpstream config - Show the resolved configuration.

Secrets (passwords, keys, tokens) are masked.
"""

from pathlib import Path
from typing import Any

import typer
import yaml
from rich.console import Console
from rich.syntax import Syntax

from sftpstream.exceptions import SftpStreamError

app = typer.Typer(name="config", help="Show the resolved configuration", invoke_without_command=True)

console = Console()

SECRET_MARKERS = ("password", "passphrase", "pass_phrase", "secret", "private_key", "token")


def mask_secrets(data: Any) -> Any:
    """Copy of ``data`` with secret-looking values replaced by ****."""
    if isinstance(data, dict):
        return {
            k: ("****" if v and any(m in str(k).lower() for m in SECRET_MARKERS) else mask_secrets(v))
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [mask_secrets(v) for v in data]
    return data


@app.callback()
def config(
    ctx: typer.Context,
    env: str | None = typer.Option(None, help="Environment to resolve"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
    validate: bool = typer.Option(True, "--validate/--no-validate", help="Also bind and validate all sections"),
):
    """
    Print config.yaml merged with config.{env}.yaml, placeholders resolved.
    """
    if ctx.invoked_subcommand is None:
        from sftpstream.config import AppProperties, load_config

        try:
            cfg = load_config(project_dir, env=env)
            if validate:
                AppProperties.from_config(cfg)
        except SftpStreamError as e:
            console.print(f"[red]Invalid configuration:[/red] {e}")
            raise typer.Exit(1) from e

        content = yaml.safe_dump(mask_secrets(cfg.data), sort_keys=False, default_flow_style=False)
        console.print(f"\n[bold]Configuration ({env or 'default'})[/bold]\n")
        console.print(Syntax(content, "yaml", theme="monokai", line_numbers=False))
