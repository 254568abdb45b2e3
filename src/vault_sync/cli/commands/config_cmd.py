"""CLI commands for configuration management."""

from __future__ import annotations

from typing import Annotated

import typer

from vault_sync.cli._helpers import get_config, output_result

config_app = typer.Typer(help="Configuration management")


@config_app.command("show")
def show_cmd(
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show the effective configuration (tokens masked).

    Examples:
        vsync config show
        vsync config show --json
    """
    config = get_config()
    data = config.to_dict()

    if json_output:
        output_result(data, as_json=True)
        return

    typer.secho(f"Config: {config.config_path}", fg=typer.colors.BRIGHT_BLACK)
    typer.echo(f"database = {config.db_path}")
    for section in ("remote", "sync"):
        typer.secho(f"\n[{section}]", fg=typer.colors.CYAN, bold=True)
        for key, value in data[section].items():
            typer.echo(f"{key} = {value}")
