"""VaultSync CLI main entry point."""

from __future__ import annotations

from typing import Annotated

import typer

from vault_sync.cli._helpers import configure_logging
from vault_sync.cli.commands.config_cmd import config_app
from vault_sync.cli.commands.sync_cmd import queue, status, sync, watch

# Main app
app = typer.Typer(
    name="vsync",
    help="VaultSync - offline mutation queue and sync engine",
    no_args_is_help=True,
)

app.add_typer(config_app, name="config")

app.command()(status)
app.command()(queue)
app.command()(sync)
app.command()(watch)


@app.callback()
def _root(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    configure_logging(verbose)


@app.command()
def version() -> None:
    """Show version information."""
    from vault_sync import __version__

    typer.echo(f"vault-sync v{__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
