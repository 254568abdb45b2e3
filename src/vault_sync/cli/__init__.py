"""Command-line interface for VaultSync."""

from vault_sync.cli.main import app, main

__all__ = ["app", "main"]
