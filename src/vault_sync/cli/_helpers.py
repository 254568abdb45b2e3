"""Shared CLI helpers for configuration, client lifecycle, and output formatting."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Coroutine
from typing import Any, TypeVar

import typer

from vault_sync.client import OfflineClient
from vault_sync.unified_config import UnifiedConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Clients opened during a CLI command, closed before the event loop shuts
# down so aiosqlite's worker thread does not outlive the loop.
_active_clients: list[OfflineClient] = []


def configure_logging(verbose: bool = False) -> None:
    """Send log records to stderr; DEBUG when verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        force=True,
    )


def get_config() -> UnifiedConfig:
    """Get VaultSync configuration."""
    return UnifiedConfig.load()


async def open_client(config: UnifiedConfig, *, check_network: bool = True) -> OfflineClient:
    """Build and initialize a client; it is closed automatically by ``run_async``."""
    client = OfflineClient.from_config(config)
    _active_clients.append(client)
    if check_network:
        await client.initialize()
    else:
        await client.store.initialize()
    return client


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async CLI command with proper client cleanup.

    Replaces bare ``asyncio.run()`` to ensure aiosqlite connections are
    closed *before* the event loop is torn down.
    """

    async def _with_cleanup() -> T:
        try:
            return await coro
        finally:
            for client in _active_clients:
                try:
                    await client.close()
                except Exception:
                    logger.debug("Failed to close client during cleanup", exc_info=True)
            _active_clients.clear()
            await asyncio.sleep(0)

    return asyncio.run(_with_cleanup())


def output_result(data: dict[str, Any], as_json: bool = False) -> None:
    """Output result in appropriate format."""
    if as_json:
        typer.echo(json.dumps(data, indent=2, default=str))
        return

    if "error" in data:
        typer.secho(f"Error: {data['error']}", fg=typer.colors.RED)
    elif "message" in data:
        color = typer.colors.GREEN if data.get("success", True) else typer.colors.YELLOW
        typer.secho(data["message"], fg=color)
    else:
        for key, value in data.items():
            typer.echo(f"{key}: {value}")
