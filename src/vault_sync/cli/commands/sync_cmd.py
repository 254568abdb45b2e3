"""Sync commands: status, queue, sync, watch."""

from __future__ import annotations

import asyncio
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

from vault_sync.cli._helpers import get_config, open_client, output_result, run_async
from vault_sync.sync.protocol import StatusEvent

console = Console()


def status(
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show connectivity, engine state and queue health.

    Examples:
        vsync status
        vsync status --json
    """

    async def _status() -> dict[str, Any]:
        client = await open_client(get_config())
        return await client.sync_status()

    result = run_async(_status())

    if json_output:
        output_result(result, as_json=True)
        return

    queue = result["queue"]
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_row("Network", "[green]online[/]" if result["is_online"] else "[red]offline[/]")
    table.add_row("State", result["state"])
    table.add_row("Pending", str(queue["pending"]))
    table.add_row("Failing", str(queue["failing"]))
    table.add_row("Max attempts", str(queue["max_attempts"]))
    table.add_row("Oldest", str(queue["oldest"] or "-"))
    console.print(table)


def queue(
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum entries to show")] = 50,
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """List queued mutations in drain order.

    Examples:
        vsync queue
        vsync queue --limit 10 --json
    """

    async def _queue() -> list[dict[str, Any]]:
        client = await open_client(get_config(), check_network=False)
        entries = await client.store.drain_queue_snapshot(limit=limit)
        return [entry.to_dict() for entry in entries]

    entries = run_async(_queue())

    if json_output:
        output_result({"entries": entries}, as_json=True)
        return

    if not entries:
        typer.secho("Queue is empty.", fg=typer.colors.GREEN)
        return

    table = Table(title=f"Pending mutations ({len(entries)})")
    table.add_column("ID", justify="right")
    table.add_column("Entity")
    table.add_column("Record", justify="right")
    table.add_column("Op")
    table.add_column("Attempts", justify="right")
    table.add_column("Created")
    table.add_column("Last error", overflow="fold")
    for entry in entries:
        attempts = entry["attempts"]
        table.add_row(
            str(entry["id"]),
            entry["entity_type"],
            str(entry["record_id"]),
            entry["operation"],
            f"[yellow]{attempts}[/]" if attempts else "0",
            str(entry["created_at"]),
            entry.get("last_error") or "",
        )
    console.print(table)


def sync(
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Start even if a cycle is running")
    ] = False,
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Drain the mutation queue to the remote API now.

    Examples:
        vsync sync
        vsync sync --force
    """

    async def _sync() -> dict[str, Any]:
        client = await open_client(get_config())
        result = await client.perform_sync(force=force)
        return result.to_dict()

    result = run_async(_sync())
    output_result(result, as_json=json_output)

    if not json_output and result.get("synced_count") is not None:
        typer.secho(
            f"[{result['synced_count']} synced, {result.get('failed_count', 0)} failed]",
            fg=typer.colors.BRIGHT_BLACK,
        )
    if not result["success"]:
        raise typer.Exit(1)


def _print_event(event: StatusEvent) -> None:
    if event.is_online is not None:
        label = "[green]online[/]" if event.is_online else "[red]offline[/]"
        console.print(f"Network {label}")
    elif event.sync_in_progress:
        console.print("Sync started")
    elif event.sync_completed:
        console.print(
            f"Sync completed: {event.synced_count} synced, {event.failed_count} failed"
        )
    elif event.sync_failed:
        console.print(f"[red]Sync failed:[/] {event.error}")


def watch(
    interval: Annotated[
        float | None,
        typer.Option("--interval", "-i", help="Seconds between connectivity checks"),
    ] = None,
    duration: Annotated[
        float | None,
        typer.Option("--duration", "-d", help="Stop after this many seconds"),
    ] = None,
) -> None:
    """Watch connectivity and sync automatically when the network returns.

    Examples:
        vsync watch
        vsync watch --interval 5
    """

    async def _watch() -> None:
        config = get_config()
        client = await open_client(config, check_network=False)
        client.subscribe(_print_event)
        client.monitor.start_polling(interval or config.sync.poll_interval)
        if duration is not None:
            await asyncio.sleep(duration)
        else:
            await asyncio.Event().wait()

    try:
        run_async(_watch())
    except KeyboardInterrupt:
        typer.echo("Stopped.")
