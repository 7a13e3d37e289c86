"""Sync commands for the shopsync CLI.

Commands:
- sync: Run one forced sync and report what happened
- watch: Keep syncing in the background until interrupted
- status: Show server reachability and pending local changes
"""

from __future__ import annotations

import sys
import threading
from typing import TYPE_CHECKING

import click

from shopsync.client.cli.config import open_store, probe_for

if TYPE_CHECKING:
    from shopsync.client.store import LocalStore
    from shopsync.client.sync import RunResult, SyncOrchestrator, SyncStateSnapshot


def build_orchestrator(store: LocalStore, periodic: bool) -> SyncOrchestrator:
    """Wire an orchestrator to the store with default components."""
    from shopsync.client.connectivity import ConnectivityMonitor
    from shopsync.client.sync import SyncOrchestrator
    from shopsync.core.config import SyncSettings

    settings = SyncSettings()
    monitor = ConnectivityMonitor(
        probe=probe_for(store.get_server_url()),
        interval=settings.probe_interval,
    )
    return SyncOrchestrator(store, monitor, settings=settings, periodic=periodic)


def _echo_run(result: RunResult) -> None:
    for outcome in result.outcomes:
        line = f"  {outcome.step:<14} {outcome.kind.value}"
        if outcome.error:
            line += f" ({outcome.error})"
        click.echo(line)


def _echo_state(state: SyncStateSnapshot) -> None:
    mode = "offline" if state.offline_mode else "online"
    click.echo(f"Mode: {mode}, consecutive failures: {state.failure_count}")
    if state.last_error:
        click.echo(f"Last error: {state.last_error}")


@click.command()
def sync() -> None:
    """Run one sync now.

    Pulls repairs, pushes local repair changes, then refreshes warehouse
    items and transactions.
    """
    store = open_store()
    if not store.get_server_url():
        store.close()
        click.echo("Error: No server configured. Run 'shopsync config set-server URL'.", err=True)
        sys.exit(1)

    orchestrator = build_orchestrator(store, periodic=False)
    try:
        result = orchestrator.run_sync(forced=True)
        if result is None:
            click.echo("Sync skipped: network unreachable.", err=True)
            sys.exit(1)
        click.echo("Sync finished:" if result.succeeded else "Sync failed:")
        _echo_run(result)
        _echo_state(orchestrator.state)
        if not result.succeeded:
            sys.exit(1)
    finally:
        orchestrator.close()
        store.close()


@click.command()
def watch() -> None:
    """Sync on connectivity changes and periodically, until Ctrl+C."""
    store = open_store()
    orchestrator = build_orchestrator(store, periodic=True)
    stop = threading.Event()

    def on_state(state: SyncStateSnapshot) -> None:
        if not state.is_syncing and state.offline_mode:
            click.echo("Offline mode: too many failed syncs. Press Ctrl+C and retry later.")

    orchestrator.subscribe(on_state)
    orchestrator.start()
    click.echo("Watching for sync triggers. Press Ctrl+C to stop.")
    try:
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        click.echo("\nStopping...")
    finally:
        orchestrator.close(wait=True)
        store.close()


@click.command()
def status() -> None:
    """Show server reachability and pending local changes."""
    from shopsync.client.api import HTTPClient
    from shopsync.core.config import ServerConfig

    store = open_store()
    try:
        server_url = store.get_server_url()
        click.echo(f"Server:  {server_url or '(not set)'}")
        if server_url:
            with HTTPClient(ServerConfig(server_url=server_url)) as client:
                healthy = client.health_check()
            click.echo(f"Health:  {'ok' if healthy else 'unreachable'}")
        click.echo(f"Device:  {store.get_device_name()}")
        click.echo(
            f"Repairs: {len(store.list_repairs())} "
            f"({len(store.list_unsynced_repairs())} unsynced)"
        )
        click.echo(
            f"Warehouse items: {len(store.list_warehouse_items(in_stock_only=False))} "
            f"({len(store.list_unsynced_warehouse_items())} unsynced)"
        )
        click.echo(f"Transactions: {len(store.list_transactions())}")
    finally:
        store.close()
