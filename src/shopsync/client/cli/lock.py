"""Repair lock commands for the shopsync CLI.

Commands:
- lock acquire: Lock a repair for this device
- lock release: Release a repair lock
- lock show: Show who holds a repair lock
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager

import click

from shopsync.client.api import APIError, ConflictError, HTTPClient
from shopsync.client.cli.config import open_store
from shopsync.client.sync import LockClient
from shopsync.core.config import ServerConfig


@contextmanager
def _lock_client() -> Iterator[tuple[LockClient, str]]:
    store = open_store()
    try:
        server_url = store.get_server_url()
        device = store.get_device_name()
    finally:
        store.close()
    if not server_url:
        click.echo("Error: No server configured. Run 'shopsync config set-server URL'.", err=True)
        sys.exit(1)
    with HTTPClient(ServerConfig(server_url=server_url, device_name=device)) as client:
        yield LockClient(client), device


@click.group()
def lock() -> None:
    """Repair edit locks."""


@lock.command("acquire")
@click.argument("repair_id", type=int)
@click.option("--device", "-d", default=None, help="Holder name (default: configured device).")
def acquire_cmd(repair_id: int, device: str | None) -> None:
    """Lock REPAIR_ID for this device."""
    with _lock_client() as (locks, default_device):
        holder = device or default_device
        try:
            state = locks.acquire(repair_id, holder)
        except ConflictError as e:
            since = f" since {e.acquired_at:%Y-%m-%d %H:%M}" if e.acquired_at else ""
            click.echo(f"Repair {repair_id} is locked by {e.holder_device}{since}.", err=True)
            sys.exit(2)
        except APIError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    click.echo(f"Repair {repair_id} locked by {state.holder_device or holder}.")


@lock.command("release")
@click.argument("repair_id", type=int)
def release_cmd(repair_id: int) -> None:
    """Release the lock on REPAIR_ID."""
    with _lock_client() as (locks, _device):
        outcome = locks.release(repair_id)
    if outcome.failed:
        click.echo(f"Could not release lock on repair {repair_id}: {outcome.error}", err=True)
        sys.exit(1)
    click.echo(f"Repair {repair_id} unlocked.")


@lock.command("show")
@click.argument("repair_id", type=int)
def show_cmd(repair_id: int) -> None:
    """Show the lock on REPAIR_ID."""
    with _lock_client() as (locks, _device):
        try:
            state = locks.query(repair_id)
        except APIError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    if not state.locked:
        click.echo(f"Repair {repair_id} is not locked.")
        return
    since = f" since {state.acquired_at:%Y-%m-%d %H:%M}" if state.acquired_at else ""
    click.echo(f"Repair {repair_id} is locked by {state.holder_device}{since}.")
