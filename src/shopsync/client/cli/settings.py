"""Settings commands for the shopsync CLI.

Commands:
- config set-server: Set the server base URL
- config set-device: Set the device name used for locks
- config show: Show the current settings
"""

from __future__ import annotations

import click

from shopsync.client.cli.config import get_db_path, open_store
from shopsync.core.config import normalize_base_url


@click.group("config")
def config_group() -> None:
    """Show or change client settings."""


@config_group.command("set-server")
@click.argument("url")
def set_server(url: str) -> None:
    """Set the server base URL (an empty string clears it)."""
    normalized = normalize_base_url(url)
    store = open_store()
    try:
        store.set_server_url(normalized or None)
    finally:
        store.close()
    if normalized:
        click.echo(f"Server URL set to {normalized}")
    else:
        click.echo("Server URL cleared")


@config_group.command("set-device")
@click.argument("name")
def set_device(name: str) -> None:
    """Set the device name shown to other devices holding locks."""
    if not name.strip():
        raise click.BadParameter("device name cannot be empty", param_hint="NAME")
    store = open_store()
    try:
        store.set_device_name(name.strip())
    finally:
        store.close()
    click.echo(f"Device name set to {name.strip()}")


@config_group.command("show")
def show() -> None:
    """Show the current settings."""
    store = open_store()
    try:
        click.echo(f"Database:    {get_db_path()}")
        click.echo(f"Server URL:  {store.get_server_url() or '(not set)'}")
        click.echo(f"Device name: {store.get_device_name()}")
    finally:
        store.close()
