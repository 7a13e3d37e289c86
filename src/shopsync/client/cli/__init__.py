"""Command-line interface for shopsync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- config: Show or change the server URL and device name
- sync: Run one sync now
- watch: Sync continuously until interrupted
- status: Show server reachability and pending changes
- lock: Acquire, release or show repair edit locks
- server: Run the reference server
"""

from __future__ import annotations

import logging

import click

from shopsync.client.cli.config import (
    get_config_dir,
    get_config_file,
    get_db_path,
    load_config,
    open_store,
    save_config,
)
from shopsync.client.cli.lock import lock
from shopsync.client.cli.server import server
from shopsync.client.cli.settings import config_group
from shopsync.client.cli.sync import status, sync, watch


@click.group()
@click.version_option(package_name="shopsync")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """shopsync - offline-first sync for repair shop records."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# Settings
cli.add_command(config_group)

# Sync commands
cli.add_command(sync)
cli.add_command(watch)
cli.add_command(status)

# Lock commands
cli.add_command(lock)

# Server command
cli.add_command(server)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "get_config_dir",
    "get_config_file",
    "get_db_path",
    "load_config",
    "open_store",
    "save_config",
]
