"""Configuration utilities for the shopsync CLI.

This module provides shared configuration functions used across CLI commands.
The server URL and device name live in the local store's preferences table;
the JSON config file only records where that store is.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

if TYPE_CHECKING:
    from shopsync.client.connectivity import InterfaceProbe
    from shopsync.client.store import LocalStore


def get_config_dir() -> Path:
    """Get the configuration directory for shopsync.

    Returns:
        Path to ~/.shopsync or equivalent.
    """
    return Path.home() / ".shopsync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, str]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, str]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def get_db_path() -> Path:
    """Get the local store path (configured or default ~/.shopsync/shopsync.db)."""
    config = load_config()
    if config.get("db_path"):
        return Path(config["db_path"]).expanduser().resolve()
    return get_config_dir() / "shopsync.db"


def open_store() -> LocalStore:
    """Open the local store."""
    from shopsync.client.store import LocalStore

    return LocalStore(get_db_path())


def probe_for(server_url: str | None) -> InterfaceProbe:
    """Connectivity probe that tests the configured server's address."""
    from shopsync.client.connectivity import InterfaceProbe

    if not server_url:
        return InterfaceProbe()
    parts = urlsplit(server_url)
    port = parts.port or (443 if parts.scheme == "https" else 80)
    return InterfaceProbe(host=parts.hostname or "localhost", port=port)
