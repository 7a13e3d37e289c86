"""Shared configuration classes for shopsync.

This module defines configuration classes used by the client, the sync
engine and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass


def normalize_base_url(url: str) -> str:
    """Normalize a server base URL so it always ends with a path separator.

    Args:
        url: Server URL as entered by the user (e.g. "http://10.0.0.5:3000").

    Returns:
        Stripped URL with exactly one trailing "/".
    """
    url = url.strip()
    if not url:
        return url
    return url.rstrip("/") + "/"


@dataclass
class ServerConfig:
    """Configuration for connecting to a shopsync server.

    Attributes:
        server_url: Base URL of the server (e.g., "http://192.168.1.10:3000/").
        device_name: Name this client presents when acquiring locks.
        connect_timeout: TCP connect timeout in seconds.
        read_timeout: Response read timeout in seconds.
        write_timeout: Request write timeout in seconds.
    """

    server_url: str
    device_name: str = "shopsync"
    connect_timeout: float = 5.0
    read_timeout: float = 5.0
    write_timeout: float = 5.0

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = normalize_base_url(self.server_url)

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS.

        Returns:
            True if server uses HTTPS.
        """
        return self.server_url.startswith("https://")


@dataclass
class SyncSettings:
    """Policy knobs for the sync orchestrator.

    Attributes:
        failure_threshold: Consecutive failed runs before offline mode.
        sync_interval: Minimum seconds between implicit sync runs.
        page_size: Number of repairs requested per page during pull.
        probe_interval: Seconds between connectivity probes.
        max_workers: Size of the background task pool.
    """

    failure_threshold: int = 3
    sync_interval: float = 5 * 60
    page_size: int = 200
    probe_interval: float = 10.0
    max_workers: int = 4
