"""Pytest fixtures for integration tests.

This module provides fixtures for end-to-end testing with a real server
running in a background thread and one local store per simulated device.
"""

from __future__ import annotations

import socket
import threading
import time
from collections.abc import Callable, Generator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest
import uvicorn
from httpx import Client

from shopsync.client.api import HTTPClient
from shopsync.client.connectivity import ConnectivityMonitor, NetworkCapabilities
from shopsync.client.repairs import RepairRepository
from shopsync.client.store import LocalStore
from shopsync.client.sync import LockClient, SyncOrchestrator
from shopsync.core.config import ServerConfig, SyncSettings
from shopsync.server.app import create_app
from shopsync.server.database import Database


@dataclass
class LiveServer:
    """Container for test server resources."""

    db: Database
    url: str


@dataclass
class Device:
    """A simulated shop device with its own local store."""

    name: str
    store: LocalStore
    orchestrator: SyncOrchestrator
    repairs: RepairRepository

    def sync(self) -> None:
        """Run one forced sync and require it to succeed."""
        result = self.orchestrator.run_sync(forced=True)
        assert result is not None, "sync was skipped"
        assert result.succeeded, result.outcomes

    def lock_client(self) -> HTTPClient:
        """HTTP client for this device's configured server."""
        server_url = self.store.get_server_url()
        assert server_url is not None
        return HTTPClient(ServerConfig(server_url=server_url, device_name=self.name))

    def acquire(self, repair_id: int) -> Any:
        with self.lock_client() as client:
            return LockClient(client).acquire(repair_id, self.name)

    def release(self, repair_id: int) -> Any:
        with self.lock_client() as client:
            return LockClient(client).release(repair_id)


class UvicornTestServer:
    """Uvicorn server running in a background thread for testing."""

    def __init__(self, app: Any, host: str = "127.0.0.1", port: int = 0) -> None:
        self.app = app
        self.host = host
        self.port = port
        self.server: uvicorn.Server | None = None
        self.thread: threading.Thread | None = None

    def start(self) -> int:
        """Start the server and return the port."""
        self.port = free_port(self.host)

        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="warning",
        )
        self.server = uvicorn.Server(config)

        self.thread = threading.Thread(target=self.server.run, daemon=True)
        self.thread.start()

        # Wait for server to be ready
        self._wait_for_ready()

        return self.port

    def _wait_for_ready(self, timeout: float = 5.0) -> None:
        """Wait for the server to be ready to accept connections."""
        start = time.time()
        while time.time() - start < timeout:
            try:
                with Client() as client:
                    response = client.get(f"http://{self.host}:{self.port}/api/health")
                    if response.status_code == 200:
                        return
            except Exception:
                pass
            time.sleep(0.1)
        raise RuntimeError("Server failed to start in time")

    def stop(self) -> None:
        """Stop the server and wait for its thread."""
        if self.server:
            self.server.should_exit = True
        if self.thread:
            self.thread.join(timeout=5.0)


def free_port(host: str = "127.0.0.1") -> int:
    """Return a port nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return int(s.getsockname()[1])


@pytest.fixture
def live_server(tmp_path: Path) -> Generator[LiveServer, None, None]:
    """Create and start a test server backed by a temporary database."""
    db_path = tmp_path / "server" / "test.db"
    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = Database(db_path)

    server = UvicornTestServer(create_app(db))
    port = server.start()

    yield LiveServer(db=db, url=f"http://127.0.0.1:{port}/")

    server.stop()
    db.close()


@pytest.fixture
def device_factory(
    tmp_path: Path,
    live_server: LiveServer,
) -> Generator[Callable[..., Device], None, None]:
    """Factory fixture to create devices pointed at the live server."""
    devices: list[Device] = []

    def _create_device(name: str, server_url: str | None = None) -> Device:
        store = LocalStore(tmp_path / "devices" / name / "shopsync.db")
        store.set_server_url(server_url or live_server.url)
        store.set_device_name(name)

        monitor = ConnectivityMonitor(
            probe=lambda: NetworkCapabilities(ethernet=True),
            interval=3600,
        )
        orchestrator = SyncOrchestrator(
            store,
            monitor,
            settings=SyncSettings(failure_threshold=3),
            periodic=False,
        )
        device = Device(
            name=name,
            store=store,
            orchestrator=orchestrator,
            repairs=RepairRepository(store, orchestrator=orchestrator),
        )
        devices.append(device)
        return device

    yield _create_device

    for device in devices:
        device.orchestrator.close()
        device.store.close()


@pytest.fixture
def device_a(device_factory: Callable[..., Device]) -> Device:
    """First shop device."""
    return device_factory("counter")


@pytest.fixture
def device_b(device_factory: Callable[..., Device]) -> Device:
    """Second shop device."""
    return device_factory("workbench")


@pytest.fixture
def dead_url() -> str:
    """URL of a port with no server behind it."""
    return f"http://127.0.0.1:{free_port()}/"
