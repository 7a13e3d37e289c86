"""Tests for the sync orchestrator."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from shopsync.client.api import NetworkError, ServerError
from shopsync.client.connectivity import ConnectivityEvent
from shopsync.client.store import LocalStore
from shopsync.client.sync import (
    OutcomeKind,
    SyncOrchestrator,
    SyncStateSnapshot,
    TaskScope,
)
from shopsync.core.config import SyncSettings

SERVER_URL = "http://shop.local"


class FakeMonitor:
    """Connectivity monitor with a settable verdict."""

    def __init__(self, reachable: bool = True) -> None:
        self.reachable = reachable
        self.callbacks: list[Callable[[ConnectivityEvent], None]] = []

    def is_reachable(self) -> bool:
        return self.reachable

    def register(self, callback: Callable[[ConnectivityEvent], None]) -> None:
        self.callbacks.append(callback)

    def unregister(self, callback: Callable[[ConnectivityEvent], None]) -> None:
        self.callbacks.remove(callback)

    def emit(self, event: ConnectivityEvent) -> None:
        for callback in list(self.callbacks):
            callback(event)


class FakeReconciler:
    """Reconciler that records calls and optionally fails."""

    def __init__(self, name: str, error: Exception | None = None) -> None:
        self.name = name
        self.error = error
        self.calls: list[str] = []
        self.on_sync: Callable[[], Any] | None = None

    def sync(self, server_url: str) -> None:
        self.calls.append(server_url)
        if self.on_sync is not None:
            self.on_sync()
        if self.error is not None:
            raise self.error


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLockServer:
    """Client stand-in for lock release."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.released: list[int] = []

    def __enter__(self) -> FakeLockServer:
        return self

    def __exit__(self, *args: object) -> None:
        pass

    def release_lock(self, repair_id: int) -> None:
        if self.fail:
            raise NetworkError("connection refused")
        self.released.append(repair_id)


class Harness:
    """Orchestrator wired to fakes."""

    def __init__(self, store: LocalStore) -> None:
        self.store = store
        self.monitor = FakeMonitor()
        self.repairs = FakeReconciler("repairs")
        self.warehouse = FakeReconciler("warehouse")
        self.transactions = FakeReconciler("transactions")
        self.clock = FakeClock()
        self.lock_server = FakeLockServer()
        self.factory_urls: list[str] = []
        self.orchestrator = SyncOrchestrator(
            store,
            self.monitor,  # type: ignore[arg-type]
            settings=SyncSettings(failure_threshold=3, sync_interval=300),
            client_factory=self._factory,  # type: ignore[arg-type]
            repairs=self.repairs,  # type: ignore[arg-type]
            warehouse=self.warehouse,  # type: ignore[arg-type]
            transactions=self.transactions,  # type: ignore[arg-type]
            scope=TaskScope(max_workers=2),
            clock=self.clock,
            periodic=False,
        )

    def _factory(self, server_url: str) -> FakeLockServer:
        self.factory_urls.append(server_url)
        return self.lock_server

    def wait(self) -> None:
        self.orchestrator.scope.join(timeout=5.0)


@pytest.fixture
def harness(tmp_path: Path) -> Iterator[Harness]:
    store = LocalStore(tmp_path / "shopsync.db")
    store.set_server_url(SERVER_URL)
    h = Harness(store)
    yield h
    h.orchestrator.close()
    store.close()


class TestRunOrder:
    """Tests for the reconciler sequence."""

    def test_runs_all_reconcilers(self, harness: Harness) -> None:
        result = harness.orchestrator.run_sync()

        assert result is not None
        assert result.succeeded
        assert result.kinds() == {
            "repairs": OutcomeKind.OK,
            "warehouse": OutcomeKind.OK,
            "transactions": OutcomeKind.OK,
        }
        assert harness.repairs.calls == [SERVER_URL]
        assert harness.transactions.calls == [SERVER_URL]

    def test_server_url_read_every_run(self, harness: Harness) -> None:
        harness.orchestrator.run_sync(forced=True)
        harness.store.set_server_url("http://other.local")
        harness.orchestrator.run_sync(forced=True)

        assert harness.repairs.calls == [SERVER_URL, "http://other.local"]

    def test_warehouse_failure_is_absorbed(self, harness: Harness) -> None:
        """A warehouse failure is logged and the run continues."""
        harness.warehouse.error = ServerError("warehouse down", 500)

        result = harness.orchestrator.run_sync()

        assert result is not None
        assert result.succeeded
        assert result.kinds()["warehouse"] is OutcomeKind.ABSORBED
        assert result.kinds()["transactions"] is OutcomeKind.OK
        assert harness.orchestrator.state.failure_count == 0

    def test_transactions_failure_is_absorbed(self, harness: Harness) -> None:
        harness.transactions.error = NetworkError("timeout")

        result = harness.orchestrator.run_sync()

        assert result is not None
        assert result.succeeded
        assert harness.orchestrator.state.failure_count == 0

    def test_repair_failure_ends_run(self, harness: Harness) -> None:
        harness.repairs.error = NetworkError("connection refused")

        result = harness.orchestrator.run_sync()

        assert result is not None
        assert not result.succeeded
        assert result.kinds() == {"repairs": OutcomeKind.PROPAGATED}
        assert harness.warehouse.calls == []
        state = harness.orchestrator.state
        assert state.failure_count == 1
        assert state.last_error == "connection refused"
        assert state.is_syncing is False


class TestFailureThreshold:
    """Tests for escalation into offline mode."""

    def test_offline_after_threshold(self, harness: Harness) -> None:
        harness.repairs.error = NetworkError("connection refused")

        for _ in range(2):
            harness.orchestrator.run_sync(forced=True)
            assert harness.orchestrator.state.offline_mode is False
        harness.orchestrator.run_sync(forced=True)

        state = harness.orchestrator.state
        assert state.failure_count == 3
        assert state.offline_mode is True

    def test_offline_blocks_forced_runs(self, harness: Harness) -> None:
        harness.orchestrator.set_offline_mode(True)

        assert harness.orchestrator.run_sync(forced=True) is None
        assert harness.repairs.calls == []

    def test_success_resets_counter(self, harness: Harness) -> None:
        harness.repairs.error = NetworkError("connection refused")
        harness.orchestrator.run_sync(forced=True)
        harness.orchestrator.run_sync(forced=True)

        harness.repairs.error = None
        harness.orchestrator.run_sync(forced=True)

        state = harness.orchestrator.state
        assert state.failure_count == 0
        assert state.last_error is None

    def test_going_online_resets_and_syncs(self, harness: Harness) -> None:
        harness.repairs.error = NetworkError("connection refused")
        for _ in range(3):
            harness.orchestrator.run_sync(forced=True)
        assert harness.orchestrator.state.offline_mode is True

        harness.repairs.error = None
        harness.orchestrator.set_offline_mode(False)
        harness.wait()

        state = harness.orchestrator.state
        assert state.offline_mode is False
        assert state.failure_count == 0
        assert len(harness.repairs.calls) == 4
        assert harness.orchestrator.last_run.forced is True  # type: ignore[union-attr]

    def test_retry_connection(self, harness: Harness) -> None:
        harness.orchestrator.set_offline_mode(True)
        harness.orchestrator.retry_connection()
        harness.wait()

        assert harness.orchestrator.state.offline_mode is False
        assert harness.repairs.calls == [SERVER_URL]


class TestGates:
    """Tests for run eligibility."""

    def test_interval_gate_for_implicit_runs(self, harness: Harness) -> None:
        assert harness.orchestrator.run_sync() is not None
        harness.clock.advance(299)
        assert harness.orchestrator.run_sync() is None

        harness.clock.advance(1)
        assert harness.orchestrator.run_sync() is not None

    def test_forced_run_ignores_interval(self, harness: Harness) -> None:
        harness.orchestrator.run_sync()
        assert harness.orchestrator.run_sync(forced=True) is not None

    def test_creating_repair_guard(self, harness: Harness) -> None:
        """Implicit runs wait for repair creation; forced runs do not."""
        with harness.orchestrator.creating_repair():
            assert harness.orchestrator.state.creating_repair_guard is True
            assert harness.orchestrator.run_sync() is None
            assert harness.orchestrator.run_sync(forced=True) is not None

        assert harness.orchestrator.state.creating_repair_guard is False

    def test_guard_released_on_error(self, harness: Harness) -> None:
        with pytest.raises(RuntimeError), harness.orchestrator.creating_repair():
            raise RuntimeError("save failed")

        assert harness.orchestrator.state.creating_repair_guard is False

    def test_concurrent_implicit_run_skipped(self, harness: Harness) -> None:
        nested: list[Any] = []

        def reenter() -> None:
            harness.clock.advance(300)
            nested.append(harness.orchestrator.run_sync())

        harness.repairs.on_sync = reenter
        harness.orchestrator.run_sync()

        assert nested == [None]
        assert harness.repairs.calls == [SERVER_URL]

    def test_forced_run_while_syncing(self, harness: Harness) -> None:
        """A forced run is not blocked by a run already in progress."""
        nested: list[Any] = []
        entered: list[bool] = []

        def reenter() -> None:
            if entered:
                return
            entered.append(harness.orchestrator.state.is_syncing)
            nested.append(harness.orchestrator.run_sync(forced=True))

        harness.repairs.on_sync = reenter
        harness.orchestrator.run_sync()

        assert entered == [True]
        assert len(nested) == 1
        assert nested[0] is not None
        assert nested[0].forced is True
        assert harness.repairs.calls == [SERVER_URL, SERVER_URL]

    def test_no_server_url(self, harness: Harness) -> None:
        harness.store.set_server_url(None)

        assert harness.orchestrator.run_sync(forced=True) is None
        assert harness.orchestrator.state.last_sync_time is None

    def test_unreachable(self, harness: Harness) -> None:
        harness.monitor.reachable = False

        assert harness.orchestrator.run_sync(forced=True) is None
        assert harness.repairs.calls == []
        assert harness.orchestrator.state.failure_count == 0


class TestObservation:
    """Tests for state snapshots and history."""

    def test_subscribers_see_syncing_state(self, harness: Harness) -> None:
        snapshots: list[SyncStateSnapshot] = []
        harness.orchestrator.subscribe(snapshots.append)

        harness.orchestrator.run_sync()

        assert [s.is_syncing for s in snapshots] == [True, False]
        assert snapshots[-1].last_sync_time == harness.clock.now

    def test_unsubscribe(self, harness: Harness) -> None:
        snapshots: list[SyncStateSnapshot] = []
        unsubscribe = harness.orchestrator.subscribe(snapshots.append)
        unsubscribe()

        harness.orchestrator.run_sync()

        assert snapshots == []

    def test_failing_subscriber_is_ignored(self, harness: Harness) -> None:
        def broken(state: SyncStateSnapshot) -> None:
            raise RuntimeError("ui crashed")

        harness.orchestrator.subscribe(broken)

        assert harness.orchestrator.run_sync() is not None

    def test_history_is_bounded(self, harness: Harness) -> None:
        for _ in range(25):
            harness.orchestrator.run_sync(forced=True)

        assert len(harness.orchestrator.history) == 20

    def test_snapshot_is_immutable(self, harness: Harness) -> None:
        state = harness.orchestrator.state
        with pytest.raises(AttributeError):
            state.offline_mode = True  # type: ignore[misc]


class TestLifecycle:
    """Tests for start, stop and connectivity triggers."""

    def test_start_syncs_when_reachable(self, harness: Harness) -> None:
        harness.orchestrator.start()
        harness.wait()

        assert len(harness.monitor.callbacks) == 1
        assert harness.repairs.calls == [SERVER_URL]

    def test_start_when_unreachable(self, harness: Harness) -> None:
        harness.monitor.reachable = False
        harness.orchestrator.start()
        harness.wait()

        assert harness.repairs.calls == []

    def test_connectivity_event_triggers_sync(self, harness: Harness) -> None:
        harness.monitor.reachable = False
        harness.orchestrator.start()
        harness.wait()

        harness.monitor.reachable = True
        harness.monitor.emit(ConnectivityEvent.AVAILABLE)
        harness.wait()

        assert harness.repairs.calls == [SERVER_URL]
        assert harness.orchestrator.last_run.forced is False  # type: ignore[union-attr]

    def test_offline_ignores_connectivity_and_triggers(self, harness: Harness) -> None:
        """No remote call happens while offline, whatever triggers a run."""
        harness.orchestrator.set_offline_mode(True)
        harness.orchestrator.start()
        harness.wait()

        harness.monitor.emit(ConnectivityEvent.AVAILABLE)
        harness.monitor.emit(ConnectivityEvent.CAPABILITIES_CHANGED)
        harness.orchestrator.request_sync()
        harness.orchestrator.sync_now()
        harness.orchestrator.release_lock(42)
        harness.wait()

        assert harness.repairs.calls == []
        assert harness.warehouse.calls == []
        assert harness.lock_server.released == []
        assert harness.orchestrator.history == []

    def test_stop_unregisters(self, harness: Harness) -> None:
        harness.monitor.reachable = False
        harness.orchestrator.start()
        harness.orchestrator.stop()
        harness.orchestrator.stop()

        assert harness.monitor.callbacks == []

    def test_sync_now_after_close_is_dropped(self, harness: Harness) -> None:
        harness.orchestrator.close()
        harness.orchestrator.sync_now()

        assert harness.repairs.calls == []

    def test_periodic_job_scheduled(self, tmp_path: Path) -> None:
        store = LocalStore(tmp_path / "periodic.db")
        monitor = FakeMonitor(reachable=False)
        orchestrator = SyncOrchestrator(
            store,
            monitor,  # type: ignore[arg-type]
            repairs=FakeReconciler("repairs"),  # type: ignore[arg-type]
            warehouse=FakeReconciler("warehouse"),  # type: ignore[arg-type]
            transactions=FakeReconciler("transactions"),  # type: ignore[arg-type]
        )
        orchestrator.start()
        try:
            scheduler = orchestrator._scheduler
            assert scheduler is not None
            job = scheduler.get_job("periodic_sync")
            assert job is not None
        finally:
            orchestrator.close()
            store.close()
        assert orchestrator._scheduler is None


class TestLockRelease:
    """Tests for background lock cleanup."""

    def test_release(self, harness: Harness) -> None:
        outcome = harness.orchestrator._release_lock(42)

        assert outcome.kind is OutcomeKind.OK
        assert harness.lock_server.released == [42]
        assert harness.factory_urls == [SERVER_URL]

    def test_release_in_background(self, harness: Harness) -> None:
        harness.orchestrator.release_lock(42)
        harness.wait()

        assert harness.lock_server.released == [42]

    def test_release_failure_absorbed(self, harness: Harness) -> None:
        harness.lock_server.fail = True

        outcome = harness.orchestrator._release_lock(42)

        assert outcome.kind is OutcomeKind.ABSORBED
        assert harness.orchestrator.state.failure_count == 0

    def test_release_skipped_offline(self, harness: Harness) -> None:
        harness.orchestrator.set_offline_mode(True)

        outcome = harness.orchestrator._release_lock(42)

        assert outcome.kind is OutcomeKind.ABSORBED
        assert harness.factory_urls == []

    def test_release_without_server(self, harness: Harness) -> None:
        harness.store.set_server_url(None)

        outcome = harness.orchestrator._release_lock(42)

        assert outcome.kind is OutcomeKind.ABSORBED
        assert harness.factory_urls == []
