"""Sync orchestrator: when to sync, and what a failed sync means.

This module provides:
- SyncOrchestrator: policy state machine driving the reconcilers

Triggers:
    connectivity edge ─┐
    periodic job ──────┼─► request_sync() ─┐
    start() ───────────┘                   ├─► TaskScope ─► run_sync()
    sync_now() / set_offline_mode(False) ──┘     (forced)

Eligibility gate, checked in order (first failure skips the run):
    1. not in offline mode
    2. implicit triggers only: sync interval elapsed since the last run
    3. not already syncing, unless forced
    4. no repair creation in progress, unless forced
    5. a server URL is configured (re-read from the store every run)
    6. the network is reachable

Run:
    Repairs (pull, push) ─► Warehouse ─► Transactions

    A repair failure ends the run and counts toward the failure
    threshold; reaching it switches to offline mode until
    set_offline_mode(False). Warehouse and transaction failures are logged
    and the run continues. A run without a repair failure resets the
    counter.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from shopsync.client.sync.locks import LockClient
from shopsync.client.sync.reconcile import (
    ClientFactory,
    Reconciler,
    RepairReconciler,
    TransactionReconciler,
    WarehouseReconciler,
    default_client_factory,
)
from shopsync.client.sync.scope import TaskScope
from shopsync.client.sync.types import (
    Outcome,
    RunResult,
    StateCallback,
    SyncStateSnapshot,
)
from shopsync.core.config import SyncSettings

if TYPE_CHECKING:
    from shopsync.client.connectivity import ConnectivityEvent, ConnectivityMonitor
    from shopsync.client.store import LocalStore

logger = logging.getLogger(__name__)


@dataclass
class _SyncState:
    offline_mode: bool = False
    failure_count: int = 0
    is_syncing: bool = False
    last_sync_time: float | None = None
    creating_repair_guard: bool = False
    last_error: str | None = None


class SyncOrchestrator:
    """Decide when to sync and track failures across runs.

    Public trigger methods return immediately; the work runs on the
    orchestrator's task scope and never raises to the caller. State is
    exposed as immutable snapshots through ``state`` and subscribe().

    Usage:
        orchestrator = SyncOrchestrator(store, ConnectivityMonitor())
        orchestrator.start()
        ...
        orchestrator.sync_now()
        ...
        orchestrator.close()
    """

    def __init__(
        self,
        store: LocalStore,
        monitor: ConnectivityMonitor,
        settings: SyncSettings | None = None,
        client_factory: ClientFactory | None = None,
        repairs: Reconciler | None = None,
        warehouse: Reconciler | None = None,
        transactions: Reconciler | None = None,
        scope: TaskScope | None = None,
        clock: Callable[[], float] = time.time,
        periodic: bool = True,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Local store; supplies the server URL on every run.
            monitor: Connectivity source.
            settings: Threshold, interval and pool settings.
            client_factory: Builds an HTTP client for a server URL.
            repairs: Repair reconciler (failures escalate).
            warehouse: Warehouse reconciler (failures absorbed).
            transactions: Transaction reconciler (failures absorbed).
            scope: Task scope for background work.
            clock: Time source, in epoch seconds.
            periodic: Whether start() schedules the periodic trigger.
        """
        self._store = store
        self._monitor = monitor
        self._settings = settings or SyncSettings()
        self._client_factory = client_factory or default_client_factory
        self._repairs = repairs or RepairReconciler(
            store, self._client_factory, page_size=self._settings.page_size
        )
        self._warehouse = warehouse or WarehouseReconciler(store, self._client_factory)
        self._transactions = transactions or TransactionReconciler(
            store, self._client_factory
        )
        self._scope = scope or TaskScope(max_workers=self._settings.max_workers)
        self._clock = clock
        self._periodic = periodic

        self._lock = threading.RLock()
        self._state = _SyncState()
        self._subscribers: list[StateCallback] = []
        self._history: deque[RunResult] = deque(maxlen=20)
        self._started = False
        self._scheduler: BackgroundScheduler | None = None

    # === Observation ===

    @property
    def state(self) -> SyncStateSnapshot:
        """Current state as an immutable snapshot."""
        with self._lock:
            return SyncStateSnapshot(**asdict(self._state))

    @property
    def history(self) -> list[RunResult]:
        """Most recent runs, oldest first."""
        with self._lock:
            return list(self._history)

    @property
    def last_run(self) -> RunResult | None:
        with self._lock:
            return self._history[-1] if self._history else None

    @property
    def scope(self) -> TaskScope:
        return self._scope

    def subscribe(self, callback: StateCallback) -> Callable[[], None]:
        """Call callback with a fresh snapshot whenever the state changes.

        Returns:
            Function that removes the subscription.
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self) -> None:
        snapshot = self.state
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(snapshot)
            except Exception:
                logger.exception("State subscriber failed")

    # === Lifecycle ===

    def start(self) -> None:
        """Begin observing connectivity and scheduling periodic syncs."""
        with self._lock:
            if self._started:
                logger.warning("Orchestrator already started")
                return
            self._started = True

        self._monitor.register(self._on_connectivity)
        if self._periodic:
            self._scheduler = BackgroundScheduler()
            self._scheduler.add_job(
                self.request_sync,
                trigger=IntervalTrigger(seconds=self._settings.sync_interval),
                id="periodic_sync",
                name="Periodic sync",
                replace_existing=True,
            )
            self._scheduler.start()
        logger.info("Sync orchestrator started")

        if self._monitor.is_reachable():
            self.request_sync()

    def stop(self) -> None:
        """Stop observing connectivity. A run in progress is not interrupted."""
        with self._lock:
            if not self._started:
                return
            self._started = False
            scheduler, self._scheduler = self._scheduler, None

        self._monitor.unregister(self._on_connectivity)
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        logger.info("Sync orchestrator stopped")

    def close(self, wait: bool = True) -> None:
        """Stop and shut down the task scope."""
        self.stop()
        self._scope.close(wait=wait)

    def _on_connectivity(self, event: ConnectivityEvent) -> None:
        logger.debug("Connectivity %s, requesting sync", event.name)
        self.request_sync()

    # === Triggers ===

    def request_sync(self) -> None:
        """Implicit trigger, subject to every gate."""
        self._scope.launch("sync", self.run_sync, False)

    def sync_now(self) -> None:
        """Explicit trigger; bypasses interval, concurrency and guard gates."""
        self._scope.launch("sync_now", self.run_sync, True)

    def set_creating_repair_guard(self, active: bool) -> None:
        """Block implicit syncs while a repair is being created."""
        with self._lock:
            self._state.creating_repair_guard = active
        self._publish()

    @contextmanager
    def creating_repair(self) -> Iterator[None]:
        """Hold the repair-creation guard for a with block."""
        self.set_creating_repair_guard(True)
        try:
            yield
        finally:
            self.set_creating_repair_guard(False)

    def set_offline_mode(self, offline: bool) -> None:
        """Switch offline mode manually.

        Going online resets the failure counter and launches a forced sync.
        """
        with self._lock:
            self._state.offline_mode = offline
            if not offline:
                self._state.failure_count = 0
        logger.info("Offline mode %s", "enabled" if offline else "disabled")
        self._publish()
        if not offline:
            self.sync_now()

    def retry_connection(self) -> None:
        """Leave offline mode and retry immediately."""
        self.set_offline_mode(False)

    def release_lock(self, repair_id: int) -> None:
        """Release a repair lock in the background, ignoring failures."""
        self._scope.launch("release_lock", self._release_lock, repair_id)

    def _release_lock(self, repair_id: int) -> Outcome:
        server_url = self._store.get_server_url()
        step = f"lock.release:{repair_id}"
        if not server_url:
            return Outcome.absorbed(step, "no server configured")
        if self.state.offline_mode:
            return Outcome.absorbed(step, "offline mode")
        try:
            with self._client_factory(server_url) as client:
                return LockClient(client).release(repair_id)
        except Exception as e:
            logger.warning("Lock cleanup for repair %d failed: %s", repair_id, e)
            return Outcome.absorbed(step, e)

    # === Running ===

    def _skip_reason(self, forced: bool) -> str | None:
        state = self._state
        if state.offline_mode:
            return "offline mode"
        if not forced and state.last_sync_time is not None:
            if self._clock() - state.last_sync_time < self._settings.sync_interval:
                return "sync interval not elapsed"
        if not forced and state.is_syncing:
            return "sync already running"
        if not forced and state.creating_repair_guard:
            return "repair creation in progress"
        return None

    def run_sync(self, forced: bool = False) -> RunResult | None:
        """Run one sync in the calling thread if the gates allow it.

        Returns:
            The run record, or None if the run was skipped.
        """
        with self._lock:
            reason = self._skip_reason(forced)
        if reason:
            logger.debug("Sync skipped: %s", reason)
            return None

        server_url = self._store.get_server_url()
        if not server_url:
            logger.debug("Sync skipped: no server URL configured")
            return None
        if not self._monitor.is_reachable():
            logger.debug("Sync skipped: network unreachable")
            return None

        with self._lock:
            reason = self._skip_reason(forced)
            if reason:
                logger.debug("Sync skipped: %s", reason)
                return None
            self._state.is_syncing = True
            self._state.last_sync_time = self._clock()
            result = RunResult(forced=forced, started_at=self._state.last_sync_time)
        self._publish()

        logger.info("Sync started (%s)", "forced" if forced else "implicit")
        try:
            self._execute(server_url, result)
        finally:
            with self._lock:
                self._state.is_syncing = False
                result.finished_at = self._clock()
                self._history.append(result)
            self._publish()
        return result

    def _execute(self, server_url: str, result: RunResult) -> None:
        try:
            self._repairs.sync(server_url)
        except Exception as e:
            result.outcomes.append(Outcome.propagated(self._repairs.name, e))
            self._record_failure(e)
            return
        result.outcomes.append(Outcome.ok(self._repairs.name))

        for reconciler in (self._warehouse, self._transactions):
            try:
                reconciler.sync(server_url)
            except Exception as e:
                logger.warning("%s sync failed, continuing: %s", reconciler.name, e)
                result.outcomes.append(Outcome.absorbed(reconciler.name, e))
            else:
                result.outcomes.append(Outcome.ok(reconciler.name))

        with self._lock:
            self._state.failure_count = 0
            self._state.last_error = None
        logger.info("Sync completed")

    def _record_failure(self, error: Exception) -> None:
        with self._lock:
            state = self._state
            state.failure_count += 1
            state.last_error = str(error) or type(error).__name__
            if state.failure_count >= self._settings.failure_threshold:
                state.offline_mode = True
            failures, offline = state.failure_count, state.offline_mode
        if offline:
            logger.error(
                "Sync failed %d times in a row, switching to offline mode: %s",
                failures,
                error,
            )
        else:
            logger.warning("Sync failed (%d in a row): %s", failures, error)
