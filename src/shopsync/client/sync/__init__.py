"""Offline-first sync engine.

Architecture:
    ConnectivityMonitor / periodic job / explicit calls
        → SyncOrchestrator (gates, failure counting, offline mode)
        → Reconcilers (Repairs → Warehouse → Transactions)
        → LocalStore / HTTPClient

Components:
- **SyncOrchestrator**: Decides when a run may happen and what its failure means
- **RepairReconciler**: Paginated pull, remote deletion, push of unsynced tickets
- **WarehouseReconciler**, **TransactionReconciler**: Read-mostly reference data
- **LockClient**: Cooperative edit locks on repair tickets
- **TaskScope**: Thread pool isolating fire-and-forget tasks

All public symbols are re-exported here.
"""

from shopsync.client.sync.locks import LockClient
from shopsync.client.sync.orchestrator import SyncOrchestrator
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
    OutcomeKind,
    RunResult,
    StateCallback,
    SyncStateSnapshot,
)

__all__ = [
    # Orchestration
    "SyncOrchestrator",
    "TaskScope",
    # Reconcilers
    "ClientFactory",
    "Reconciler",
    "RepairReconciler",
    "TransactionReconciler",
    "WarehouseReconciler",
    "default_client_factory",
    # Locks
    "LockClient",
    # Types
    "Outcome",
    "OutcomeKind",
    "RunResult",
    "StateCallback",
    "SyncStateSnapshot",
]
