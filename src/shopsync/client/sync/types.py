"""Shared types for the sync engine.

This module provides:
- OutcomeKind, Outcome: tagged result of one reconciler step
- RunResult: everything one sync run produced
- SyncStateSnapshot: immutable view of the orchestrator state
- Type aliases for callbacks
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum


class OutcomeKind(Enum):
    """How a step ended.

    OK: the step succeeded.
    ABSORBED: the step failed, the failure was logged and the run went on.
    PROPAGATED: the step failed and the failure ended the run.
    """

    OK = "ok"
    ABSORBED = "absorbed"
    PROPAGATED = "propagated"


@dataclass(frozen=True)
class Outcome:
    """Result of one named step (e.g. "repairs.pull", "lock.release")."""

    step: str
    kind: OutcomeKind
    error: str | None = None

    @classmethod
    def ok(cls, step: str) -> Outcome:
        return cls(step, OutcomeKind.OK)

    @classmethod
    def absorbed(cls, step: str, error: BaseException | str) -> Outcome:
        return cls(step, OutcomeKind.ABSORBED, str(error))

    @classmethod
    def propagated(cls, step: str, error: BaseException | str) -> Outcome:
        return cls(step, OutcomeKind.PROPAGATED, str(error))

    @property
    def failed(self) -> bool:
        return self.kind is not OutcomeKind.OK


@dataclass
class RunResult:
    """Record of a single sync run."""

    forced: bool
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None
    outcomes: list[Outcome] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        """True unless a step ended the run."""
        return not any(o.kind is OutcomeKind.PROPAGATED for o in self.outcomes)

    def kinds(self) -> dict[str, OutcomeKind]:
        return {o.step: o.kind for o in self.outcomes}


@dataclass(frozen=True)
class SyncStateSnapshot:
    """Read-only copy of the orchestrator state handed to observers."""

    offline_mode: bool = False
    failure_count: int = 0
    is_syncing: bool = False
    last_sync_time: float | None = None
    creating_repair_guard: bool = False
    last_error: str | None = None


StateCallback = Callable[[SyncStateSnapshot], None]
