"""Tests for the background task scope."""

from __future__ import annotations

import threading

from shopsync.client.sync.scope import TaskScope


class TestTaskScope:
    """Tests for TaskScope."""

    def test_launch_returns_result(self) -> None:
        scope = TaskScope(max_workers=2)
        future = scope.launch("add", lambda a, b: a + b, 2, 3)
        assert future is not None
        assert future.result(timeout=2.0) == 5
        scope.close()

    def test_failing_task_does_not_affect_siblings(self) -> None:
        """A raising task is logged and its siblings still complete."""
        scope = TaskScope(max_workers=2)
        done = threading.Event()

        def broken() -> None:
            raise RuntimeError("task crashed")

        failed = scope.launch("broken", broken)
        ok = scope.launch("ok", done.set)
        scope.join(timeout=2.0)

        assert failed is not None and ok is not None
        assert failed.exception() is None
        assert failed.result() is None
        assert done.is_set()
        scope.close()

    def test_launch_after_close_is_dropped(self) -> None:
        scope = TaskScope()
        scope.close()
        assert scope.launch("late", lambda: None) is None

    def test_join_waits_for_tasks(self) -> None:
        scope = TaskScope(max_workers=1)
        results: list[int] = []
        release = threading.Event()

        def slow() -> None:
            release.wait(timeout=2.0)
            results.append(1)

        scope.launch("slow", slow)
        release.set()
        scope.join(timeout=2.0)

        assert results == [1]
        scope.close()
