"""
Unit tests for tasks, async task de-duplication and timers.
"""

import threading
import time

import pytest

from flow.tasks import AsyncTask, FunctionTimer, Task, TaskResult


class RecordingTask(Task):
    def __init__(self, result=None, error=None, sleep=0.0, timeout=None):
        super().__init__()
        self.timeout = timeout
        self.result = result
        self.error = error
        self.sleep = sleep
        self.events = []
        self.completed_with = None
        self.cancel_seen = None
        self.done = threading.Event()

    def before_execute(self, app):
        self.events.append("before")

    def execute(self, app, cancel):
        self.events.append("execute")
        if self.sleep:
            self.cancel_seen = cancel.wait(self.sleep)
        if self.error:
            raise self.error
        return self.result

    def after_execute(self, app):
        self.events.append("after")

    def completed(self, app, result):
        self.events.append("completed")
        self.completed_with = result
        self.done.set()

    def on_timeout(self, app):
        self.events.append("timeout")
        self.done.set()


class RefreshTask(AsyncTask):
    delay = 0.2

    def __init__(self, key, log):
        super().__init__("refresh")
        self.keys = {key}
        self.log = log
        self.done = threading.Event()

    def aggregate(self, app, new_task):
        self.log.append(("aggregate", new_task.keys))
        self.keys |= new_task.keys

    def execute(self, app, cancel):
        self.log.append(("execute", set(self.keys)))
        return TaskResult(data=sorted(self.keys))

    def completed(self, app, result):
        self.log.append(("completed", result.data))
        self.done.set()


class TestTasks:
    """Tests for one-shot tasks."""

    def test_lifecycle(self, app):
        """Test hooks run in order and completed gets the result."""
        task = RecordingTask(result=TaskResult(data=42))
        app.execute_task(task).join(timeout=2)

        assert task.done.wait(2)
        assert task.events == ["before", "execute", "after", "completed"]
        assert task.completed_with.data == 42
        assert task.completed_with.error is None

    def test_none_result(self, app):
        """Test execute returning None yields an empty result."""
        task = RecordingTask()
        app.execute_task(task)

        assert task.done.wait(2)
        assert task.completed_with == TaskResult()

    def test_error_becomes_result(self, app):
        """Test an exception from execute is handed to completed."""
        task = RecordingTask(error=ValueError("bad input"))
        app.execute_task(task)

        assert task.done.wait(2)
        assert isinstance(task.completed_with.error, ValueError)
        assert "completed" in task.events

    def test_timeout(self, app):
        """Test a slow task times out and its token is cancelled."""
        task = RecordingTask(sleep=2.0, timeout=0.05)
        app.execute_task(task)

        assert task.done.wait(2)
        assert task.is_timeout()
        assert task.events[-1] == "timeout"
        assert "completed" not in task.events

        # execute() sees the cancellation and returns early
        deadline = time.monotonic() + 2
        while task.cancel_seen is None and time.monotonic() < deadline:
            time.sleep(0.01)
        assert task.cancel_seen is True
        assert "completed" not in task.events

    def test_hook_errors_are_logged(self, app, caplog):
        """Test a failing hook does not stop the task."""

        class Flaky(RecordingTask):
            def before_execute(self, app):
                raise RuntimeError("hook failed")

        task = Flaky(result=TaskResult(data=1))
        app.execute_task(task).join(timeout=2)

        assert task.done.wait(2)
        assert task.completed_with.data == 1
        assert "before_execute raised" in caplog.text


class TestAsyncTasks:
    """Tests for name-keyed de-duplication."""

    def test_aggregation(self, app):
        """Test submissions during the delay fold into one execution."""
        log = []
        first = RefreshTask("a", log)

        assert app.execute_async_task(first) is True
        for key in "bcde":
            assert app.execute_async_task(RefreshTask(key, log)) is False

        assert first.done.wait(2)
        time.sleep(0.05)

        assert [entry[0] for entry in log].count("aggregate") == 4
        assert [entry[0] for entry in log].count("execute") == 1
        assert [entry[0] for entry in log].count("completed") == 1
        assert ("execute", {"a", "b", "c", "d", "e"}) in log
        assert ("completed", ["a", "b", "c", "d", "e"]) in log

    def test_new_round_after_execution(self, app):
        """Test a submission after the delay starts a new task."""
        log = []
        first = RefreshTask("a", log)
        app.execute_async_task(first)
        assert first.done.wait(2)

        second = RefreshTask("b", log)
        assert app.execute_async_task(second) is True
        assert second.done.wait(2)

        assert [entry[0] for entry in log].count("execute") == 2
        assert app.scheduler.pending_async_tasks() == []


class TestTimers:
    """Tests for timers."""

    def test_one_shot(self, app):
        """Test a one-shot timer runs once after its interval."""
        fired = threading.Event()
        calls = []

        def run(a):
            calls.append(a)
            fired.set()

        app.start_timer(FunctionTimer("once", 0.02, run))

        assert fired.wait(2)
        time.sleep(0.1)
        assert calls == [app]

    def test_periodic_and_stop(self, app):
        """Test a periodic timer repeats until stopped."""
        calls = []
        app.start_timer(FunctionTimer("tick", 0.02, calls.append, periodic=True))

        deadline = time.monotonic() + 2
        while len(calls) < 3 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert len(calls) >= 3

        app.stop_timer("tick")
        time.sleep(0.1)
        count = len(calls)
        time.sleep(0.1)

        assert len(calls) == count
        assert "tick" not in app.scheduler.timer_names()

    def test_immediately(self, app):
        """Test immediately runs once at start, then waits for the interval."""
        fired = threading.Event()
        calls = []

        def run(a):
            calls.append(a)
            fired.set()

        app.start_timer(FunctionTimer("now", 10, run, periodic=True, immediately=True))

        assert fired.wait(2)
        time.sleep(0.1)
        assert calls == [app]
        app.stop_timer("now")

    def test_first_run_after_interval(self, app):
        """Test a periodic timer without immediately waits for its interval."""
        calls = []
        app.start_timer(FunctionTimer("later", 10, calls.append, periodic=True))

        time.sleep(0.1)

        assert calls == []
        assert app.scheduler.timer_names() == ["later"]
        app.stop_timer("later")
        assert app.scheduler.timer_names() == []

    def test_stop_all(self, app):
        """Test stop_all() ends every timer and refuses new ones."""
        calls = []
        app.start_timer(FunctionTimer("tick", 0.02, calls.append, periodic=True))

        app.scheduler.stop_all()
        time.sleep(0.1)
        count = len(calls)
        app.start_timer(FunctionTimer("late", 0.02, calls.append, periodic=True))
        time.sleep(0.1)

        assert len(calls) == count

    def test_replace_by_name(self, app):
        """Test a second timer with the same name stops the first."""
        first_calls = []
        second_calls = []
        app.start_timer(FunctionTimer("job", 0.02, first_calls.append, periodic=True))
        app.start_timer(FunctionTimer("job", 0.02, second_calls.append, periodic=True))

        time.sleep(0.15)
        frozen = len(first_calls)
        time.sleep(0.1)

        assert len(first_calls) == frozen
        assert second_calls
        app.stop_timer("job")

    def test_stop_unknown_timer(self, app):
        """Test stopping an unknown name is a no-op."""
        app.stop_timer("nobody")

    def test_invalid_interval(self):
        """Test intervals must be positive."""
        with pytest.raises(ValueError):
            FunctionTimer("bad", 0, lambda app: None)
