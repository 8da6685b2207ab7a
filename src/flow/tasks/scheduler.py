"""
=============================================================================
TASK AND TIMER SCHEDULER
=============================================================================

Runs Tasks and Timers on daemon threads on behalf of an Application.

=============================================================================
ONE-SHOT TASKS
=============================================================================

    execute_task(task)

    runner thread                         execute thread
    ─────────────                         ──────────────
    wait task.get_delay()
    before_execute(app)
    start ───────────────────────────────► result = execute(app, cancel)
    wait(done, task.get_timeout())                     │
      │                                                ▼
      ├── done first  → after_execute, completed(result)
      └── timeout     → mark_timeout, cancel.cancel(), on_timeout
                        (the result, if it ever arrives, is dropped)

=============================================================================
ASYNC (DE-DUPLICATED) TASKS
=============================================================================

    execute_async_task(task)

    registry: name → pending task        (guarded by an RWLock)

    ┌──────────────────────────────────────────────────────────────────┐
    │  name pending?  yes → pending.aggregate(app, task); return       │
    │                 no  → register, wait delay,                      │
    │                       unregister, run as a one-shot task         │
    └──────────────────────────────────────────────────────────────────┘

aggregate() and the unregister step both hold the write lock, so every
aggregate() that happened is visible to execute(). A submission arriving
after the unregister starts a new round.

=============================================================================
TIMERS
=============================================================================

Timers are jobs on an APScheduler BackgroundScheduler, started on the
first start_timer() call.

    start_timer(timer)     periodic: IntervalTrigger, job id = timer name
                           (next_run_time=now when immediately is set)
                           one-shot: DateTrigger at now + interval
    stop_timer(name)       remove_job(name); no-op for unknown names
    stop_all()             shuts the timer scheduler down and drops
                           pending task delays

Periodic timers tick at a fixed rate. A run still in progress when the
next tick comes is not doubled up (max_instances=1). A stopped periodic
timer finishes the run in progress, if any, and never runs again.
=============================================================================
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, List

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..core.rwlock import RWLock
from .task import AsyncTask, CancelToken, Task, TaskResult
from .timer import Timer

if TYPE_CHECKING:
    from ..application import Application

logger = logging.getLogger(__name__)


class Scheduler:
    def __init__(self, app: "Application"):
        self.app = app
        self._pending: Dict[str, AsyncTask] = {}
        self._pending_lock = RWLock()
        self._timers = BackgroundScheduler(daemon=True)
        self._timers_lock = threading.Lock()
        self._stopping = threading.Event()

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _spawn(self, name: str, target: Callable[..., None], *args: Any) -> threading.Thread:
        thread = threading.Thread(target=target, args=args, name=name, daemon=True)
        thread.start()
        return thread

    def _call_hook(self, owner: str, hook: str, func: Callable[..., Any], *args: Any) -> None:
        try:
            func(*args)
        except Exception:
            logger.exception(f"{owner}: {hook} raised")

    def _sleep(self, seconds: float) -> bool:
        """Wait ``seconds``; False if the scheduler was stopped meanwhile."""
        if seconds and seconds > 0:
            return not self._stopping.wait(seconds)
        return not self._stopping.is_set()

    # =========================================================================
    # TASKS
    # =========================================================================

    def execute_task(self, task: Task) -> threading.Thread:
        return self._spawn(f"flow-task-{type(task).__name__}", self._run_delayed, task)

    def _run_delayed(self, task: Task) -> None:
        if not self._sleep(task.get_delay()):
            logger.debug(f"Scheduler stopped, dropping {type(task).__name__}")
            return
        self._run(task)

    def _run(self, task: Task) -> None:
        owner = type(task).__name__
        app = self.app

        self._call_hook(owner, "before_execute", task.before_execute, app)

        cancel = CancelToken()
        done = threading.Event()
        outcome: List[TaskResult] = []

        def run_execute() -> None:
            try:
                result = task.execute(app, cancel)
            except Exception as e:
                logger.debug(f"{owner}: execute raised {type(e).__name__}: {e}")
                result = TaskResult(error=e)
            outcome.append(result if result is not None else TaskResult())
            done.set()

        self._spawn(f"flow-exec-{owner}", run_execute)

        timeout = task.get_timeout()
        finished = done.wait(timeout if timeout else None)

        if not finished:
            task.mark_timeout()
            cancel.cancel()
            logger.warning(f"{owner}: timed out after {timeout}s")
            self._call_hook(owner, "on_timeout", task.on_timeout, app)
            return

        if task.is_timeout():
            return

        self._call_hook(owner, "after_execute", task.after_execute, app)
        self._call_hook(owner, "completed", task.completed, app, outcome[0])

    def execute_async_task(self, task: AsyncTask) -> bool:
        """
        Schedule ``task`` unless one with the same name is pending.

        Returns:
            True if the task was scheduled, False if it was folded into
            the pending one.
        """
        name = task.get_name()

        with self._pending_lock.write():
            existing = self._pending.get(name)
            if existing is not None:
                self._call_hook(name, "aggregate", existing.aggregate, self.app, task)
                return False
            self._pending[name] = task

        self._spawn(f"flow-async-{name}", self._run_async, task)
        return True

    def _run_async(self, task: AsyncTask) -> None:
        name = task.get_name()
        proceed = self._sleep(task.get_delay())

        with self._pending_lock.write():
            if self._pending.get(name) is task:
                del self._pending[name]

        if not proceed:
            logger.debug(f"Scheduler stopped, dropping async task {name}")
            return
        self._run(task)

    def pending_async_tasks(self) -> List[str]:
        with self._pending_lock.read():
            return list(self._pending)

    # =========================================================================
    # TIMERS
    # =========================================================================

    def _ensure_timers_running(self) -> None:
        with self._timers_lock:
            if not self._timers.running:
                self._timers.start()
                logger.info("Timer scheduler started")

    def _fire(self, timer: Timer) -> None:
        self._call_hook(timer.get_name(), "run", timer.run, self.app)

    def start_timer(self, timer: Timer) -> None:
        if self._stopping.is_set():
            logger.warning(f"Scheduler stopped, ignoring timer {timer.get_name()}")
            return
        self._ensure_timers_running()

        name = timer.get_name()
        now = datetime.now(timezone.utc)
        interval = timer.get_interval()

        if not timer.is_periodic():
            self._timers.add_job(
                self._fire,
                trigger=DateTrigger(run_date=now + timedelta(seconds=interval)),
                args=[timer],
                name=name,
                misfire_grace_time=None,
            )
            return

        if self._timers.get_job(name) is not None:
            logger.info(f"Timer {name} replaced, stopping the previous one")

        options: Dict[str, Any] = {}
        if timer.is_immediately():
            options["next_run_time"] = now
        self._timers.add_job(
            self._fire,
            trigger=IntervalTrigger(seconds=interval),
            args=[timer],
            id=name,
            name=name,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **options,
        )
        logger.debug(f"Timer {name} started, interval {interval}s")

    def stop_timer(self, name: str) -> None:
        try:
            self._timers.remove_job(name)
        except JobLookupError:
            logger.debug(f"No timer named {name}")
            return
        logger.info(f"Timer {name} stopped")

    def timer_names(self) -> List[str]:
        """Names of the registered periodic timers."""
        return [job.id for job in self._timers.get_jobs() if isinstance(job.trigger, IntervalTrigger)]

    def stop_all(self) -> None:
        self._stopping.set()
        with self._timers_lock:
            if self._timers.running:
                self._timers.shutdown(wait=False)
                logger.info("Timer scheduler stopped")
