"""
=============================================================================
TASKS
=============================================================================

A Task is a unit of background work with lifecycle hooks:

    ┌──────────────────────────────────────────────────────────────────┐
    │  wait delay                                                      │
    │      │                                                           │
    │  before_execute(app)                                             │
    │      │                                                           │
    │  execute(app, cancel) ──► TaskResult          (worker thread)    │
    │      │                                                           │
    │      ├── finished in time  → after_execute(app)                  │
    │      │                       completed(app, result)              │
    │      │                                                           │
    │      └── timeout first     → on_timeout(app), cancel is set,     │
    │                              the late result is dropped          │
    └──────────────────────────────────────────────────────────────────┘

An exception raised by execute() becomes ``TaskResult(error=exc)`` and is
handed to completed() like any other result.

Long-running execute() bodies should poll ``cancel.cancelled`` (or wait
on it) and stop once the timeout has fired.

An AsyncTask also has a name. While one with that name is waiting out its
delay, later submissions are folded into it through aggregate() instead
of running separately:

    class RefreshCache(AsyncTask):
        delay = 0.05

        def __init__(self, key):
            super().__init__("refresh")
            self.keys = {key}

        def aggregate(self, app, new_task):
            self.keys |= new_task.keys

        def execute(self, app, cancel):
            return TaskResult(data=reload(self.keys))
=============================================================================
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from ..application import Application


@dataclass
class TaskResult:
    error: Optional[BaseException] = None
    data: Any = None


class CancelToken:
    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; True if cancelled."""
        return self._event.wait(timeout)


class Task(ABC):
    #: Seconds execute() may run before on_timeout() fires; None or 0 waits forever.
    timeout: Optional[float] = None
    #: Seconds to wait before before_execute().
    delay: float = 0.0

    def __init__(self):
        self._timed_out = threading.Event()

    def before_execute(self, app: "Application") -> None:
        pass

    @abstractmethod
    def execute(self, app: "Application", cancel: CancelToken) -> Optional[TaskResult]:
        ...

    def after_execute(self, app: "Application") -> None:
        pass

    def completed(self, app: "Application", result: TaskResult) -> None:
        pass

    def on_timeout(self, app: "Application") -> None:
        pass

    def get_timeout(self) -> Optional[float]:
        return self.timeout

    def get_delay(self) -> float:
        return self.delay

    def is_timeout(self) -> bool:
        return self._timed_out.is_set()

    def mark_timeout(self) -> None:
        self._timed_out.set()


class AsyncTask(Task):
    def __init__(self, name: str):
        super().__init__()
        self.name = name

    def get_name(self) -> str:
        return self.name

    def aggregate(self, app: "Application", new_task: "AsyncTask") -> None:
        """Fold a later submission with the same name into this one."""
