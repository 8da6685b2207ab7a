from .scheduler import Scheduler
from .task import AsyncTask, CancelToken, Task, TaskResult
from .timer import FunctionTimer, Timer

__all__ = [
    "AsyncTask",
    "CancelToken",
    "FunctionTimer",
    "Scheduler",
    "Task",
    "TaskResult",
    "Timer",
]
