"""
Timers.

    class Heartbeat(Timer):
        def __init__(self):
            super().__init__("heartbeat", interval=30, periodic=True, immediately=True)

        def run(self, app):
            app.redis.set("alive", "1")

    app.start_timer(Heartbeat())
    app.stop_timer("heartbeat")

A one-shot timer (periodic=False) runs once after ``interval`` seconds.
Periodic timers are registered by name; starting another periodic timer
under the same name stops the first.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from ..application import Application


class Timer(ABC):
    def __init__(self, name: str, interval: float, periodic: bool = False, immediately: bool = False):
        if interval <= 0:
            raise ValueError(f"timer interval must be positive, got {interval}")
        self.name = name
        self.interval = interval
        self.periodic = periodic
        self.immediately = immediately

    @abstractmethod
    def run(self, app: "Application") -> None:
        ...

    def get_name(self) -> str:
        return self.name

    def get_interval(self) -> float:
        return self.interval

    def is_periodic(self) -> bool:
        return self.periodic

    def is_immediately(self) -> bool:
        return self.immediately


class FunctionTimer(Timer):
    def __init__(
        self,
        name: str,
        interval: float,
        func: Callable[["Application"], None],
        periodic: bool = False,
        immediately: bool = False,
    ):
        super().__init__(name, interval, periodic, immediately)
        self._func = func

    def run(self, app: "Application") -> None:
        self._func(app)
