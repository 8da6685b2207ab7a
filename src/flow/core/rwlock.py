"""
Reader/writer lock.

Many readers may hold the lock together; a writer holds it alone. Used for
the per-request data map and the scheduler's task and timer registries,
where lookups far outnumber inserts.

    lock = RWLock()

    with lock.read():
        value = registry.get(name)

    with lock.write():
        registry[name] = value
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class RWLock:
    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()
