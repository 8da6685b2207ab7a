"""
Monotonic request identifiers.

Every dispatched request takes the next integer from a RequestIdSource.
Ids start at 1, strictly increase for the life of the process and are
never handed out twice, no matter how many worker threads ask at once.
"""

import itertools
import threading


class RequestIdSource:
    """Thread-safe counter producing 1, 2, 3, ..."""

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            return next(self._counter)


# Shared by every Application in the process.
default_source = RequestIdSource()
