"""
=============================================================================
CONNECTION WORKER POOL
=============================================================================

Each accepted connection is handed to one worker thread, which runs the
whole keep-alive loop for it: read, dispatch through the pipeline, write,
repeat. Middleware and handlers therefore always run on the worker that
owns the connection.

    accept loop ──► submit() ──► queue.Queue (bounded) ──► flow-worker-N

The pool starts min_workers threads and adds one whenever a job is queued
while every worker is busy, up to max_workers. submit() returns False on
a full queue; the server answers those connections with 503.

Shutdown waits for the queue to drain, then puts one None per worker on
the queue. A worker that pulls None exits.
=============================================================================
"""

import logging
import queue
import threading
import time
from typing import Any, Callable, NamedTuple, Optional

logger = logging.getLogger(__name__)


class Job(NamedTuple):
    func: Callable[..., Any]
    args: tuple
    expires_at: Optional[float]


class ThreadPool:
    """
    Elastic pool of daemon worker threads fed from a bounded queue.

    Usage:
        pool = ThreadPool(min_workers=4, max_workers=16)
        pool.start()
        pool.submit(process_connection, conn, timeout=30)
        pool.shutdown()
    """

    def __init__(self, min_workers: int = 4, max_workers: int = 16, max_queued: int = 256):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self._jobs: "queue.Queue[Optional[Job]]" = queue.Queue(maxsize=max_queued)
        self._threads: list[threading.Thread] = []
        self._busy = 0
        self._lock = threading.Lock()
        self._accepting = False

    @property
    def size(self) -> int:
        return len(self._threads)

    def start(self) -> None:
        with self._lock:
            if self._accepting:
                return
            self._accepting = True
            for _ in range(self.min_workers):
                self._spawn()
        logger.info(f"Thread pool started with {self.min_workers} workers")

    def _spawn(self) -> None:
        # Caller holds self._lock.
        thread = threading.Thread(target=self._work, name=f"flow-worker-{len(self._threads)}", daemon=True)
        self._threads.append(thread)
        thread.start()

    def _work(self) -> None:
        while True:
            job = self._jobs.get()
            try:
                if job is None:
                    return
                self._run(job)
            finally:
                self._jobs.task_done()

    def _run(self, job: Job) -> None:
        if job.expires_at is not None and time.monotonic() > job.expires_at:
            logger.warning(f"Dropped job that waited past its timeout: {job.func.__name__}")
            return

        with self._lock:
            self._busy += 1
        try:
            job.func(*job.args)
        except Exception as e:
            # The worker survives whatever one connection does.
            logger.exception(f"{threading.current_thread().name} job failed: {e}")
        finally:
            with self._lock:
                self._busy -= 1

    def submit(self, func: Callable[..., Any], *args: Any, timeout: Optional[float] = None) -> bool:
        """
        Queue ``func(*args)``. A job still queued ``timeout`` seconds later is
        dropped. Returns False when the queue is full.
        """
        if not self._accepting:
            raise RuntimeError("Thread pool not running")

        expires_at = time.monotonic() + timeout if timeout else None
        try:
            self._jobs.put_nowait(Job(func, args, expires_at))
        except queue.Full:
            return False

        with self._lock:
            if self._busy >= len(self._threads) and len(self._threads) < self.max_workers:
                logger.debug(f"Growing pool to {len(self._threads) + 1} workers")
                self._spawn()
        return True

    def shutdown(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            if not self._accepting:
                return
            self._accepting = False
            threads = list(self._threads)

        logger.info("Shutting down thread pool...")
        deadline = time.monotonic() + timeout if timeout else None
        while not self._jobs.empty():
            if deadline is not None and time.monotonic() > deadline:
                logger.warning("Thread pool shutdown timed out with jobs still queued")
                break
            time.sleep(0.05)

        for _ in threads:
            try:
                self._jobs.put_nowait(None)
            except queue.Full:
                break
        for thread in threads:
            thread.join(timeout=2.0)

        with self._lock:
            self._threads.clear()
        logger.info("Thread pool stopped")
