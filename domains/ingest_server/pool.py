"""
Bounded worker pool for the ingestion server.

A fixed number of worker threads; ``submit`` blocks while every worker is
busy, so the accept loop never runs ahead of the pool and extra connections
wait in the OS listen backlog.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from loguru import logger


class BoundedWorkerPool:
    """Fixed-capacity thread pool with blocking submission."""

    def __init__(self, capacity: int, thread_name_prefix: str = "session-worker"):
        """
        Initialize worker pool.

        Args:
            capacity: Maximum number of tasks running at once (>= 1)
            thread_name_prefix: Prefix for worker thread names
        """
        if capacity < 1:
            raise ValueError(f"Worker pool capacity must be positive, got {capacity}")

        self._capacity = capacity
        self._slots = threading.BoundedSemaphore(capacity)
        self._executor = ThreadPoolExecutor(
            max_workers=capacity, thread_name_prefix=thread_name_prefix
        )
        self._lock = threading.Lock()
        self._active = 0

    @property
    def capacity(self) -> int:
        """Number of worker threads."""
        return self._capacity

    @property
    def active(self) -> int:
        """Number of tasks currently running or handed to a worker."""
        with self._lock:
            return self._active

    def _release(self, future: Future):
        with self._lock:
            self._active -= 1
        self._slots.release()

        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.opt(exception=error).error(f"Worker task failed: {error}")

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        """
        Run ``fn(*args)`` on a worker, blocking until one is free.

        Returns:
            Future for the task
        """
        self._slots.acquire()
        with self._lock:
            self._active += 1

        try:
            future = self._executor.submit(fn, *args)
        except RuntimeError:
            with self._lock:
                self._active -= 1
            self._slots.release()
            raise

        future.add_done_callback(self._release)
        return future

    def shutdown(self, wait: bool = True):
        """Stop accepting tasks and optionally wait for running ones."""
        self._executor.shutdown(wait=wait)
        logger.info("Worker pool shut down")

    def __enter__(self) -> "BoundedWorkerPool":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown(wait=True)
