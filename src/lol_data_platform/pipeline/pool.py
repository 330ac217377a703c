"""Bounded worker pool with observable depth.

A thin layer over ``ThreadPoolExecutor`` that tracks how many tasks are
running and how many are waiting for a worker, and lets the caller block
until the pool drains (or drops below a high watermark).
"""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WorkerPool:
    """Fixed-concurrency pool with running/queued counters.

    Usage:
        >>> pool = WorkerPool("timeline", concurrency=20)
        >>> future = pool.submit(worker.process, task)
        >>> pool.wait_idle()
        >>> pool.shutdown()
    """

    def __init__(self, name: str, concurrency: int):
        if concurrency < 1:
            raise ValueError(f"{name} pool concurrency must be >= 1")

        self.name = name
        self.concurrency = concurrency
        self._executor = ThreadPoolExecutor(
            max_workers=concurrency, thread_name_prefix=f"{name}-worker"
        )
        self._changed = threading.Condition()
        self._queued = 0
        self._running = 0
        self._completed = 0

    @property
    def queued(self) -> int:
        """Tasks submitted but not yet picked up by a worker."""
        return self._queued

    @property
    def running(self) -> int:
        """Tasks currently executing."""
        return self._running

    @property
    def completed(self) -> int:
        return self._completed

    @property
    def outstanding(self) -> int:
        return self._queued + self._running

    def status(self) -> str:
        """Compact ``running/queued`` string for progress logs."""
        return f"{self._running}/{self._queued}"

    def submit(self, fn: Callable[..., T], *args: Any) -> "Future[T]":
        with self._changed:
            self._queued += 1
        try:
            future = self._executor.submit(self._run, fn, *args)
        except RuntimeError:
            # Executor already shut down
            with self._changed:
                self._queued -= 1
                self._changed.notify_all()
            raise
        future.add_done_callback(self._on_done)
        return future

    def _on_done(self, future: Future) -> None:
        # Cancelled tasks never reach _run
        if future.cancelled():
            with self._changed:
                self._queued -= 1
                self._changed.notify_all()

    def _run(self, fn: Callable[..., T], *args: Any) -> T:
        with self._changed:
            self._queued -= 1
            self._running += 1
        try:
            return fn(*args)
        finally:
            with self._changed:
                self._running -= 1
                self._completed += 1
                self._changed.notify_all()

    def wait_below(self, limit: int, timeout: Optional[float] = None) -> bool:
        """Block until at most ``limit`` tasks are outstanding.

        Returns:
            False if the timeout expired first
        """
        with self._changed:
            return self._changed.wait_for(lambda: self.outstanding <= limit, timeout)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until every submitted task has finished."""
        return self.wait_below(0, timeout)

    def shutdown(self, wait: bool = True, cancel_pending: bool = False) -> None:
        """Stop the pool; ``cancel_pending`` drops queued tasks that have not started."""
        self._executor.shutdown(wait=wait, cancel_futures=cancel_pending)
        logger.debug(f"{self.name} pool shut down ({self._completed} tasks completed)")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
