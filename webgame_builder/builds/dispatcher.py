"""Bounded scheduling of build jobs.

Each submitted job runs as one task on a thread pool of
``max_concurrent_builds`` workers. At most ``max_pending_builds`` further
jobs may wait for a worker; past that, submissions are rejected before a
job record is created.

A shared cancellation event is handed to every task and set on shutdown.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent import futures
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

logger = logging.getLogger(__name__)


class BuildQueueFullError(Exception):
    """Raised when no build slot is available."""

    def __init__(self, capacity: int, code: str = "build_queue_full") -> None:
        super().__init__(
            f"Build queue is full ({capacity} builds running or waiting); "
            "try again later"
        )
        self.capacity = capacity
        self.code = code


class BuildDispatcher:
    """Thread pool with a hard cap on running plus waiting builds."""

    def __init__(self, max_workers: int = 2, max_pending: int = 16) -> None:
        self.max_workers = max_workers
        self.capacity = max_workers + max_pending
        self.cancel_event = threading.Event()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="build"
        )
        self._lock = threading.Lock()
        self._reserved = 0
        self._futures: dict[str, Future[Any]] = {}

    @property
    def in_flight(self) -> int:
        """Number of reserved slots (running or waiting builds)."""
        with self._lock:
            return self._reserved

    @property
    def tracked_jobs(self) -> int:
        """Number of jobs whose build task has not finished yet."""
        with self._lock:
            return len(self._futures)

    def reserve(self) -> None:
        """Claim a slot for a build about to be submitted.

        Raises:
            BuildQueueFullError: If all slots are taken.
        """
        with self._lock:
            if self._reserved >= self.capacity:
                raise BuildQueueFullError(self.capacity)
            self._reserved += 1

    def release(self) -> None:
        """Give back a slot claimed with `reserve`."""
        with self._lock:
            self._reserved = max(0, self._reserved - 1)

    def dispatch(
        self,
        job_id: str,
        fn: Callable[..., Any],
        *args: Any,
        on_cancelled: Callable[[str], None] | None = None,
    ) -> Future[Any]:
        """Schedule a build on a reserved slot.

        Args:
            job_id: Job being built.
            fn: Build function; receives ``*args`` and ``cancel_event``.
            on_cancelled: Called with the job id if the task is dropped
                before it starts.

        Returns:
            Future of the task.

        Raises:
            RuntimeError: If the dispatcher has been shut down.
        """
        future = self._executor.submit(fn, *args, cancel_event=self.cancel_event)
        with self._lock:
            self._futures[job_id] = future

        def _done(done: Future[Any]) -> None:
            with self._lock:
                if self._futures.get(job_id) is done:
                    del self._futures[job_id]
            self.release()
            if done.cancelled():
                if on_cancelled is not None:
                    on_cancelled(job_id)
                return
            error = done.exception()
            if error is not None:
                logger.error("Build task for job %s raised: %r", job_id, error)

        future.add_done_callback(_done)
        return future

    def wait(self, job_id: str, timeout: float | None = None) -> bool:
        """Block until a job's task has finished.

        Finished tasks are dropped from the dispatcher, so a job with no
        task left counts as finished.

        Returns:
            True if no task is pending for the job, False on timeout.
        """
        with self._lock:
            future = self._futures.get(job_id)
        if future is None:
            return True
        done, _ = futures.wait([future], timeout=timeout)
        return future in done

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting builds and cancel the ones still waiting.

        Running builds stop before their next step.
        """
        logger.info("Shutting down build dispatcher")
        self.cancel_event.set()
        self._executor.shutdown(wait=wait, cancel_futures=True)


__all__ = ["BuildDispatcher", "BuildQueueFullError"]
