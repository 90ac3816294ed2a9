"""Bounded worker pool for independent bulk operations.

Used for fetching sources and for batched object reads. One pool serves
every batch of a run, so worker threads (and any per-thread resources
they hold) are reused from one resolver level to the next. Results always
come back in submission order because later stages are order-sensitive.

Execution Context:
    Library module - imported by the repository module

Metadata:
    Version: 0.1.0
    Author: git-splice-subtree Team
"""
from __future__ import annotations

import threading
from concurrent.futures import FIRST_EXCEPTION
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import wait
from typing import Any
from typing import Callable
from typing import Sequence
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


# ---- Worker Pool --------------------------------------------------------------------------------------------


class WorkerPool:
    """Thread pool started on first use and shared by all later batches.

    Attributes:
        max_workers: Upper bound on worker threads; 1 or fewer runs inline.
    """

    def __init__(
            self,
            max_workers: int,
    ) -> None:
        self.max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()

    def _get_executor(
            self,
    ) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="splice-worker",
                )
            return self._executor

    def map_ordered(
            self,
            func: Callable[[T], R],
            items: Sequence[T],
    ) -> list[R]:
        """Apply func to every item, keeping input order.

        The first failure is raised once it is seen; work not yet started
        is cancelled.

        Args:
            func: Callable applied to each item.
            items: Inputs.

        Returns:
            func(item) for each item, in input order.
        """
        if self.max_workers <= 1 or len(items) <= 1:
            return [func(item) for item in items]

        executor = self._get_executor()
        futures = [executor.submit(func, item) for item in items]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        failed = next((future for future in futures if future in done and future.exception()), None)
        if failed is not None:
            for future in pending:
                future.cancel()
            raise failed.exception()
        return [future.result() for future in futures]

    def shutdown(
            self,
    ) -> None:
        """Stop the worker threads; the pool restarts if used again."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def __enter__(
            self,
    ) -> WorkerPool:
        return self

    def __exit__(
            self,
            exc_type: Any,
            exc_val: Any,
            exc_tb: Any,
    ) -> None:
        self.shutdown()
