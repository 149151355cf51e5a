"""
Concurrency utilities shared by a discovery session: a cancellation token
and a bounded worker pool with back-pressure.
"""
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

import structlog

from ..exceptions import WorkerPoolShutdownError

logger = structlog.get_logger(__name__)


class CancellationToken:
    """
    Cooperative cancellation flag owned by a single discovery session.
    Tasks poll ``cancelled`` at iteration boundaries; in-flight socket calls
    are never interrupted and finish on their own timeout.
    """
    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Blocks until cancelled or ``timeout`` elapses. Returns True if cancelled."""
        return self._event.wait(timeout)


class BoundedWorkerPool:
    """
    A ThreadPoolExecutor that caps both running and queued work.

    At most ``max_workers`` tasks run and at most ``queue_size`` more wait.
    ``submit`` blocks (queues) while that capacity is used up; ``try_submit``
    rejects instead.
    """
    def __init__(
        self,
        max_workers: int = 50,
        queue_size: int = 256,
        name: str | None = None,
        poll_interval: float = 0.2,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1.")
        if queue_size < 0:
            raise ValueError("queue_size cannot be negative.")

        self.max_workers = max_workers
        self.queue_size = queue_size
        self.name = name or f"pool-{id(self)}"
        self.poll_interval = poll_interval

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=self.name)
        self._slots = threading.BoundedSemaphore(max_workers + queue_size)
        self._lock = threading.Lock()
        self._closed = False
        self.submitted = 0
        self.rejected = 0
        self.logger = logger.bind(pool_name=self.name)
        self.logger.debug("Worker pool created", max_workers=max_workers, queue_size=queue_size)

    @property
    def closed(self) -> bool:
        return self._closed

    def _run(self, func: Callable[..., Any], args: tuple, kwargs: dict) -> Any:
        try:
            return func(*args, **kwargs)
        finally:
            self._slots.release()

    def _dispatch(self, func: Callable[..., Any], args: tuple, kwargs: dict) -> Future | None:
        with self._lock:
            if self._closed:
                self._slots.release()
                self.rejected += 1
                return None
            try:
                future = self._executor.submit(self._run, func, args, kwargs)
            except RuntimeError: # executor shut down underneath us
                self._slots.release()
                self.rejected += 1
                return None
            self.submitted += 1
            return future

    def submit(self, func: Callable[..., Any], *args: Any, token: CancellationToken | None = None, **kwargs: Any) -> Future | None:
        """
        Queues ``func`` once capacity is available. Returns None without
        running it if the token is cancelled or the pool is closed first.
        """
        while not self._slots.acquire(timeout=self.poll_interval):
            if self._closed or (token is not None and token.cancelled):
                with self._lock:
                    self.rejected += 1
                return None
        if token is not None and token.cancelled:
            self._slots.release()
            with self._lock:
                self.rejected += 1
            return None
        return self._dispatch(func, args, kwargs)

    def try_submit(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Future | None:
        """Runs ``func`` only if capacity is free right now, otherwise rejects it."""
        if not self._slots.acquire(blocking=False):
            with self._lock:
                self.rejected += 1
            return None
        return self._dispatch(func, args, kwargs)

    def drain(self, futures: Iterable[Future], timeout: float, strict: bool = False) -> bool:
        """
        Waits up to ``timeout`` seconds for ``futures``. Returns True if all
        finished. A timeout is logged; with ``strict`` it raises instead.
        """
        futures = [f for f in futures if f is not None]
        if not futures:
            return True
        _, not_done = wait(futures, timeout=timeout)
        if not_done:
            self.logger.warning("Worker pool drain timed out", pending=len(not_done), timeout=timeout)
            if strict:
                raise WorkerPoolShutdownError(
                    f"{len(not_done)} task(s) still running after {timeout}s", pending=len(not_done)
                )
            return False
        return True

    def shutdown(self, wait_for_tasks: bool = False) -> None:
        """Stops accepting work and drops anything still queued."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=wait_for_tasks, cancel_futures=True)
        self.logger.debug("Worker pool shut down", submitted=self.submitted, rejected=self.rejected)

    def __enter__(self) -> "BoundedWorkerPool":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.shutdown(wait_for_tasks=True)
