"""Tests for CancellationToken and BoundedWorkerPool."""

import threading
import time

import pytest

from vnc_locator.exceptions import WorkerPoolShutdownError
from vnc_locator.utils.concurrency import BoundedWorkerPool, CancellationToken


def test_cancellation_token():
    token = CancellationToken()
    assert not token.cancelled
    assert token.wait(timeout=0.01) is False
    token.cancel()
    assert token.cancelled
    assert token.wait(timeout=0.01) is True


def test_pool_rejects_invalid_sizes():
    with pytest.raises(ValueError):
        BoundedWorkerPool(max_workers=0)
    with pytest.raises(ValueError):
        BoundedWorkerPool(max_workers=1, queue_size=-1)


def test_submit_runs_tasks_and_returns_results():
    with BoundedWorkerPool(max_workers=4, queue_size=4) as pool:
        futures = [pool.submit(pow, 2, i) for i in range(8)]
        assert pool.drain(futures, timeout=5)
    assert [f.result() for f in futures] == [2 ** i for i in range(8)]
    assert pool.submitted == 8


def test_try_submit_rejects_when_capacity_is_used():
    release = threading.Event()
    with BoundedWorkerPool(max_workers=1, queue_size=1, poll_interval=0.05) as pool:
        running = pool.try_submit(release.wait, 5)
        queued = pool.try_submit(release.wait, 5)
        rejected = pool.try_submit(release.wait, 5)
        assert running is not None
        assert queued is not None
        assert rejected is None
        assert pool.rejected == 1
        release.set()
        assert pool.drain([running, queued], timeout=5)


def test_submit_blocks_until_capacity_frees():
    release = threading.Event()
    with BoundedWorkerPool(max_workers=1, queue_size=0, poll_interval=0.05) as pool:
        pool.submit(release.wait, 5)
        threading.Timer(0.2, release.set).start()
        started = time.monotonic()
        future = pool.submit(lambda: "done")
        assert time.monotonic() - started >= 0.1
        assert future.result(timeout=5) == "done"


def test_submit_gives_up_when_token_cancelled():
    release = threading.Event()
    token = CancellationToken()
    with BoundedWorkerPool(max_workers=1, queue_size=0, poll_interval=0.05) as pool:
        pool.submit(release.wait, 5)
        threading.Timer(0.1, token.cancel).start()
        assert pool.submit(lambda: None, token=token) is None
        release.set()


def test_submit_after_shutdown_returns_none():
    pool = BoundedWorkerPool(max_workers=1)
    pool.shutdown()
    assert pool.closed
    assert pool.submit(lambda: None) is None
    assert pool.try_submit(lambda: None) is None


def test_drain_timeout():
    release = threading.Event()
    with BoundedWorkerPool(max_workers=1, queue_size=0) as pool:
        future = pool.submit(release.wait, 5)
        assert pool.drain([future], timeout=0.05) is False
        with pytest.raises(WorkerPoolShutdownError) as exc_info:
            pool.drain([future], timeout=0.05, strict=True)
        assert exc_info.value.pending == 1
        release.set()


def test_task_exception_frees_its_slot():
    def fail():
        raise RuntimeError("probe failed")

    with BoundedWorkerPool(max_workers=1, queue_size=0) as pool:
        failed = pool.submit(fail)
        pool.drain([failed], timeout=5)
        assert isinstance(failed.exception(), RuntimeError)
        assert pool.try_submit(lambda: 1).result(timeout=5) == 1
