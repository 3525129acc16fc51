"""Background worker pool and task handles."""
from __future__ import annotations

import threading

import pytest

from isoterrain.world.tasks import TaskHandle, WorkerPool


@pytest.fixture
def pool():
    p = WorkerPool(2, name="test-worker")
    yield p
    p.shutdown()


def test_handle_is_empty_until_done() -> None:
    handle: TaskHandle[int] = TaskHandle()
    assert handle.try_take_result() is None
    handle.set_result(3)
    assert handle.done()
    assert handle.try_take_result() == 3
    with pytest.raises(RuntimeError):
        handle.try_take_result()


def test_handle_reraises_error() -> None:
    handle: TaskHandle[int] = TaskHandle()
    handle.set_error(KeyError("x"))
    with pytest.raises(KeyError):
        handle.try_take_result()


def test_pool_runs_work(pool) -> None:
    handle = pool.spawn(lambda: 6 * 7)
    assert handle.wait(timeout=5.0)
    assert handle.try_take_result() == 42


def test_pool_captures_exceptions(pool) -> None:
    def boom():
        raise ValueError("bad chunk")

    handle = pool.spawn(boom)
    assert handle.wait(timeout=5.0)
    with pytest.raises(ValueError, match="bad chunk"):
        handle.try_take_result()


def test_abandoned_work_is_skipped() -> None:
    pool = WorkerPool(1, name="test-single")
    gate = threading.Event()
    ran = []
    try:
        blocker = pool.spawn(lambda: gate.wait(5.0))
        skipped = pool.spawn(lambda: ran.append(True))
        skipped.abandon()
        gate.set()
        assert blocker.wait(timeout=5.0)
        pool.task_q.join()
        assert ran == []
        assert not skipped.done()
    finally:
        pool.shutdown()


def test_pool_requires_a_worker() -> None:
    with pytest.raises(ValueError):
        WorkerPool(0)
