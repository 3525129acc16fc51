from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Generic, List, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

_UNSET = object()


class TaskHandle(Generic[T]):
    """Result slot for one piece of background work.

    The owner polls with :meth:`try_take_result`; it never blocks. Dropping
    interest is done with :meth:`abandon`, which lets a worker skip the job if
    it has not started yet.
    """

    def __init__(self) -> None:
        self._done = threading.Event()
        self._abandoned = threading.Event()
        self._result: object = _UNSET
        self._error: Optional[BaseException] = None
        self._taken = False

    # worker side
    def set_result(self, result: T) -> None:
        self._result = result
        self._done.set()

    def set_error(self, error: BaseException) -> None:
        self._error = error
        self._done.set()

    # owner side
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def abandoned(self) -> bool:
        return self._abandoned.is_set()

    def abandon(self) -> None:
        self._abandoned.set()

    def try_take_result(self) -> Optional[T]:
        """Return the result once finished, else None. Re-raises the work's error."""
        if not self._done.is_set():
            return None
        if self._error is not None:
            raise self._error
        if self._taken:
            raise RuntimeError("task result was already taken")
        self._taken = True
        result = self._result
        self._result = _UNSET
        return result  # type: ignore[return-value]

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)


class _Worker(threading.Thread):
    def __init__(self, task_q: "queue.Queue[tuple[TaskHandle, Callable[[], object]]]", name: str) -> None:
        super().__init__(daemon=True, name=name)
        self.task_q = task_q
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                handle, work = self.task_q.get(timeout=0.1)
            except queue.Empty:
                continue
            try:
                if handle.abandoned:
                    continue
                try:
                    handle.set_result(work())
                except Exception as exc:
                    handle.set_error(exc)
            finally:
                self.task_q.task_done()


class WorkerPool:
    """Fixed set of daemon threads fed from one queue; ``spawn`` never blocks."""

    def __init__(self, workers: int = 2, *, name: str = "isoterrain-worker") -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self.task_q: "queue.Queue[tuple[TaskHandle, Callable[[], object]]]" = queue.Queue()
        self.workers: List[_Worker] = [_Worker(self.task_q, f"{name}-{i}") for i in range(workers)]
        for w in self.workers:
            w.start()
        logger.debug("started %d worker threads", workers)

    def spawn(self, work: Callable[[], T]) -> TaskHandle[T]:
        handle: TaskHandle[T] = TaskHandle()
        self.task_q.put((handle, work))
        return handle

    def shutdown(self, timeout: float = 1.0) -> None:
        for w in self.workers:
            w.stop()
        for w in self.workers:
            w.join(timeout=timeout)
        logger.debug("worker threads stopped")
