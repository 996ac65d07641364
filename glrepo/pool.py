"""
Fixed-size worker pool.

``size`` threads consume zero-argument callables from one shared queue.
Every submitted task runs exactly once on exactly one worker. Shutting
the pool down lets the queue drain and joins every worker thread.
"""

import logging
import queue
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)

Task = Callable[[], object]

# Queued once per worker on shutdown
_STOP = object()


class WorkerPool:
    """A pool of worker threads fed from a FIFO queue."""

    def __init__(self, size: int = 1):
        self.size = max(1, size)
        self._queue: queue.Queue = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._completed = 0
        self._workers = [
            threading.Thread(target=self._work, name=f"glrepo-worker-{i}")
            for i in range(1, self.size + 1)
        ]
        for worker in self._workers:
            worker.start()

    @property
    def completed(self) -> int:
        """Number of tasks that have finished running."""
        with self._lock:
            return self._completed

    def submit(self, task: Task) -> None:
        """Queue a task; never waits for it to run."""
        with self._lock:
            if self._closed:
                raise RuntimeError("cannot submit to a pool that has been shut down")
            self._queue.put(task)

    def shutdown(self) -> None:
        """Drain queued tasks, stop all workers and wait for them."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for _ in self._workers:
                self._queue.put(_STOP)
        for worker in self._workers:
            logger.debug("Shutting down worker %s", worker.name)
            worker.join()

    def __enter__(self) -> "WorkerPool":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    def _work(self) -> None:
        while True:
            task = self._queue.get()
            if task is _STOP:
                return
            try:
                task()
            except Exception:
                logger.exception("Task failed in %s", threading.current_thread().name)
            finally:
                with self._lock:
                    self._completed += 1
