"""
Fixed-size thread pool with a closable work queue and result stream.
"""

import logging
import queue
import threading
from typing import Any, Callable, Iterable, Iterator, List, Optional

logger = logging.getLogger(__name__)

# Marks the end of the work queue (one per worker) and of the result queue
_CLOSED = object()

Handler = Callable[[Any, int], Any]
ErrorHandler = Callable[[Any, int, Exception], Any]


class WorkerPool:
    """
    Run a handler over items on a fixed number of threads.

    Every item put on the work queue produces exactly one result: the
    handler's return value, ``on_error(item, worker_id, exc)`` if the handler
    raised, or ``on_cancel(item, worker_id)`` if the pool was cancelled
    before the item was started. Results arrive in completion order.
    """

    def __init__(
        self,
        num_workers: int,
        handler: Handler,
        on_error: ErrorHandler,
        on_cancel: Optional[Handler] = None,
        name: str = "worker",
    ):
        """
        Initialize the pool.

        Args:
            num_workers: Number of worker threads
            handler: Called as handler(item, worker_id) for each item
            on_error: Builds a result for an item whose handler raised
            on_cancel: Builds a result for an item skipped by cancel()
            name: Thread name prefix
        """
        if num_workers < 1:
            raise ValueError(f"num_workers must be at least 1, got {num_workers}")
        self.num_workers = num_workers
        self.handler = handler
        self.on_error = on_error
        self.on_cancel = on_cancel or (lambda item, worker_id: None)
        self.name = name
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Stop starting new items; items already in a handler finish."""
        self._cancelled.set()

    def run(self, items: Iterable[Any]) -> Iterator[Any]:
        """
        Process items and yield results as workers produce them.

        The iterator ends once every worker has exited and the result queue
        has been closed.

        Args:
            items: Work items, each enqueued once

        Yields:
            One result per item
        """
        work: "queue.Queue[Any]" = queue.Queue()
        results: "queue.Queue[Any]" = queue.Queue()

        for item in items:
            work.put(item)
        for _ in range(self.num_workers):
            work.put(_CLOSED)

        workers = [
            threading.Thread(
                target=self._work,
                args=(worker_id, work, results),
                name=f"{self.name}-{worker_id}",
                daemon=True,
            )
            for worker_id in range(1, self.num_workers + 1)
        ]
        for worker in workers:
            worker.start()

        closer = threading.Thread(
            target=self._close_when_done,
            args=(workers, results),
            name=f"{self.name}-closer",
            daemon=True,
        )
        closer.start()

        while True:
            result = results.get()
            if result is _CLOSED:
                break
            yield result

        closer.join()

    def _work(self, worker_id: int, work: queue.Queue, results: queue.Queue) -> None:
        while True:
            item = work.get()
            if item is _CLOSED:
                return

            if self._cancelled.is_set():
                results.put(self.on_cancel(item, worker_id))
                continue

            try:
                result = self.handler(item, worker_id)
            except Exception as e:
                logger.error(f"[{self.name} {worker_id}] Unhandled error on {item}: {e}")
                result = self.on_error(item, worker_id, e)
            results.put(result)

    @staticmethod
    def _close_when_done(workers: List[threading.Thread], results: queue.Queue) -> None:
        for worker in workers:
            worker.join()
        results.put(_CLOSED)
