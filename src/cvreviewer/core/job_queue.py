"""Bounded job queue with a fixed worker pool."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Generic, TypeVar

import structlog

from ..errors import QueueClosed, QueueFull
from ..schemas import JobTicket
from .interfaces import JobProcessor

T = TypeVar("T")


class BoundedBuffer(Generic[T]):
    """FIFO buffer with a fixed capacity that can be closed.

    Closing wakes every blocked producer and consumer. Once closed, ``put``
    fails and ``get`` returns ``None`` even when items remain, so nothing is
    handed out after shutdown.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be a positive integer")
        self._capacity = capacity
        self._items: deque[T] = deque()
        self._closed = False
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def put(self, item: T, timeout: float) -> bool:
        """Append ``item``, waiting up to ``timeout`` seconds for space.

        Returns False on timeout. Raises ``QueueClosed`` if the buffer is or
        becomes closed while waiting.
        """
        deadline = time.monotonic() + timeout
        with self._not_full:
            while True:
                if self._closed:
                    raise QueueClosed("job queue is closed")
                if len(self._items) < self._capacity:
                    self._items.append(item)
                    self._not_empty.notify()
                    return True
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._not_full.wait(remaining)

    def get(self) -> T | None:
        """Pop the oldest item, blocking until one arrives or the buffer closes."""
        with self._not_empty:
            while True:
                if self._closed:
                    return None
                if self._items:
                    item = self._items.popleft()
                    self._not_full.notify()
                    return item
                self._not_empty.wait()

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()


class JobQueue:
    """Decouple job submission from execution.

    ``enqueue`` buffers tickets and applies back-pressure; ``start`` launches
    ``worker_count`` threads that feed tickets to the processor one at a time;
    ``stop`` closes the buffer and waits for in-flight jobs to finish.
    """

    def __init__(
        self,
        processor: JobProcessor,
        *,
        worker_count: int,
        capacity: int,
        enqueue_timeout: float,
        name: str = "evaluation",
    ) -> None:
        if worker_count < 1:
            raise ValueError("worker_count must be a positive integer")
        if enqueue_timeout <= 0:
            raise ValueError("enqueue_timeout must be positive")
        self._processor = processor
        self._worker_count = worker_count
        self._enqueue_timeout = float(enqueue_timeout)
        self._buffer: BoundedBuffer[JobTicket] = BoundedBuffer(capacity)
        self._name = name
        self._workers: list[threading.Thread] = []
        self._state_lock = threading.Lock()
        self._started = False
        self._stopped = False
        self._logger = structlog.get_logger(__name__)

    @property
    def worker_count(self) -> int:
        return self._worker_count

    @property
    def is_running(self) -> bool:
        return self._started and not self._stopped

    @property
    def is_closed(self) -> bool:
        return self._buffer.closed

    def size(self) -> int:
        return len(self._buffer)

    def enqueue(self, ticket: JobTicket) -> None:
        if not self._buffer.put(ticket, self._enqueue_timeout):
            self._logger.warning(
                "queue.full",
                job_id=ticket.job_id,
                capacity=self._buffer.capacity,
                timeout=self._enqueue_timeout,
            )
            raise QueueFull(
                f"job queue is full (capacity={self._buffer.capacity}), "
                f"job {ticket.job_id} not accepted within {self._enqueue_timeout}s"
            )
        self._logger.info("queue.enqueued", job_id=ticket.job_id)

    def start(self) -> None:
        with self._state_lock:
            if self._stopped:
                raise RuntimeError("job queue has been stopped")
            if self._started:
                raise RuntimeError("job queue already started")
            self._started = True
            for index in range(self._worker_count):
                worker = threading.Thread(
                    target=self._work,
                    args=(index,),
                    name=f"{self._name}-worker-{index}",
                    daemon=True,
                )
                self._workers.append(worker)
                worker.start()
        self._logger.info("queue.started", workers=self._worker_count)

    def stop(self) -> None:
        with self._state_lock:
            if self._stopped:
                return
            self._stopped = True
            workers = list(self._workers)
        self._logger.info("queue.stopping", pending=self.size())
        self._buffer.close()
        for worker in workers:
            worker.join()
        self._logger.info("queue.stopped", abandoned=self.size())

    def _work(self, index: int) -> None:
        logger = self._logger
        while True:
            ticket = self._buffer.get()
            if ticket is None:
                return
            with structlog.contextvars.bound_contextvars(job_id=ticket.job_id, worker=index):
                logger.info("worker.processing")
                try:
                    self._processor.process(ticket)
                except Exception as exc:  # noqa: BLE001 - one job must never stop the pool
                    logger.error(
                        "worker.job_failed",
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                else:
                    logger.info("worker.job_done")


__all__ = ["BoundedBuffer", "JobQueue"]
