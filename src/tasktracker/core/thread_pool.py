"""
=============================================================================
THREAD POOL
=============================================================================

Worker threads pulling connection jobs from a bounded queue.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept loop ──submit()──► ┌───────────────────┐                    │
    │                             │ queue (bounded)   │ full? → 503        │
    │                             └─────────┬─────────┘                    │
    │                       ┌───────────────┼───────────────┐              │
    │                       ▼               ▼               ▼              │
    │                   Worker-0        Worker-1   ...  Worker-N           │
    │                 (min_workers at start, up to max_workers)            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Workers exit when they take the None "poison pill" from the queue.
shutdown() waits for queued jobs, then sends one pill per worker.

A new worker is added when every existing worker is busy and jobs are
waiting, until max_workers is reached. Workers are never retired.

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Job:
    """A deferred call: func(*args, **kwargs)."""

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    timeout: Optional[float] = None
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """Pulls jobs until it receives None or shutdown() is called."""

    def __init__(
        self,
        job_queue: "queue.Queue[Optional[Job]]",
        worker_id: int,
        idle_timeout: float = 60.0
    ):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.job_queue = job_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        self.jobs_completed = 0
        self.jobs_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                job = self.job_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            if job is None:
                self.job_queue.task_done()
                break

            try:
                self._execute(job)
            finally:
                self.job_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute(self, job: Job):
        """
        Run one job. Exceptions are logged and counted; the worker lives on.

        A job that waited in the queue longer than its timeout is dropped
        without running: its client has most likely given up already.
        """
        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            waited = start_time - job.submitted_at
            if job.timeout and waited > job.timeout:
                logger.warning(
                    f"Job dropped before execution "
                    f"(waited {waited:.2f}s, timeout was {job.timeout}s)"
                )
                self.jobs_failed += 1
                return

            job.func(*job.args, **job.kwargs)

            elapsed = time.time() - start_time
            logger.debug(f"Worker {self.worker_id} completed job in {elapsed:.3f}s")
            self.jobs_completed += 1

        except Exception as e:
            elapsed = time.time() - start_time
            logger.exception(
                f"Worker {self.worker_id} job failed after {elapsed:.3f}s: {e}"
            )
            self.jobs_failed += 1

        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        self._shutdown.set()


class ThreadPool:
    """
    Bounded pool of worker threads.

        pool = ThreadPool(min_workers=4, max_workers=16, queue_size=100)
        pool.start()
        if not pool.submit(handle_connection, args=(conn,), block=False):
            reject(conn)   # queue full
        ...
        pool.shutdown()
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 100,
        idle_timeout: float = 60.0
    ):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._job_queue: "queue.Queue[Optional[Job]]" = queue.Queue(maxsize=queue_size)
        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    def start(self):
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")
        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker()

        self._started = True
        self._shutdown = False

    def _add_worker(self):
        """Start one more worker. Caller holds self._lock."""
        worker = Worker(
            job_queue=self._job_queue,
            worker_id=self._next_worker_id,
            idle_timeout=self.idle_timeout,
        )
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        timeout: Optional[float] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue a job.

        Returns:
            True if queued, False if the queue was full.

        Raises:
            RuntimeError: If the pool isn't running.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        job = Job(func=func, args=args, kwargs=kwargs or {}, timeout=timeout)

        try:
            self._job_queue.put(job, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return
            busy = sum(1 for w in self._workers if w.state == WorkerState.BUSY)
            if busy == len(self._workers) and self._job_queue.qsize() > 0:
                logger.debug(
                    f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers"
                )
                self._add_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        Args:
            wait: Let queued jobs finish first.
            timeout: Upper bound on that wait, in seconds.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            deadline = time.time() + timeout if timeout else None
            while self._job_queue.unfinished_tasks:
                if deadline and time.time() > deadline:
                    logger.warning("Shutdown timeout, forcing stop")
                    break
                time.sleep(0.05)

        with self._lock:
            workers = list(self._workers)

        for _ in workers:
            try:
                self._job_queue.put(None, block=False)
            except queue.Full:
                break

        for worker in workers:
            worker.shutdown()
            worker.join(timeout=2.0)

        with self._lock:
            self._workers.clear()
        self._started = False
        logger.info("Thread pool shutdown complete")

    @property
    def active_workers(self) -> int:
        return sum(1 for w in self._workers if w.state != WorkerState.STOPPED)

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def queued(self) -> int:
        return self._job_queue.qsize()

    @property
    def stats(self) -> dict:
        return {
            "workers": {
                "total": len(self._workers),
                "active": self.active_workers,
                "busy": self.busy_workers,
            },
            "jobs": {
                "queued": self.queued,
                "completed": sum(w.jobs_completed for w in self._workers),
                "failed": sum(w.jobs_failed for w in self._workers),
            },
        }
