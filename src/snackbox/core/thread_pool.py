"""
=============================================================================
THREAD POOL
=============================================================================

A bounded pool of worker threads fed from a bounded task queue. The server
submits one task per accepted connection.

=============================================================================
ADMISSION POLICY
=============================================================================

    acceptor ──submit()──►  ┌────────────── task queue (queue_size) ─┐
                            │ [conn] [conn] [conn] ...                │
                            └───────────────┬─────────────────────────┘
                                            │ get()
                      ┌─────────────┬───────┴─────┬─────────────┐
                      ▼             ▼             ▼             ▼
                  Worker-0      Worker-1      Worker-2   ... Worker-N
                                               (grown on demand up to
                                                max_workers)

    submit() never blocks. When the queue is full it returns False and the
    caller decides what to do (the server answers 503 and closes).

    That keeps the number of threads AND the number of waiting connections
    bounded, whatever the incoming connection rate.

=============================================================================
WORKER LIFECYCLE
=============================================================================

    while not stopped:
        task = queue.get(timeout=idle_timeout)
        if task is None:        # poison pill
            break
        run task, log any exception, keep going

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """A unit of work waiting in the queue."""

    func: Callable[..., Any]
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """Daemon thread that runs tasks until it receives a poison pill."""

    def __init__(self, task_queue: "queue.Queue[Optional[Task]]", worker_id: int,
                 name_prefix: str = "snackbox-worker", idle_timeout: float = 1.0):
        super().__init__(name=f"{name_prefix}-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._stop_event = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"{self.name} started")

        while not self._stop_event.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._execute(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"{self.name} stopped")

    def _execute(self, task: Task):
        self.state = WorkerState.BUSY
        started = time.time()
        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
        except Exception as e:
            elapsed = time.time() - started
            logger.exception(f"{self.name} task failed after {elapsed:.3f}s: {e}")
            self.tasks_failed += 1
        finally:
            self.state = WorkerState.IDLE

    def stop(self):
        self._stop_event.set()


class ThreadPool:
    """
    Bounded worker pool.

        pool = ThreadPool(min_workers=4, max_workers=32, queue_size=128)
        pool.start()
        if not pool.submit(handle, conn):
            reject(conn)
        ...
        pool.shutdown(timeout=5.0)
    """

    def __init__(self, min_workers: int = 4, max_workers: int = 32,
                 queue_size: int = 128, name_prefix: str = "snackbox-worker"):
        """
        Args:
            min_workers: Workers started by start().
            max_workers: Upper bound on worker threads. Extra workers are
                         added on demand and kept until shutdown().
            queue_size: Upper bound on tasks waiting for a worker.
            name_prefix: Thread name prefix (shows up in log records).
        """
        if min_workers < 1 or max_workers < min_workers:
            raise ValueError(
                f"Invalid worker bounds: min={min_workers}, max={max_workers}"
            )
        if queue_size < 1:
            raise ValueError(f"queue_size must be positive, got {queue_size}")

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.queue_size = queue_size
        self.name_prefix = name_prefix

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)
        self._workers: List[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutting_down = False
        self._next_worker_id = 0

    @property
    def running(self) -> bool:
        return self._started and not self._shutting_down

    def start(self):
        """Start min_workers threads. Calling it twice is a no-op."""
        with self._lock:
            if self._started:
                return
            logger.info(f"Starting thread pool with {self.min_workers} workers "
                        f"(max {self.max_workers}, queue {self.queue_size})")
            for _ in range(self.min_workers):
                self._add_worker_locked()
            self._started = True
            self._shutting_down = False

    def _add_worker_locked(self) -> Worker:
        worker = Worker(self._task_queue, self._next_worker_id, self.name_prefix)
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
        """
        Queue ``func(*args, **kwargs)`` for a worker.

        Returns:
            True if queued, False if the queue is full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self.running:
            raise RuntimeError("Thread pool is not running")

        try:
            self._task_queue.put_nowait(Task(func, args, kwargs))
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        """
        Add a worker when tasks in flight outnumber workers and the pool is
        below max_workers.

        unfinished_tasks counts queued plus running tasks: put() raises it
        and a worker lowers it with task_done() only after the task ends.
        """
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return
            if self._task_queue.unfinished_tasks <= len(self._workers):
                return
            logger.debug(f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers")
            self._add_worker_locked()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        Args:
            wait: Let queued tasks finish first. With False, tasks still in
                  the queue are dropped.
            timeout: Overall bound on the wait; None waits indefinitely.
        """
        with self._lock:
            if not self._started or self._shutting_down:
                return
            self._shutting_down = True
            workers = list(self._workers)

        logger.info("Shutting down thread pool...")
        deadline = None if timeout is None else time.time() + timeout

        def remaining() -> Optional[float]:
            if deadline is None:
                return None
            return max(deadline - time.time(), 0.0)

        if not wait:
            dropped = 0
            while True:
                try:
                    task = self._task_queue.get_nowait()
                except queue.Empty:
                    break
                self._task_queue.task_done()
                if task is not None:
                    dropped += 1
            if dropped:
                logger.warning(f"Dropped {dropped} queued tasks")

        # Pills go in behind the queued tasks, so workers finish those first
        for _ in workers:
            try:
                self._task_queue.put(None, timeout=remaining())
            except queue.Full:
                logger.warning("Shutdown timeout while queueing stop signals")
                break

        for worker in workers:
            worker.join(timeout=remaining())
            if worker.is_alive():
                worker.stop()
                logger.warning(f"{worker.name} did not stop in time")

        with self._lock:
            self._workers.clear()
            self._started = False

        logger.info("Thread pool shutdown complete")

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def worker_count(self) -> int:
        return len(self._workers)

    @property
    def stats(self) -> Dict[str, Dict[str, int]]:
        workers = list(self._workers)
        return {
            "workers": {
                "total": len(workers),
                "busy": sum(1 for w in workers if w.state is WorkerState.BUSY),
                "idle": sum(1 for w in workers if w.state is WorkerState.IDLE),
            },
            "tasks": {
                "queued": self._task_queue.qsize(),
                "completed": sum(w.tasks_completed for w in workers),
                "failed": sum(w.tasks_failed for w in workers),
            },
        }
