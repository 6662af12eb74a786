"""
=============================================================================
THREAD POOL IMPLEMENTATION
=============================================================================

A fixed group of worker threads processing connection-handling tasks from
one shared queue.

=============================================================================
THREAD POOL ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Thread Pool                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   accept loop ──submit()──►  ┌─────────────────────────────────┐    │
    │   (never blocks)             │           TASK QUEUE            │    │
    │                              │  [conn 1] [conn 2] [conn 3] ... │    │
    │                              │  queue_size=0 → unbounded       │    │
    │                              │  queue_size=N → full = reject   │    │
    │                              └───────────────┬─────────────────┘    │
    │                                              │ get()                 │
    │                                              ▼                       │
    │   ┌──────────┐ ┌──────────┐ ┌──────────┐ ┌──────────┐               │
    │   │ Worker 0 │ │ Worker 1 │ │ Worker 2 │ │   ...    │  (workers)    │
    │   └──────────┘ └──────────┘ └──────────┘ └──────────┘               │
    │                                                                      │
    │   • Exactly `workers` daemon threads, created at start()            │
    │   • A failing task is logged; the worker keeps running              │
    │   • Workers only ever block on the queue or on their own I/O        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
BACKPRESSURE
=============================================================================

submit() uses put(block=False), so the accept loop is never stalled by
busy workers:

    queue_size = 0   The queue grows without limit. Bursts are absorbed,
                     memory is the only bound.

    queue_size = N   At most N connections wait. When full, submit()
                     returns False and the caller rejects the connection
                     (the server answers 503 and closes it).

=============================================================================
SHUTDOWN: THE POISON PILL
=============================================================================

    pool.shutdown()
        └─ for each worker: queue.put(None)
        └─ workers receive None and exit their loop

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Any, Callable, List, Optional
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """Worker thread states, used for stats."""
    IDLE = "idle"      # Waiting for task
    BUSY = "busy"      # Executing task
    STOPPED = "stopped"  # Thread exited


@dataclass
class Task:
    """
    A deferred function call: "call func(*args, **kwargs) later".

    Attributes:
        func: The function to execute.
        args: Positional arguments for the function.
        kwargs: Keyword arguments for the function.
        submitted_at: Time the task was queued (for wait-time logging).
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Worker thread that processes tasks from the queue.

    Loop: get task → None? exit → run it (exceptions logged) → task_done().
    """

    def __init__(
        self,
        task_queue: queue.Queue,
        worker_id: int,
        idle_timeout: float = 1.0
    ):
        """
        Args:
            task_queue: Queue to pull tasks from.
            worker_id: Identifier used in the thread name and log lines.
            idle_timeout: Seconds to wait for a task before re-checking
                          the shutdown flag.
        """
        # daemon=True: a stuck worker never keeps the process alive
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        # Metrics
        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break  # Poison pill
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        """
        Execute a single task.

        Every exception is caught here. One bad connection must never take
        a worker (and with it a slot of the pool) down.
        """
        self.state = WorkerState.BUSY
        start_time = time.time()
        waited = start_time - task.submitted_at

        try:
            task.func(*task.args, **task.kwargs)

            elapsed = time.time() - start_time
            logger.debug(
                f"Worker {self.worker_id} completed task in {elapsed:.3f}s "
                f"(queued {waited:.3f}s)"
            )
            self.tasks_completed += 1

        except Exception as e:
            elapsed = time.time() - start_time
            logger.exception(
                f"Worker {self.worker_id} task failed after {elapsed:.3f}s: {e}"
            )
            self.tasks_failed += 1

        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        """Signal the worker to stop."""
        self._shutdown.set()


class ThreadPool:
    """
    Fixed-size thread pool.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      ThreadPool Usage                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   pool = ThreadPool(workers=10)                                     │
    │   pool.start()                                                       │
    │                                                                      │
    │   if not pool.submit(handle_connection, args=(conn,)):              │
    │       reject(conn)            # only possible with queue_size > 0   │
    │                                                                      │
    │   pool.shutdown(wait=True)                                          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(
        self,
        workers: int = 10,
        queue_size: int = 0,
        idle_timeout: float = 1.0
    ):
        """
        Args:
            workers: Number of worker threads. Fixed for the pool's lifetime.
            queue_size: Maximum number of waiting tasks. 0 = unbounded.
            idle_timeout: Seconds idle workers wait before checking shutdown.
        """
        if workers < 1:
            raise ValueError("workers must be >= 1")

        self.workers = workers
        self.queue_size = queue_size
        self.idle_timeout = idle_timeout

        # queue.Queue(maxsize=0) is unbounded
        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)

        self._workers: List[Worker] = []
        self._lock = threading.Lock()  # Protects start/shutdown transitions
        self._started = False
        self._shutdown = False

    def start(self):
        """Create and start all worker threads."""
        with self._lock:
            if self._started:
                return  # Already started

            logger.info(f"Starting thread pool with {self.workers} workers")

            for worker_id in range(self.workers):
                worker = Worker(
                    task_queue=self._task_queue,
                    worker_id=worker_id,
                    idle_timeout=self.idle_timeout
                )
                self._workers.append(worker)
                worker.start()

            self._started = True
            self._shutdown = False

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
    ) -> bool:
        """
        Queue a task without blocking.

        Returns:
            True if the task was queued, False if the bounded queue is full.

        Raises:
            RuntimeError: If the pool is not started or is shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")

        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {})

        try:
            self._task_queue.put(task, block=False)
            return True
        except queue.Full:
            return False

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        Args:
            wait: Wait for queued tasks to finish before stopping workers.
            timeout: Upper bound on that wait, in seconds. None = no bound.
        """
        with self._lock:
            if not self._started:
                return

            logger.info("Shutting down thread pool...")
            self._shutdown = True

            if wait:
                deadline = None if timeout is None else time.time() + timeout
                while self._task_queue.unfinished_tasks:
                    if deadline is not None and time.time() > deadline:
                        logger.warning("Shutdown timeout, forcing stop")
                        break
                    time.sleep(0.05)

            # One poison pill per worker. put() may block on a full bounded
            # queue, so workers are also flagged directly.
            for worker in self._workers:
                worker.shutdown()
                try:
                    self._task_queue.put(None, block=False)
                except queue.Full:
                    pass

            for worker in self._workers:
                worker.join(timeout=2.0)

            self._workers.clear()
            self._started = False

            logger.info("Thread pool shutdown complete")

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def active_workers(self) -> int:
        """Count of worker threads that have not exited."""
        return sum(1 for w in self._workers if w.is_alive())

    @property
    def busy_workers(self) -> int:
        """Count of workers currently running a task."""
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def pending(self) -> int:
        """Approximate number of queued tasks."""
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        """Worker and task counters."""
        return {
            "workers": {
                "total": len(self._workers),
                "active": self.active_workers,
                "busy": self.busy_workers,
            },
            "tasks": {
                "queued": self.pending,
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
