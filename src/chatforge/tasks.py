"""Background work: tracked request tasks and a bounded best-effort queue."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Coroutine

from .logging import JSONLLogger

logger = logging.getLogger(__name__)


class TaskRunner:
    """Runs request pipelines as tasks that are never garbage collected early.

    The event loop only keeps weak references to tasks, so each one is held
    in a set until it finishes. Failures are logged, not re-raised.
    """

    def __init__(self, event_log: JSONLLogger | None = None) -> None:
        self.event_log = event_log
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Schedule ``coro`` on the running loop."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        """Wait for every spawned task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Task %s failed", task.get_name(), exc_info=(type(error), error, error.__traceback__)
            )
            if self.event_log:
                self.event_log.log_task_failure(task.get_name(), repr(error))


@dataclass
class _Job:
    name: str
    factory: Callable[[], Awaitable[Any]]


class BackgroundQueue:
    """Bounded queue of best-effort jobs drained by a fixed worker pool.

    Jobs are unordered with respect to each other. When the queue is full a
    new job is dropped with a warning rather than blocking the caller.

    Example:
        queue = BackgroundQueue(workers=4, maxsize=256)
        queue.start()
        queue.submit("memory", lambda: manager.extract_for_chat(...))
        await queue.join()
        await queue.close()
    """

    def __init__(
        self,
        workers: int = 4,
        maxsize: int = 256,
        event_log: JSONLLogger | None = None,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.workers = workers
        self.event_log = event_log
        self._queue: asyncio.Queue[_Job] = asyncio.Queue(maxsize=maxsize)
        self._worker_tasks: list[asyncio.Task[None]] = []
        self.dropped = 0

    @property
    def running(self) -> bool:
        return bool(self._worker_tasks)

    def start(self) -> None:
        """Start the workers on the running loop. Idempotent."""
        if self._worker_tasks:
            return
        self._worker_tasks = [
            asyncio.create_task(self._worker(), name=f"background-worker-{i}")
            for i in range(self.workers)
        ]

    def submit(self, name: str, factory: Callable[[], Awaitable[Any]]) -> bool:
        """Queue a job. ``factory`` is called by a worker to create the coroutine.

        Returns:
            False if the queue was full and the job was dropped.
        """
        if not self._worker_tasks:
            self.start()
        try:
            self._queue.put_nowait(_Job(name, factory))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Background queue full, dropping %s", name)
            if self.event_log:
                self.event_log.log("background_dropped", task=name)
            return False
        return True

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def close(self) -> None:
        """Stop the workers. Jobs still queued are abandoned."""
        for task in self._worker_tasks:
            task.cancel()
        await asyncio.gather(*self._worker_tasks, return_exceptions=True)
        self._worker_tasks = []

    async def _worker(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await job.factory()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Background job %s failed", job.name)
                if self.event_log:
                    self.event_log.log_task_failure(job.name, repr(e))
            finally:
                self._queue.task_done()
