"""
Serial task queue.

Serializes units of work that touch a single shared mutable resource (the
digit model). Units run strictly one at a time in the order they were
enqueued; completing one unit immediately starts the next, and an empty queue
simply has no drainer task.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Optional, Union

import structlog

logger = structlog.get_logger()

UnitOfWork = Callable[[], Union[Any, Awaitable[Any]]]
ErrorSink = Callable[[str, BaseException], None]


def log_detached_failure(label: str, error: BaseException) -> None:
    """Default sink for failures of units nobody awaits."""
    logger.error(
        "detached_task_failed",
        task=label,
        error=str(error),
        error_type=type(error).__name__,
        exc_info=error,
    )


@dataclass
class QueueItem:
    """A unit of work and the future its result is delivered through."""

    work: UnitOfWork
    future: "asyncio.Future[Any]"
    label: str = "task"


class SerialTaskQueue:
    """FIFO executor running at most one unit of work at a time."""

    def __init__(
        self,
        task_timeout: Optional[float] = None,
        error_sink: ErrorSink = log_detached_failure,
    ):
        self.pending: Deque[QueueItem] = deque()
        self.busy = False
        self.task_timeout = task_timeout
        self.error_sink = error_sink
        self.completed = 0
        self.failed = 0
        self._drainer: Optional[asyncio.Task[None]] = None
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def pending_count(self) -> int:
        return len(self.pending)

    @property
    def idle(self) -> bool:
        return not self.busy and not self.pending

    def enqueue(self, work: UnitOfWork, label: str = "task") -> "asyncio.Future[Any]":
        """Queue a unit of work.

        Returns a future resolving to the unit's result or carrying its
        exception. Never raises for failures of the unit itself.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        self.pending.append(QueueItem(work=work, future=future, label=label))
        self._idle.clear()

        if self._drainer is None or self._drainer.done():
            self._drainer = loop.create_task(self._drain())

        logger.debug("task_enqueued", task=label, pending=len(self.pending))
        return future

    def enqueue_detached(
        self, work: UnitOfWork, label: str = "task"
    ) -> "asyncio.Future[Any]":
        """Queue a unit of work the caller will not await.

        A failure of the unit is reported to the error sink instead of being
        lost with the discarded future.
        """
        future = self.enqueue(work, label=label)
        future.add_done_callback(lambda f: self._report_detached(label, f))
        return future

    async def join(self) -> None:
        """Wait until every queued unit has completed."""
        await self._idle.wait()

    def _report_detached(self, label: str, future: "asyncio.Future[Any]") -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            self.error_sink(label, error)

    async def _drain(self) -> None:
        try:
            while self.pending:
                item = self.pending.popleft()
                if item.future.cancelled():
                    continue

                self.busy = True
                try:
                    await self._run(item)
                finally:
                    self.busy = False
        finally:
            self._idle.set()

    async def _run(self, item: QueueItem) -> None:
        """Run one unit and settle its future.

        A unit keeps the queue busy until its work has really finished. On a
        timeout the caller gets the error right away, but work running in a
        worker thread cannot be interrupted, so the next unit waits for it.
        """
        task: Optional[asyncio.Future[Any]] = None
        try:
            result = item.work()
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                result = await asyncio.wait_for(asyncio.shield(task), self.task_timeout)
        except asyncio.CancelledError:
            if _drainer_cancelled():
                if task is not None:
                    task.cancel()
                raise
            self._fail(item, None)
        except asyncio.TimeoutError as e:
            self._fail(item, e)
            if task is not None and not task.done():
                await self._outlast(item, task)
        except Exception as e:
            self._fail(item, e)
        else:
            self.completed += 1
            if not item.future.cancelled():
                item.future.set_result(result)

    async def _outlast(self, item: QueueItem, task: "asyncio.Future[Any]") -> None:
        logger.warning("task_timed_out", task=item.label, timeout=self.task_timeout)
        try:
            await task
        except asyncio.CancelledError:
            if _drainer_cancelled():
                raise
            logger.warning("timed_out_task_cancelled", task=item.label)
        except Exception as e:
            logger.warning("timed_out_task_failed", task=item.label, error=str(e))
        else:
            logger.info("timed_out_task_finished", task=item.label)

    def _fail(self, item: QueueItem, error: Optional[BaseException]) -> None:
        """Count a failed unit; ``error=None`` means the unit was cancelled."""
        self.failed += 1
        if item.future.done():
            return

        if error is None:
            logger.warning("task_cancelled", task=item.label)
            item.future.cancel()
        else:
            logger.warning(
                "task_failed",
                task=item.label,
                error=str(error),
                error_type=type(error).__name__,
            )
            item.future.set_exception(error)


def _drainer_cancelled() -> bool:
    """True when the running drainer task itself has been asked to stop."""
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0
