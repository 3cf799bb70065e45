"""Bounded-concurrency execution of a ChangePlan."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

from ..exceptions import AuthError, BunnyError, ErrorKind
from ..retry import RetryPolicy
from .models import ChangePlan, FailedItem, Outcome, SyncReport, WorkItem, WorkKind

logger = logging.getLogger(__name__)

EventCallback = Callable[[WorkItem, Outcome, Optional[BaseException]], None]


class Executor(Protocol):
    """Anything that can perform one attempt of a work item."""

    def execute(self, item: WorkItem) -> Awaitable[None]: ...


class _ReportBuilder:
    """Accumulates results from concurrent workers."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self.uploaded = 0
        self.deleted = 0
        self.failed: list[FailedItem] = []

    async def succeeded(self, item: WorkItem) -> None:
        async with self._lock:
            if item.kind == WorkKind.UPLOAD:
                self.uploaded += 1
            else:
                self.deleted += 1

    async def add_failure(self, item: WorkItem, kind: ErrorKind, message: str) -> None:
        async with self._lock:
            self.failed.append(FailedItem(item.path, kind, item.kind, message))

    def build(self, unchanged: int, cancelled: bool) -> SyncReport:
        return SyncReport(
            uploaded=self.uploaded,
            deleted=self.deleted,
            unchanged=unchanged,
            failed=tuple(sorted(self.failed, key=lambda f: f.path)),
            cancelled=cancelled,
        )


class WorkScheduler:
    """Drains a ChangePlan through a fixed pool of worker tasks.

    Each WorkItem moves through ``pending -> in flight -> succeeded``, or
    back to pending after a retryable failure (with backoff) until the
    policy's attempt ceiling, or to failed. Exactly ``concurrency`` workers
    pull from a queue, so no more than that many transfer calls are ever in
    flight.

    Every upload reaches a terminal state before the first deletion is
    admitted.

    Setting the stop event (an ``AuthError`` in any worker, or
    :meth:`stop`) ends admission: attempts in flight finish, everything else
    is reported with the ``cancelled`` error kind.
    """

    def __init__(
        self,
        operations: Executor,
        concurrency: int = 4,
        policy: Optional[RetryPolicy] = None,
        on_event: Optional[EventCallback] = None,
    ):
        """Initialize the scheduler.

        Args:
            operations: Executor performing transfer attempts
            concurrency: Number of workers (at least 1)
            policy: Retry policy for transient failures
            on_event: Callback invoked after every attempt and cancellation
        """
        self.operations = operations
        self.concurrency = max(1, concurrency)
        self.policy = policy or RetryPolicy()
        self.on_event = on_event
        self._stop = asyncio.Event()
        self._errors: list[BaseException] = []

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Stop admitting new work items."""
        if not self._stop.is_set():
            logger.warning("Stopping: finishing requests in flight...")
        self._stop.set()

    async def run(self, plan: ChangePlan) -> SyncReport:
        """Execute a plan and report the outcome.

        Args:
            plan: Change plan to execute

        Returns:
            SyncReport with counts and every failed or cancelled path
        """
        report = _ReportBuilder()
        uploads = [WorkItem(WorkKind.UPLOAD, path) for path in plan.uploads]
        deletions = [WorkItem(WorkKind.DELETE, path) for path in plan.deletions]

        logger.debug(
            "Executing %d upload(s) and %d deletion(s) with %d worker(s)",
            len(uploads),
            len(deletions),
            self.concurrency,
        )
        await self._drain(uploads, report)
        await self._drain(deletions, report)

        if self._errors:
            raise self._errors[0]
        return report.build(plan.unchanged_count, cancelled=self.stopped)

    async def _drain(self, items: list[WorkItem], report: _ReportBuilder) -> None:
        """Run a batch of items to completion."""
        if not items:
            return
        if self.stopped:
            for item in items:
                await self._cancel(item, report)
            return

        queue: asyncio.Queue = asyncio.Queue()
        for item in items:
            queue.put_nowait(item)

        retries: set[asyncio.Task] = set()
        workers = [
            asyncio.create_task(self._worker(queue, report, retries))
            for _ in range(self.concurrency)
        ]
        try:
            await queue.join()
        finally:
            for task in [*workers, *retries]:
                task.cancel()
            await asyncio.gather(*workers, *retries, return_exceptions=True)

    async def _worker(
        self,
        queue: asyncio.Queue,
        report: _ReportBuilder,
        retries: set[asyncio.Task],
    ) -> None:
        while True:
            item = await queue.get()
            requeued = False
            try:
                requeued = await self._process(item, queue, report, retries)
            except Exception as e:
                logger.exception("Unexpected error processing %s", item.path)
                self._errors.append(e)
                self._stop.set()
            finally:
                if not requeued:
                    queue.task_done()

    async def _process(
        self,
        item: WorkItem,
        queue: asyncio.Queue,
        report: _ReportBuilder,
        retries: set[asyncio.Task],
    ) -> bool:
        """Attempt one item; return True if it was handed to a delayed retry."""
        if self.stopped:
            await self._cancel(item, report)
            return False

        item.attempt += 1
        try:
            await self.operations.execute(item)
        except BunnyError as e:
            if isinstance(e, AuthError):
                logger.error("Authentication failed, stopping: %s", e)
                self._stop.set()

            if not self.stopped and self.policy.should_retry(e, item.attempt):
                delay = self.policy.delay_for(item.attempt, e)
                logger.debug(
                    "%s %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    item.kind.value,
                    item.path,
                    item.attempt,
                    self.policy.max_attempts,
                    delay,
                    e,
                )
                self._emit(item, Outcome.RETRYING, e)
                task = asyncio.create_task(self._requeue_later(queue, item, delay))
                retries.add(task)
                task.add_done_callback(retries.discard)
                return True

            await report.add_failure(item, e.kind or ErrorKind.VALIDATION, str(e))
            self._emit(item, Outcome.FAILED, e)
            return False

        await report.succeeded(item)
        self._emit(item, Outcome.SUCCEEDED, None)
        return False

    async def _requeue_later(
        self, queue: asyncio.Queue, item: WorkItem, delay: float
    ) -> None:
        """Put an item back on the queue once its backoff has elapsed.

        The item keeps its unfinished slot in the queue until it is put back,
        so the batch cannot be considered drained while a retry is pending.
        """
        try:
            if delay > 0 and not self.stopped:
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
        finally:
            queue.put_nowait(item)
            queue.task_done()

    async def _cancel(self, item: WorkItem, report: _ReportBuilder) -> None:
        await report.add_failure(
            item, ErrorKind.CANCELLED, "Run stopped before this item completed"
        )
        self._emit(item, Outcome.CANCELLED, None)

    def _emit(
        self, item: WorkItem, outcome: Outcome, error: Optional[BaseException]
    ) -> None:
        if self.on_event is not None:
            self.on_event(item, outcome, error)
