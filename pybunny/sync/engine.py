"""Core sync engine for executing sync operations."""

import asyncio
import contextlib
import logging
import signal
import threading
import time
from collections.abc import Iterator
from typing import Optional

from rich.progress import Progress, SpinnerColumn, TextColumn

from ..api import StorageZoneClient
from ..exceptions import LocalIOError
from ..output import OutputFormatter
from ..retry import RetryPolicy
from ..utils import format_size
from .comparator import FileComparator
from .job import SyncJob
from .lock import RemoteLock
from .models import ChangePlan, Inventory, SyncReport
from .operations import SyncOperations
from .scanner import DirectoryScanner, RemoteScanner
from .scheduler import EventCallback, WorkScheduler

logger = logging.getLogger(__name__)


class SyncEngine:
    """Core sync engine that orchestrates one sync invocation.

    Scans the local tree and the remote prefix, reduces them to a
    ChangePlan and drains the plan through a :class:`WorkScheduler`.
    """

    def __init__(
        self,
        client: StorageZoneClient,
        output: Optional[OutputFormatter] = None,
        policy: Optional[RetryPolicy] = None,
        on_event: Optional[EventCallback] = None,
    ):
        """Initialize sync engine.

        Args:
            client: Storage zone client
            output: Output formatter for displaying progress/status
            policy: Retry policy for listings and transfers
            on_event: Callback receiving every work item attempt
        """
        self.client = client
        self.output = output or OutputFormatter()
        self.policy = policy or RetryPolicy()
        self.on_event = on_event
        self.scanner = DirectoryScanner()

    async def sync(self, job: SyncJob) -> SyncReport:
        """Converge the remote prefix onto the local directory.

        Args:
            job: Sync job to execute

        Returns:
            SyncReport describing the outcome

        Raises:
            LocalIOError: If the local tree cannot be read
            AuthError: If the storage zone rejects the access key
            InventoryFetchError: If the remote listing could not be completed
            LockError: If another job holds the remote lock

        Examples:
            >>> engine = SyncEngine(client)
            >>> report = await engine.sync(SyncJob(Path("docs/book"), "/docs"))
            >>> print(f"Uploaded {report.uploaded} files")
        """
        if not job.local.exists():
            raise LocalIOError(f"Local directory does not exist: {job.local}")
        if not job.local.is_dir():
            raise LocalIOError(f"Local path is not a directory: {job.local}")

        if not self.output.quiet:
            self.output.info(
                f"Syncing: {job.local} -> "
                f"{self.client.storage_zone}/{job.remote_prefix}"
            )
            if job.dry_run:
                self.output.info("Dry run: No changes will be made")
            self.output.print("")

        lock = None
        if not job.dry_run:
            lock = RemoteLock(
                self.client, job.lockfile, force=job.force_lock, policy=self.policy
            )
            await lock.acquire()

        try:
            return await self._run(job)
        finally:
            if lock is not None:
                await lock.release()

    async def _run(self, job: SyncJob) -> SyncReport:
        start_time = time.time()

        local, remote = await self._scan(job)
        comparator = FileComparator(
            force=job.force_upload,
            trust_modified=job.trust_modified,
            ignore=list(job.ignore),
        )
        plan = comparator.compare(local, remote)
        logger.debug(
            "Plan: %d upload(s), %d deletion(s), %d unchanged",
            len(plan.uploads),
            len(plan.deletions),
            plan.unchanged_count,
        )
        self._display_sync_plan(plan, local, job.dry_run)

        if job.dry_run:
            return SyncReport(
                uploaded=len(plan.uploads),
                deleted=len(plan.deletions),
                unchanged=plan.unchanged_count,
                dry_run=True,
            )

        operations = SyncOperations(self.client, local, job.remote_prefix)
        scheduler = WorkScheduler(
            operations,
            concurrency=job.concurrency,
            policy=self.policy,
            on_event=self.on_event,
        )
        with self._interrupt_handlers(scheduler):
            report = await scheduler.run(plan)

        logger.debug("Sync finished in %.2fs", time.time() - start_time)
        return report

    async def _scan(self, job: SyncJob) -> tuple[Inventory, Inventory]:
        """Build both inventories concurrently."""
        remote_scanner = RemoteScanner(
            self.client,
            prefix=job.remote_prefix,
            exclude=[job.lockfile],
            concurrency=job.concurrency,
            policy=self.policy,
        )

        cancelled = threading.Event()
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            disable=self.output.quiet,
        ) as progress:
            progress.add_task("Scanning local and remote files...", total=None)
            local_task = asyncio.ensure_future(
                asyncio.to_thread(self.scanner.scan_local, job.local, cancelled)
            )
            remote_task = asyncio.ensure_future(remote_scanner.scan_remote())
            try:
                local, remote = await asyncio.gather(local_task, remote_task)
            except BaseException:
                cancelled.set()
                local_task.cancel()
                remote_task.cancel()
                raise

        if not self.output.quiet:
            self.output.info(
                f"Found {len(local)} local file(s) and {len(remote)} remote file(s)"
            )
        return local, remote

    @contextlib.contextmanager
    def _interrupt_handlers(self, scheduler: WorkScheduler) -> Iterator[None]:
        """Route SIGINT/SIGTERM to the scheduler's stop flag."""
        loop = asyncio.get_running_loop()
        installed = []
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, scheduler.stop)
                installed.append(signum)
            except (NotImplementedError, RuntimeError, ValueError):
                # Not supported on this platform or not the main thread
                logger.debug("Could not install handler for signal %s", signum)
        try:
            yield
        finally:
            for signum in installed:
                loop.remove_signal_handler(signum)

    def _display_sync_plan(
        self, plan: ChangePlan, local: Inventory, dry_run: bool
    ) -> None:
        if self.output.quiet:
            return

        upload_size = sum(local[path].size for path in plan.uploads)
        self.output.info(
            f"Plan: {len(plan.uploads)} upload(s) ({format_size(upload_size)}), "
            f"{len(plan.deletions)} deletion(s), {plan.unchanged_count} unchanged"
        )
        if dry_run:
            for path in plan.uploads:
                self.output.print(f"  upload  {path}")
            for path in plan.deletions:
                self.output.print(f"  delete  {path}")
        self.output.print("")
