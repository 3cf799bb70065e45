"""Inventory scanning for sync operations."""

import asyncio
import logging
import threading
from pathlib import Path
from typing import Any, Optional

from ..api import StorageZoneClient
from ..exceptions import AuthError, InventoryFetchError, LocalIOError
from ..retry import RetryPolicy, Sleeper, retry_async
from ..utils import (
    calculate_checksum,
    join_remote_key,
    normalize_prefix,
    parse_iso_timestamp,
)
from .models import FileRecord, Inventory

logger = logging.getLogger(__name__)


class DirectoryScanner:
    """Scans a local directory tree into an :class:`Inventory`.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> inventory = scanner.scan_local(Path("docs/book"))
        >>> for record in inventory:
        ...     print(record.relative_path, record.fingerprint)
    """

    def scan_local(
        self, directory: Path, cancelled: Optional[threading.Event] = None
    ) -> Inventory:
        """Recursively scan a local directory.

        Symbolic links to directories are not followed, so link cycles
        cannot trap the walk. Every file is hashed by streaming its content.

        Args:
            directory: Root of the tree to scan
            cancelled: Event checked between entries; once set the walk stops

        Returns:
            Inventory of every regular file below the root

        Raises:
            LocalIOError: If the root is missing, is not a directory, or any
                part of the tree cannot be read, or the scan was cancelled
        """
        if not directory.exists():
            raise LocalIOError(f"Local directory does not exist: {directory}")
        if not directory.is_dir():
            raise LocalIOError(f"Local path is not a directory: {directory}")

        records = self._scan_directory(
            directory, directory, cancelled or threading.Event()
        )
        logger.debug("Scanned %d local file(s) in %s", len(records), directory)
        return Inventory(records)

    def _scan_directory(
        self, directory: Path, base_path: Path, cancelled: threading.Event
    ) -> list[FileRecord]:
        records: list[FileRecord] = []
        try:
            entries = sorted(directory.iterdir())
        except OSError as e:
            raise LocalIOError(f"Cannot read directory {directory}: {e}") from e

        for item in entries:
            if cancelled.is_set():
                raise LocalIOError(f"Local scan of {base_path} was cancelled")
            if item.is_dir():
                if item.is_symlink():
                    logger.debug("Skipping symlinked directory: %s", item)
                    continue
                records.extend(self._scan_directory(item, base_path, cancelled))
            elif item.is_file():
                records.append(self._record_for(item, base_path))
            else:
                logger.debug("Skipping non-regular file: %s", item)
        return records

    @staticmethod
    def _record_for(file_path: Path, base_path: Path) -> FileRecord:
        try:
            stat = file_path.stat()
            checksum = calculate_checksum(file_path)
        except OSError as e:
            raise LocalIOError(f"Cannot read file {file_path}: {e}") from e

        return FileRecord(
            # Use as_posix() to ensure forward slashes on all platforms
            relative_path=file_path.relative_to(base_path).as_posix(),
            size=stat.st_size,
            fingerprint=checksum,
            modified=stat.st_mtime,
            source=file_path,
        )


class RemoteScanner:
    """Builds an :class:`Inventory` of the objects below a remote prefix.

    The storage API lists one directory per request, so subdirectories are
    walked by a pool of worker tasks pulling directory keys from a queue.
    Each listing request is retried on transient failures; the inventory is
    only returned once every directory has been listed.
    """

    def __init__(
        self,
        client: StorageZoneClient,
        prefix: str = "",
        exclude: Optional[list[str]] = None,
        concurrency: int = 4,
        policy: Optional[RetryPolicy] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        """Initialize remote scanner.

        Args:
            client: Storage zone client
            prefix: Remote prefix the sync root maps to
            exclude: Zone-relative keys to leave out of the inventory
            concurrency: Number of concurrent listing requests
            policy: Retry policy for listing requests
            sleep: Coroutine used for backoff delays
        """
        self.client = client
        self.prefix = normalize_prefix(prefix)
        self.exclude = {e.lstrip("/") for e in (exclude or [])}
        self.concurrency = max(1, concurrency)
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._unverified = 0

    def _relative(self, zone_key: str) -> str:
        if not self.prefix:
            return zone_key
        return zone_key[len(self.prefix) + 1 :]

    def _zone_key(self, entry: dict[str, Any]) -> str:
        """Zone-relative key of a listing entry."""
        zone_root = f"/{self.client.storage_zone}/"
        directory = entry.get("Path", "")
        if directory.startswith(zone_root):
            directory = directory[len(zone_root) :]
        directory = directory.strip("/")
        name = entry["ObjectName"]
        return f"{directory}/{name}" if directory else name

    def _record_for(self, entry: dict[str, Any], relative_path: str) -> FileRecord:
        size = int(entry.get("Length") or 0)
        modified = parse_iso_timestamp(entry.get("LastChanged"))
        checksum = entry.get("Checksum")
        if checksum:
            return FileRecord(
                relative_path=relative_path,
                size=size,
                fingerprint=checksum.upper(),
                modified=modified,
            )
        self._unverified += 1
        return FileRecord(
            relative_path=relative_path,
            size=size,
            fingerprint=FileRecord.degraded_fingerprint(size, modified),
            modified=modified,
            verified=False,
        )

    async def _list(self, directory: str) -> list[dict[str, Any]]:
        return await retry_async(
            lambda: self.client.list_directory(directory),
            self.policy,
            f"list {directory or '/'}",
            sleep=self._sleep,
        )

    async def scan_remote(self) -> Inventory:
        """List every object below the prefix.

        Returns:
            Inventory keyed by path relative to the prefix

        Raises:
            AuthError: If the access key is rejected
            InventoryFetchError: If any directory could not be listed
        """
        queue: asyncio.Queue = asyncio.Queue()
        queue.put_nowait(self.prefix)
        records: list[FileRecord] = []
        errors: list[Exception] = []
        self._unverified = 0

        async def worker() -> None:
            while True:
                directory = await queue.get()
                try:
                    if not errors:
                        self._collect(await self._list(directory), queue, records)
                except Exception as e:  # re-raised once the pool has drained
                    errors.append(e)
                finally:
                    queue.task_done()

        workers = [asyncio.create_task(worker()) for _ in range(self.concurrency)]
        try:
            await queue.join()
        finally:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        if errors:
            error = errors[0]
            if isinstance(error, AuthError):
                raise error
            raise InventoryFetchError(f"Unable to list remote files: {error}") from error

        if self._unverified:
            logger.warning(
                "%d remote file(s) have no checksum and cannot be compared exactly; "
                "they are re-uploaded unless modification times are trusted",
                self._unverified,
            )
        inventory = Inventory(records)
        logger.debug("Listed %d remote file(s) below %r", len(inventory), self.prefix)
        return inventory

    def _collect(
        self,
        entries: list[dict[str, Any]],
        queue: asyncio.Queue,
        records: list[FileRecord],
    ) -> None:
        for entry in entries:
            zone_key = self._zone_key(entry)
            if self.prefix and not zone_key.startswith(self.prefix + "/"):
                logger.debug("Ignoring entry outside prefix: %s", zone_key)
                continue
            relative_path = self._relative(zone_key)

            if entry.get("IsDirectory"):
                queue.put_nowait(join_remote_key(self.prefix, relative_path))
            elif zone_key not in self.exclude:
                records.append(self._record_for(entry, relative_path))
