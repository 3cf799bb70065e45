"""Remote lockfile preventing concurrent sync jobs against one storage zone."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

from ..api import StorageZoneClient
from ..exceptions import BunnyAPIError, LockError
from ..retry import RetryPolicy, Sleeper, retry_async

logger = logging.getLogger(__name__)


class RemoteLock:
    """Holds a lockfile in the storage zone for the duration of a sync.

    Examples:
        >>> async with RemoteLock(client, ".pybunny.lock"):
        ...     await scheduler.run(plan)
    """

    def __init__(
        self,
        client: StorageZoneClient,
        lockfile: str,
        force: bool = False,
        policy: Optional[RetryPolicy] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        """Initialize the lock.

        Args:
            client: Storage zone client
            lockfile: Zone-relative key of the lockfile
            force: Take over a lock left behind by another job
            policy: Retry policy for the lockfile requests
            sleep: Awaitable used for backoff delays
        """
        self.client = client
        self.lockfile = lockfile.lstrip("/")
        self.force = force
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self.acquired = False

    async def acquire(self) -> None:
        """Write the lockfile.

        Raises:
            LockError: If the lockfile exists and ``force`` is not set
        """
        held_since: Optional[str] = await self._retry(
            lambda: self.client.read_file(self.lockfile), "read lock"
        )
        if held_since is not None:
            logger.warning("Remote is locked since %s", held_since.strip())
            if not self.force:
                raise LockError(
                    f"Dangling lock in {self.lockfile} prevents sync "
                    "(use --force to override)"
                )

        timestamp = datetime.now().astimezone().isoformat()
        await self._retry(
            lambda: self.client.put_file(
                self.lockfile, timestamp.encode("utf-8"), content_type="text/plain"
            ),
            "write lock",
        )
        self.acquired = True
        logger.debug("Acquired lock %s", self.lockfile)

    async def release(self) -> None:
        """Delete the lockfile; failures are logged, never raised."""
        if not self.acquired:
            return
        try:
            await self._retry(
                lambda: self.client.delete_file(self.lockfile), "remove lock"
            )
            logger.debug("Released lock %s", self.lockfile)
        except BunnyAPIError as e:
            logger.warning("Unable to remove lockfile %s: %s", self.lockfile, e)
        finally:
            self.acquired = False

    async def _retry(self, operation: Any, description: str) -> Any:
        return await retry_async(operation, self.policy, description, sleep=self._sleep)

    async def __aenter__(self) -> "RemoteLock":
        await self.acquire()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.release()
