"""Transfer operations executed by the sync workers."""

import asyncio
import mimetypes
from typing import Optional

from ..api import OCTET_STREAM, StorageZoneClient
from ..exceptions import LocalIOError
from ..utils import calculate_bytes_checksum, join_remote_key, normalize_prefix
from .models import Inventory, WorkItem, WorkKind


def guess_content_type(path: str) -> str:
    """Guess the MIME type sent with an upload."""
    content_type, _ = mimetypes.guess_type(path)
    return content_type or OCTET_STREAM


class SyncOperations:
    """Upload and delete operations against a remote prefix.

    Each call performs a single idempotent request: uploading replaces the
    object at its key and deleting an absent key succeeds.
    """

    def __init__(
        self,
        client: StorageZoneClient,
        local: Optional[Inventory] = None,
        prefix: str = "",
    ):
        """Initialize sync operations.

        Args:
            client: Storage zone client
            local: Local inventory providing the source files for uploads
            prefix: Remote prefix the sync root maps to
        """
        self.client = client
        self.local = local if local is not None else Inventory()
        self.prefix = normalize_prefix(prefix)

    def remote_key(self, relative_path: str) -> str:
        return join_remote_key(self.prefix, relative_path)

    async def upload(self, relative_path: str) -> None:
        """Upload a local file to its remote key.

        Raises:
            LocalIOError: If the file is not in the local inventory or can
                no longer be read
        """
        record = self.local.get(relative_path)
        if record is None or record.source is None:
            raise LocalIOError(f"No local source for {relative_path}")
        try:
            content = await asyncio.to_thread(record.source.read_bytes)
        except OSError as e:
            raise LocalIOError(f"Cannot read {record.source}: {e}") from e

        await self.client.put_file(
            self.remote_key(relative_path),
            content,
            content_type=guess_content_type(relative_path),
            checksum=calculate_bytes_checksum(content),
        )

    async def delete(self, relative_path: str) -> None:
        """Delete a remote file."""
        await self.client.delete_file(self.remote_key(relative_path))

    async def execute(self, item: WorkItem) -> None:
        """Perform one attempt of a work item."""
        if item.kind == WorkKind.UPLOAD:
            await self.upload(item.path)
        else:
            await self.delete(item.path)
