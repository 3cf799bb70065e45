"""File comparison logic for sync operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..utils import is_html, is_under_prefix
from .models import ChangePlan, FileRecord, Inventory


class SyncAction(str, Enum):
    """Actions that can be taken for a path during sync."""

    UPLOAD = "upload"
    """Upload local file to remote"""

    DELETE = "delete"
    """Delete remote file that no longer exists locally"""

    SKIP = "skip"
    """Skip file (no action needed)"""


@dataclass(frozen=True)
class SyncDecision:
    """Represents a decision about how to sync a file."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    relative_path: str
    """Relative path of the file"""


class FileComparator:
    """Compares local and remote inventories to determine sync actions.

    Fingerprints are compared exactly. A remote record without a checksum
    cannot be compared exactly: by default it is re-uploaded. With
    ``trust_modified`` the size and modification time are used instead,
    which is a best-effort heuristic and not a guarantee (clock drift can
    hide a change).
    """

    def __init__(
        self,
        force: bool = False,
        trust_modified: bool = False,
        ignore: Optional[list[str]] = None,
    ):
        """Initialize file comparator.

        Args:
            force: Upload every local file regardless of fingerprints
            trust_modified: Compare unverified remote files by size and
                modification time instead of re-uploading them
            ignore: Path prefixes whose remote-only files are never deleted
        """
        self.force = force
        self.trust_modified = trust_modified
        self.ignore = [p.lstrip("/") for p in (ignore or []) if p.strip("/")]

    def compare_files(
        self, local: Inventory, remote: Inventory
    ) -> list[SyncDecision]:
        """Compare two inventories and decide an action for every path.

        Args:
            local: Local inventory
            remote: Remote inventory

        Returns:
            One SyncDecision per path, in path order
        """
        decisions: list[SyncDecision] = []

        for local_record in local:
            remote_record = remote.get(local_record.relative_path)
            decisions.append(self._compare_single_file(local_record, remote_record))

        for remote_record in remote:
            if remote_record.relative_path not in local:
                decisions.append(self._handle_remote_only(remote_record))

        return sorted(decisions, key=lambda d: d.relative_path)

    def compare(self, local: Inventory, remote: Inventory) -> ChangePlan:
        """Reduce two inventories to a ChangePlan.

        Uploads are ordered so that HTML pages come after every other asset;
        deletions are in path order.
        """
        uploads: list[str] = []
        deletions: list[str] = []
        unchanged = 0
        for decision in self.compare_files(local, remote):
            if decision.action == SyncAction.UPLOAD:
                uploads.append(decision.relative_path)
            elif decision.action == SyncAction.DELETE:
                deletions.append(decision.relative_path)
            elif decision.relative_path in local:
                unchanged += 1

        uploads.sort(key=lambda path: (is_html(path), path))
        return ChangePlan(
            uploads=tuple(uploads),
            deletions=tuple(deletions),
            unchanged_count=unchanged,
        )

    def _compare_single_file(
        self, local: FileRecord, remote: Optional[FileRecord]
    ) -> SyncDecision:
        path = local.relative_path

        if remote is None:
            return SyncDecision(SyncAction.UPLOAD, "New local file", path)

        if self.force:
            return SyncDecision(SyncAction.UPLOAD, "Forced upload", path)

        if remote.verified:
            if local.fingerprint == remote.fingerprint:
                return SyncDecision(SyncAction.SKIP, "Checksums match", path)
            return SyncDecision(SyncAction.UPLOAD, "Checksums differ", path)

        return self._compare_unverified(local, remote)

    def _compare_unverified(self, local: FileRecord, remote: FileRecord) -> SyncDecision:
        """Compare against a remote file that has no checksum."""
        path = local.relative_path

        if not self.trust_modified:
            return SyncDecision(
                SyncAction.UPLOAD, "Remote checksum unavailable, re-uploading", path
            )

        if local.size != remote.size:
            reason = f"Sizes differ ({local.size} vs {remote.size})"
            return SyncDecision(SyncAction.UPLOAD, reason, path)

        if remote.modified is None or local.modified is None:
            return SyncDecision(
                SyncAction.UPLOAD, "Modification time unavailable, re-uploading", path
            )

        if remote.modified >= local.modified:
            return SyncDecision(
                SyncAction.SKIP, "Same size and remote is not older", path
            )
        return SyncDecision(SyncAction.UPLOAD, "Local file is newer", path)

    def _handle_remote_only(self, remote: FileRecord) -> SyncDecision:
        path = remote.relative_path
        if is_under_prefix(path, self.ignore):
            return SyncDecision(SyncAction.SKIP, "Ignored prefix", path)
        return SyncDecision(SyncAction.DELETE, "File deleted locally", path)


def diff(
    local: Inventory,
    remote: Inventory,
    force: bool = False,
    trust_modified: bool = False,
    ignore: Optional[list[str]] = None,
) -> ChangePlan:
    """Compute the ChangePlan that converges ``remote`` onto ``local``."""
    comparator = FileComparator(force=force, trust_modified=trust_modified, ignore=ignore)
    return comparator.compare(local, remote)
