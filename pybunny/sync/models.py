"""Data model shared by the sync components."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from ..exceptions import ErrorKind
from ..utils import normalize_relative_path


@dataclass(frozen=True)
class FileRecord:
    """A file in a local or remote inventory."""

    relative_path: str
    """Normalized path relative to the sync root (forward slashes)"""

    size: int
    """File size in bytes"""

    fingerprint: str
    """Upper-case hex SHA-256, or a size/modified proxy when not verified"""

    modified: Optional[float] = None
    """Modification time (POSIX timestamp) if known"""

    verified: bool = True
    """False when the fingerprint is the degraded size+modified proxy"""

    source: Optional[Path] = field(default=None, compare=False)
    """Absolute local path (local records only)"""

    def __post_init__(self) -> None:
        normalized = normalize_relative_path(self.relative_path)
        if not normalized:
            raise ValueError("relative_path must not be empty")
        if normalized != self.relative_path:
            object.__setattr__(self, "relative_path", normalized)

    @staticmethod
    def degraded_fingerprint(size: int, modified: Optional[float]) -> str:
        """Build the proxy fingerprint used when no checksum is available.

        The format can never collide with a hex digest.
        """
        return f"size:{size};modified:{modified}"


class Inventory:
    """Path-ordered mapping from relative path to :class:`FileRecord`.

    Built completely before diffing and never mutated afterwards.
    """

    def __init__(self, records: Iterable[FileRecord] = ()):
        by_path: dict[str, FileRecord] = {}
        for record in records:
            if record.relative_path in by_path:
                raise ValueError(f"Duplicate path in inventory: {record.relative_path}")
            by_path[record.relative_path] = record
        self._records = {path: by_path[path] for path in sorted(by_path)}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, path: object) -> bool:
        return path in self._records

    def __iter__(self) -> Iterator[FileRecord]:
        return iter(self._records.values())

    def __getitem__(self, path: str) -> FileRecord:
        return self._records[path]

    def __repr__(self) -> str:
        return f"Inventory({len(self)} files)"

    def get(self, path: str) -> Optional[FileRecord]:
        return self._records.get(path)

    @property
    def paths(self) -> list[str]:
        return list(self._records)

    @property
    def total_size(self) -> int:
        return sum(record.size for record in self._records.values())

    @property
    def verified(self) -> bool:
        """True when every record carries a real checksum."""
        return all(record.verified for record in self._records.values())


@dataclass(frozen=True)
class ChangePlan:
    """The uploads and deletions needed to converge remote onto local."""

    uploads: tuple[str, ...] = ()
    deletions: tuple[str, ...] = ()
    unchanged_count: int = 0

    def __post_init__(self) -> None:
        overlap = set(self.uploads) & set(self.deletions)
        if overlap:
            raise ValueError(f"Paths both uploaded and deleted: {sorted(overlap)}")

    @property
    def is_empty(self) -> bool:
        return not self.uploads and not self.deletions

    @property
    def total_operations(self) -> int:
        return len(self.uploads) + len(self.deletions)


class WorkKind(str, Enum):
    """Kinds of transfer operations."""

    UPLOAD = "upload"
    DELETE = "delete"


@dataclass
class WorkItem:
    """One pending operation, owned by the scheduler until it is terminal."""

    kind: WorkKind
    path: str
    attempt: int = 0
    """Number of attempts made so far"""


class Outcome(str, Enum):
    """Result of a single work item attempt."""

    SUCCEEDED = "succeeded"
    RETRYING = "retrying"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class FailedItem:
    """A path that did not reach a successful terminal state."""

    path: str
    error_kind: ErrorKind
    kind: Optional[WorkKind] = None
    message: str = ""


@dataclass(frozen=True)
class SyncReport:
    """Outcome of a sync invocation; the basis for the exit status."""

    uploaded: int = 0
    deleted: int = 0
    unchanged: int = 0
    failed: tuple[FailedItem, ...] = ()
    cancelled: bool = False
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        """True when nothing failed and the run was not cancelled."""
        return not self.failed and not self.cancelled

    def to_dict(self) -> dict:
        """Convert report to dictionary for JSON output."""
        return {
            "uploaded": self.uploaded,
            "deleted": self.deleted,
            "unchanged": self.unchanged,
            "failed": [
                {
                    "path": item.path,
                    "error_kind": item.error_kind.value,
                    "kind": item.kind.value if item.kind else None,
                    "message": item.message,
                }
                for item in self.failed
            ],
            "cancelled": self.cancelled,
            "dry_run": self.dry_run,
        }
