"""Sync job definition."""

from dataclasses import dataclass, field
from pathlib import Path

from ..utils import DEFAULT_CONCURRENCY, DEFAULT_LOCKFILE, normalize_prefix


@dataclass(frozen=True)
class SyncJob:
    """What to sync where, and how.

    Examples:
        >>> job = SyncJob(local=Path("docs/book"), remote_path="/thumper")
        >>> job.remote_prefix
        'thumper'
    """

    local: Path
    """Local directory to mirror"""

    remote_path: str = "/"
    """Path inside the storage zone the local directory maps to"""

    concurrency: int = DEFAULT_CONCURRENCY
    """Number of concurrent requests"""

    dry_run: bool = False
    """Only compute and show the plan"""

    force_lock: bool = False
    """Sync despite a lockfile left by another job"""

    lockfile: str = DEFAULT_LOCKFILE
    """Zone-relative key of the lockfile"""

    ignore: tuple[str, ...] = field(default_factory=tuple)
    """Remote path prefixes (relative to remote_path) that are never deleted"""

    force_upload: bool = False
    """Upload every local file, even when checksums match"""

    trust_modified: bool = False
    """Compare files without a remote checksum by size and modification time"""

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")

    @property
    def remote_prefix(self) -> str:
        return normalize_prefix(self.remote_path)
