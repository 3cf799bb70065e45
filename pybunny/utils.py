"""Utility functions for PyBunny."""

import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

# =============================================================================
# Constants
# =============================================================================

DEFAULT_STORAGE_ENDPOINT: str = "storage.bunnycdn.com"
DEFAULT_API_URL: str = "https://api.bunny.net"
DEFAULT_LOCKFILE: str = ".pybunny.lock"

# Retry configuration for transient errors
DEFAULT_MAX_ATTEMPTS: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds
DEFAULT_MAX_RETRY_DELAY: float = 30.0  # seconds

DEFAULT_TIMEOUT: float = 30.0  # seconds
DEFAULT_CONCURRENCY: int = 4

# Read size when streaming file contents through the hash function (1 MB)
HASH_CHUNK_SIZE: int = 1024 * 1024

HTML_SUFFIXES = (".html", ".htm")


# =============================================================================
# Path utilities
# =============================================================================


def normalize_relative_path(path: str) -> str:
    """Normalize a relative path for comparison between local and remote.

    Backslashes become forward slashes, empty and ``.`` segments are dropped
    and leading/trailing slashes are removed.

    Args:
        path: Path to normalize

    Returns:
        Normalized path such as ``"docs/index.html"``

    Raises:
        ValueError: If the path contains a ``..`` segment

    Examples:
        >>> normalize_relative_path("/docs/./index.html")
        'docs/index.html'
        >>> normalize_relative_path("css\\\\site.css")
        'css/site.css'
    """
    parts = []
    for part in path.replace("\\", "/").split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            raise ValueError(f"Parent directory segments are not allowed: {path}")
        parts.append(part)
    return "/".join(parts)


def normalize_prefix(prefix: Optional[str]) -> str:
    """Normalize a remote prefix; the storage zone root is ``""``.

    Examples:
        >>> normalize_prefix("/")
        ''
        >>> normalize_prefix("/thumper/docs/")
        'thumper/docs'
    """
    if not prefix:
        return ""
    return normalize_relative_path(prefix)


def join_remote_key(prefix: str, relative_path: str) -> str:
    """Build the storage key for a file below a remote prefix.

    Examples:
        >>> join_remote_key("", "index.html")
        'index.html'
        >>> join_remote_key("docs", "css/site.css")
        'docs/css/site.css'
    """
    if not prefix:
        return relative_path
    return f"{prefix}/{relative_path}"


def is_html(path: str) -> bool:
    """Check whether a path names an HTML page."""
    return path.lower().endswith(HTML_SUFFIXES)


def is_under_prefix(path: str, prefixes: Union[list[str], tuple[str, ...]]) -> bool:
    """Check whether a path starts with any of the given prefixes."""
    return any(path.startswith(prefix) for prefix in prefixes)


# =============================================================================
# Hash calculation utilities
# =============================================================================


def calculate_checksum(file_path: Path, chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """Calculate the SHA-256 checksum of a file.

    The file is streamed in chunks so large artifacts are never held in
    memory at once. The digest is upper-case hex, matching the ``Checksum``
    field returned by the storage API.

    Args:
        file_path: File to hash
        chunk_size: Number of bytes read per iteration

    Returns:
        Upper-case hex SHA-256 digest

    Raises:
        OSError: If the file cannot be read
    """
    digest = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest().upper()


def calculate_bytes_checksum(content: bytes) -> str:
    """Calculate the upper-case hex SHA-256 checksum of in-memory content.

    Examples:
        >>> calculate_bytes_checksum(b"x")[:16]
        '2D711642B726B044'
    """
    return hashlib.sha256(content).hexdigest().upper()


# =============================================================================
# Timestamp parsing utilities
# =============================================================================


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[float]:
    """Parse an ISO format timestamp from the storage API.

    The API reports times such as ``"2025-04-15T16:52:33.824"`` without a
    zone designator; they are UTC.

    Args:
        timestamp_str: ISO format timestamp string

    Returns:
        POSIX timestamp, or None if parsing fails
    """
    if not timestamp_str:
        return None

    if timestamp_str.endswith("Z"):
        timestamp_str = timestamp_str[:-1] + "+00:00"

    try:
        dt = datetime.fromisoformat(timestamp_str)
    except ValueError:
        # Older interpreters reject fractional seconds that are not 3 or 6 digits
        if "." not in timestamp_str:
            return None
        try:
            dt = datetime.fromisoformat(timestamp_str.split(".")[0])
        except ValueError:
            return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
