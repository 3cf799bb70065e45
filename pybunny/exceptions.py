"""Exceptions raised by PyBunny."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Classification of a failure, as reported in a SyncReport."""

    AUTH = "AuthError"
    """Credentials were rejected"""

    VALIDATION = "ValidationError"
    """The request was malformed; retrying cannot help"""

    TRANSIENT = "TransientNetworkError"
    """Timeouts, throttling and server errors"""

    LOCAL_IO = "LocalIOError"
    """A local file or directory could not be read"""

    INVENTORY_FETCH = "InventoryFetchError"
    """The remote listing could not be completed"""

    CANCELLED = "cancelled"
    """The item was never attempted because the run stopped early"""


class BunnyError(Exception):
    """Base exception for PyBunny."""

    kind: Optional[ErrorKind] = None


class BunnyConfigError(BunnyError):
    """Raised when configuration is missing or invalid."""


class LockError(BunnyError):
    """Raised when another sync job holds the remote lock."""


class LocalIOError(BunnyError):
    """Raised when the local tree cannot be read."""

    kind = ErrorKind.LOCAL_IO


class InventoryFetchError(BunnyError):
    """Raised when the remote inventory could not be built."""

    kind = ErrorKind.INVENTORY_FETCH


class BunnyAPIError(BunnyError):
    """Base exception for failed API calls."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return False


class AuthError(BunnyAPIError):
    """Raised on 401/403. Fatal for the whole run."""

    kind = ErrorKind.AUTH


class ValidationError(BunnyAPIError):
    """Raised on any other 4xx. Fatal for the single request."""

    kind = ErrorKind.VALIDATION


class TransientNetworkError(BunnyAPIError):
    """Raised on timeouts, connection errors, 429 and 5xx."""

    kind = ErrorKind.TRANSIENT

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, status_code)
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        return True
