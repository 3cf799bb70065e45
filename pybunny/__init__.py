"""PyBunny - sync directories to bunny.net storage zones and purge CDN caches."""

from .api import StorageZoneClient
from .config import Settings
from .exceptions import (
    AuthError,
    BunnyAPIError,
    BunnyConfigError,
    BunnyError,
    ErrorKind,
    InventoryFetchError,
    LocalIOError,
    LockError,
    TransientNetworkError,
    ValidationError,
)
from .purge import PurgeClient
from .retry import RetryPolicy

__version__ = "0.3.0"

__all__ = [
    "StorageZoneClient",
    "PurgeClient",
    "RetryPolicy",
    "Settings",
    "AuthError",
    "BunnyAPIError",
    "BunnyConfigError",
    "BunnyError",
    "ErrorKind",
    "InventoryFetchError",
    "LocalIOError",
    "LockError",
    "TransientNetworkError",
    "ValidationError",
]
