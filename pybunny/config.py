"""Configuration for PyBunny.

Credentials and endpoints are captured once per invocation into an
immutable :class:`Settings` value and passed to every component. Nothing
below the CLI reads the environment.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Optional

from .exceptions import BunnyConfigError
from .utils import (
    DEFAULT_API_URL,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_STORAGE_ENDPOINT,
    DEFAULT_TIMEOUT,
)

STORAGE_KEY_ENV = "BUNNY_STORAGE_KEY"
API_KEY_ENV = "BUNNY_API_KEY"
ENDPOINT_ENV = "BUNNY_STORAGE_ENDPOINT"


@dataclass(frozen=True)
class Settings:
    """Immutable per-invocation configuration."""

    storage_key: Optional[str] = field(default=None, repr=False)
    """Storage zone password, used for sync operations"""

    api_key: Optional[str] = field(default=None, repr=False)
    """Account-level API key, used for purge operations"""

    endpoint: str = DEFAULT_STORAGE_ENDPOINT
    """Storage endpoint host name (e.g. ``ny.storage.bunnycdn.com``)"""

    api_url: str = DEFAULT_API_URL
    """Base URL of the account API"""

    timeout: float = DEFAULT_TIMEOUT
    """Per-request timeout in seconds"""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    """Attempt ceiling for retryable requests"""

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)

        Returns:
            Settings instance
        """
        env = os.environ if environ is None else environ
        return cls(
            storage_key=env.get(STORAGE_KEY_ENV) or None,
            api_key=env.get(API_KEY_ENV) or None,
            endpoint=env.get(ENDPOINT_ENV) or DEFAULT_STORAGE_ENDPOINT,
        )

    def with_overrides(self, **changes: object) -> "Settings":
        """Return a copy with the non-None values in ``changes`` applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def require_storage_key(self) -> str:
        if not self.storage_key:
            raise BunnyConfigError(
                "Storage access key not configured. "
                f"Please set the {STORAGE_KEY_ENV} environment variable."
            )
        return self.storage_key

    def require_api_key(self) -> str:
        if not self.api_key:
            raise BunnyConfigError(
                "API key not configured. "
                f"Please set the {API_KEY_ENV} environment variable."
            )
        return self.api_key
