"""API client for bunny.net Storage Zones."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .exceptions import (
    AuthError,
    BunnyAPIError,
    TransientNetworkError,
    ValidationError,
)
from .utils import DEFAULT_STORAGE_ENDPOINT, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

OCTET_STREAM = "application/octet-stream"


def _error_detail(response: httpx.Response) -> str:
    """Extract a short error description from a response body."""
    try:
        if response.content:
            data = response.json()
            if isinstance(data, dict):
                msg = data.get("Message") or data.get("message") or data.get("error")
                if msg:
                    return f": {msg}"
    except ValueError:
        # Not JSON; the status code says enough
        pass
    return ""


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value and value.isdigit():
        return float(value)
    return None


def check_response(response: httpx.Response, missing_ok: bool = False) -> None:
    """Classify an HTTP response, raising for anything but success.

    Args:
        response: Response to classify
        missing_ok: Treat 404 as success (deleting an absent key)

    Raises:
        AuthError: On 401/403
        TransientNetworkError: On 408, 429 and 5xx
        ValidationError: On any other 4xx
        BunnyAPIError: On unexpected status codes
    """
    status_code = response.status_code
    if response.is_success:
        return
    if status_code == 404 and missing_ok:
        return

    detail = _error_detail(response)
    if status_code == 401:
        raise AuthError(f"Invalid access key or unauthorized access{detail}", 401)
    elif status_code == 403:
        raise AuthError(f"Access forbidden - check your permissions{detail}", 403)
    elif status_code in (408, 429):
        raise TransientNetworkError(
            f"Request throttled or timed out (HTTP {status_code}){detail}",
            status_code,
            retry_after=_retry_after(response),
        )
    elif 500 <= status_code < 600:
        raise TransientNetworkError(
            f"Server error (HTTP {status_code}){detail}",
            status_code,
            retry_after=_retry_after(response),
        )
    elif 400 <= status_code < 500:
        raise ValidationError(
            f"Request rejected (HTTP {status_code}){detail}", status_code
        )
    raise BunnyAPIError(f"Unexpected response (HTTP {status_code})", status_code)


def translate_request_error(e: httpx.RequestError) -> TransientNetworkError:
    """Map an httpx transport failure to a retryable error."""
    if isinstance(e, httpx.TimeoutException):
        return TransientNetworkError(f"Request timed out: {e!r}")
    return TransientNetworkError(f"Network error: {e!r}")


class StorageZoneClient:
    """Client for a single bunny.net Storage Zone.

    Every method issues exactly one request; retries belong to the caller.
    The underlying ``httpx.AsyncClient`` keeps one connection pool that is
    shared by every concurrent caller.
    """

    def __init__(
        self,
        access_key: str,
        storage_zone: str,
        endpoint: str = DEFAULT_STORAGE_ENDPOINT,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize storage zone client.

        Args:
            access_key: Storage zone password
            storage_zone: Storage zone name
            endpoint: Storage endpoint host name
            timeout: Request timeout in seconds
            transport: Optional transport (used by tests)
        """
        self.storage_zone = storage_zone.strip("/")
        self.endpoint = endpoint
        self.timeout = timeout
        self._access_key = access_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=f"https://{self.endpoint}",
                headers={"AccessKey": self._access_key},
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> StorageZoneClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def url_for(self, key: str) -> str:
        """Return the request path for a key inside the storage zone."""
        return f"/{self.storage_zone}/{key.lstrip('/')}"

    async def _send(
        self, method: str, key: str, missing_ok: bool = False, **kwargs: Any
    ) -> httpx.Response:
        """Send one request and classify its outcome."""
        client = self._get_client()
        try:
            response = await client.request(method, self.url_for(key), **kwargs)
        except httpx.RequestError as e:
            raise translate_request_error(e) from e
        check_response(response, missing_ok=missing_ok)
        return response

    async def list_directory(self, path: str) -> list[dict[str, Any]]:
        """List the objects and subdirectories of one directory.

        Args:
            path: Directory key relative to the zone root ("" for the root)

        Returns:
            Raw listing entries (``Path``, ``ObjectName``, ``Length``,
            ``LastChanged``, ``Checksum``, ``IsDirectory``). A directory
            that does not exist lists as empty.
        """
        key = f"{path.strip('/')}/" if path.strip("/") else ""
        response = await self._send("GET", key, missing_ok=True)
        if response.status_code == 404:
            logger.debug("Directory %r does not exist", key)
            return []
        try:
            data = response.json()
        except ValueError as e:
            raise BunnyAPIError(
                f"Invalid JSON listing for {key!r}", response.status_code
            ) from e
        if not isinstance(data, list):
            raise BunnyAPIError(
                f"Unexpected listing payload for {key!r}", response.status_code
            )
        return data

    async def read_file(self, key: str) -> str | None:
        """Read a small text object, returning None if it does not exist."""
        response = await self._send("GET", key, missing_ok=True)
        if response.status_code == 404:
            return None
        return response.text

    async def put_file(
        self,
        key: str,
        content: bytes,
        content_type: str | None = None,
        checksum: str | None = None,
    ) -> None:
        """Upload raw bytes to a key, replacing any existing object.

        Args:
            key: Destination key relative to the zone root
            content: File contents
            content_type: MIME type (defaults to application/octet-stream)
            checksum: Upper-case hex SHA-256 the server verifies on receipt
        """
        headers = {"Content-Type": content_type or OCTET_STREAM}
        if checksum:
            headers["Checksum"] = checksum
        await self._send("PUT", key, content=content, headers=headers)

    async def delete_file(self, key: str) -> None:
        """Delete a key. Deleting an absent key succeeds."""
        await self._send("DELETE", key, missing_ok=True)
