"""Cache purge client for bunny.net pull zones."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from .api import check_response, translate_request_error
from .exceptions import ValidationError
from .retry import RetryPolicy, Sleeper, retry_async
from .utils import DEFAULT_API_URL, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)


class PurgeClient:
    """Client for the account API's cache purge endpoints.

    Purging is idempotent, so each call is retried with the shared
    :class:`~pybunny.retry.RetryPolicy` on transient failures.
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.policy = policy or RetryPolicy()
        self._api_key = api_key
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                headers={"AccessKey": self._api_key},
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> PurgeClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _post(self, endpoint: str, description: str, **kwargs: Any) -> None:
        async def attempt() -> None:
            try:
                response = await self._get_client().post(endpoint, **kwargs)
            except httpx.RequestError as e:
                raise translate_request_error(e) from e
            check_response(response)

        await retry_async(attempt, self.policy, description, sleep=self._sleep)

    async def purge_zone(self, zone_id: int, cache_tag: str | None = None) -> None:
        """Purge the cache of a pull zone.

        Args:
            zone_id: Numeric pull zone identifier
            cache_tag: Only purge objects carrying this cache tag

        Raises:
            ValidationError: If the zone id is not a positive integer
            AuthError: If the API key is rejected
            TransientNetworkError: If the service kept failing
        """
        if isinstance(zone_id, bool) or not isinstance(zone_id, int) or zone_id <= 0:
            raise ValidationError(f"Invalid pull zone id: {zone_id!r}")

        kwargs: dict[str, Any] = {}
        if cache_tag:
            kwargs["data"] = {"CacheTag": cache_tag}
        logger.debug("Purging pull zone %d", zone_id)
        await self._post(
            f"/pullzone/{zone_id}/purgeCache", f"purge zone {zone_id}", **kwargs
        )

    async def purge_url(self, url: str) -> None:
        """Purge a single URL from the cache; a trailing ``*`` is a wildcard."""
        if not url.startswith(("http://", "https://")):
            raise ValidationError(f"Invalid URL: {url!r}")
        logger.debug("Purging URL %s", url)
        await self._post("/purge", f"purge {url}", params={"url": url})
