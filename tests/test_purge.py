"""Tests for the cache purge client."""

import httpx
import pytest

from pybunny.exceptions import AuthError, TransientNetworkError, ValidationError
from pybunny.purge import PurgeClient
from pybunny.retry import RetryPolicy


async def _no_sleep(delay):
    return None


class RecordingHandler:
    """Answers purge requests with a fixed sequence of statuses."""

    def __init__(self, *statuses: int):
        self.statuses = list(statuses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status = self.statuses.pop(0) if self.statuses else 204
        return httpx.Response(status)


def _purge_client(handler, max_attempts=3) -> PurgeClient:
    return PurgeClient(
        "account-key",
        api_url="https://api.test",
        policy=RetryPolicy(max_attempts=max_attempts),
        transport=httpx.MockTransport(handler),
        sleep=_no_sleep,
    )


class TestPurgeZone:
    """Tests for purge_zone."""

    @pytest.mark.asyncio
    async def test_purge_zone_success(self):
        handler = RecordingHandler(204)
        async with _purge_client(handler) as client:
            await client.purge_zone(3644443)

        assert len(handler.requests) == 1
        request = handler.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/pullzone/3644443/purgeCache"
        assert request.headers["AccessKey"] == "account-key"
        assert request.content == b""

    @pytest.mark.asyncio
    async def test_purge_zone_with_cache_tag(self):
        handler = RecordingHandler(204)
        async with _purge_client(handler) as client:
            await client.purge_zone(42, cache_tag="docs")

        assert handler.requests[0].content == b"CacheTag=docs"

    @pytest.mark.asyncio
    async def test_purge_zone_recovers_from_transient_failure(self):
        handler = RecordingHandler(503, 200)
        async with _purge_client(handler) as client:
            await client.purge_zone(3644443)

        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_purge_zone_fails_after_retry_ceiling(self):
        handler = RecordingHandler(503, 503, 503, 503, 503)
        async with _purge_client(handler, max_attempts=3) as client:
            with pytest.raises(TransientNetworkError):
                await client.purge_zone(3644443)

        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_purge_zone_auth_failure_not_retried(self):
        handler = RecordingHandler(401, 204)
        async with _purge_client(handler) as client:
            with pytest.raises(AuthError):
                await client.purge_zone(3644443)

        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_purge_zone_unknown_zone(self):
        handler = RecordingHandler(404)
        async with _purge_client(handler) as client:
            with pytest.raises(ValidationError):
                await client.purge_zone(1)

        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("zone_id", [0, -5, True])
    async def test_invalid_zone_id_sends_nothing(self, zone_id):
        handler = RecordingHandler()
        async with _purge_client(handler) as client:
            with pytest.raises(ValidationError):
                await client.purge_zone(zone_id)

        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_purge_is_idempotent(self):
        handler = RecordingHandler()
        async with _purge_client(handler) as client:
            await client.purge_zone(7)
            await client.purge_zone(7)

        assert len(handler.requests) == 2


class TestPurgeUrl:
    """Tests for purge_url."""

    @pytest.mark.asyncio
    async def test_purge_url(self):
        handler = RecordingHandler(200)
        async with _purge_client(handler) as client:
            await client.purge_url("https://cdn.example.com/docs/*")

        request = handler.requests[0]
        assert request.url.path == "/purge"
        assert request.url.params["url"] == "https://cdn.example.com/docs/*"

    @pytest.mark.asyncio
    async def test_purge_url_rejects_non_url(self):
        handler = RecordingHandler()
        async with _purge_client(handler) as client:
            with pytest.raises(ValidationError):
                await client.purge_url("docs/index.html")

        assert handler.requests == []
