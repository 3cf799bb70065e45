"""Shared fixtures for PyBunny tests."""

import hashlib
import tempfile
from pathlib import Path
from typing import Optional

import httpx
import pytest

from pybunny.api import StorageZoneClient

ZONE = "test-zone"
ENDPOINT = "storage.test"


class FakeStorageZone:
    """In-memory storage zone speaking the storage API over MockTransport."""

    def __init__(self, zone: str = ZONE, checksums: bool = True):
        self.zone = zone
        self.checksums = checksums
        self.files: dict[str, bytes] = {}
        self.modified: dict[str, str] = {}
        self.requests: list[tuple[str, str]] = []
        self.headers: list[httpx.Headers] = []
        self.failures: dict[tuple[str, str], list[int]] = {}
        self.denied = False

    def add(
        self, key: str, content: bytes, modified: str = "2025-04-15T16:52:33.824"
    ) -> None:
        self.files[key] = content
        self.modified[key] = modified

    def fail(self, method: str, key: str, *statuses: int) -> None:
        """Answer the next requests for (method, key) with these statuses."""
        self.failures.setdefault((method, key), []).extend(statuses)

    def calls(self, method: Optional[str] = None) -> list[tuple[str, str]]:
        return [r for r in self.requests if method is None or r[0] == method]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        assert path.startswith(f"/{self.zone}/"), path
        key = path[len(self.zone) + 2 :]
        method = request.method
        self.requests.append((method, key))
        self.headers.append(request.headers)

        if self.denied:
            return httpx.Response(401, json={"HttpCode": 401, "Message": "Unauthorized"})

        queued = self.failures.get((method, key))
        if queued:
            return httpx.Response(queued.pop(0))

        if method == "GET" and (key == "" or key.endswith("/")):
            return self._list(key.rstrip("/"))
        if method == "GET":
            if key not in self.files:
                return httpx.Response(404)
            return httpx.Response(200, content=self.files[key])
        if method == "PUT":
            self.add(key, request.content)
            return httpx.Response(201, json={"HttpCode": 201, "Message": "File uploaded."})
        if method == "DELETE":
            if key not in self.files:
                return httpx.Response(404)
            del self.files[key]
            self.modified.pop(key, None)
            return httpx.Response(200)
        return httpx.Response(405)

    def _list(self, directory: str) -> httpx.Response:
        prefix = f"{directory}/" if directory else ""
        entries = []
        subdirectories = set()
        for key in sorted(self.files):
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix) :]
            if "/" in rest:
                subdirectories.add(rest.split("/")[0])
                continue
            content = self.files[key]
            checksum = (
                hashlib.sha256(content).hexdigest().upper() if self.checksums else None
            )
            entries.append(
                {
                    "StorageZoneName": self.zone,
                    "Path": f"/{self.zone}/{prefix}",
                    "ObjectName": rest,
                    "Length": len(content),
                    "LastChanged": self.modified[key],
                    "IsDirectory": False,
                    "Checksum": checksum,
                }
            )
        for name in sorted(subdirectories):
            entries.append(
                {
                    "StorageZoneName": self.zone,
                    "Path": f"/{self.zone}/{prefix}",
                    "ObjectName": name,
                    "Length": 0,
                    "LastChanged": "2025-04-15T16:52:33.824",
                    "IsDirectory": True,
                    "Checksum": None,
                }
            )
        if directory and not entries:
            return httpx.Response(404)
        return httpx.Response(200, json=entries)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def storage():
    """Create an empty fake storage zone."""
    return FakeStorageZone()


@pytest.fixture
def client(storage):
    """Create a storage zone client wired to the fake storage zone."""
    return StorageZoneClient(
        "secret-key",
        ZONE,
        endpoint=ENDPOINT,
        transport=httpx.MockTransport(storage.handler),
    )
