"""Tests for the local and remote inventory scanners."""

import hashlib
import os
import threading

import pytest

from pybunny.exceptions import AuthError, InventoryFetchError, LocalIOError
from pybunny.retry import RetryPolicy
from pybunny.sync.scanner import DirectoryScanner, RemoteScanner


async def _no_sleep(delay):
    return None


def _policy(max_attempts=3) -> RetryPolicy:
    return RetryPolicy(max_attempts=max_attempts, base_delay=0.0)


class TestDirectoryScanner:
    """Tests for scanning local directories."""

    def test_scan_nested_tree(self, temp_dir):
        (temp_dir / "a.txt").write_text("x")
        (temp_dir / "sub" / "deeper").mkdir(parents=True)
        (temp_dir / "sub" / "b.txt").write_text("y")
        (temp_dir / "sub" / "deeper" / "c.txt").write_text("z")

        inventory = DirectoryScanner().scan_local(temp_dir)

        assert inventory.paths == ["a.txt", "sub/b.txt", "sub/deeper/c.txt"]

    def test_record_contents(self, temp_dir):
        (temp_dir / "a.txt").write_bytes(b"hello")

        record = DirectoryScanner().scan_local(temp_dir)["a.txt"]

        assert record.size == 5
        assert record.fingerprint == hashlib.sha256(b"hello").hexdigest().upper()
        assert record.verified
        assert record.source == temp_dir / "a.txt"
        assert record.modified == pytest.approx((temp_dir / "a.txt").stat().st_mtime)

    def test_empty_directory(self, temp_dir):
        (temp_dir / "empty").mkdir()
        assert len(DirectoryScanner().scan_local(temp_dir)) == 0

    def test_missing_root(self, temp_dir):
        with pytest.raises(LocalIOError, match="does not exist"):
            DirectoryScanner().scan_local(temp_dir / "missing")

    def test_root_is_a_file(self, temp_dir):
        file_path = temp_dir / "file.txt"
        file_path.write_text("x")
        with pytest.raises(LocalIOError, match="not a directory"):
            DirectoryScanner().scan_local(file_path)

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_symlinked_directory_cycle_is_skipped(self, temp_dir):
        (temp_dir / "sub").mkdir()
        (temp_dir / "sub" / "a.txt").write_text("x")
        os.symlink(temp_dir, temp_dir / "sub" / "loop", target_is_directory=True)

        inventory = DirectoryScanner().scan_local(temp_dir)

        assert inventory.paths == ["sub/a.txt"]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_symlinked_file_is_included(self, temp_dir):
        (temp_dir / "real.txt").write_text("x")
        os.symlink(temp_dir / "real.txt", temp_dir / "link.txt")

        inventory = DirectoryScanner().scan_local(temp_dir)

        assert inventory.paths == ["link.txt", "real.txt"]
        assert inventory["link.txt"].fingerprint == inventory["real.txt"].fingerprint

    @pytest.mark.skipif(
        not hasattr(os, "getuid") or os.getuid() == 0,
        reason="permissions are not enforced for root",
    )
    def test_unreadable_directory_is_fatal(self, temp_dir):
        locked = temp_dir / "locked"
        locked.mkdir()
        (locked / "a.txt").write_text("x")
        locked.chmod(0)
        try:
            with pytest.raises(LocalIOError, match="Cannot read directory"):
                DirectoryScanner().scan_local(temp_dir)
        finally:
            locked.chmod(0o755)

    def test_cancelled_scan_stops(self, temp_dir):
        (temp_dir / "a.txt").write_text("x")
        cancelled = threading.Event()
        cancelled.set()

        with pytest.raises(LocalIOError, match="cancelled"):
            DirectoryScanner().scan_local(temp_dir, cancelled)

    def test_unset_cancel_flag_scans_everything(self, temp_dir):
        (temp_dir / "a.txt").write_text("x")
        (temp_dir / "sub").mkdir()
        (temp_dir / "sub" / "b.txt").write_text("y")

        inventory = DirectoryScanner().scan_local(temp_dir, threading.Event())

        assert inventory.paths == ["a.txt", "sub/b.txt"]


class TestRemoteScanner:
    """Tests for building the remote inventory."""

    @pytest.mark.asyncio
    async def test_scan_whole_zone(self, client, storage):
        storage.add("a.txt", b"x")
        storage.add("docs/b.txt", b"y")
        storage.add("docs/css/site.css", b"z")

        scanner = RemoteScanner(client, policy=_policy(), sleep=_no_sleep)
        inventory = await scanner.scan_remote()

        assert inventory.paths == ["a.txt", "docs/b.txt", "docs/css/site.css"]
        record = inventory["docs/b.txt"]
        assert record.size == 1
        assert record.fingerprint == hashlib.sha256(b"y").hexdigest().upper()
        assert record.verified

    @pytest.mark.asyncio
    async def test_prefix_is_stripped(self, client, storage):
        storage.add("thumper/index.html", b"<html>")
        storage.add("thumper/css/site.css", b"body{}")
        storage.add("other/file.txt", b"not mine")

        scanner = RemoteScanner(client, prefix="/thumper/", sleep=_no_sleep)
        inventory = await scanner.scan_remote()

        assert inventory.paths == ["css/site.css", "index.html"]
        assert ("GET", "other/") not in storage.requests

    @pytest.mark.asyncio
    async def test_missing_prefix_is_empty(self, client, storage):
        storage.add("other/file.txt", b"x")

        scanner = RemoteScanner(client, prefix="docs", sleep=_no_sleep)
        inventory = await scanner.scan_remote()

        assert len(inventory) == 0

    @pytest.mark.asyncio
    async def test_every_directory_is_listed(self, client, storage):
        storage.add("docs/a.txt", b"x")
        storage.add("downloads/big.zip", b"y")
        storage.add("downloads-old.txt", b"z")

        scanner = RemoteScanner(client, sleep=_no_sleep)
        inventory = await scanner.scan_remote()

        assert inventory.paths == ["docs/a.txt", "downloads-old.txt", "downloads/big.zip"]
        assert ("GET", "downloads/") in storage.requests

    @pytest.mark.asyncio
    async def test_lockfile_is_excluded(self, client, storage):
        storage.add(".pybunny.lock", b"2025-01-01")
        storage.add("a.txt", b"x")

        scanner = RemoteScanner(client, exclude=[".pybunny.lock"], sleep=_no_sleep)
        inventory = await scanner.scan_remote()

        assert inventory.paths == ["a.txt"]

    @pytest.mark.asyncio
    async def test_missing_checksums_are_flagged(self, client, storage):
        storage.checksums = False
        storage.add("a.txt", b"abc", modified="2025-04-15T16:52:33")

        scanner = RemoteScanner(client, sleep=_no_sleep)
        inventory = await scanner.scan_remote()

        record = inventory["a.txt"]
        assert not record.verified
        assert record.size == 3
        assert record.fingerprint.startswith("size:3;")
        assert record.modified is not None
        assert not inventory.verified

    @pytest.mark.asyncio
    async def test_transient_listing_failure_is_retried(self, client, storage):
        storage.add("docs/a.txt", b"x")
        storage.fail("GET", "docs/", 503, 502)

        scanner = RemoteScanner(client, policy=_policy(3), sleep=_no_sleep)
        inventory = await scanner.scan_remote()

        assert inventory.paths == ["docs/a.txt"]
        assert storage.calls("GET").count(("GET", "docs/")) == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_fail_the_fetch(self, client, storage):
        storage.add("docs/a.txt", b"x")
        storage.fail("GET", "docs/", 503, 503, 503)

        scanner = RemoteScanner(client, policy=_policy(3), sleep=_no_sleep)
        with pytest.raises(InventoryFetchError):
            await scanner.scan_remote()

    @pytest.mark.asyncio
    async def test_auth_rejection_is_raised_unchanged(self, client, storage):
        storage.fail("GET", "", 401)

        scanner = RemoteScanner(client, policy=_policy(3), sleep=_no_sleep)
        with pytest.raises(AuthError):
            await scanner.scan_remote()

        assert storage.requests == [("GET", "")]

    @pytest.mark.asyncio
    async def test_many_directories_with_single_worker(self, client, storage):
        for i in range(20):
            storage.add(f"dir{i:02d}/file.txt", str(i).encode())

        scanner = RemoteScanner(client, concurrency=1, sleep=_no_sleep)
        inventory = await scanner.scan_remote()

        assert len(inventory) == 20
