"""Tests for the sync data model."""

import dataclasses

import pytest

from pybunny.exceptions import ErrorKind
from pybunny.sync.models import (
    ChangePlan,
    FailedItem,
    FileRecord,
    Inventory,
    SyncReport,
    WorkKind,
)


def _record(path: str, fingerprint: str = "AA", size: int = 1) -> FileRecord:
    return FileRecord(relative_path=path, size=size, fingerprint=fingerprint)


class TestFileRecord:
    """Tests for FileRecord."""

    def test_path_is_normalized(self):
        assert _record("/docs/./index.html").relative_path == "docs/index.html"

    def test_empty_path_rejected(self):
        with pytest.raises(ValueError):
            _record("/")

    def test_parent_segments_rejected(self):
        with pytest.raises(ValueError):
            _record("../secret")

    def test_degraded_fingerprint_never_looks_like_a_checksum(self):
        fingerprint = FileRecord.degraded_fingerprint(10, 1700000000.0)
        assert fingerprint == "size:10;modified:1700000000.0"
        assert not all(c in "0123456789ABCDEF" for c in fingerprint)

    def test_source_is_not_compared(self, temp_dir):
        a = FileRecord("a.txt", 1, "AA", source=temp_dir / "a.txt")
        b = FileRecord("a.txt", 1, "AA")
        assert a == b


class TestInventory:
    """Tests for Inventory."""

    def test_sorted_by_path(self):
        inventory = Inventory([_record("c.txt"), _record("a.txt"), _record("b/x.txt")])
        assert inventory.paths == ["a.txt", "b/x.txt", "c.txt"]
        assert [r.relative_path for r in inventory] == inventory.paths

    def test_duplicate_paths_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            Inventory([_record("a.txt"), _record("/a.txt")])

    def test_lookup(self):
        inventory = Inventory([_record("a.txt", "AA")])
        assert "a.txt" in inventory
        assert "b.txt" not in inventory
        assert inventory["a.txt"].fingerprint == "AA"
        assert inventory.get("b.txt") is None

    def test_sizes_and_verification(self):
        inventory = Inventory(
            [
                _record("a.txt", size=3),
                FileRecord("b.txt", 4, "size:4;modified:None", verified=False),
            ]
        )
        assert len(inventory) == 2
        assert inventory.total_size == 7
        assert not inventory.verified
        assert Inventory([_record("a.txt")]).verified


class TestChangePlan:
    """Tests for ChangePlan."""

    def test_uploads_and_deletions_must_be_disjoint(self):
        with pytest.raises(ValueError, match="both uploaded and deleted"):
            ChangePlan(uploads=("a.txt",), deletions=("a.txt",))

    def test_is_empty(self):
        assert ChangePlan(unchanged_count=4).is_empty
        assert not ChangePlan(deletions=("a.txt",)).is_empty

    def test_total_operations(self):
        plan = ChangePlan(uploads=("a", "b"), deletions=("c",), unchanged_count=9)
        assert plan.total_operations == 3


class TestSyncReport:
    """Tests for SyncReport."""

    def test_ok(self):
        assert SyncReport(uploaded=2).ok

    def test_failures_are_not_ok(self):
        report = SyncReport(failed=(FailedItem("a.txt", ErrorKind.TRANSIENT),))
        assert not report.ok

    def test_cancelled_is_not_ok(self):
        assert not SyncReport(cancelled=True).ok

    def test_immutable(self):
        report = SyncReport()
        with pytest.raises(dataclasses.FrozenInstanceError):
            report.uploaded = 3  # type: ignore[misc]

    def test_to_dict(self):
        report = SyncReport(
            uploaded=1,
            deleted=2,
            unchanged=3,
            failed=(
                FailedItem("x.txt", ErrorKind.AUTH, WorkKind.UPLOAD, "denied"),
            ),
        )
        assert report.to_dict() == {
            "uploaded": 1,
            "deleted": 2,
            "unchanged": 3,
            "failed": [
                {
                    "path": "x.txt",
                    "error_kind": "AuthError",
                    "kind": "upload",
                    "message": "denied",
                }
            ],
            "cancelled": False,
            "dry_run": False,
        }
