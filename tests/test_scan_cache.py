"""Tests for cmplocator.index.scan_cache: fingerprints and the rebuild decision."""

from __future__ import annotations

import json
import os
from typing import TYPE_CHECKING

from cmplocator.index.scan_cache import commit, fingerprint, load_cache, should_rebuild

if TYPE_CHECKING:
    from pathlib import Path


def _touch(path: Path, delta_ns: int = 1_000_000_000) -> None:
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + delta_ns))


class TestFingerprint:
    def test_records_mtime_millis(self, tmp_path: Path) -> None:
        path = tmp_path / "a.ts"
        path.write_text("x", encoding="utf-8")
        stats = fingerprint([path])
        assert stats == {path.as_posix(): path.stat().st_mtime_ns / 1_000_000}

    def test_skips_vanished_files(self, tmp_path: Path) -> None:
        """A file deleted between discovery and stat is left out."""
        assert fingerprint([tmp_path / "gone.ts"]) == {}


class TestShouldRebuild:
    def test_missing_index_forces_rebuild(self) -> None:
        assert should_rebuild({"a": 1.0}, {"a": 1.0}, index_exists=False)

    def test_identical_is_clean(self) -> None:
        assert not should_rebuild({"a": 1.0, "b": 2.0}, {"b": 2.0, "a": 1.0}, index_exists=True)

    def test_changed_mtime(self) -> None:
        assert should_rebuild({"a": 1.5}, {"a": 1.0}, index_exists=True)

    def test_added_file(self) -> None:
        assert should_rebuild({"a": 1.0, "b": 2.0}, {"a": 1.0}, index_exists=True)

    def test_removed_file(self) -> None:
        assert should_rebuild({"a": 1.0}, {"a": 1.0, "b": 2.0}, index_exists=True)

    def test_renamed_file_same_count(self) -> None:
        assert should_rebuild({"a": 1.0, "c": 2.0}, {"a": 1.0, "b": 2.0}, index_exists=True)

    def test_touching_one_file_flips_decision(self, tmp_path: Path) -> None:
        """Changing the mtime of exactly one file makes the cache dirty."""
        files = []
        for name in ("a.ts", "b.ts", "c.ts"):
            path = tmp_path / name
            path.write_text(name, encoding="utf-8")
            files.append(path)
        previous = fingerprint(files)
        assert not should_rebuild(fingerprint(files), previous, index_exists=True)

        _touch(files[1])
        assert should_rebuild(fingerprint(files), previous, index_exists=True)


class TestPersistence:
    def test_missing_cache_is_empty(self, tmp_path: Path) -> None:
        assert load_cache(tmp_path / "scan-cache.json") == {}

    def test_malformed_cache_is_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "scan-cache.json"
        path.write_text("[1, 2", encoding="utf-8")
        assert load_cache(path) == {}

    def test_non_numeric_entries_dropped(self, tmp_path: Path) -> None:
        path = tmp_path / "scan-cache.json"
        path.write_text(json.dumps({"a": 1, "b": "x", "c": True}), encoding="utf-8")
        assert load_cache(path) == {"a": 1.0}

    def test_commit_then_load(self, tmp_path: Path) -> None:
        path = tmp_path / ".cmplocator" / "scan-cache.json"
        commit(path, {"/w/a.ts": 123.5})
        assert load_cache(path) == {"/w/a.ts": 123.5}
