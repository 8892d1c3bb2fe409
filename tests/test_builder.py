"""Tests for cmplocator.index.builder: building, persisting, and rescanning."""

from __future__ import annotations

import json
import os
from typing import TYPE_CHECKING

from cmplocator.index.builder import build, build_index, run_scan
from cmplocator.index.extractor import ExtractedComponent
from cmplocator.index.source_index import cache_path_for, index_path_for, load_index
from cmplocator.infrastructure.config import LocatorConfig
from cmplocator.resolve.resolver import resolve_component

if TYPE_CHECKING:
    from pathlib import Path


def _touch(path: Path, delta_ns: int = 1_000_000_000) -> None:
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + delta_ns))


def _content_without_timestamp(path: Path) -> dict:
    data = json.loads(path.read_text(encoding="utf-8"))
    data.pop("generatedAt")
    return data


class TestBuildIndex:
    def test_indexes_components_with_absolute_paths(self, angular_project: Path) -> None:
        """Records carry absolute file paths and resolved template paths."""
        ts = (angular_project / "src/app/header/header.component.ts").resolve()
        result = build_index([ts])

        record = result.index.record_for(ts.as_posix())
        assert record is not None
        assert record.identifier_name == "HeaderComponent"
        assert record.template_reference == ts.with_suffix(".html").as_posix()
        assert record.line == 7
        assert result.files_scanned == 1
        assert result.errors == []

    def test_failing_file_is_skipped(self, angular_project: Path) -> None:
        """One unparsable file is a warning; the others are still indexed."""
        good = (angular_project / "src/app/header/header.component.ts").resolve()
        bad = (angular_project / "src/app/data.service.ts").resolve()

        def extractor(source: str, extension: str) -> list[ExtractedComponent]:
            if "Injectable" in source:
                msg = "boom"
                raise RuntimeError(msg)
            return [ExtractedComponent("HeaderComponent", None, 1)]

        result = build_index([good, bad], extractor=extractor)
        assert result.files_scanned == 1
        assert result.files_failed == 1
        assert len(result.warnings) == 1
        assert "boom" in result.warnings[0]
        assert result.errors == []
        assert result.index.file_paths_for("HeaderComponent") == [good.as_posix()]

    def test_all_failing_is_an_error(self, tmp_path: Path) -> None:
        missing = tmp_path / "missing.component.ts"
        result = build_index([missing])
        assert result.files_failed == 1
        assert result.errors == ["No files could be scanned (1 failed)"]

    def test_build_persists(self, angular_project: Path) -> None:
        path = angular_project / ".cmplocator" / "component-map.json"
        index = build(["src/**/*.ts"], ["**/*.spec.ts"], angular_project, path)
        loaded = load_index(path)
        assert loaded is not None
        assert loaded.detail_by_file_path == index.detail_by_file_path
        assert sorted(loaded.file_paths_by_identifier) == ["HeaderComponent", "SettingsComponent"]


class TestRunScan:
    def test_first_scan_writes_index_and_cache(self, angular_project: Path) -> None:
        result = run_scan(angular_project, LocatorConfig())

        assert not result.nothing_changed
        assert result.components_indexed == 2
        assert result.files_found == 3
        assert index_path_for(angular_project).is_file()
        assert cache_path_for(angular_project).is_file()

    def test_unchanged_rescan_is_byte_identical(self, angular_project: Path) -> None:
        """A second scan over unchanged files leaves the index untouched."""
        config = LocatorConfig()
        run_scan(angular_project, config)
        before = index_path_for(angular_project).read_bytes()

        result = run_scan(angular_project, config)

        assert result.nothing_changed
        assert index_path_for(angular_project).read_bytes() == before

    def test_touch_then_revert_rebuilds_same_content(self, angular_project: Path) -> None:
        """Touching one file triggers a rebuild whose content matches the original."""
        config = LocatorConfig()
        run_scan(angular_project, config)
        before = _content_without_timestamp(index_path_for(angular_project))

        target = angular_project / "src/app/header/header.component.ts"
        _touch(target)
        result = run_scan(angular_project, config)
        assert not result.nothing_changed

        _touch(target, -1_000_000_000)
        result = run_scan(angular_project, config)
        assert not result.nothing_changed
        assert _content_without_timestamp(index_path_for(angular_project)) == before

    def test_missing_index_forces_rebuild(self, angular_project: Path) -> None:
        config = LocatorConfig()
        run_scan(angular_project, config)
        index_path_for(angular_project).unlink()

        result = run_scan(angular_project, config)
        assert not result.nothing_changed
        assert index_path_for(angular_project).is_file()

    def test_force_rebuilds(self, angular_project: Path) -> None:
        config = LocatorConfig()
        run_scan(angular_project, config)
        assert not run_scan(angular_project, config, force=True).nothing_changed

    def test_total_failure_leaves_cache_dirty(self, angular_project: Path) -> None:
        """When every file fails, the next scan retries instead of trusting the cache."""

        def extractor(source: str, extension: str) -> list[ExtractedComponent]:
            msg = "parser unavailable"
            raise RuntimeError(msg)

        result = run_scan(angular_project, LocatorConfig(), extractor=extractor)
        assert result.errors
        assert not cache_path_for(angular_project).exists()
        assert not run_scan(angular_project, LocatorConfig()).nothing_changed

    def test_failed_scan_keeps_previous_index(self, angular_project: Path) -> None:
        """A rescan in which every file fails leaves the last good map in place."""
        config = LocatorConfig()
        run_scan(angular_project, config)
        index_path = index_path_for(angular_project)
        before = _content_without_timestamp(index_path)
        _touch(angular_project / "src" / "app" / "header" / "header.component.ts")

        def broken(source: str, extension: str) -> list[ExtractedComponent]:
            msg = "parser unavailable"
            raise RuntimeError(msg)

        result = run_scan(angular_project, config, extractor=broken)

        assert result.errors
        assert _content_without_timestamp(index_path) == before
        assert not run_scan(angular_project, config).nothing_changed
        assert _content_without_timestamp(index_path) == before

    def test_components_sharing_a_file_all_resolve(self, tmp_path: Path) -> None:
        """Every decorated class in one file can be located by name."""
        page = tmp_path / "src" / "app" / "page" / "page.component.ts"
        page.parent.mkdir(parents=True)
        page.write_text(
            "@Component({ templateUrl: './page.component.html' })\n"
            "export class PageComponent {}\n"
            "\n"
            "@Component({ template: '<p>dialog</p>' })\n"
            "export class DialogComponent {}\n",
            encoding="utf-8",
        )

        result = run_scan(tmp_path, LocatorConfig())

        assert result.components_indexed == 2
        index = load_index(index_path_for(tmp_path))
        assert index is not None
        expected = page.resolve().as_posix()
        page_record = resolve_component(index, "PageComponent", "/")
        dialog_record = resolve_component(index, "DialogComponent", "/")
        assert page_record is not None
        assert dialog_record is not None
        assert page_record.file_path == expected
        assert page_record.line == 2
        assert dialog_record.identifier_name == "DialogComponent"
        assert dialog_record.file_path == expected
        assert dialog_record.line == 5
        assert dialog_record.template_reference is None

    def test_workspace_root_and_globs_from_config(self, tmp_path: Path) -> None:
        """Globs are evaluated relative to the configured workspace root."""
        web = tmp_path / "web"
        (web / "lib").mkdir(parents=True)
        (web / "lib" / "w.component.ts").write_text(
            "@Component({ templateUrl: './w.html' })\nexport class WComponent {}\n",
            encoding="utf-8",
        )
        config = LocatorConfig(workspace_root="web", include_globs=("lib/*.ts",))

        result = run_scan(tmp_path, config)

        assert result.components_indexed == 1
        index = load_index(index_path_for(tmp_path))
        assert index is not None
        assert index.file_paths_for("WComponent") == [(web / "lib" / "w.component.ts").resolve().as_posix()]
