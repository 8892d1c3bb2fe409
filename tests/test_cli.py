"""Tests for the cmplocator CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING
from unittest.mock import patch

from click.testing import CliRunner

from cmplocator import __version__
from cmplocator.index.source_index import (
    ComponentRecord,
    IndexHandle,
    SourceIndex,
    index_path_for,
    save_index,
)
from cmplocator.infrastructure.config import config_path_for
from cmplocator.infrastructure.watcher import RebuildOutcome
from cmplocator.services.cli import _reload_on_success, main

if TYPE_CHECKING:
    from pathlib import Path


def _scan(project: Path) -> None:
    result = CliRunner().invoke(main, ["scan", "--project", str(project)])
    assert result.exit_code == 0, result.output


class TestVersion:
    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestInit:
    def test_writes_config(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["init", "--project", str(tmp_path)])
        assert result.exit_code == 0, result.output
        assert config_path_for(tmp_path).is_file()

    def test_refuses_overwrite_without_force(self, tmp_path: Path) -> None:
        runner = CliRunner()
        runner.invoke(main, ["init", "--project", str(tmp_path)])
        result = runner.invoke(main, ["init", "--project", str(tmp_path)])
        assert result.exit_code == 1
        assert "already exists" in result.output

        result = runner.invoke(main, ["init", "--project", str(tmp_path), "--force"])
        assert result.exit_code == 0


class TestScan:
    def test_scan_reports_counts(self, angular_project: Path) -> None:
        result = CliRunner().invoke(main, ["scan", "--project", str(angular_project)])
        assert result.exit_code == 0, result.output
        assert "Files:      3" in result.output
        assert "Components: 2" in result.output
        assert index_path_for(angular_project).is_file()

    def test_second_scan_is_noop(self, angular_project: Path) -> None:
        _scan(angular_project)
        result = CliRunner().invoke(main, ["scan", "--project", str(angular_project)])
        assert result.exit_code == 0
        assert "No changes detected" in result.output

    def test_bad_config_exits_1(self, angular_project: Path) -> None:
        path = config_path_for(angular_project)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("port: nope\n", encoding="utf-8")
        result = CliRunner().invoke(main, ["scan", "--project", str(angular_project)])
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_write_failure_exits_1(self, angular_project: Path) -> None:
        with patch("cmplocator.index.builder.save_index", side_effect=OSError("disk full")):
            result = CliRunner().invoke(main, ["scan", "--project", str(angular_project)])
        assert result.exit_code == 1
        assert "disk full" in result.output


class TestLocate:
    def test_locate_text(self, angular_project: Path) -> None:
        _scan(angular_project)
        result = CliRunner().invoke(
            main, ["locate", "SettingsComponent", "--project", str(angular_project)]
        )
        assert result.exit_code == 0, result.output
        assert "settings.component.ts:7" in result.output
        assert "settings.component.html" in result.output

    def test_locate_json_with_underscore(self, angular_project: Path) -> None:
        _scan(angular_project)
        result = CliRunner().invoke(
            main,
            ["locate", "_HeaderComponent", "--json", "--project", str(angular_project)],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["identifierName"] == "HeaderComponent"
        assert data["filePath"].endswith("header/header.component.ts")

    def test_locate_unknown(self, angular_project: Path) -> None:
        _scan(angular_project)
        result = CliRunner().invoke(main, ["locate", "Nope", "--project", str(angular_project)])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_locate_without_index(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["locate", "Foo", "--project", str(tmp_path)])
        assert result.exit_code == 1
        assert "cmplocator scan" in result.output


class TestSearch:
    def test_prints_best_line(self, angular_project: Path) -> None:
        template = angular_project / "src/app/dashboard/settings/settings.component.html"
        result = CliRunner().invoke(
            main,
            ["search", str(template), 'id="save-btn"', "save", "--project", str(angular_project)],
        )
        assert result.exit_code == 0, result.output
        assert result.output.strip().endswith(":2")


class TestOpen:
    def test_open_uses_dispatcher(self, tmp_path: Path) -> None:
        target = tmp_path / "a.ts"
        with patch("cmplocator.infrastructure.editor.subprocess.Popen") as popen:
            result = CliRunner().invoke(
                main,
                ["open", str(target), "--line", "3", "--project", str(tmp_path)],
                env={"EDITOR_CMD": "ed"},
            )
        assert result.exit_code == 0, result.output
        assert f"{target.resolve()}:3:1" in result.output
        assert popen.call_args.args[0] == ["ed", f"{target.resolve()}:3:1"]

    def test_open_failure_exits_1(self, tmp_path: Path) -> None:
        with patch(
            "cmplocator.infrastructure.editor.EditorDispatcher.open", return_value=False
        ):
            result = CliRunner().invoke(main, ["open", "x.ts", "--project", str(tmp_path)])
        assert result.exit_code == 1
        assert "EDITOR_CMD" in result.output


class TestEditors:
    def test_lists_chain(self, tmp_path: Path) -> None:
        with patch("cmplocator.infrastructure.editor.shutil.which", return_value=None):
            result = CliRunner().invoke(
                main, ["editors", "--project", str(tmp_path)], env={"EDITOR_CMD": ""}
            )
        assert result.exit_code == 0, result.output
        assert "No editor CLI found" in result.output
        assert "Launch chain:" in result.output


class TestReloadOnSuccess:
    def _handle(self, tmp_path: Path) -> tuple[Path, IndexHandle]:
        path = tmp_path / "map.json"
        save_index(SourceIndex.from_records([ComponentRecord("A", "/w/a.ts")]), path)
        handle = IndexHandle(path)
        handle.current()
        save_index(SourceIndex.from_records([ComponentRecord("B", "/w/b.ts")]), path)
        return path, handle

    def test_successful_rescan_reloads_map(self, tmp_path: Path) -> None:
        """The served map switches to the new file as soon as a rescan succeeds."""
        _path, handle = self._handle(tmp_path)
        with patch.object(handle, "reload", wraps=handle.reload) as reload:
            _reload_on_success(handle)(RebuildOutcome(reason="change", ok=True))
        reload.assert_called_once_with()
        current = handle.current()
        assert current is not None
        assert current.file_paths_for("B") == ["/w/b.ts"]

    def test_failed_rescan_does_not_reload(self, tmp_path: Path) -> None:
        _path, handle = self._handle(tmp_path)
        with patch.object(handle, "reload") as reload:
            _reload_on_success(handle)(RebuildOutcome(reason="change", ok=False))
        reload.assert_not_called()
