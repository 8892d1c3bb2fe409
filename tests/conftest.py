"""Shared test fixtures for cmplocator."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path


HEADER_COMPONENT = """\
import { Component } from '@angular/core';

@Component({
  selector: 'app-header',
  templateUrl: './header.component.html',
})
export class HeaderComponent {}
"""

SETTINGS_COMPONENT = """\
import { Component } from '@angular/core';

@Component({
  selector: 'app-settings',
  templateUrl: './settings.component.html',
})
export class SettingsComponent {
  save(): void {}
}
"""

PLAIN_SERVICE = """\
import { Injectable } from '@angular/core';

@Injectable({ providedIn: 'root' })
export class DataService {}
"""


def write_file(path: Path, content: str = "") -> Path:
    """Create parent dirs and write content to a file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture()
def angular_project(tmp_path: Path) -> Path:
    """Create a small Angular workspace with two components and a service."""
    app = tmp_path / "src" / "app"
    write_file(app / "header" / "header.component.ts", HEADER_COMPONENT)
    write_file(app / "header" / "header.component.html", "<header>Title</header>\n")
    write_file(app / "dashboard" / "settings" / "settings.component.ts", SETTINGS_COMPONENT)
    write_file(
        app / "dashboard" / "settings" / "settings.component.html",
        "<div>\n  <button id=\"save-btn\">Save</button>\n</div>\n",
    )
    write_file(app / "data.service.ts", PLAIN_SERVICE)
    write_file(app / "header" / "header.component.spec.ts", HEADER_COMPONENT)
    write_file(tmp_path / "node_modules" / "lib" / "src" / "x.component.ts", HEADER_COMPONENT)
    return tmp_path
