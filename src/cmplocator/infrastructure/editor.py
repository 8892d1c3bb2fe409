"""Open dispatcher: launch an external editor at a file position.

The launch chain is an ordered list of strategies (environment override,
preferred editor, fallback editor); the first one that spawns successfully
wins. Editors whose CLI is on ``PATH`` get a precise ``path:line:col``
invocation; otherwise the macOS application is opened on the file alone.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

logger = logging.getLogger(__name__)

OVERRIDE_ENV = "EDITOR_CMD"
PREFERRED_ENV = "LAUNCH_EDITOR"
DEFAULT_PREFERRED = "cursor"
DEFAULT_FALLBACK = "code"

Command = list[str]


@dataclass(frozen=True)
class OpenRequest:
    """A file position to open; line and column are 1-based."""

    file_path: str
    line: int = 1
    column: int = 1
    search_clues: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.file_path:
            msg = "file_path is required"
            raise ValueError(msg)
        if self.line < 1 or self.column < 1:
            msg = f"line and column must be >= 1, got {self.line}:{self.column}"
            raise ValueError(msg)

    @property
    def target(self) -> str:
        return f"{self.file_path}:{self.line}:{self.column}"


@dataclass(frozen=True)
class EditorProfile:
    """How to launch one editor, with and without its CLI."""

    name: str
    cli: str
    mac_app: str
    line_flags: bool = False

    def cli_command(self, request: OpenRequest) -> Command:
        if self.line_flags:
            return [
                self.cli,
                request.file_path,
                "--line",
                str(request.line),
                "--column",
                str(request.column),
            ]
        return [self.cli, "--goto", request.target]

    def app_command(self, request: OpenRequest) -> Command:
        return ["open", "-a", self.mac_app, request.file_path]


EDITOR_PROFILES: dict[str, EditorProfile] = {
    "cursor": EditorProfile("cursor", "cursor", "Cursor"),
    "code": EditorProfile("code", "code", "Visual Studio Code"),
    "webstorm": EditorProfile("webstorm", "webstorm", "WebStorm", line_flags=True),
}


class CliLookup:
    """Caches whether an editor CLI is on ``PATH``."""

    def __init__(self, which: Callable[[str], str | None] | None = None) -> None:
        self._which = which or shutil.which
        self._cache: dict[str, bool] = {}

    def __call__(self, cli: str) -> bool:
        if cli not in self._cache:
            found = self._which(cli) is not None
            self._cache[cli] = found
            if found:
                logger.info("%s CLI found, using precise line navigation", cli)
            else:
                logger.info("%s CLI not found, opening the application instead", cli)
        return self._cache[cli]


class LaunchStrategy(Protocol):
    """One step of the launch chain."""

    label: str

    def command(self, request: OpenRequest) -> Command | None:
        """Return the argv to spawn, or ``None`` when this step does not apply."""
        ...


@dataclass(frozen=True)
class OverrideStrategy:
    """Run a user-supplied command line with the target appended."""

    command_line: str
    label: str = OVERRIDE_ENV

    def command(self, request: OpenRequest) -> Command | None:
        parts = shlex.split(self.command_line)
        if not parts:
            return None
        return [*parts, request.target]


@dataclass(frozen=True)
class EditorStrategy:
    """Launch a known editor through its CLI if present, else its app."""

    editor: str
    has_cli: Callable[[str], bool]

    @property
    def label(self) -> str:
        return self.editor

    def command(self, request: OpenRequest) -> Command | None:
        profile = EDITOR_PROFILES.get(self.editor)
        if profile is None:
            logger.warning("Unknown editor %r, skipping", self.editor)
            return None
        if self.has_cli(profile.cli):
            return profile.cli_command(request)
        return profile.app_command(request)


def spawn_detached(argv: Sequence[str]) -> subprocess.Popen[bytes]:
    """Start *argv* in its own session without waiting for it."""
    return subprocess.Popen(  # noqa: S603 - argv comes from config/env
        list(argv),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )


def detect_editors(has_cli: Callable[[str], bool]) -> list[str]:
    """Known editors whose CLI is available, in preference order."""
    return [name for name, profile in EDITOR_PROFILES.items() if has_cli(profile.cli)]


def choose_editors(
    editor: str | None,
    fallback_editor: str | None,
    *,
    detected: Sequence[str],
    env: Mapping[str, str],
) -> tuple[str, str]:
    """Resolve ``(preferred, fallback)`` editor names.

    Preferred: ``LAUNCH_EDITOR``, then config, then first detected CLI, then
    cursor. Fallback: config, then second detected CLI, then code.
    """
    preferred = (
        env.get(PREFERRED_ENV, "").strip()
        or editor
        or (detected[0] if detected else DEFAULT_PREFERRED)
    )
    fallback = fallback_editor or (detected[1] if len(detected) > 1 else DEFAULT_FALLBACK)
    return preferred, fallback


class EditorDispatcher:
    """Walk the launch chain until one strategy spawns successfully."""

    def __init__(
        self,
        strategies: Sequence[LaunchStrategy],
        *,
        spawn: Callable[[Sequence[str]], object] = spawn_detached,
    ) -> None:
        self._strategies = list(strategies)
        self._spawn = spawn

    @property
    def strategies(self) -> list[LaunchStrategy]:
        return list(self._strategies)

    @classmethod
    def from_settings(
        cls,
        editor: str | None = None,
        fallback_editor: str | None = None,
        *,
        env: Mapping[str, str] | None = None,
        has_cli: Callable[[str], bool] | None = None,
        spawn: Callable[[Sequence[str]], object] = spawn_detached,
    ) -> EditorDispatcher:
        env = os.environ if env is None else env
        has_cli = has_cli or CliLookup()
        preferred, fallback = choose_editors(
            editor, fallback_editor, detected=detect_editors(has_cli), env=env
        )

        strategies: list[LaunchStrategy] = []
        override = env.get(OVERRIDE_ENV, "").strip()
        if override:
            strategies.append(OverrideStrategy(override))
        strategies.append(EditorStrategy(preferred, has_cli))
        if fallback != preferred:
            strategies.append(EditorStrategy(fallback, has_cli))
        return cls(strategies, spawn=spawn)

    def open(self, request: OpenRequest) -> bool:
        """Launch the first working strategy; ``False`` once the chain is exhausted."""
        for strategy in self._strategies:
            try:
                argv = strategy.command(request)
                if argv is None:
                    continue
                self._spawn(argv)
            except (OSError, ValueError, subprocess.SubprocessError) as exc:
                logger.warning("%s failed: %s", strategy.label, exc)
                continue
            logger.info("Opened %s via %s", request.target, strategy.label)
            return True
        logger.error("No editor could open %s", request.target)
        return False
