"""Include/exclude glob handling for the component scan."""

from __future__ import annotations

import fnmatch
import re
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

_BRACE_RE = re.compile(r"\{([^{}]*)\}")
_WILDCARD_RE = re.compile(r"[*?\[\]{]")


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternatives: ``*.{ts,tsx}`` -> ``[*.ts, *.tsx]``."""
    match = _BRACE_RE.search(pattern)
    if match is None:
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end() :]
    expanded: list[str] = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(f"{head}{option}{tail}"))
    return expanded


def _to_posix(path: str) -> str:
    return path.replace("\\", "/")


def _needle(pattern: str) -> str:
    """Static text of a glob once its ``*`` wildcards are removed."""
    return _to_posix(pattern).replace("**", "").replace("*", "")


def is_excluded(file_path: Path, exclude_globs: Iterable[str], workspace_root: Path) -> bool:
    """Check whether *file_path* matches any exclude glob.

    Relative globs are matched with ``fnmatch`` against the workspace-relative
    POSIX path (rooted with a leading ``/`` so ``**/dir/**`` also matches a
    top-level ``dir``); absolute globs against the absolute path. A glob with
    no wildcards besides ``*`` also matches when its static needle occurs in
    the rooted relative path.
    """
    absolute = file_path.as_posix()
    try:
        relative = file_path.relative_to(workspace_root).as_posix()
    except ValueError:
        relative = absolute.lstrip("/")
    rooted = f"/{relative}"

    for raw in exclude_globs:
        for pattern in expand_braces(_to_posix(raw)):
            if Path(pattern).is_absolute():
                if fnmatch.fnmatchcase(absolute, pattern):
                    return True
                continue
            if fnmatch.fnmatchcase(relative, pattern) or fnmatch.fnmatchcase(rooted, pattern):
                return True
            needle = _needle(pattern)
            if needle.strip("/") and not _WILDCARD_RE.search(needle) and needle in rooted:
                return True
    return False


def _glob(pattern: str, workspace_root: Path) -> Iterable[Path]:
    path = Path(pattern)
    if path.is_absolute():
        anchor = Path(path.anchor)
        return anchor.glob(str(path.relative_to(anchor)))
    return workspace_root.glob(pattern)


def discover_files(
    include_globs: Iterable[str],
    exclude_globs: Iterable[str],
    workspace_root: Path,
) -> list[Path]:
    """Expand include globs under *workspace_root* and drop excluded files.

    Returns sorted, de-duplicated absolute paths of regular files.
    """
    root = workspace_root.resolve()
    excludes = list(exclude_globs)
    found: set[Path] = set()

    for raw in include_globs:
        for pattern in expand_braces(_to_posix(raw)):
            for candidate in _glob(pattern, root):
                if not candidate.is_file():
                    continue
                resolved = candidate.resolve()
                if is_excluded(resolved, excludes, root):
                    continue
                found.add(resolved)

    return sorted(found)


def glob_base_dir(pattern: str) -> str:
    """Return the static directory prefix of *pattern* (before any wildcard)."""
    pattern = _to_posix(pattern)
    match = _WILDCARD_RE.search(pattern)
    if match is None:
        return pattern
    prefix = pattern[: match.start()]
    if prefix.endswith("/"):
        return prefix[:-1]
    parent = prefix.rsplit("/", 1)[0] if "/" in prefix else ""
    return parent


def watch_roots(include_globs: Iterable[str], workspace_root: Path) -> list[Path]:
    """Existing directories that cover every include glob, de-duplicated.

    Falls back to the workspace root when no glob base exists yet.
    """
    roots: dict[str, Path] = {}
    for pattern in include_globs:
        base = glob_base_dir(pattern)
        candidate = (workspace_root / base).resolve() if base else workspace_root.resolve()
        if candidate.is_dir():
            roots[str(candidate)] = candidate
    if not roots and workspace_root.is_dir():
        return [workspace_root.resolve()]
    return list(roots.values())
