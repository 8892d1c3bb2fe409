"""Scan cache: per-file mtime fingerprints that decide whether to rebuild."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from cmplocator.index.source_index import write_json_atomic

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

logger = logging.getLogger(__name__)

ScanCache = dict[str, float]


def fingerprint(files: Iterable[Path]) -> ScanCache:
    """Return ``{absolute path: mtime epoch-millis}`` for each readable file."""
    stats: ScanCache = {}
    for path in files:
        try:
            stats[path.as_posix()] = path.stat().st_mtime_ns / 1_000_000
        except OSError:
            # Deleted between discovery and stat.
            continue
    return stats


def should_rebuild(current: ScanCache, previous: ScanCache, *, index_exists: bool) -> bool:
    """Decide whether the index must be rebuilt.

    Clean only when the file sets are identical, every timestamp matches,
    and a persisted index exists.
    """
    if not index_exists:
        return True
    if len(current) != len(previous):
        return True
    for path, mtime in current.items():
        if previous.get(path) != mtime:
            return True
    return any(path not in current for path in previous)


def load_cache(path: Path) -> ScanCache:
    """Load the cache at *path*; a missing or malformed cache is empty."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable scan cache %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        return {}
    cache: ScanCache = {}
    for key, value in data.items():
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            cache[str(key)] = float(value)
    return cache


def commit(path: Path, current: ScanCache) -> ScanCache:
    """Overwrite the cache with *current*; call only after the index is written."""
    write_json_atomic(path, current)
    return dict(current)
