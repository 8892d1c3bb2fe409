"""Source index: component records, JSON persistence, and the live index handle."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

STATE_DIRNAME = ".cmplocator"
INDEX_FILENAME = "component-map.json"
CACHE_FILENAME = "scan-cache.json"


def index_path_for(project_root: Path) -> Path:
    """Return the persisted index location for *project_root*."""
    return project_root / STATE_DIRNAME / INDEX_FILENAME


def cache_path_for(project_root: Path) -> Path:
    """Return the persisted scan cache location for *project_root*."""
    return project_root / STATE_DIRNAME / CACHE_FILENAME


@dataclass(frozen=True)
class ComponentRecord:
    """One component class found in a source file."""

    identifier_name: str
    file_path: str
    template_reference: str | None = None
    line: int = 1

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "identifierName": self.identifier_name,
            "filePath": self.file_path,
        }
        if self.template_reference is not None:
            data["templateReference"] = self.template_reference
        data["line"] = self.line
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ComponentRecord:
        return cls(
            identifier_name=str(data["identifierName"]),
            file_path=str(data["filePath"]),
            template_reference=data.get("templateReference"),
            line=int(data.get("line", 1)),
        )


def _records_by_path(
    detail_by_file_path: dict[str, ComponentRecord],
    additional_by_file_path: dict[str, list[ComponentRecord]] | None = None,
) -> dict[str, list[ComponentRecord]]:
    additional = additional_by_file_path or {}
    return {
        path: [record, *additional.get(path, ())]
        for path, record in detail_by_file_path.items()
    }


def rebuild_identifier_map(
    detail_by_file_path: dict[str, ComponentRecord],
    additional_by_file_path: dict[str, list[ComponentRecord]] | None = None,
) -> dict[str, list[str]]:
    """Derive ``identifier -> [file paths]`` from every record of every file.

    Paths keep first-seen order and appear once per identifier. Additional
    records only count for files that have a primary record.
    """
    rebuilt: dict[str, list[str]] = {}
    for file_path, records in _records_by_path(
        detail_by_file_path, additional_by_file_path
    ).items():
        for record in records:
            paths = rebuilt.setdefault(record.identifier_name, [])
            if file_path not in paths:
                paths.append(file_path)
    return rebuilt


def _is_consistent(
    records_by_path: dict[str, list[ComponentRecord]],
    by_identifier: dict[str, list[str]],
) -> bool:
    if not by_identifier:
        return not records_by_path
    names_by_path = {
        path: {record.identifier_name for record in records}
        for path, records in records_by_path.items()
    }
    for identifier, paths in by_identifier.items():
        for path in paths:
            if identifier not in names_by_path.get(path, ()):
                return False
    for path, names in names_by_path.items():
        for name in names:
            if path not in by_identifier.get(name, ()):
                return False
    return True


@dataclass
class SourceIndex:
    """Snapshot of every component record, keyed by absolute file path.

    ``detail_by_file_path`` holds the first component of each file; further
    components declared in the same file live in ``additional_by_file_path``.
    ``file_paths_by_identifier`` is a cache over both; it is rebuilt on access
    whenever it is empty or disagrees with them.
    """

    detail_by_file_path: dict[str, ComponentRecord] = field(default_factory=dict)
    generated_at: str = ""
    additional_by_file_path: dict[str, list[ComponentRecord]] = field(default_factory=dict)
    _by_identifier: dict[str, list[str]] = field(default_factory=dict, repr=False)

    @property
    def file_paths_by_identifier(self) -> dict[str, list[str]]:
        records = _records_by_path(self.detail_by_file_path, self.additional_by_file_path)
        if not _is_consistent(records, self._by_identifier):
            self._by_identifier = rebuild_identifier_map(
                self.detail_by_file_path, self.additional_by_file_path
            )
        return self._by_identifier

    @property
    def component_count(self) -> int:
        extra = sum(
            len(records)
            for path, records in self.additional_by_file_path.items()
            if path in self.detail_by_file_path
        )
        return len(self.detail_by_file_path) + extra

    def file_paths_for(self, identifier: str) -> list[str]:
        """Return candidate file paths for *identifier* (empty when unknown)."""
        return list(self.file_paths_by_identifier.get(identifier, ()))

    def record_for(self, file_path: str, identifier: str | None = None) -> ComponentRecord | None:
        """Record of *file_path*; with *identifier*, the component of that name."""
        primary = self.detail_by_file_path.get(file_path)
        if primary is None or identifier is None or primary.identifier_name == identifier:
            return primary
        for record in self.additional_by_file_path.get(file_path, ()):
            if record.identifier_name == identifier:
                return record
        return primary

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "generatedAt": self.generated_at,
            "detailByFilePath": {
                path: record.to_dict() for path, record in self.detail_by_file_path.items()
            },
            "filePathsByIdentifier": {
                name: list(paths) for name, paths in self.file_paths_by_identifier.items()
            },
        }
        if self.additional_by_file_path:
            data["additionalByFilePath"] = {
                path: [record.to_dict() for record in records]
                for path, records in self.additional_by_file_path.items()
            }
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SourceIndex:
        raw_detail = data.get("detailByFilePath") or {}
        if not isinstance(raw_detail, dict):
            msg = "detailByFilePath must be an object"
            raise ValueError(msg)
        detail = {path: ComponentRecord.from_dict(rec) for path, rec in raw_detail.items()}
        raw_additional = data.get("additionalByFilePath") or {}
        if not isinstance(raw_additional, dict):
            msg = "additionalByFilePath must be an object"
            raise ValueError(msg)
        additional = {
            path: [ComponentRecord.from_dict(rec) for rec in records]
            for path, records in raw_additional.items()
            if isinstance(records, list)
        }
        raw_map = data.get("filePathsByIdentifier") or {}
        by_identifier = (
            {str(k): [str(p) for p in v] for k, v in raw_map.items() if isinstance(v, list)}
            if isinstance(raw_map, dict)
            else {}
        )
        return cls(
            detail_by_file_path=detail,
            generated_at=str(data.get("generatedAt", "")),
            additional_by_file_path=additional,
            _by_identifier=by_identifier,
        )

    @classmethod
    def from_records(cls, records: list[ComponentRecord]) -> SourceIndex:
        """Assemble an index; the first record seen for a file path is primary."""
        detail: dict[str, ComponentRecord] = {}
        additional: dict[str, list[ComponentRecord]] = {}
        for record in records:
            primary = detail.get(record.file_path)
            if primary is None:
                detail[record.file_path] = record
                continue
            extra = additional.setdefault(record.file_path, [])
            if record.identifier_name == primary.identifier_name or any(
                r.identifier_name == record.identifier_name for r in extra
            ):
                logger.debug(
                    "Skipping duplicate %s in %s", record.identifier_name, record.file_path
                )
                continue
            extra.append(record)
        return cls(
            detail_by_file_path=detail,
            generated_at=datetime.now(tz=timezone.utc).isoformat(),
            additional_by_file_path={path: extra for path, extra in additional.items() if extra},
        )


def write_json_atomic(path: Path, data: object) -> None:
    """Write *data* as JSON via a temp file in the same directory, then replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, ensure_ascii=False)
            fh.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def save_index(index: SourceIndex, path: Path) -> None:
    """Persist *index*, replacing any prior snapshot atomically."""
    write_json_atomic(path, index.to_dict())


def load_index(path: Path) -> SourceIndex | None:
    """Load the index at *path*, or ``None`` if it does not exist."""
    if not path.is_file():
        return None
    data = json.loads(path.read_text(encoding="utf-8"))
    return SourceIndex.from_dict(data)


class IndexHandle:
    """Swappable reference to the current immutable index snapshot.

    ``current()`` reloads from disk when the index file changed since the last
    load; the swap happens under a lock so concurrent readers always get a
    complete snapshot. A snapshot that fails to load never replaces a good one.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._index: SourceIndex | None = None
        self._mtime_ns: int | None = None

    @property
    def path(self) -> Path:
        return self._path

    def current(self) -> SourceIndex | None:
        return self._load(force=False)

    def reload(self) -> SourceIndex | None:
        """Re-read the index file now, e.g. right after a rescan finished."""
        return self._load(force=True)

    def _load(self, *, force: bool) -> SourceIndex | None:
        try:
            mtime_ns = self._path.stat().st_mtime_ns
        except OSError:
            return self._index

        with self._lock:
            if not force and self._index is not None and mtime_ns == self._mtime_ns:
                return self._index
            try:
                loaded = load_index(self._path)
            except (OSError, ValueError, KeyError) as exc:
                logger.warning("Failed to load index %s: %s", self._path, exc)
                return self._index
            self._index = loaded
            self._mtime_ns = mtime_ns
            return loaded
