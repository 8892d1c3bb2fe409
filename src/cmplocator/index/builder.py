"""Index builder: discover source files, extract components, persist the map."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from cmplocator.index.extractor import ExtractedComponent, extract_components
from cmplocator.index.globs import discover_files
from cmplocator.index.scan_cache import commit, fingerprint, load_cache, should_rebuild
from cmplocator.index.source_index import (
    ComponentRecord,
    SourceIndex,
    cache_path_for,
    index_path_for,
    save_index,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cmplocator.infrastructure.config import LocatorConfig

logger = logging.getLogger(__name__)

# (source text, file extension) -> components declared in that text.
Extractor = Callable[[str, str], list[ExtractedComponent]]


@dataclass
class BuildResult:
    """Index assembled from a set of files, plus per-file diagnostics."""

    index: SourceIndex
    files_scanned: int = 0
    files_failed: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class ScanResult:
    """Summary of a scan run."""

    files_found: int = 0
    files_scanned: int = 0
    files_failed: int = 0
    components_indexed: int = 0
    nothing_changed: bool = False
    index_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _resolve_template(file_path: Path, reference: str | None) -> str | None:
    if not reference:
        return None
    return Path(os.path.normpath(file_path.parent / reference)).as_posix()


def build_index(
    files: Iterable[Path],
    *,
    extractor: Extractor = extract_components,
) -> BuildResult:
    """Extract components from *files* into a fresh :class:`SourceIndex`.

    A file that cannot be read or parsed is skipped with a warning; the rest
    of the scan continues.
    """
    records: list[ComponentRecord] = []
    warnings: list[str] = []
    scanned = 0
    failed = 0

    for file_path in files:
        absolute = file_path.resolve()
        try:
            source = absolute.read_text(encoding="utf-8")
            extracted = extractor(source, absolute.suffix)
        except Exception as exc:  # noqa: BLE001
            failed += 1
            logger.warning("Skipping %s: %s", absolute, exc)
            warnings.append(f"{absolute.as_posix()}: {exc}")
            continue

        scanned += 1
        for component in extracted:
            records.append(
                ComponentRecord(
                    identifier_name=component.identifier_name,
                    file_path=absolute.as_posix(),
                    template_reference=_resolve_template(absolute, component.template_reference),
                    line=component.line,
                )
            )

    result = BuildResult(
        index=SourceIndex.from_records(records),
        files_scanned=scanned,
        files_failed=failed,
        warnings=warnings,
    )
    if failed and not scanned:
        result.errors.append(f"No files could be scanned ({failed} failed)")
    return result


def build(
    include_globs: Iterable[str],
    exclude_globs: Iterable[str],
    workspace_root: Path,
    index_path: Path | None = None,
    *,
    extractor: Extractor = extract_components,
) -> SourceIndex:
    """Discover and extract; also persist when *index_path* is given."""
    files = discover_files(include_globs, exclude_globs, workspace_root)
    result = build_index(files, extractor=extractor)
    if index_path is not None:
        save_index(result.index, index_path)
    return result.index


def run_scan(
    project_root: Path,
    config: LocatorConfig,
    *,
    force: bool = False,
    extractor: Extractor = extract_components,
) -> ScanResult:
    """Rebuild the component map if any source file changed.

    The scan cache is committed only after the index has been written, so a
    clean cache always implies an up-to-date index. A scan in which no file
    could be extracted never replaces an existing index. Write failures
    propagate.

    Parameters
    ----------
    project_root:
        Directory holding ``.cmplocator/``.
    config:
        Scan globs and workspace root.
    force:
        Rebuild even when the cache says nothing changed.
    """
    index_path = index_path_for(project_root)
    cache_path = cache_path_for(project_root)
    workspace_root = config.workspace_path(project_root)

    files = discover_files(config.include_globs, config.exclude_globs, workspace_root)
    current = fingerprint(files)
    result = ScanResult(files_found=len(files), index_path=index_path)

    if not force and not should_rebuild(
        current, load_cache(cache_path), index_exists=index_path.is_file()
    ):
        logger.debug("Scan cache clean, %d files unchanged", len(files))
        result.nothing_changed = True
        return result

    built = build_index(files, extractor=extractor)
    result.files_scanned = built.files_scanned
    result.files_failed = built.files_failed
    result.components_indexed = built.index.component_count
    result.errors.extend(built.errors)
    result.warnings.extend(built.warnings)

    if built.errors and index_path.is_file():
        logger.warning("Scan failed, keeping %s", index_path)
        return result
    save_index(built.index, index_path)
    if built.errors:
        # Leave the cache dirty so the next scan retries.
        return result
    commit(cache_path, current)
    logger.info("Saved %d components to %s", result.components_indexed, index_path)
    return result
