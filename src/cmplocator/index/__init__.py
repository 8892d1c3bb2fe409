"""Index domain: source discovery, component extraction, scan cache, and the persisted map."""

from cmplocator.index.builder import BuildResult, ScanResult, build, build_index, run_scan
from cmplocator.index.extractor import ExtractedComponent, extract_components
from cmplocator.index.scan_cache import ScanCache, fingerprint, should_rebuild
from cmplocator.index.source_index import (
    ComponentRecord,
    IndexHandle,
    SourceIndex,
    index_path_for,
    load_index,
    save_index,
)

__all__ = [
    "BuildResult",
    "ComponentRecord",
    "ExtractedComponent",
    "IndexHandle",
    "ScanCache",
    "ScanResult",
    "SourceIndex",
    "build",
    "build_index",
    "extract_components",
    "fingerprint",
    "index_path_for",
    "load_index",
    "run_scan",
    "save_index",
    "should_rebuild",
]
