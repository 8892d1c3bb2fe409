"""Identity resolver: runtime class name + current page path -> component record."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cmplocator.index.source_index import ComponentRecord, SourceIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelevanceWeights:
    """Points awarded when scoring a candidate file against the page path."""

    segment: int = 10
    adjacent_pair: int = 20
    last_segment: int = 30


DEFAULT_RELEVANCE = RelevanceWeights()


def _segments(path: str) -> list[str]:
    return [seg for seg in path.split("/") if seg]


def identifier_candidates(identifier: str) -> list[str]:
    """Names to look up, in priority order.

    Minified builds can prefix class names with underscores (``_FooComponent``),
    so the stripped name is tried second.
    """
    candidates = [identifier] if identifier else []
    stripped = identifier.lstrip("_")
    if stripped and stripped not in candidates:
        candidates.append(stripped)
    return candidates


def path_relevance(
    file_path: str,
    navigation_path: str,
    weights: RelevanceWeights = DEFAULT_RELEVANCE,
) -> int:
    """Score how well *file_path* matches the page at *navigation_path*."""
    nav = _segments(navigation_path)
    file_segments = set(_segments(file_path))
    score = 0

    for seg in nav:
        if seg in file_segments:
            score += weights.segment

    for first, second in zip(nav, nav[1:]):
        if f"{first}/{second}" in file_path:
            score += weights.adjacent_pair

    if nav and nav[-1].lower() in file_path.lower():
        score += weights.last_segment

    return score


def select_best_file(
    candidates: Sequence[str],
    navigation_path: str,
    weights: RelevanceWeights = DEFAULT_RELEVANCE,
) -> str:
    """Pick the most relevant candidate; ties keep the earliest one."""
    if not candidates:
        msg = "select_best_file() needs at least one candidate"
        raise ValueError(msg)
    if len(candidates) == 1:
        return candidates[0]

    best = candidates[0]
    best_score = -1
    for file_path in candidates:
        score = path_relevance(file_path, navigation_path, weights)
        logger.debug("Relevance %s -> %d", file_path, score)
        if score > best_score:
            best = file_path
            best_score = score
    return best


def resolve_component(
    index: SourceIndex,
    identifier: str,
    navigation_path: str = "",
    weights: RelevanceWeights = DEFAULT_RELEVANCE,
) -> ComponentRecord | None:
    """Map a runtime identifier to the best matching component record.

    Each candidate name is tried in turn; the first one with any file paths
    decides the result, so candidates are never merged.
    """
    for name in identifier_candidates(identifier):
        paths = index.file_paths_for(name)
        if not paths:
            continue
        chosen = select_best_file(paths, navigation_path, weights)
        record = index.record_for(chosen, name)
        if record is not None:
            return record
    return None
