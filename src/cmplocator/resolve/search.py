"""Content search ranker: find the template line that best matches a set of clues."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchWeights:
    """Multipliers applied to a clue's positional weight per kind of match."""

    substring: float = 2.0
    word: float = 3.0
    prefix: float = 1.5


DEFAULT_SEARCH = SearchWeights()


def clue_weight(position: int, clue_count: int) -> int:
    """Earlier clues weigh more: ``max(1, clue_count - position)``."""
    return max(1, clue_count - position)


def rank_lines(
    lines: Sequence[str],
    clues: Sequence[str],
    weights: SearchWeights = DEFAULT_SEARCH,
) -> list[float]:
    """Return the accumulated score of every line."""
    scores = [0.0] * len(lines)
    lowered = [line.lower() for line in lines]
    stripped = [line.strip() for line in lowered]

    for position, clue in enumerate(clues):
        needle = clue.lower()
        if not needle.strip():
            continue
        weight = clue_weight(position, len(clues))
        word_re = re.compile(rf"\b{re.escape(needle)}\b")

        for i, line in enumerate(lowered):
            if needle not in line:
                continue
            scores[i] += weight * weights.substring
            if word_re.search(line):
                scores[i] += weight * weights.word
            if stripped[i].startswith(needle):
                scores[i] += weight * weights.prefix

    return scores


def find_best_line(
    file_path: str | Path,
    clues: Sequence[str],
    weights: SearchWeights = DEFAULT_SEARCH,
) -> int:
    """Return the 1-based line that best matches *clues*.

    Falls back to line 1 when nothing matches or the file cannot be read.
    """
    try:
        content = Path(file_path).read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.warning("Failed to search in %s: %s", file_path, exc)
        return 1

    scores = rank_lines(content.split("\n"), clues, weights)
    best_line = 1
    best_score = 0.0
    for i, score in enumerate(scores):
        if score > best_score:
            best_score = score
            best_line = i + 1
    return best_line
