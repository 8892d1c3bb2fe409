"""Resolve domain: identifier-to-file resolution and in-file line search."""

from cmplocator.resolve.clues import ElementSnapshot, build_search_clues
from cmplocator.resolve.resolver import RelevanceWeights, resolve_component, select_best_file
from cmplocator.resolve.search import SearchWeights, find_best_line, rank_lines

__all__ = [
    "ElementSnapshot",
    "RelevanceWeights",
    "SearchWeights",
    "build_search_clues",
    "find_best_line",
    "rank_lines",
    "resolve_component",
    "select_best_file",
]
