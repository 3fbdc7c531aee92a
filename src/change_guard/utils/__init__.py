"""Utility helpers for diffing, similarity scoring and text handling."""

from change_guard.utils.diff import DiffOp, LineDiffEngine, render_diff, unified_diff
from change_guard.utils.similarity import levenshtein_distance, similarity
from change_guard.utils.text import join_lines, split_lines

__all__ = [
    "DiffOp",
    "LineDiffEngine",
    "join_lines",
    "levenshtein_distance",
    "render_diff",
    "similarity",
    "split_lines",
    "unified_diff",
]
