"""Merge resolvers for detected conflicts.

This module provides the MergeResolvers class, which turns a Conflict and a
ResolutionStrategy into a single resolved text, plus the text-level merge
helpers the import and dependency detectors use to precompute merged content.

All line arithmetic treats a change's ``original_code``/``modified_code`` as
the text of its ``start_line..end_line`` span, anchored at ``start_line``.
"""

import logging
import re
from collections.abc import Callable

from ..analysis.symbols import (
    extract_imports,
    extract_side_effect_imports,
    parse_dependencies,
    parse_import_clause,
    strip_imports,
)
from ..core.models import CodeChange, Conflict, ConflictKind, ResolutionStrategy
from ..utils.diff import LineDiffEngine
from ..utils.text import join_lines, split_lines
from ..utils.version_utils import higher_version

logger = logging.getLogger(__name__)

Resolver = Callable[[Conflict], str | None]

MERGE_BANNER = "// CONFLICTING CHANGES MERGED - PLEASE REVIEW"
VERSION_1_MARKER = "// VERSION 1:"
VERSION_2_MARKER = "// VERSION 2:"
DEFAULT_MARKER = "// MERGED (using version 1):"


def _ordered(conflict: Conflict) -> tuple[CodeChange, CodeChange]:
    """Return the conflict's changes ordered by start line."""
    c1, c2 = conflict.change1, conflict.change2
    if (c2.start_line, c2.end_line) < (c1.start_line, c1.end_line):
        return c2, c1
    return c1, c2


def merge_imports(text1: str, text2: str) -> str:
    """Union the import statements of two texts, module by module.

    Default, namespace and named bindings are combined and deduplicated.
    Side-effect imports (``import './styles.css';``) are kept verbatim after
    the merged statements. The non-import body is taken from whichever text
    has the longer body.

    Example:
        >>> merge_imports(
        ...     "import React, { useState } from 'react';",
        ...     "import { useEffect } from 'react';",
        ... )
        "import React, { useState, useEffect } from 'react';"
    """
    imports1 = extract_imports(text1)
    imports2 = extract_imports(text2)

    statements: list[str] = []
    for module in dict.fromkeys([*imports1, *imports2]):
        clauses = [c for c in (imports1.get(module), imports2.get(module)) if c is not None]
        default: str | None = None
        namespace: str | None = None
        named: list[str] = []
        for clause in clauses:
            clause_default, clause_named, clause_namespace = parse_import_clause(clause)
            default = default or clause_default
            namespace = namespace or clause_namespace
            named.extend(clause_named)

        parts: list[str] = []
        if default:
            parts.append(default)
        if namespace:
            parts.append(f"* as {namespace}")
        unique_named = list(dict.fromkeys(named))
        if unique_named:
            parts.append("{ " + ", ".join(unique_named) + " }")
        statements.append(f"import {', '.join(parts)} from '{module}';")

    side_effects = extract_side_effect_imports(text1)
    for module, statement in extract_side_effect_imports(text2).items():
        side_effects.setdefault(module, statement)
    statements.extend(side_effects.values())

    body1 = _body_without_imports(text1)
    body2 = _body_without_imports(text2)
    body = body1 if len(body1) >= len(body2) else body2

    if body:
        return join_lines([*statements, "", *body])
    return join_lines(statements)


def _body_without_imports(text: str) -> list[str]:
    body = split_lines(strip_imports(text))
    # Drop the blank separator lines between imports and code
    while body and not body[0].strip():
        body.pop(0)
    return body


def merge_dependencies(text1: str, text2: str) -> str:
    """Rewrite ``text1`` so every dependency shared with ``text2`` carries the higher version.

    Versions are chosen by :func:`~change_guard.utils.version_utils.higher_version`.
    Dependencies only present in ``text2`` are not added.
    """
    deps1 = parse_dependencies(text1)
    deps2 = parse_dependencies(text2)
    merged = text1
    for key, version1 in deps1.items():
        version2 = deps2.get(key)
        if version2 is None or version2 == version1:
            continue
        winner = higher_version(version1, version2)
        if winner == version1:
            continue
        name = key.removeprefix("dev:")
        pattern = re.compile(rf'("{re.escape(name)}"\s*:\s*")({re.escape(version1)})(")')
        merged = pattern.sub(lambda m, v=winner: f"{m.group(1)}{v}{m.group(3)}", merged, count=1)
        logger.debug(f"Dependency {key}: keeping {winner} over {version1}")
    return merged


class MergeResolvers:
    """Produce resolved text for a conflict under a chosen strategy.

    Each ResolutionStrategy maps to a resolver callable in ``self.registry``.
    Callers may override an entry, for example to plug in a smarter merge.
    A resolver returning None means the strategy cannot produce text for the
    conflict and it stays unresolved.
    """

    def __init__(self, engine: LineDiffEngine | None = None) -> None:
        """Initialize the resolvers with an optional diff engine for sequential replays."""
        self.engine = engine or LineDiffEngine()
        self.logger = logging.getLogger(__name__)
        self.registry: dict[ResolutionStrategy, Resolver] = {
            ResolutionStrategy.TAKE_FIRST: self.take_first,
            ResolutionStrategy.TAKE_SECOND: self.take_second,
            ResolutionStrategy.MERGE: self.merge,
            ResolutionStrategy.SEQUENTIAL: self.sequential,
            ResolutionStrategy.SKIP_BOTH: self.skip_both,
            ResolutionStrategy.MANUAL: self.manual,
        }

    def register(self, strategy: ResolutionStrategy, resolver: Resolver) -> None:
        """Replace the resolver used for ``strategy``."""
        self.registry[strategy] = resolver

    def resolve(self, conflict: Conflict, strategy: ResolutionStrategy) -> str | None:
        """Resolve ``conflict`` with ``strategy``.

        Returns:
            The resolved text, or None when the strategy cannot resolve it.
        """
        resolver = self.registry.get(strategy)
        if resolver is None:
            self.logger.warning(f"No resolver registered for strategy {strategy}")
            return None
        resolved = resolver(conflict)
        if resolved is None:
            self.logger.debug(
                f"Strategy {strategy} left {conflict.kind} conflict in {conflict.file_path} "
                "unresolved"
            )
        return resolved

    def take_first(self, conflict: Conflict) -> str:
        """Keep the first change's new text."""
        return conflict.change1.modified_code

    def take_second(self, conflict: Conflict) -> str:
        """Keep the second change's new text."""
        return conflict.change2.modified_code

    def skip_both(self, conflict: Conflict) -> str:
        """Discard both changes and keep the original text."""
        return conflict.change1.original_code

    def manual(self, conflict: Conflict) -> None:
        """Manual resolution never produces text automatically."""
        return None

    def merge(self, conflict: Conflict) -> str | None:
        """Merge both changes using the rule for the conflict's kind.

        Related and semantic conflicts have no automatic merge.
        """
        if conflict.merged_content is not None:
            return conflict.merged_content
        if conflict.kind is ConflictKind.OVERLAPPING:
            return self.merge_overlapping(conflict)
        if conflict.kind is ConflictKind.ADJACENT:
            return self.merge_adjacent(conflict)
        if conflict.kind is ConflictKind.IMPORT:
            return merge_imports(conflict.change1.modified_code, conflict.change2.modified_code)
        if conflict.kind is ConflictKind.DEPENDENCY:
            return merge_dependencies(
                conflict.change1.modified_code, conflict.change2.modified_code
            )
        return None

    def sequential(self, conflict: Conflict) -> str:
        """Replay the second change's edits on top of the first change's result.

        The second change's delete/insert operations are computed from its
        own original/new pair and positioned relative to the first change's
        span. Original lines of the second change that lie past the end of
        the first change's text are appended before replaying, so none of the
        second change's lines are lost. Lines between two disjoint spans are
        not part of either change; the second change follows the first
        directly.
        """
        first, second = _ordered(conflict)
        lines1 = split_lines(first.modified_code)
        original2 = split_lines(second.original_code)
        if second.start_line > first.end_line:
            offset = len(lines1)
        else:
            offset = min(second.start_line - first.start_line, len(lines1))

        overhang = offset + len(original2) - len(lines1)
        base = [*lines1, *original2[len(original2) - overhang :]] if overhang > 0 else lines1
        return join_lines(
            self.engine.apply(
                base, self.engine.diff(original2, split_lines(second.modified_code)), offset
            )
        )

    def merge_adjacent(self, conflict: Conflict) -> str:
        """Splice both changes into the first change's original text.

        When that original text does not reach the second change's lines,
        the two new texts are concatenated in line order.
        """
        first, second = _ordered(conflict)
        anchor = first.start_line
        base = split_lines(first.original_code)
        lines1 = split_lines(first.modified_code)
        lines2 = split_lines(second.modified_code)

        if second.end_line - anchor >= len(base):
            return join_lines(lines1 + lines2)

        merged = list(base)
        # Later span first so the earlier indices stay valid
        merged[second.start_line - anchor : second.end_line - anchor + 1] = lines2
        merged[0 : first.end_line - anchor + 1] = lines1
        return join_lines(merged)

    def merge_overlapping(self, conflict: Conflict) -> str:
        """Merge two overlapping changes.

        Identical overlapping slices are spliced with the prefix of the change
        that starts first and the suffix of the change that ends last.
        Otherwise both versions are emitted side by side under review markers,
        followed by version 1 as the default.
        """
        c1, c2 = conflict.change1, conflict.change2
        overlap_start = max(c1.start_line, c2.start_line)
        overlap_end = min(c1.end_line, c2.end_line)
        if overlap_start > overlap_end:
            return self.merge_adjacent(conflict)

        lines1 = split_lines(c1.modified_code)
        lines2 = split_lines(c2.modified_code)
        overlap1 = lines1[overlap_start - c1.start_line : overlap_end - c1.start_line + 1]
        overlap2 = lines2[overlap_start - c2.start_line : overlap_end - c2.start_line + 1]

        leading, leading_lines = (c1, lines1) if c1.start_line <= c2.start_line else (c2, lines2)
        trailing, trailing_lines = (c1, lines1) if c1.end_line >= c2.end_line else (c2, lines2)
        prefix = leading_lines[: overlap_start - leading.start_line]
        suffix = trailing_lines[overlap_end - trailing.start_line + 1 :]

        if overlap1 == overlap2:
            return join_lines([*prefix, *overlap1, *suffix])

        self.logger.info(
            f"Overlapping changes in {conflict.file_path} differ; emitting flagged merge"
        )
        return join_lines(
            [
                *prefix,
                MERGE_BANNER,
                VERSION_1_MARKER,
                *overlap1,
                VERSION_2_MARKER,
                *overlap2,
                DEFAULT_MARKER,
                *overlap1,
                *suffix,
            ]
        )
