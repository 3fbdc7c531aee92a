"""Conflict detection and automatic resolution for proposed line-range edits.

This module provides the ConflictEngine class. Given a flat list of
CodeChange values it groups them by file, classifies every pair of changes
within a file, auto-resolves the low-risk conflicts and reports the rest.
"""

import logging
from collections import Counter
from dataclasses import replace

from ..config.options import ConflictOptions
from ..core.models import (
    AutoResolution,
    CodeChange,
    Conflict,
    ConflictAnalysis,
    ConflictSeverity,
    ConflictStats,
    ResolutionStrategy,
)
from ..strategies.merge_resolvers import MergeResolvers
from .detectors import ConflictDetector, alternative_strategies, build_detectors


class ConflictEngine:
    """Detect and resolve conflicts between proposed changes.

    Example:
        >>> engine = ConflictEngine()
        >>> analysis = engine.detect_and_resolve_conflicts(changes)
        >>> for conflict in analysis.unresolved_conflicts:
        ...     print(conflict.description)
    """

    def __init__(
        self,
        options: ConflictOptions | None = None,
        resolvers: MergeResolvers | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            options: Detection and auto-resolution tunables. Defaults are used
                when omitted.
            resolvers: Merge resolvers used for auto-resolution and
                :meth:`resolve`.
        """
        self.options = options or ConflictOptions()
        self.resolvers = resolvers or MergeResolvers()
        self.detectors: list[ConflictDetector] = build_detectors(self.options)
        self.logger = logging.getLogger(__name__)

    def detect_conflicts(self, changes: list[CodeChange]) -> list[Conflict]:
        """Identify conflicts among the provided changes across files.

        Returns:
            At most one Conflict per pair of changes to the same file, in file
            order and then by the pair's start lines.
        """
        conflicts: list[Conflict] = []

        # Group changes by file
        changes_by_file: dict[str, list[CodeChange]] = {}
        for change in changes:
            changes_by_file.setdefault(change.file_path, []).append(change)

        for file_path, file_changes in changes_by_file.items():
            if len(file_changes) < 2:
                continue
            file_conflicts = self._detect_file_conflicts(file_changes)
            if file_conflicts:
                self.logger.debug(f"{len(file_conflicts)} conflict(s) in {file_path}")
            conflicts.extend(file_conflicts)

        return conflicts

    def _detect_file_conflicts(self, changes: list[CodeChange]) -> list[Conflict]:
        conflicts: list[Conflict] = []
        sorted_changes = sorted(changes, key=lambda c: (c.start_line, c.end_line))

        for i, change1 in enumerate(sorted_changes):
            for change2 in sorted_changes[i + 1 :]:
                conflict = self._classify_pair(change1, change2)
                if conflict is not None:
                    conflicts.append(conflict)

        return conflicts

    def _classify_pair(self, change1: CodeChange, change2: CodeChange) -> Conflict | None:
        for detector in self.detectors:
            conflict = detector.detect(change1, change2)
            if conflict is None:
                continue
            if change1.modified_code == change2.modified_code:
                # Identical proposals never need more than picking one
                conflict = replace(
                    conflict,
                    severity=ConflictSeverity.NONE,
                    suggested_strategy=ResolutionStrategy.TAKE_FIRST,
                    alternative_strategies=alternative_strategies(ResolutionStrategy.TAKE_FIRST),
                )
            return conflict
        return None

    def can_auto_resolve(self, conflict: Conflict) -> bool:
        """True when the conflict is within the auto-resolve ceiling and not manual."""
        return (
            conflict.severity.rank <= self.options.auto_resolve_severity.rank
            and conflict.suggested_strategy is not ResolutionStrategy.MANUAL
        )

    def resolve(self, conflict: Conflict, strategy: ResolutionStrategy | None = None) -> str | None:
        """Resolve ``conflict`` with ``strategy`` (default: its suggested strategy).

        Returns:
            The resolved text, or None if the strategy cannot produce one.
        """
        return self.resolvers.resolve(conflict, strategy or conflict.suggested_strategy)

    def detect_and_resolve_conflicts(self, changes: list[CodeChange]) -> ConflictAnalysis:
        """Detect all conflicts and auto-resolve the ones that qualify.

        Args:
            changes: Proposed changes, possibly spanning several files.

        Returns:
            ConflictAnalysis with every conflict, the changes involved in
            none, the auto-resolutions, the conflicts left for a human and
            summary statistics.
        """
        conflicts = self.detect_conflicts(changes)

        involved = {id(c.change1) for c in conflicts} | {id(c.change2) for c in conflicts}
        non_conflicting = [change for change in changes if id(change) not in involved]

        auto_resolved: list[AutoResolution] = []
        unresolved: list[Conflict] = []
        for conflict in conflicts:
            if self.can_auto_resolve(conflict):
                resolved = self.resolve(conflict)
                if resolved is not None:
                    auto_resolved.append(
                        AutoResolution(conflict, conflict.suggested_strategy, resolved)
                    )
                    continue
            unresolved.append(conflict)

        stats = ConflictStats(
            total_changes=len(changes),
            total_conflicts=len(conflicts),
            auto_resolved=len(auto_resolved),
            unresolved=len(unresolved),
            by_severity=dict(Counter(c.severity for c in conflicts)),
            by_kind=dict(Counter(c.kind for c in conflicts)),
        )
        self.logger.info(
            f"Analyzed {stats.total_changes} change(s): {stats.total_conflicts} conflict(s), "
            f"{stats.auto_resolved} auto-resolved, {stats.unresolved} unresolved"
        )
        return ConflictAnalysis(
            conflicts=conflicts,
            non_conflicting_changes=non_conflicting,
            auto_resolved=auto_resolved,
            unresolved_conflicts=unresolved,
            stats=stats,
        )

    def conflict_patterns(self, conflicts: list[Conflict]) -> dict[str, object]:
        """Summarize recurring patterns across a set of conflicts.

        Returns:
            dict with ``total``, per-file, per-kind and per-severity counts,
            ``manual_review`` (conflicts suggesting manual resolution),
            ``most_common_kind`` and ``hotspots``: for each file, the sorted
            lines that appear in two or more conflicts.
        """
        by_file = Counter(c.file_path for c in conflicts)
        by_kind = Counter(c.kind.value for c in conflicts)
        by_severity = Counter(c.severity.value for c in conflicts)

        line_hits: dict[str, Counter[int]] = {}
        for conflict in conflicts:
            line_hits.setdefault(conflict.file_path, Counter()).update(conflict.affected_lines)
        hotspots = {
            path: sorted(line for line, hits in counter.items() if hits > 1)
            for path, counter in line_hits.items()
        }

        return {
            "total": len(conflicts),
            "by_file": dict(by_file),
            "by_kind": dict(by_kind),
            "by_severity": dict(by_severity),
            "manual_review": sum(
                1 for c in conflicts if c.suggested_strategy is ResolutionStrategy.MANUAL
            ),
            "most_common_kind": by_kind.most_common(1)[0][0] if by_kind else None,
            "hotspots": {path: lines for path, lines in hotspots.items() if lines},
        }
