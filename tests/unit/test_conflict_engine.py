"""Unit tests for ConflictEngine detection, auto-resolution and statistics."""

import pytest

from change_guard.analysis.conflict_engine import ConflictEngine
from change_guard.analysis.detectors import build_detectors
from change_guard.config.options import ConflictOptions
from change_guard.core.models import (
    ConflictKind,
    ConflictSeverity,
    ResolutionStrategy,
)

PACKAGE_JSON_OLD = """{
  "name": "app",
  "dependencies": {
    "lodash": "4.16.0"
  }
}"""

PACKAGE_JSON_NEW = """{
  "name": "app",
  "dependencies": {
    "lodash": "^4.17.0"
  }
}"""


@pytest.fixture
def engine() -> ConflictEngine:
    """Engine with default options."""
    return ConflictEngine()


class TestOverlappingConflicts:
    """Tests for intersecting line ranges."""

    def test_dissimilar_overlap_needs_manual_review(self, engine, make_change) -> None:
        changes = [
            make_change(10, 12, "aaaaaaaaaa"),
            make_change(11, 13, "bbbbbbbbbb"),
        ]
        analysis = engine.detect_and_resolve_conflicts(changes)

        assert len(analysis.conflicts) == 1
        conflict = analysis.conflicts[0]
        assert conflict.kind is ConflictKind.OVERLAPPING
        assert conflict.severity is ConflictSeverity.CRITICAL
        assert conflict.suggested_strategy is ResolutionStrategy.MANUAL
        assert conflict.affected_lines == frozenset({11, 12})
        assert ResolutionStrategy.MANUAL not in conflict.alternative_strategies
        assert analysis.auto_resolved == []
        assert analysis.unresolved_conflicts == [conflict]

    def test_near_identical_overlap_is_low(self, engine, make_change) -> None:
        conflicts = engine.detect_conflicts(
            [
                make_change(1, 2, "const value = computeTotal(items);"),
                make_change(2, 3, "const value = computeTotal(item);"),
            ]
        )
        assert conflicts[0].severity is ConflictSeverity.LOW
        assert conflicts[0].suggested_strategy is ResolutionStrategy.MERGE
        assert conflicts[0].affected_symbols == frozenset({"value"})

    def test_identical_texts_take_first(self, engine, make_change) -> None:
        changes = [
            make_change(5, 6, "return <Button />;"),
            make_change(5, 6, "return <Button />;"),
        ]
        analysis = engine.detect_and_resolve_conflicts(changes)

        conflict = analysis.conflicts[0]
        assert conflict.severity is ConflictSeverity.NONE
        assert conflict.suggested_strategy is ResolutionStrategy.TAKE_FIRST
        assert analysis.auto_resolved[0].resolved_content == "return <Button />;"
        assert analysis.auto_resolved[0].strategy_used is ResolutionStrategy.TAKE_FIRST


class TestAdjacentConflicts:
    """Tests for disjoint ranges close together."""

    @pytest.mark.parametrize(
        ("second_start", "severity"),
        [(3, ConflictSeverity.MEDIUM), (4, ConflictSeverity.LOW), (5, ConflictSeverity.LOW)],
    )
    def test_gap_sets_severity(self, engine, make_change, second_start, severity) -> None:
        conflicts = engine.detect_conflicts(
            [make_change(1, 2, "aaaa"), make_change(second_start, second_start + 1, "bbbb")]
        )
        assert len(conflicts) == 1
        assert conflicts[0].kind is ConflictKind.ADJACENT
        assert conflicts[0].severity is severity
        assert conflicts[0].suggested_strategy is ResolutionStrategy.SEQUENTIAL
        assert min(conflicts[0].affected_lines) == 1
        assert max(conflicts[0].affected_lines) == second_start + 1

    def test_beyond_threshold_is_not_a_conflict(self, engine, make_change) -> None:
        assert engine.detect_conflicts([make_change(1, 2, "aaaa"), make_change(6, 7, "bbbb")]) == []

    def test_custom_threshold(self, make_change) -> None:
        engine = ConflictEngine(ConflictOptions(adjacent_lines_threshold=0))
        assert engine.detect_conflicts([make_change(1, 2, "aaaa"), make_change(3, 4, "bbbb")]) == []

    def test_input_order_does_not_matter(self, engine, make_change) -> None:
        later = make_change(4, 5, "bbbb")
        earlier = make_change(1, 2, "aaaa")
        conflict = engine.detect_conflicts([later, earlier])[0]
        assert conflict.change1 is earlier
        assert conflict.change2 is later
        assert "2 line(s) between them" in conflict.description

    def test_auto_resolution_keeps_both_edits(self, engine, make_change) -> None:
        changes = [
            make_change(2, 2, "let b = 10;", "let b = 1;", file_path="f.ts"),
            make_change(4, 4, "let d = 40;", "let d = 1;", file_path="f.ts"),
        ]

        analysis = engine.detect_and_resolve_conflicts(changes)

        assert len(analysis.auto_resolved) == 1
        resolution = analysis.auto_resolved[0]
        assert resolution.conflict.kind is ConflictKind.ADJACENT
        assert resolution.strategy_used is ResolutionStrategy.SEQUENTIAL
        assert resolution.resolved_content == "let b = 10;\nlet d = 40;"


class TestSymbolConflicts:
    """Tests for related, semantic and import conflicts."""

    def test_related_symbols(self, engine, make_change) -> None:
        conflicts = engine.detect_conflicts(
            [
                make_change(
                    1,
                    1,
                    "function Header() { return 1; }",
                    original_code="function Header() {}",
                ),
                make_change(
                    30,
                    30,
                    "const x = <Header title />;",
                    original_code="const x = <Header />;",
                ),
            ]
        )
        assert conflicts[0].kind is ConflictKind.RELATED
        assert conflicts[0].severity is ConflictSeverity.MEDIUM
        assert conflicts[0].suggested_strategy is ResolutionStrategy.SEQUENTIAL
        assert conflicts[0].affected_symbols == frozenset({"Header"})

    def test_semantic_signature_change(self, engine, make_change) -> None:
        conflicts = engine.detect_conflicts(
            [
                make_change(1, 1, "function total(a) {}"),
                make_change(40, 40, "function total(a, b) {}"),
            ]
        )
        assert conflicts[0].kind is ConflictKind.SEMANTIC
        assert conflicts[0].severity is ConflictSeverity.HIGH
        assert conflicts[0].suggested_strategy is ResolutionStrategy.MANUAL
        assert conflicts[0].affected_symbols == frozenset({"total"})

    def test_semantic_variable_type_change(self, engine, make_change) -> None:
        conflicts = engine.detect_conflicts(
            [
                make_change(1, 1, "let count: number = 0;"),
                make_change(40, 40, "let count: string = '0';"),
            ]
        )
        assert conflicts[0].kind is ConflictKind.SEMANTIC
        assert conflicts[0].affected_symbols == frozenset({"count"})

    def test_import_conflict_is_auto_merged(self, engine, make_change) -> None:
        changes = [
            make_change(1, 1, "import React, { useState } from 'react';"),
            make_change(40, 40, "import { useEffect } from 'react';"),
        ]
        analysis = engine.detect_and_resolve_conflicts(changes)

        conflict = analysis.conflicts[0]
        assert conflict.kind is ConflictKind.IMPORT
        assert conflict.severity is ConflictSeverity.LOW
        assert conflict.merged_content == "import React, { useState, useEffect } from 'react';"
        assert analysis.auto_resolved[0].resolved_content == conflict.merged_content

    def test_disabled_detectors(self, make_change) -> None:
        engine = ConflictEngine(
            ConflictOptions(
                detect_related_conflicts=False,
                perform_semantic_analysis=False,
                detect_import_conflicts=False,
            )
        )
        changes = [
            make_change(1, 1, "import React from 'react';"),
            make_change(40, 40, "import { useEffect } from 'react';"),
            make_change(80, 80, "function total(a) {}"),
            make_change(120, 120, "function total(a, b) {}"),
        ]
        assert engine.detect_conflicts(changes) == []


class TestDependencyConflicts:
    """Tests for package manifest version clashes."""

    def test_lodash_version_clash(self, make_change) -> None:
        engine = ConflictEngine(ConflictOptions(auto_resolve_severity=ConflictSeverity.MEDIUM))
        changes = [
            make_change(1, 6, PACKAGE_JSON_OLD, file_path="package.json"),
            make_change(1, 6, PACKAGE_JSON_NEW, file_path="package.json"),
        ]
        analysis = engine.detect_and_resolve_conflicts(changes)

        conflict = analysis.conflicts[0]
        assert conflict.kind is ConflictKind.DEPENDENCY
        assert conflict.severity is ConflictSeverity.MEDIUM
        assert conflict.suggested_strategy is ResolutionStrategy.MERGE
        assert conflict.affected_symbols == frozenset({"lodash"})
        assert '"lodash": "^4.17.0"' in conflict.merged_content
        assert analysis.auto_resolved[0].resolved_content == conflict.merged_content

    def test_manifest_matcher_option(self, make_change) -> None:
        engine = ConflictEngine(
            ConflictOptions(manifest_matcher=lambda path: path.endswith("deps.json"))
        )
        conflicts = engine.detect_conflicts(
            [
                make_change(1, 6, PACKAGE_JSON_OLD, file_path="config/deps.json"),
                make_change(1, 6, PACKAGE_JSON_NEW, file_path="config/deps.json"),
            ]
        )
        assert conflicts[0].kind is ConflictKind.DEPENDENCY

    def test_non_manifest_falls_through_to_overlap(self, engine, make_change) -> None:
        conflicts = engine.detect_conflicts(
            [
                make_change(1, 6, PACKAGE_JSON_OLD, file_path="fixtures/data.json"),
                make_change(1, 6, PACKAGE_JSON_NEW, file_path="fixtures/data.json"),
            ]
        )
        assert conflicts[0].kind is ConflictKind.OVERLAPPING

    def test_leading_dependency_detector_ignores_other_files(self, make_change) -> None:
        detector = build_detectors(ConflictOptions())[0]
        assert detector.kind is ConflictKind.DEPENDENCY
        change1 = make_change(1, 6, PACKAGE_JSON_OLD, file_path="fixtures/data.json")
        change2 = make_change(1, 6, PACKAGE_JSON_NEW, file_path="fixtures/data.json")
        assert detector.detect(change1, change2) is None


class TestNoConflicts:
    """Tests for changes that never collide."""

    def test_far_apart_changes(self, engine, make_change) -> None:
        changes = [make_change(1, 2, "let a = 1;"), make_change(20, 21, "let b = 2;")]
        analysis = engine.detect_and_resolve_conflicts(changes)
        assert analysis.conflicts == []
        assert analysis.non_conflicting_changes == changes

    def test_different_files_never_conflict(self, engine, make_change) -> None:
        changes = [
            make_change(1, 2, "aaaa", file_path="a.ts"),
            make_change(1, 2, "bbbb", file_path="b.ts"),
        ]
        assert engine.detect_conflicts(changes) == []

    def test_empty_input(self, engine) -> None:
        analysis = engine.detect_and_resolve_conflicts([])
        assert analysis.conflicts == []
        assert analysis.stats.total_changes == 0


class TestAnalysis:
    """Tests for statistics, resolution and pattern summaries."""

    def test_stats_and_non_conflicting(self, engine, make_change) -> None:
        lonely = make_change(1, 1, "let x = 1;", file_path="other.ts")
        changes = [
            make_change(10, 12, "aaaaaaaaaa"),
            make_change(11, 13, "bbbbbbbbbb"),
            make_change(1, 1, "import React from 'react';", file_path="app.ts"),
            make_change(40, 40, "import { useMemo } from 'react';", file_path="app.ts"),
            lonely,
        ]
        analysis = engine.detect_and_resolve_conflicts(changes)

        assert analysis.non_conflicting_changes == [lonely]
        stats = analysis.stats
        assert stats.total_changes == 5
        assert stats.total_conflicts == 2
        assert stats.auto_resolved == 1
        assert stats.unresolved == 1
        assert stats.by_kind == {ConflictKind.OVERLAPPING: 1, ConflictKind.IMPORT: 1}
        assert stats.by_severity == {ConflictSeverity.CRITICAL: 1, ConflictSeverity.LOW: 1}

    def test_can_auto_resolve_respects_manual(self, make_change) -> None:
        engine = ConflictEngine(ConflictOptions(auto_resolve_severity=ConflictSeverity.CRITICAL))
        conflict = engine.detect_conflicts(
            [make_change(1, 2, "aaaaaaaaaa"), make_change(2, 3, "bbbbbbbbbb")]
        )[0]
        assert not engine.can_auto_resolve(conflict)

    def test_resolve_with_explicit_strategy(self, engine, make_change) -> None:
        conflict = engine.detect_conflicts(
            [make_change(1, 2, "aaaa"), make_change(2, 3, "bbbb")]
        )[0]
        assert engine.resolve(conflict) is None
        assert engine.resolve(conflict, ResolutionStrategy.TAKE_SECOND) == "bbbb"

    def test_conflict_patterns(self, engine, make_change) -> None:
        conflicts = engine.detect_conflicts(
            [make_change(1, 3, "aaaa"), make_change(2, 4, "bbbb"), make_change(3, 5, "cccc")]
        )
        patterns = engine.conflict_patterns(conflicts)

        assert patterns["total"] == 3
        assert patterns["by_file"] == {"src/file.ts": 3}
        assert patterns["by_kind"] == {"overlapping": 3}
        assert patterns["by_severity"] == {"critical": 3}
        assert patterns["manual_review"] == 3
        assert patterns["most_common_kind"] == "overlapping"
        assert patterns["hotspots"] == {"src/file.ts": [3]}

    def test_conflict_patterns_empty(self, engine) -> None:
        patterns = engine.conflict_patterns([])
        assert patterns["total"] == 0
        assert patterns["most_common_kind"] is None
        assert patterns["hotspots"] == {}
