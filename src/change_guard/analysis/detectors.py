"""Conflict detectors.

Each detector inspects one pair of changes to the same file and returns a
Conflict or None. The engine runs them in a fixed order and keeps the first
hit, so a pair yields at most one conflict.
"""

from typing import Protocol

from ..config.options import ConflictOptions
from ..core.models import (
    CodeChange,
    Conflict,
    ConflictKind,
    ConflictSeverity,
    ResolutionStrategy,
)
from ..strategies.merge_resolvers import merge_dependencies, merge_imports
from ..utils.similarity import similarity
from .symbols import (
    extract_code_elements,
    extract_function_signatures,
    extract_imports,
    extract_references,
    extract_variable_types,
    is_dependency_manifest,
    parse_dependencies,
)


class ConflictDetector(Protocol):
    """Anything that can classify a pair of changes."""

    kind: ConflictKind

    def detect(self, change1: CodeChange, change2: CodeChange) -> Conflict | None:
        """Return a Conflict for the pair, or None when this kind does not apply."""
        ...


def alternative_strategies(suggested: ResolutionStrategy) -> tuple[ResolutionStrategy, ...]:
    """Every strategy except ``suggested``, in declaration order."""
    return tuple(strategy for strategy in ResolutionStrategy if strategy is not suggested)


def severity_from_similarity(
    text1: str, text2: str, options: ConflictOptions
) -> ConflictSeverity:
    """Grade two competing texts: the less alike they are, the more severe the conflict."""
    if text1 == text2:
        return ConflictSeverity.NONE
    score = similarity(text1, text2)
    if score > options.low_severity_similarity:
        return ConflictSeverity.LOW
    if score > options.medium_severity_similarity:
        return ConflictSeverity.MEDIUM
    if score > options.high_severity_similarity:
        return ConflictSeverity.HIGH
    return ConflictSeverity.CRITICAL


def strategy_for_severity(
    severity: ConflictSeverity, options: ConflictOptions
) -> ResolutionStrategy:
    """Suggested strategy for an overlapping conflict of the given severity."""
    if severity is ConflictSeverity.NONE:
        return ResolutionStrategy.TAKE_FIRST
    if severity is ConflictSeverity.LOW:
        return ResolutionStrategy.MERGE
    if severity is ConflictSeverity.MEDIUM:
        return ResolutionStrategy.MERGE if options.attempt_merge else ResolutionStrategy.MANUAL
    return ResolutionStrategy.MANUAL


def _line_range(*changes: CodeChange) -> frozenset[int]:
    lines: set[int] = set()
    for change in changes:
        lines.update(change.line_numbers)
    return frozenset(lines)


def _build(
    change1: CodeChange,
    change2: CodeChange,
    kind: ConflictKind,
    severity: ConflictSeverity,
    strategy: ResolutionStrategy,
    lines: frozenset[int],
    symbols: set[str] | frozenset[str],
    description: str,
    merged_content: str | None = None,
) -> Conflict:
    return Conflict(
        change1=change1,
        change2=change2,
        kind=kind,
        severity=severity,
        suggested_strategy=strategy,
        alternative_strategies=alternative_strategies(strategy),
        affected_lines=lines,
        affected_symbols=frozenset(symbols),
        description=description,
        merged_content=merged_content,
    )


class OverlappingDetector:
    """Line ranges intersect."""

    kind = ConflictKind.OVERLAPPING

    def __init__(self, options: ConflictOptions) -> None:
        """Initialize with the similarity bands from ``options``."""
        self.options = options

    def detect(self, change1: CodeChange, change2: CodeChange) -> Conflict | None:
        """Detect intersecting line ranges and grade them by text similarity."""
        if not (
            change1.start_line <= change2.end_line and change2.start_line <= change1.end_line
        ):
            return None

        severity = severity_from_similarity(
            change1.modified_code, change2.modified_code, self.options
        )
        symbols = set(extract_code_elements(change1.modified_code)) | set(
            extract_code_elements(change2.modified_code)
        )
        overlap = change1.line_numbers & change2.line_numbers
        return _build(
            change1,
            change2,
            self.kind,
            severity,
            strategy_for_severity(severity, self.options),
            overlap,
            symbols,
            f"Overlapping changes in {change1.file_path} at lines "
            f"{min(overlap)}-{max(overlap)}",
        )


class AdjacentDetector:
    """Ranges are disjoint but separated by at most ``adjacent_lines_threshold`` lines."""

    kind = ConflictKind.ADJACENT

    def __init__(self, options: ConflictOptions) -> None:
        """Initialize with the adjacency threshold from ``options``."""
        self.threshold = options.adjacent_lines_threshold

    def detect(self, change1: CodeChange, change2: CodeChange) -> Conflict | None:
        """Detect changes that sit close together without overlapping."""
        if change1.end_line < change2.start_line:
            first, second = change1, change2
        elif change2.end_line < change1.start_line:
            first, second = change2, change1
        else:
            return None

        gap = second.start_line - first.end_line
        if gap > self.threshold:
            return None

        severity = ConflictSeverity.MEDIUM if gap <= 1 else ConflictSeverity.LOW
        return _build(
            change1,
            change2,
            self.kind,
            severity,
            ResolutionStrategy.SEQUENTIAL,
            frozenset(range(first.start_line, second.end_line + 1)),
            set(),
            f"Adjacent changes in {change1.file_path} with {gap} line(s) between them",
        )


class RelatedDetector:
    """The original texts share a declared symbol or reference each other's symbols."""

    kind = ConflictKind.RELATED

    def detect(self, change1: CodeChange, change2: CodeChange) -> Conflict | None:
        """Detect shared or cross-referenced symbols in the original texts."""
        elements1 = set(extract_code_elements(change1.original_code))
        elements2 = set(extract_code_elements(change2.original_code))
        shared = elements1 & elements2
        cross = (extract_references(change1.original_code) & elements2) | (
            extract_references(change2.original_code) & elements1
        )
        if not shared and not cross:
            return None

        symbols = shared | cross
        return _build(
            change1,
            change2,
            self.kind,
            ConflictSeverity.MEDIUM,
            ResolutionStrategy.SEQUENTIAL,
            _line_range(change1, change2),
            symbols,
            f"Changes in {change1.file_path} touch related symbols: "
            f"{', '.join(sorted(symbols))}",
        )


class SemanticDetector:
    """Same-named functions or typed variables are redeclared differently."""

    kind = ConflictKind.SEMANTIC

    def detect(self, change1: CodeChange, change2: CodeChange) -> Conflict | None:
        """Detect differing signatures or variable types across the new texts."""
        signatures1 = extract_function_signatures(change1.modified_code)
        signatures2 = extract_function_signatures(change2.modified_code)
        types1 = extract_variable_types(change1.modified_code)
        types2 = extract_variable_types(change2.modified_code)

        symbols = {
            name
            for name in signatures1.keys() & signatures2.keys()
            if signatures1[name] != signatures2[name]
        }
        symbols.update(
            name for name in types1.keys() & types2.keys() if types1[name] != types2[name]
        )
        if not symbols:
            return None

        return _build(
            change1,
            change2,
            self.kind,
            ConflictSeverity.HIGH,
            ResolutionStrategy.MANUAL,
            _line_range(change1, change2),
            symbols,
            f"Incompatible declarations in {change1.file_path}: {', '.join(sorted(symbols))}",
        )


class ImportDetector:
    """Both new texts import the same module with different bindings."""

    kind = ConflictKind.IMPORT

    def detect(self, change1: CodeChange, change2: CodeChange) -> Conflict | None:
        """Detect imports of the same module with differing clauses."""
        imports1 = extract_imports(change1.modified_code)
        imports2 = extract_imports(change2.modified_code)
        modules = {m for m in imports1.keys() & imports2.keys() if imports1[m] != imports2[m]}
        if not modules:
            return None

        return _build(
            change1,
            change2,
            self.kind,
            ConflictSeverity.LOW,
            ResolutionStrategy.MERGE,
            _line_range(change1, change2),
            modules,
            f"Conflicting imports in {change1.file_path} from {', '.join(sorted(modules))}",
            merged_content=merge_imports(change1.modified_code, change2.modified_code),
        )


class DependencyDetector:
    """Both new texts pin the same dependency to different versions (manifests only)."""

    kind = ConflictKind.DEPENDENCY

    def __init__(self, options: ConflictOptions) -> None:
        """Initialize with the manifest matcher from ``options``."""
        self.is_manifest = options.manifest_matcher or is_dependency_manifest

    def applies_to(self, file_path: str) -> bool:
        """True when ``file_path`` names a dependency manifest."""
        return self.is_manifest(file_path)

    def detect(self, change1: CodeChange, change2: CodeChange) -> Conflict | None:
        """Detect dependencies declared with different versions."""
        if not self.applies_to(change1.file_path):
            return None
        deps1 = parse_dependencies(change1.modified_code)
        deps2 = parse_dependencies(change2.modified_code)
        names = {name for name in deps1.keys() & deps2.keys() if deps1[name] != deps2[name]}
        if not names:
            return None

        return _build(
            change1,
            change2,
            self.kind,
            ConflictSeverity.MEDIUM,
            ResolutionStrategy.MERGE,
            _line_range(change1, change2),
            names,
            f"Dependency version conflicts in {change1.file_path}: "
            f"{', '.join(sorted(names))}",
            merged_content=merge_dependencies(change1.modified_code, change2.modified_code),
        )


def build_detectors(options: ConflictOptions) -> list[ConflictDetector]:
    """Detectors in priority order, honouring the enable flags in ``options``.

    The dependency detector runs first: on manifests a version clash is the
    more specific finding even when the changed lines also overlap.
    """
    detectors: list[ConflictDetector] = [
        # Only fires for package manifests; other files see the overlap-first order.
        DependencyDetector(options),
        OverlappingDetector(options),
        AdjacentDetector(options),
    ]
    if options.detect_related_conflicts:
        detectors.append(RelatedDetector())
    if options.perform_semantic_analysis:
        detectors.append(SemanticDetector())
    if options.detect_import_conflicts:
        detectors.append(ImportDetector())
    return detectors
