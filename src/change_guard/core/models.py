"""Data models for the safe-change pipeline and the conflict engine.

This module contains the core data classes used throughout the system to
represent code units, change requests, validation outcomes, proposed edits,
conflicts and their resolutions.

Example:
    >>> from change_guard.core.models import CodeChange
    >>> change = CodeChange(
    ...     file_path="src/Button.tsx",
    ...     start_line=10,
    ...     end_line=12,
    ...     original_code="return <button />;",
    ...     modified_code="return <button type='button' />;",
    ...     change_id="c1",
    ... )
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, TypeAlias


class ValidationSeverity(str, Enum):
    """Severity of a validation issue, ordered from least to most severe."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Ordinal position of the severity (info=0 .. critical=3)."""
        return _VALIDATION_ORDER.index(self)

    @property
    def is_blocking(self) -> bool:
        """True for severities that make a validation fail."""
        return self in (ValidationSeverity.ERROR, ValidationSeverity.CRITICAL)

    def __str__(self) -> str:
        """Return string representation of severity."""
        return self.value


_VALIDATION_ORDER = (
    ValidationSeverity.INFO,
    ValidationSeverity.WARNING,
    ValidationSeverity.ERROR,
    ValidationSeverity.CRITICAL,
)


class ChangeErrorKind(str, Enum):
    """Failure taxonomy attached to unsuccessful change results."""

    NOT_FOUND = "not_found"
    NO_SOURCE = "no_source"
    SYNTAX = "syntax"
    SECURITY = "security"
    PATTERN = "pattern"
    VALIDATION = "validation"
    SANDBOX = "sandbox"
    ROLLED_BACK = "rolled_back"
    ROLLBACK = "rollback"
    UNEXPECTED = "unexpected"

    def __str__(self) -> str:
        """Return string representation of error kind."""
        return self.value


class ConflictKind(str, Enum):
    """How two proposed edits to the same file collide."""

    OVERLAPPING = "overlapping"
    ADJACENT = "adjacent"
    RELATED = "related"
    SEMANTIC = "semantic"
    IMPORT = "import"
    DEPENDENCY = "dependency"

    def __str__(self) -> str:
        """Return string representation of conflict kind."""
        return self.value


class ConflictSeverity(str, Enum):
    """Ordinal risk level of a conflict (none < low < medium < high < critical)."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Ordinal position of the severity (none=0 .. critical=4)."""
        return _CONFLICT_ORDER.index(self)

    def __str__(self) -> str:
        """Return string representation of severity."""
        return self.value


_CONFLICT_ORDER = (
    ConflictSeverity.NONE,
    ConflictSeverity.LOW,
    ConflictSeverity.MEDIUM,
    ConflictSeverity.HIGH,
    ConflictSeverity.CRITICAL,
)


class ResolutionStrategy(str, Enum):
    """Policy used to produce a single result from two colliding edits."""

    TAKE_FIRST = "take_first"
    TAKE_SECOND = "take_second"
    MERGE = "merge"
    SEQUENTIAL = "sequential"
    SKIP_BOTH = "skip_both"
    MANUAL = "manual"

    def __str__(self) -> str:
        """Return string representation of strategy."""
        return self.value


# Type aliases for clarity and strict typing
UnitId: TypeAlias = str
Metadata: TypeAlias = Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class CodeUnit:
    """Read-only snapshot of a live code unit owned by an external registry."""

    id: UnitId
    name: str
    source: str


@dataclass(frozen=True, slots=True)
class ChangeRequest:
    """A proposed full-text replacement for one code unit.

    An empty ``source`` is a legal "empty body" request; ``None`` is rejected.

    Raises:
        ValueError: If ``source`` is None or ``unit_id`` is empty.
    """

    unit_id: UnitId
    source: str
    description: str | None = None
    metadata: Metadata = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate the request after initialization."""
        if not self.unit_id:
            raise ValueError("ChangeRequest.unit_id must be a non-empty string")
        if self.source is None:
            raise ValueError(f"ChangeRequest for '{self.unit_id}' has no source text")


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """A single finding produced by a validation stage.

    Attributes:
        message: Human-readable description of the issue.
        severity: How serious the issue is.
        line: Optional 1-based line number.
        column: Optional 1-based column number.
        suggested_fix: Optional replacement source text that fixes the issue.
        auto_fixable: Whether ``suggested_fix`` may be applied without review.
        stage: Name of the stage that reported the issue.
    """

    message: str
    severity: ValidationSeverity
    line: int | None = None
    column: int | None = None
    suggested_fix: str | None = None
    auto_fixable: bool = False
    stage: str | None = None


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of running one or more validation stages."""

    success: bool
    issues: tuple[ValidationIssue, ...] = ()
    error: str | None = None
    error_kind: ChangeErrorKind | None = None

    @classmethod
    def from_issues(
        cls,
        issues: list[ValidationIssue] | tuple[ValidationIssue, ...],
        error: str | None = None,
        error_kind: ChangeErrorKind | None = None,
    ) -> "ValidationResult":
        """Build a result whose success flag is derived from the issue severities."""
        blocking = any(issue.severity.is_blocking for issue in issues)
        success = not blocking and error is None
        return cls(
            success=success,
            issues=tuple(issues),
            error=None if success else error,
            error_kind=None if success else error_kind,
        )

    @property
    def warnings(self) -> tuple[ValidationIssue, ...]:
        """Issues that did not block the change."""
        return tuple(i for i in self.issues if not i.severity.is_blocking)


@dataclass(frozen=True, slots=True)
class ValidationContext:
    """Information handed to every validation stage alongside the code."""

    unit_id: UnitId
    unit_name: str
    original_source: str | None = None
    unit_type: str | None = None
    language: str | None = None
    metadata: Metadata = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ChangeResult:
    """Result of applying (or refusing) one change request.

    ``new_source`` is only set when ``success`` is True.
    """

    success: bool
    unit_id: UnitId
    new_source: str | None = None
    diff: str = ""
    affected_dependencies: tuple[UnitId, ...] = ()
    validation_issues: tuple[ValidationIssue, ...] = ()
    error: str | None = None
    error_kind: ChangeErrorKind | None = None

    @property
    def warnings(self) -> tuple[ValidationIssue, ...]:
        """Non-blocking issues carried by the result."""
        return tuple(i for i in self.validation_issues if not i.severity.is_blocking)


@dataclass(frozen=True, slots=True)
class CodeChange:
    """A proposed edit to a line range of a file (1-based, inclusive).

    Raises:
        ValueError: If the line range is invalid.
    """

    file_path: str
    start_line: int
    end_line: int
    original_code: str
    modified_code: str
    change_id: str
    author: str | None = None
    timestamp: datetime | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        """Validate the line range after initialization."""
        if self.start_line < 1:
            raise ValueError(f"start_line must be >= 1, got {self.start_line}")
        if self.end_line < self.start_line:
            raise ValueError(
                f"end_line ({self.end_line}) must be >= start_line ({self.start_line})"
            )

    @property
    def line_numbers(self) -> frozenset[int]:
        """All line numbers covered by this change."""
        return frozenset(range(self.start_line, self.end_line + 1))


@dataclass(frozen=True, slots=True)
class Conflict:
    """A collision between two proposed edits to the same file."""

    change1: CodeChange
    change2: CodeChange
    kind: ConflictKind
    severity: ConflictSeverity
    suggested_strategy: ResolutionStrategy
    alternative_strategies: tuple[ResolutionStrategy, ...]
    affected_lines: frozenset[int] = frozenset()
    affected_symbols: frozenset[str] = frozenset()
    description: str = ""
    merged_content: str | None = None

    @property
    def file_path(self) -> str:
        """File both changes target."""
        return self.change1.file_path


@dataclass(frozen=True, slots=True)
class AutoResolution:
    """A conflict that the engine resolved without human input."""

    conflict: Conflict
    strategy_used: ResolutionStrategy
    resolved_content: str


@dataclass(frozen=True, slots=True)
class ConflictStats:
    """Summary counters for one detection run."""

    total_changes: int
    total_conflicts: int
    auto_resolved: int
    unresolved: int
    by_severity: Mapping[ConflictSeverity, int]
    by_kind: Mapping[ConflictKind, int]


@dataclass(frozen=True, slots=True)
class ConflictAnalysis:
    """Full result of ``ConflictEngine.detect_and_resolve_conflicts``."""

    conflicts: list[Conflict]
    non_conflicting_changes: list[CodeChange]
    auto_resolved: list[AutoResolution]
    unresolved_conflicts: list[Conflict]
    stats: ConflictStats
