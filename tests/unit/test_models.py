"""Unit tests for change_guard.core.models."""

import pytest

from change_guard.core.models import (
    ChangeErrorKind,
    ChangeRequest,
    ChangeResult,
    CodeChange,
    ConflictSeverity,
    ResolutionStrategy,
    ValidationIssue,
    ValidationResult,
    ValidationSeverity,
)


class TestEnums:
    """Test enum ordering and string forms."""

    def test_validation_severity_rank(self) -> None:
        ranks = [s.rank for s in ValidationSeverity]
        assert ranks == [0, 1, 2, 3]

    def test_blocking_severities(self) -> None:
        assert ValidationSeverity.ERROR.is_blocking
        assert ValidationSeverity.CRITICAL.is_blocking
        assert not ValidationSeverity.WARNING.is_blocking
        assert not ValidationSeverity.INFO.is_blocking

    def test_conflict_severity_ordering(self) -> None:
        assert ConflictSeverity.NONE.rank < ConflictSeverity.LOW.rank
        assert ConflictSeverity.HIGH.rank < ConflictSeverity.CRITICAL.rank

    def test_str_is_value(self) -> None:
        assert str(ResolutionStrategy.TAKE_FIRST) == "take_first"
        assert str(ChangeErrorKind.SANDBOX) == "sandbox"


class TestChangeRequest:
    """Test ChangeRequest validation."""

    def test_empty_source_is_allowed(self) -> None:
        request = ChangeRequest("Btn", "")
        assert request.source == ""

    def test_none_source_rejected(self) -> None:
        with pytest.raises(ValueError, match="no source"):
            ChangeRequest("Btn", None)  # type: ignore[arg-type]

    def test_empty_unit_id_rejected(self) -> None:
        with pytest.raises(ValueError):
            ChangeRequest("", "x")


class TestValidationResult:
    """Test ValidationResult.from_issues."""

    def test_warnings_only_succeed(self) -> None:
        issue = ValidationIssue("minor", ValidationSeverity.WARNING)
        result = ValidationResult.from_issues([issue], error="ignored", error_kind=None)
        # An explicit error still fails the result
        assert not result.success

        result = ValidationResult.from_issues([issue])
        assert result.success
        assert result.error is None
        assert result.warnings == (issue,)

    def test_blocking_issue_fails(self) -> None:
        issue = ValidationIssue("bad", ValidationSeverity.ERROR)
        result = ValidationResult.from_issues(
            [issue], error="bad", error_kind=ChangeErrorKind.PATTERN
        )
        assert not result.success
        assert result.error_kind is ChangeErrorKind.PATTERN
        assert result.warnings == ()

    def test_success_drops_error_kind(self) -> None:
        result = ValidationResult.from_issues([], error_kind=ChangeErrorKind.PATTERN)
        assert result.success
        assert result.error_kind is None


class TestCodeChange:
    """Test CodeChange line ranges."""

    def test_line_numbers(self) -> None:
        change = CodeChange("a.ts", 3, 5, "", "x", "c1")
        assert change.line_numbers == frozenset({3, 4, 5})

    def test_start_line_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="start_line"):
            CodeChange("a.ts", 0, 2, "", "x", "c1")

    def test_end_before_start_rejected(self) -> None:
        with pytest.raises(ValueError, match="end_line"):
            CodeChange("a.ts", 5, 4, "", "x", "c1")


def test_change_result_warnings() -> None:
    """ChangeResult.warnings filters out blocking issues."""
    warning = ValidationIssue("w", ValidationSeverity.WARNING)
    error = ValidationIssue("e", ValidationSeverity.ERROR)
    result = ChangeResult(success=False, unit_id="Btn", validation_issues=(warning, error))
    assert result.warnings == (warning,)
