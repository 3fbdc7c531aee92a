"""Validation stages.

A :class:`ValidationStage` is a plain record bundling a name, the severity
level that decides whether its failure aborts the pipeline, and the check
itself. Stages are composed by :class:`~change_guard.validation.pipeline.ValidationPipeline`.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from ..core.models import (
    ChangeErrorKind,
    ValidationContext,
    ValidationIssue,
    ValidationResult,
    ValidationSeverity,
)
from ..utils.ast_parser import find_syntax_problem, parse_source

logger = logging.getLogger(__name__)

Validator = Callable[[str, ValidationContext], ValidationResult]
Fixer = Callable[[str, tuple[ValidationIssue, ...]], str]


@dataclass(frozen=True, slots=True)
class ValidationStage:
    """A named, independently pluggable check.

    Attributes:
        name: Stage identifier used in logs and issue records.
        severity: Level of the stage. A failing stage at ERROR or CRITICAL
            level aborts the pipeline; lower levels only contribute issues.
        validate: The check itself.
        error_kind: Failure category reported when this stage aborts.
        fix: Optional function applying the stage's auto-fixable suggestions.
    """

    name: str
    severity: ValidationSeverity
    validate: Validator
    error_kind: ChangeErrorKind = ChangeErrorKind.VALIDATION
    fix: Fixer | None = None

    @property
    def aborts_on_failure(self) -> bool:
        """Whether a failure of this stage stops the pipeline."""
        return self.severity.is_blocking


def check_syntax(code: str, context: ValidationContext) -> ValidationResult:
    """Parse ``code`` and report the first syntax problem as an ERROR issue."""
    problem = find_syntax_problem(parse_source(code))
    if problem is None:
        return ValidationResult(success=True)
    message = f"Syntax error at line {problem.line}, column {problem.column}: {problem.message}"
    logger.debug(f"Syntax check failed for {context.unit_id}: {message}")
    issue = ValidationIssue(
        message=problem.message,
        severity=ValidationSeverity.ERROR,
        line=problem.line,
        column=problem.column,
        stage="syntax",
    )
    return ValidationResult.from_issues([issue], error=message, error_kind=ChangeErrorKind.SYNTAX)


def syntax_stage() -> ValidationStage:
    """Stage checking that the source parses as JavaScript/TypeScript/JSX."""
    return ValidationStage(
        name="syntax",
        severity=ValidationSeverity.ERROR,
        validate=check_syntax,
        error_kind=ChangeErrorKind.SYNTAX,
    )
