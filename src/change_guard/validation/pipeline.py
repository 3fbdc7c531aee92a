"""Ordered, short-circuiting execution of validation stages."""

import logging
from collections.abc import Sequence

from ..core.models import ValidationContext, ValidationIssue, ValidationResult
from .stages import ValidationStage


class ValidationPipeline:
    """Run stages in order, aborting on the first failing blocking stage.

    Issues from non-aborting stages accumulate. The final result succeeds only
    when no accumulated issue is ERROR or CRITICAL.
    """

    def __init__(self, stages: Sequence[ValidationStage]) -> None:
        """Initialize with the ordered stages."""
        self.stages = tuple(stages)
        self.logger = logging.getLogger(__name__)

    @property
    def stage_names(self) -> list[str]:
        """Names of the configured stages, in execution order."""
        return [stage.name for stage in self.stages]

    def run(self, code: str, context: ValidationContext) -> ValidationResult:
        """Validate ``code`` against every stage."""
        issues: list[ValidationIssue] = []
        for stage in self.stages:
            result = self._run_stage(stage, code, context)
            if not result.success and stage.aborts_on_failure:
                self.logger.info(
                    f"Validation of {context.unit_id} stopped at stage '{stage.name}': "
                    f"{result.error}"
                )
                return ValidationResult(
                    success=False,
                    issues=(*issues, *result.issues),
                    error=result.error or f"Validation stage '{stage.name}' failed",
                    error_kind=result.error_kind or stage.error_kind,
                )
            issues.extend(result.issues)

        blocking = [i for i in issues if i.severity.is_blocking]
        error = blocking[0].message if blocking else None
        return ValidationResult.from_issues(issues, error=error)

    def _run_stage(
        self, stage: ValidationStage, code: str, context: ValidationContext
    ) -> ValidationResult:
        self.logger.debug(f"Running validation stage '{stage.name}' for {context.unit_id}")
        try:
            return stage.validate(code, context)
        except Exception as e:
            self.logger.exception(f"Validation stage '{stage.name}' raised")
            return ValidationResult(
                success=False,
                error=f"Validation stage '{stage.name}' raised: {e}",
                error_kind=stage.error_kind,
            )

    def fix(self, code: str, issues: Sequence[ValidationIssue]) -> str:
        """Apply every stage's fixer to the auto-fixable issues it reported."""
        fixed = code
        for stage in self.stages:
            if stage.fix is None:
                continue
            own = tuple(i for i in issues if i.auto_fixable and i.stage == stage.name)
            if own:
                fixed = stage.fix(fixed, own)
        return fixed
