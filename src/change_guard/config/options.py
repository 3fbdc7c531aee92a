"""Per-component option records.

``SafeChangeOptions`` tunes the apply pipeline and ``ConflictOptions`` tunes
the conflict engine. Both are plain immutable values; ``RuntimeConfig``
projects onto them.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..core.models import ConflictSeverity
from .exceptions import ConfigError

if TYPE_CHECKING:
    from ..validation.stages import ValidationStage

# Overlap similarity bands: above LOW_SIMILARITY the conflict is LOW, above
# MEDIUM_SIMILARITY it is MEDIUM, above HIGH_SIMILARITY it is HIGH, else CRITICAL.
LOW_SEVERITY_SIMILARITY = 0.9
MEDIUM_SEVERITY_SIMILARITY = 0.7
HIGH_SEVERITY_SIMILARITY = 0.4

DEFAULT_ADJACENT_LINES_THRESHOLD = 3
DEFAULT_MAX_BACKUP_COUNT = 10


@dataclass(frozen=True, slots=True)
class SafeChangeOptions:
    """Options for :class:`~change_guard.core.applier.ChangeApplier`.

    Attributes:
        enable_rollback: Allow ``rollback`` to restore backups.
        strict_validation: Run the security stage.
        dependency_check: Compute affected dependents when a lookup is supplied.
        create_backup: Push the current source before validating a change.
        sandbox_execution: Dry-run the proposed source before accepting it.
        max_backup_count: Bound of each unit's backup stack.
        auto_apply_fixes: Apply auto-fixable suggestions before accepting.
        custom_validators: Extra stages run after the built-in ones.
    """

    enable_rollback: bool = True
    strict_validation: bool = True
    dependency_check: bool = True
    create_backup: bool = True
    sandbox_execution: bool = True
    max_backup_count: int = DEFAULT_MAX_BACKUP_COUNT
    auto_apply_fixes: bool = False
    custom_validators: tuple["ValidationStage", ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        """Validate option values.

        Raises:
            ConfigError: If ``max_backup_count`` is not positive.
        """
        if self.max_backup_count < 1:
            raise ConfigError(f"max_backup_count must be >= 1, got {self.max_backup_count}")


@dataclass(frozen=True, slots=True)
class ConflictOptions:
    """Options for :class:`~change_guard.analysis.conflict_engine.ConflictEngine`."""

    auto_resolve_severity: ConflictSeverity = ConflictSeverity.LOW
    adjacent_lines_threshold: int = DEFAULT_ADJACENT_LINES_THRESHOLD
    attempt_merge: bool = True
    detect_related_conflicts: bool = True
    perform_semantic_analysis: bool = True
    detect_import_conflicts: bool = True
    low_severity_similarity: float = LOW_SEVERITY_SIMILARITY
    medium_severity_similarity: float = MEDIUM_SEVERITY_SIMILARITY
    high_severity_similarity: float = HIGH_SEVERITY_SIMILARITY
    manifest_matcher: Callable[[str], bool] | None = None

    def __post_init__(self) -> None:
        """Validate option values.

        Raises:
            ConfigError: If the threshold or similarity bands are invalid.
        """
        if self.adjacent_lines_threshold < 0:
            raise ConfigError(
                f"adjacent_lines_threshold must be >= 0, got {self.adjacent_lines_threshold}"
            )
        bands = (
            self.low_severity_similarity,
            self.medium_severity_similarity,
            self.high_severity_similarity,
        )
        if any(not 0.0 <= b <= 1.0 for b in bands):
            raise ConfigError(f"similarity thresholds must be within 0..1, got {bands}")
        if not bands[0] >= bands[1] >= bands[2]:
            raise ConfigError(
                "similarity thresholds must satisfy low >= medium >= high, got "
                f"{bands[0]} / {bands[1]} / {bands[2]}"
            )
