"""Core models, events and backup storage for the safe-change pipeline."""

from change_guard.core.backup import BackupStore
from change_guard.core.events import EventBus, SafeChangeEvent
from change_guard.core.models import (
    ChangeErrorKind,
    ChangeRequest,
    ChangeResult,
    CodeChange,
    CodeUnit,
    Conflict,
    ConflictKind,
    ConflictSeverity,
    ResolutionStrategy,
    ValidationIssue,
    ValidationResult,
    ValidationSeverity,
)

__all__ = [
    "BackupStore",
    "ChangeErrorKind",
    "ChangeRequest",
    "ChangeResult",
    "CodeChange",
    "CodeUnit",
    "Conflict",
    "ConflictKind",
    "ConflictSeverity",
    "EventBus",
    "ResolutionStrategy",
    "SafeChangeEvent",
    "ValidationIssue",
    "ValidationResult",
    "ValidationSeverity",
]
