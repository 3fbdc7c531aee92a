"""change-guard.

Safe application of proposed source changes to code units (validation,
backups, rollback and transactional batches) plus detection and resolution
of conflicts between competing line-range edits.
"""

__version__ = "0.1.0"

from .analysis.conflict_engine import ConflictEngine
from .config.options import ConflictOptions, SafeChangeOptions
from .config.presets import PresetConfig
from .config.runtime_config import RuntimeConfig
from .core.applier import ChangeApplier
from .core.coordinator import ChangeCoordinator
from .core.events import EventBus, SafeChangeEvent
from .core.models import (
    ChangeRequest,
    ChangeResult,
    CodeChange,
    CodeUnit,
    Conflict,
    ConflictAnalysis,
    ConflictKind,
    ConflictSeverity,
    ResolutionStrategy,
    ValidationResult,
)
from .strategies.merge_resolvers import MergeResolvers
from .units.capabilities import CapabilityRegistry, UnitCapabilities
from .units.react import react_capabilities
from .utils.diff import LineDiffEngine

__all__ = [
    "CapabilityRegistry",
    "ChangeApplier",
    "ChangeCoordinator",
    "ChangeRequest",
    "ChangeResult",
    "CodeChange",
    "CodeUnit",
    "Conflict",
    "ConflictAnalysis",
    "ConflictEngine",
    "ConflictKind",
    "ConflictOptions",
    "ConflictSeverity",
    "EventBus",
    "LineDiffEngine",
    "MergeResolvers",
    "PresetConfig",
    "ResolutionStrategy",
    "RuntimeConfig",
    "SafeChangeEvent",
    "SafeChangeOptions",
    "UnitCapabilities",
    "ValidationResult",
    "react_capabilities",
]
