"""Configuration presets for different use cases."""

from typing import Any, ClassVar


class PresetConfig:
    """Predefined configuration presets.

    Each preset is a flat mapping of ``RuntimeConfig`` field overrides applied
    on top of the defaults.
    """

    CONSERVATIVE: ClassVar[dict[str, Any]] = {
        "strict_validation": True,
        "sandbox_execution": True,
        "dependency_check": True,
        "max_backup_count": 20,
        "auto_apply_fixes": False,
        "auto_resolve_severity": "none",
        "attempt_merge": False,
    }

    BALANCED: ClassVar[dict[str, Any]] = {}

    PERMISSIVE: ClassVar[dict[str, Any]] = {
        "strict_validation": False,
        "sandbox_execution": False,
        "dependency_check": False,
        "auto_apply_fixes": True,
        "auto_resolve_severity": "medium",
        "log_level": "WARNING",
    }

    @classmethod
    def names(cls) -> list[str]:
        """List available preset names."""
        return ["conservative", "balanced", "permissive"]

    @classmethod
    def get(cls, name: str) -> dict[str, Any]:
        """Return a copy of the preset called ``name``.

        Raises:
            KeyError: If the preset does not exist.
        """
        key = name.strip().lower()
        if key not in cls.names():
            raise KeyError(f"Unknown preset '{name}'. Available: {', '.join(cls.names())}")
        return dict(getattr(cls, key.upper()))
