"""Runtime configuration management with environment variable and file support.

This module provides the RuntimeConfig system for managing application configuration
from multiple sources: defaults, presets, config files (YAML/TOML), environment
variables, and CLI flags. Configuration precedence: CLI flags > env vars > config
file > preset > defaults.
"""

import logging
import os
import sys
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from ..core.models import ConflictSeverity
from .exceptions import ConfigError
from .options import (
    DEFAULT_ADJACENT_LINES_THRESHOLD,
    DEFAULT_MAX_BACKUP_COUNT,
    HIGH_SEVERITY_SIMILARITY,
    LOW_SEVERITY_SIMILARITY,
    MEDIUM_SEVERITY_SIMILARITY,
    ConflictOptions,
    SafeChangeOptions,
)
from .presets import PresetConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "CG_"
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _parse_severity(value: Any, source: str) -> ConflictSeverity:  # noqa: ANN401
    """Coerce a string or enum into a ConflictSeverity."""
    if isinstance(value, ConflictSeverity):
        return value
    try:
        return ConflictSeverity(str(value).strip().lower())
    except ValueError as e:
        valid = [s.value for s in ConflictSeverity]
        raise ConfigError(f"Invalid {source}='{value}'. Must be one of {valid}") from e


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    """Runtime configuration for change-guard.

    This immutable configuration dataclass manages application settings from multiple
    sources with proper precedence. All fields are validated during initialization.

    Attributes:
        enable_rollback: Allow restoring backups after an apply.
        strict_validation: Run the security scan stage.
        dependency_check: Report dependents affected by a change.
        create_backup: Snapshot the current source before each apply.
        sandbox_execution: Dry-run proposed source before accepting it.
        max_backup_count: Maximum backups kept per code unit.
        auto_apply_fixes: Apply auto-fixable validation suggestions.
        auto_resolve_severity: Highest conflict severity resolved without review.
        adjacent_lines_threshold: Line gap within which changes count as adjacent.
        attempt_merge: Suggest merging medium-severity overlaps instead of manual review.
        detect_related_conflicts: Enable the related-symbol detector.
        perform_semantic_analysis: Enable the signature/type detector.
        detect_import_conflicts: Enable the import detector.
        low_severity_similarity: Overlap similarity above which severity is LOW.
        medium_severity_similarity: Overlap similarity above which severity is MEDIUM.
        high_severity_similarity: Overlap similarity above which severity is HIGH.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to log file. If None, logs to stderr only.

    Example:
        >>> config = RuntimeConfig.from_env()
        >>> config = config.merge_with_cli(strict_validation=False)
        >>> print(f"Strict: {config.strict_validation}")
        Strict: False
    """

    enable_rollback: bool = True
    strict_validation: bool = True
    dependency_check: bool = True
    create_backup: bool = True
    sandbox_execution: bool = True
    max_backup_count: int = DEFAULT_MAX_BACKUP_COUNT
    auto_apply_fixes: bool = False
    auto_resolve_severity: ConflictSeverity = ConflictSeverity.LOW
    adjacent_lines_threshold: int = DEFAULT_ADJACENT_LINES_THRESHOLD
    attempt_merge: bool = True
    detect_related_conflicts: bool = True
    perform_semantic_analysis: bool = True
    detect_import_conflicts: bool = True
    low_severity_similarity: float = LOW_SEVERITY_SIMILARITY
    medium_severity_similarity: float = MEDIUM_SEVERITY_SIMILARITY
    high_severity_similarity: float = HIGH_SEVERITY_SIMILARITY
    log_level: str = "INFO"
    log_file: str | None = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization.

        Raises:
            ConfigError: If any configuration value is invalid.
        """
        if self.log_level not in VALID_LOG_LEVELS:
            raise ConfigError(
                f"Invalid log level: {self.log_level}. Must be one of {VALID_LOG_LEVELS}"
            )

        if self.max_backup_count < 1:
            raise ConfigError(f"max_backup_count must be >= 1, got {self.max_backup_count}")
        if self.max_backup_count > 100:
            logger.warning(
                f"max_backup_count={self.max_backup_count} is very high. "
                f"Every unit keeps that many full source copies in memory."
            )

        if not isinstance(self.auto_resolve_severity, ConflictSeverity):
            raise ConfigError(
                "auto_resolve_severity must be ConflictSeverity enum, "
                f"got {type(self.auto_resolve_severity).__name__}"
            )

        if self.auto_resolve_severity.rank >= ConflictSeverity.HIGH.rank:
            logger.warning(
                f"auto_resolve_severity={self.auto_resolve_severity} lets risky conflicts "
                f"resolve without review."
            )

        # Delegate band and threshold checks to the component options
        self.to_conflict_options()

    @classmethod
    def from_defaults(cls) -> "RuntimeConfig":
        """Create configuration with default values.

        Example:
            >>> config = RuntimeConfig.from_defaults()
            >>> assert config.max_backup_count == 10
        """
        return cls()

    @classmethod
    def from_preset(cls, name: str) -> "RuntimeConfig":
        """Create configuration from a named preset.

        Raises:
            ConfigError: If the preset name is unknown.
        """
        try:
            overrides = PresetConfig.get(name)
        except KeyError as e:
            raise ConfigError(str(e)) from e
        return cls.from_defaults().merge_with_cli(**overrides)

    @classmethod
    def from_conservative(cls) -> "RuntimeConfig":
        """Create conservative configuration for maximum safety.

        Only conflicts of severity NONE resolve automatically and overlaps are
        never merged without review.
        """
        return cls.from_preset("conservative")

    @classmethod
    def from_balanced(cls) -> "RuntimeConfig":
        """Create balanced configuration (same as defaults)."""
        return cls.from_defaults()

    @classmethod
    def from_permissive(cls) -> "RuntimeConfig":
        """Create permissive configuration that skips optional safety stages."""
        return cls.from_preset("permissive")

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        """Create configuration from environment variables.

        Loads configuration from environment variables with CG_ prefix:
        - CG_ENABLE_ROLLBACK, CG_STRICT_VALIDATION, CG_DEPENDENCY_CHECK,
          CG_CREATE_BACKUP, CG_SANDBOX_EXECUTION, CG_AUTO_APPLY_FIXES,
          CG_ATTEMPT_MERGE, CG_DETECT_RELATED, CG_SEMANTIC_ANALYSIS,
          CG_DETECT_IMPORTS: booleans (true/false, 1/0, yes/no, on/off)
        - CG_MAX_BACKUP_COUNT: Backups per unit (default: "10")
        - CG_ADJACENT_LINES: Adjacent-change line gap (default: "3")
        - CG_AUTO_RESOLVE_SEVERITY: none/low/medium/high/critical (default: "low")
        - CG_LOG_LEVEL: Logging level (default: "INFO")
        - CG_LOG_FILE: Log file path (default: None)

        Raises:
            ConfigError: If environment variable has invalid value.

        Example:
            >>> os.environ["CG_STRICT_VALIDATION"] = "false"
            >>> config = RuntimeConfig.from_env()
            >>> assert config.strict_validation is False
        """
        defaults = cls.from_defaults()

        def parse_bool(env_var: str, default: bool) -> bool:
            """Parse boolean environment variable."""
            value = os.getenv(env_var, str(default)).lower()
            if value in ("true", "1", "yes", "on"):
                return True
            if value in ("false", "0", "no", "off"):
                return False
            raise ConfigError(
                f"Invalid {env_var}='{value}'. Must be true/false, 1/0, yes/no, or on/off"
            )

        def parse_int(env_var: str, default: int, min_value: int = 1) -> int:
            """Parse integer environment variable."""
            value_str = os.getenv(env_var, str(default))
            try:
                value = int(value_str)
            except ValueError as e:
                raise ConfigError(f"Invalid {env_var}='{value_str}'. Must be an integer") from e
            if value < min_value:
                raise ConfigError(f"{env_var}={value} must be >= {min_value}")
            return value

        return cls(
            enable_rollback=parse_bool(f"{ENV_PREFIX}ENABLE_ROLLBACK", defaults.enable_rollback),
            strict_validation=parse_bool(
                f"{ENV_PREFIX}STRICT_VALIDATION", defaults.strict_validation
            ),
            dependency_check=parse_bool(f"{ENV_PREFIX}DEPENDENCY_CHECK", defaults.dependency_check),
            create_backup=parse_bool(f"{ENV_PREFIX}CREATE_BACKUP", defaults.create_backup),
            sandbox_execution=parse_bool(
                f"{ENV_PREFIX}SANDBOX_EXECUTION", defaults.sandbox_execution
            ),
            max_backup_count=parse_int(
                f"{ENV_PREFIX}MAX_BACKUP_COUNT", defaults.max_backup_count, min_value=1
            ),
            auto_apply_fixes=parse_bool(f"{ENV_PREFIX}AUTO_APPLY_FIXES", defaults.auto_apply_fixes),
            auto_resolve_severity=_parse_severity(
                os.getenv(
                    f"{ENV_PREFIX}AUTO_RESOLVE_SEVERITY", defaults.auto_resolve_severity.value
                ),
                f"{ENV_PREFIX}AUTO_RESOLVE_SEVERITY",
            ),
            adjacent_lines_threshold=parse_int(
                f"{ENV_PREFIX}ADJACENT_LINES", defaults.adjacent_lines_threshold, min_value=0
            ),
            attempt_merge=parse_bool(f"{ENV_PREFIX}ATTEMPT_MERGE", defaults.attempt_merge),
            detect_related_conflicts=parse_bool(
                f"{ENV_PREFIX}DETECT_RELATED", defaults.detect_related_conflicts
            ),
            perform_semantic_analysis=parse_bool(
                f"{ENV_PREFIX}SEMANTIC_ANALYSIS", defaults.perform_semantic_analysis
            ),
            detect_import_conflicts=parse_bool(
                f"{ENV_PREFIX}DETECT_IMPORTS", defaults.detect_import_conflicts
            ),
            log_level=os.getenv(f"{ENV_PREFIX}LOG_LEVEL", defaults.log_level).upper(),
            log_file=os.getenv(f"{ENV_PREFIX}LOG_FILE") or defaults.log_file,
        )

    @classmethod
    def from_file(cls, config_path: Path) -> "RuntimeConfig":
        """Load configuration from YAML or TOML file.

        Supports both YAML (.yaml, .yml) and TOML (.toml) formats. The file may
        contain ``safe_change``, ``conflicts`` and ``logging`` sections:

        .. code-block:: yaml

            preset: conservative
            safe_change:
              strict_validation: true
              max_backup_count: 5
            conflicts:
              auto_resolve_severity: low
              adjacent_lines_threshold: 2
              similarity: {low: 0.9, medium: 0.7, high: 0.4}
            logging:
              level: DEBUG
              file: change-guard.log

        Raises:
            ConfigError: If file doesn't exist, has invalid format, or contains invalid values.
        """
        try:
            config_path = Path(config_path).resolve()
        except (OSError, ValueError) as e:
            raise ConfigError(f"Invalid config file path: {e}") from e

        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        if not config_path.is_file():
            raise ConfigError(f"Config path is not a file: {config_path}")

        suffix = config_path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            return cls._load_from_yaml(config_path)
        elif suffix == ".toml":
            return cls._load_from_toml(config_path)
        else:
            raise ConfigError(
                f"Unsupported config file format: {suffix}. Must be .yaml, .yml, or .toml"
            )

    @classmethod
    def _load_from_yaml(cls, config_path: Path) -> "RuntimeConfig":
        """Load configuration from YAML file."""
        try:
            import yaml
        except ImportError as e:
            raise ConfigError("PyYAML not installed. Install with: pip install pyyaml") from e

        try:
            with config_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read {config_path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file must contain a mapping/dict, got {type(data).__name__}")

        return cls._from_dict(data, config_path)

    @classmethod
    def _load_from_toml(cls, config_path: Path) -> "RuntimeConfig":
        """Load configuration from TOML file."""
        # Python 3.11+ has tomllib built-in, otherwise use tomli
        if sys.version_info >= (3, 11):  # noqa: UP036
            import tomllib
        else:
            try:
                import tomli as tomllib  # type: ignore[no-redef]
            except ImportError as e:
                raise ConfigError("tomli not installed. Install with: pip install tomli") from e

        try:
            with config_path.open("rb") as f:
                data = tomllib.load(f)
        except Exception as e:  # tomllib can raise various exceptions
            raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

        return cls._from_dict(data, config_path)

    @classmethod
    def _from_dict(cls, data: dict[str, Any], source: Path) -> "RuntimeConfig":
        """Create RuntimeConfig from dictionary (internal helper).

        Raises:
            ConfigError: If dictionary contains invalid values.
        """
        preset = data.get("preset")
        base = cls.from_preset(str(preset)) if preset else cls.from_defaults()
        overrides: dict[str, Any] = {}

        safe_change = data.get("safe_change", {})
        if not isinstance(safe_change, dict):
            raise ConfigError(f"Invalid safe_change type in {source}: {type(safe_change).__name__}")
        for key in (
            "enable_rollback",
            "strict_validation",
            "dependency_check",
            "create_backup",
            "sandbox_execution",
            "auto_apply_fixes",
        ):
            if key in safe_change:
                overrides[key] = bool(safe_change[key])
        if "max_backup_count" in safe_change:
            overrides["max_backup_count"] = int(safe_change["max_backup_count"])

        conflicts = data.get("conflicts", {})
        if not isinstance(conflicts, dict):
            raise ConfigError(f"Invalid conflicts type in {source}: {type(conflicts).__name__}")
        if "auto_resolve_severity" in conflicts:
            overrides["auto_resolve_severity"] = _parse_severity(
                conflicts["auto_resolve_severity"], f"auto_resolve_severity in {source}"
            )
        if "adjacent_lines_threshold" in conflicts:
            overrides["adjacent_lines_threshold"] = int(conflicts["adjacent_lines_threshold"])
        for key in (
            "attempt_merge",
            "detect_related_conflicts",
            "perform_semantic_analysis",
            "detect_import_conflicts",
        ):
            if key in conflicts:
                overrides[key] = bool(conflicts[key])
        bands = conflicts.get("similarity", {})
        if not isinstance(bands, dict):
            raise ConfigError(f"Invalid similarity type in {source}: {type(bands).__name__}")
        for band in ("low", "medium", "high"):
            if band in bands:
                overrides[f"{band}_severity_similarity"] = float(bands[band])

        logging_config = data.get("logging", {})
        if isinstance(logging_config, dict):
            if "level" in logging_config:
                overrides["log_level"] = str(logging_config["level"]).upper()
            if logging_config.get("file"):
                overrides["log_file"] = str(logging_config["file"])

        return base.merge_with_cli(**overrides)

    def merge_with_cli(self, **overrides: Any) -> "RuntimeConfig":  # noqa: ANN401
        """Create new config with CLI flag overrides.

        Only non-None values are applied.

        Raises:
            ConfigError: If override value is invalid.

        Example:
            >>> config = RuntimeConfig.from_env()
            >>> config = config.merge_with_cli(sandbox_execution=False, log_level=None)
        """
        filtered_overrides = {k: v for k, v in overrides.items() if v is not None}

        if "auto_resolve_severity" in filtered_overrides:
            filtered_overrides["auto_resolve_severity"] = _parse_severity(
                filtered_overrides["auto_resolve_severity"], "auto_resolve_severity"
            )
        if isinstance(filtered_overrides.get("log_level"), str):
            filtered_overrides["log_level"] = filtered_overrides["log_level"].upper()

        known = {f.name for f in fields(self)}
        unknown = set(filtered_overrides) - known
        if unknown:
            raise ConfigError(f"Unknown configuration option(s): {', '.join(sorted(unknown))}")

        try:
            return replace(self, **filtered_overrides)
        except ConfigError:
            raise
        except Exception as e:
            raise ConfigError(f"Failed to apply CLI overrides: {e}") from e

    def to_safe_change_options(self) -> SafeChangeOptions:
        """Project onto the apply-pipeline options."""
        return SafeChangeOptions(
            enable_rollback=self.enable_rollback,
            strict_validation=self.strict_validation,
            dependency_check=self.dependency_check,
            create_backup=self.create_backup,
            sandbox_execution=self.sandbox_execution,
            max_backup_count=self.max_backup_count,
            auto_apply_fixes=self.auto_apply_fixes,
        )

    def to_conflict_options(self) -> ConflictOptions:
        """Project onto the conflict-engine options."""
        return ConflictOptions(
            auto_resolve_severity=self.auto_resolve_severity,
            adjacent_lines_threshold=self.adjacent_lines_threshold,
            attempt_merge=self.attempt_merge,
            detect_related_conflicts=self.detect_related_conflicts,
            perform_semantic_analysis=self.perform_semantic_analysis,
            detect_import_conflicts=self.detect_import_conflicts,
            low_severity_similarity=self.low_severity_similarity,
            medium_severity_similarity=self.medium_severity_similarity,
            high_severity_similarity=self.high_severity_similarity,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary.

        Example:
            >>> data = RuntimeConfig.from_defaults().to_dict()
            >>> assert data["auto_resolve_severity"] == "low"
        """
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["auto_resolve_severity"] = self.auto_resolve_severity.value
        return data
