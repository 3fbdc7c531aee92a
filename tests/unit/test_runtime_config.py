"""Unit tests for RuntimeConfig in change_guard.config.runtime_config."""

import logging
import os
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from change_guard.cli.config_loader import load_runtime_config
from change_guard.config.exceptions import ConfigError
from change_guard.config.options import ConflictOptions, SafeChangeOptions
from change_guard.config.presets import PresetConfig
from change_guard.config.runtime_config import RuntimeConfig
from change_guard.core.models import ConflictSeverity


@pytest.fixture
def clean_env():
    """Environment without any CG_ variables."""
    env_copy = {k: v for k, v in os.environ.items() if not k.startswith("CG_")}
    with patch.dict(os.environ, env_copy, clear=True):
        yield


class TestRuntimeConfigDefaults:
    """Test RuntimeConfig default values."""

    def test_from_defaults(self) -> None:
        config = RuntimeConfig.from_defaults()
        assert config.enable_rollback is True
        assert config.strict_validation is True
        assert config.sandbox_execution is True
        assert config.max_backup_count == 10
        assert config.auto_apply_fixes is False
        assert config.auto_resolve_severity is ConflictSeverity.LOW
        assert config.adjacent_lines_threshold == 3
        assert config.log_level == "INFO"
        assert config.log_file is None

    def test_balanced_matches_defaults(self) -> None:
        assert RuntimeConfig.from_balanced() == RuntimeConfig.from_defaults()


class TestPresets:
    """Test named presets."""

    def test_conservative(self) -> None:
        config = RuntimeConfig.from_conservative()
        assert config.max_backup_count == 20
        assert config.auto_resolve_severity is ConflictSeverity.NONE
        assert config.attempt_merge is False

    def test_permissive(self) -> None:
        config = RuntimeConfig.from_permissive()
        assert config.strict_validation is False
        assert config.sandbox_execution is False
        assert config.auto_apply_fixes is True
        assert config.auto_resolve_severity is ConflictSeverity.MEDIUM
        assert config.log_level == "WARNING"

    def test_preset_names_are_case_insensitive(self) -> None:
        assert RuntimeConfig.from_preset("Permissive") == RuntimeConfig.from_permissive()

    def test_unknown_preset_raises(self) -> None:
        with pytest.raises(ConfigError, match="Unknown preset 'reckless'"):
            RuntimeConfig.from_preset("reckless")

    def test_get_returns_copy(self) -> None:
        preset = PresetConfig.get("permissive")
        preset["log_level"] = "DEBUG"
        assert PresetConfig.PERMISSIVE["log_level"] == "WARNING"


class TestRuntimeConfigFromEnv:
    """Test RuntimeConfig.from_env() with environment variables."""

    def test_from_env_default_when_no_vars(self, clean_env) -> None:
        """When no env vars set, should return defaults."""
        assert RuntimeConfig.from_env() == RuntimeConfig.from_defaults()

    def test_from_env_booleans(self, clean_env) -> None:
        with patch.dict(
            os.environ,
            {
                "CG_STRICT_VALIDATION": "false",
                "CG_SANDBOX_EXECUTION": "0",
                "CG_DETECT_IMPORTS": "off",
            },
        ):
            config = RuntimeConfig.from_env()
            assert config.strict_validation is False
            assert config.sandbox_execution is False
            assert config.detect_import_conflicts is False

    def test_from_env_true_variants(self, clean_env) -> None:
        """Test various true values."""
        for value in ["true", "True", "1", "yes", "on"]:
            with patch.dict(os.environ, {"CG_AUTO_APPLY_FIXES": value}):
                assert RuntimeConfig.from_env().auto_apply_fixes is True

    def test_from_env_numbers_and_severity(self, clean_env) -> None:
        with patch.dict(
            os.environ,
            {
                "CG_MAX_BACKUP_COUNT": "5",
                "CG_ADJACENT_LINES": "0",
                "CG_AUTO_RESOLVE_SEVERITY": "Medium",
            },
        ):
            config = RuntimeConfig.from_env()
            assert config.max_backup_count == 5
            assert config.adjacent_lines_threshold == 0
            assert config.auto_resolve_severity is ConflictSeverity.MEDIUM

    def test_from_env_logging(self, clean_env) -> None:
        with patch.dict(os.environ, {"CG_LOG_LEVEL": "debug", "CG_LOG_FILE": "/tmp/cg.log"}):
            config = RuntimeConfig.from_env()
            assert config.log_level == "DEBUG"
            assert config.log_file == "/tmp/cg.log"

    @pytest.mark.parametrize(
        ("variable", "value"),
        [
            ("CG_STRICT_VALIDATION", "maybe"),
            ("CG_MAX_BACKUP_COUNT", "ten"),
            ("CG_MAX_BACKUP_COUNT", "0"),
            ("CG_ADJACENT_LINES", "-1"),
            ("CG_AUTO_RESOLVE_SEVERITY", "extreme"),
            ("CG_LOG_LEVEL", "LOUD"),
        ],
    )
    def test_from_env_invalid_values_raise(self, clean_env, variable, value) -> None:
        with patch.dict(os.environ, {variable: value}), pytest.raises(ConfigError):
            RuntimeConfig.from_env()


class TestRuntimeConfigFromFile:
    """Test RuntimeConfig.from_file() with YAML/TOML files."""

    def test_from_file_yaml_basic(self) -> None:
        """Test loading basic YAML config."""
        yaml_content = """
safe_change:
  strict_validation: false
  max_backup_count: 5
conflicts:
  auto_resolve_severity: medium
  adjacent_lines_threshold: 2
  detect_import_conflicts: false
  similarity:
    low: 0.95
logging:
  level: debug
  file: /tmp/test.log
"""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write(yaml_content)
            f.flush()
            try:
                config = RuntimeConfig.from_file(Path(f.name))
                assert config.strict_validation is False
                assert config.max_backup_count == 5
                assert config.auto_resolve_severity is ConflictSeverity.MEDIUM
                assert config.adjacent_lines_threshold == 2
                assert config.detect_import_conflicts is False
                assert config.low_severity_similarity == 0.95
                assert config.log_level == "DEBUG"
                assert config.log_file == "/tmp/test.log"
            finally:
                os.unlink(f.name)

    def test_from_file_toml_with_preset(self) -> None:
        """File values are layered over the named preset."""
        toml_content = """
preset = "conservative"

[safe_change]
sandbox_execution = false

[logging]
level = "WARNING"
"""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".toml", delete=False) as f:
            f.write(toml_content)
            f.flush()
            try:
                config = RuntimeConfig.from_file(Path(f.name))
                assert config.max_backup_count == 20
                assert config.sandbox_execution is False
                assert config.log_level == "WARNING"
            finally:
                os.unlink(f.name)

    def test_from_file_empty_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert RuntimeConfig.from_file(path) == RuntimeConfig.from_defaults()

    def test_from_file_nonexistent_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Config file not found"):
            RuntimeConfig.from_file(tmp_path / "missing.yaml")

    def test_from_file_directory_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not a file"):
            RuntimeConfig.from_file(tmp_path)

    def test_from_file_invalid_extension_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{}")
        with pytest.raises(ConfigError, match="Unsupported config file format"):
            RuntimeConfig.from_file(path)

    @pytest.mark.parametrize(
        ("name", "content"),
        [
            ("bad.yaml", "safe_change: [unclosed"),
            ("bad.toml", "[safe_change\nstrict_validation = true"),
            ("list.yaml", "- a\n- b\n"),
            ("section.yaml", "conflicts: high\n"),
            ("bands.yaml", "conflicts:\n  similarity:\n    low: 0.2\n"),
        ],
    )
    def test_from_file_invalid_content_raises(self, tmp_path: Path, name, content) -> None:
        path = tmp_path / name
        path.write_text(content)
        with pytest.raises(ConfigError):
            RuntimeConfig.from_file(path)


class TestRuntimeConfigValidation:
    """Test validation in __post_init__ and merge_with_cli."""

    def test_invalid_log_level_raises(self) -> None:
        with pytest.raises(ConfigError, match="Invalid log level"):
            RuntimeConfig(log_level="VERBOSE")

    def test_max_backup_count_less_than_one_raises(self) -> None:
        with pytest.raises(ConfigError, match="max_backup_count must be >= 1"):
            RuntimeConfig(max_backup_count=0)

    def test_max_backup_count_very_high_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            RuntimeConfig(max_backup_count=500)
        assert "max_backup_count=500 is very high" in caplog.text

    def test_high_auto_resolve_severity_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            RuntimeConfig(auto_resolve_severity=ConflictSeverity.HIGH)
        assert "risky conflicts" in caplog.text

    def test_severity_must_be_enum(self) -> None:
        with pytest.raises(ConfigError, match="must be ConflictSeverity enum"):
            RuntimeConfig(auto_resolve_severity="low")  # type: ignore[arg-type]

    def test_unordered_similarity_bands_raise(self) -> None:
        with pytest.raises(ConfigError, match="low >= medium >= high"):
            RuntimeConfig(low_severity_similarity=0.5, medium_severity_similarity=0.8)

    def test_merge_with_cli_overrides(self) -> None:
        config = RuntimeConfig.from_defaults().merge_with_cli(
            strict_validation=False, auto_resolve_severity="high", log_level="error"
        )
        assert config.strict_validation is False
        assert config.auto_resolve_severity is ConflictSeverity.HIGH
        assert config.log_level == "ERROR"

    def test_merge_with_cli_none_values_ignored(self) -> None:
        base = RuntimeConfig.from_permissive()
        assert base.merge_with_cli(strict_validation=None, log_level=None) == base

    def test_merge_with_cli_unknown_option_raises(self) -> None:
        with pytest.raises(ConfigError, match="Unknown configuration option"):
            RuntimeConfig.from_defaults().merge_with_cli(turbo=True)

    def test_merge_with_cli_immutability(self) -> None:
        base = RuntimeConfig.from_defaults()
        base.merge_with_cli(max_backup_count=3)
        assert base.max_backup_count == 10


class TestProjections:
    """Test projections onto component options and dicts."""

    def test_to_safe_change_options(self) -> None:
        options = RuntimeConfig.from_permissive().to_safe_change_options()
        assert isinstance(options, SafeChangeOptions)
        assert options.strict_validation is False
        assert options.auto_apply_fixes is True

    def test_to_conflict_options(self) -> None:
        options = RuntimeConfig(adjacent_lines_threshold=1).to_conflict_options()
        assert isinstance(options, ConflictOptions)
        assert options.adjacent_lines_threshold == 1
        assert options.auto_resolve_severity is ConflictSeverity.LOW

    def test_to_dict(self) -> None:
        data = RuntimeConfig.from_defaults().to_dict()
        assert data["auto_resolve_severity"] == "low"
        assert data["log_file"] is None
        assert data["max_backup_count"] == 10


class TestLoadRuntimeConfig:
    """Test configuration precedence: CLI > env vars > file or preset > defaults."""

    def test_defaults(self, clean_env) -> None:
        config, preset = load_runtime_config()
        assert config == RuntimeConfig.from_defaults()
        assert preset is None

    def test_preset_name(self, clean_env) -> None:
        config, preset = load_runtime_config("CONSERVATIVE")
        assert preset == "conservative"
        assert config.max_backup_count == 20

    def test_precedence_chain_full(self, clean_env, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("safe_change:\n  max_backup_count: 4\n  strict_validation: false\n")
        with patch.dict(os.environ, {"CG_MAX_BACKUP_COUNT": "6", "CG_LOG_LEVEL": "DEBUG"}):
            config, preset = load_runtime_config(
                str(path), {"log_level": "ERROR", "sandbox_execution": None}
            )
        assert preset is None
        assert config.strict_validation is False  # file
        assert config.max_backup_count == 6  # env beats file
        assert config.log_level == "ERROR"  # CLI beats env
        assert config.sandbox_execution is True  # None flag ignored

    def test_env_equal_to_default_does_not_override_preset(self, clean_env) -> None:
        with patch.dict(os.environ, {"CG_STRICT_VALIDATION": "true"}):
            config, _ = load_runtime_config("permissive")
        assert config.strict_validation is False

    def test_unknown_config_raises(self, clean_env) -> None:
        with pytest.raises(ConfigError, match="Unknown preset or config file"):
            load_runtime_config("fast")
