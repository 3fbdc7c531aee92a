"""Configuration management and presets.

This module provides configuration management through:
- RuntimeConfig: Runtime configuration from env vars, files, and CLI flags
- SafeChangeOptions / ConflictOptions: Per-component option records
- PresetConfig: Predefined configuration presets
- ConfigError: Exception for configuration errors
"""

from change_guard.config.exceptions import ConfigError
from change_guard.config.options import ConflictOptions, SafeChangeOptions
from change_guard.config.presets import PresetConfig
from change_guard.config.runtime_config import RuntimeConfig

__all__ = ["ConfigError", "ConflictOptions", "PresetConfig", "RuntimeConfig", "SafeChangeOptions"]
