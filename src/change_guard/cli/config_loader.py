"""Runtime configuration loading for CLI commands.

Precedence: CLI flags > environment variables > config file or preset > defaults.
"""

import logging
from dataclasses import fields
from pathlib import Path
from typing import Any

from ..config.exceptions import ConfigError
from ..config.presets import PresetConfig
from ..config.runtime_config import RuntimeConfig

logger = logging.getLogger(__name__)


def _env_overrides() -> dict[str, Any]:
    """Fields whose environment value differs from the built-in default."""
    env_config = RuntimeConfig.from_env()
    defaults = RuntimeConfig.from_defaults()
    return {
        f.name: getattr(env_config, f.name)
        for f in fields(RuntimeConfig)
        if getattr(env_config, f.name) != getattr(defaults, f.name)
    }


def load_runtime_config(
    config: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> tuple[RuntimeConfig, str | None]:
    """Build the effective RuntimeConfig for a command.

    Args:
        config: Preset name (see ``PresetConfig.names()``) or path to a YAML or
            TOML configuration file. None starts from defaults.
        cli_overrides: Flag values; None entries are ignored.

    Returns:
        Tuple of (runtime_config, preset_name). ``preset_name`` is None when no
        preset was selected.

    Raises:
        ConfigError: If the preset is unknown, the file is invalid, or an
            override value is rejected.
    """
    preset_name: str | None = None
    if config is None:
        base = RuntimeConfig.from_defaults()
    elif config.lower() in PresetConfig.names():
        preset_name = config.lower()
        base = RuntimeConfig.from_preset(preset_name)
    elif Path(config).suffix.lower() in (".yaml", ".yml", ".toml"):
        base = RuntimeConfig.from_file(Path(config))
    else:
        raise ConfigError(
            f"Unknown preset or config file: {config}. "
            f"Presets: {', '.join(PresetConfig.names())}"
        )

    env = _env_overrides()
    if env:
        logger.debug(f"Environment overrides: {', '.join(sorted(env))}")
    runtime_config = base.merge_with_cli(**env).merge_with_cli(**(cli_overrides or {}))
    return runtime_config, preset_name
