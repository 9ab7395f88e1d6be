"""Configuration loading with precedence."""

import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..errors import ConfigurationError
from ..indexer_logging import get_logger
from .legacy import load_settings_file
from .models import ENV_VARS, IndexerConfig

logger = get_logger()


def get_default_settings_path() -> Path:
    """Global settings file (~/.code-context/settings.txt)."""
    return Path.home() / ".code-context" / "settings.txt"


class ConfigLoader:
    """Merges settings file, environment and explicit overrides."""

    def __init__(self, settings_file: Path | None = None):
        self._settings_file_override = settings_file

    @property
    def settings_file(self) -> Path:
        if self._settings_file_override is not None:
            return self._settings_file_override
        return get_default_settings_path()

    def load(self, **overrides: Any) -> IndexerConfig:
        """Load configuration from all sources.

        Precedence (highest to lowest):
        1. Explicit overrides
        2. Environment variables
        3. Settings file (explicit path or ~/.code-context/settings.txt)
        4. Defaults
        """
        config_dict: dict[str, Any] = {}

        # 1. Settings file
        settings_file = self.settings_file
        if self._settings_file_override is not None and not settings_file.exists():
            raise ConfigurationError(
                f"Settings file not found: {settings_file}",
                config_file=str(settings_file),
            )
        if settings_file.exists():
            file_settings = load_settings_file(settings_file)
            config_dict.update(file_settings)
            logger.debug(f"Loaded {len(file_settings)} settings from {settings_file}")

        # 2. Environment variables
        env_count = 0
        for env_var, field_name in ENV_VARS.items():
            value = os.environ.get(env_var)
            if value is not None:
                config_dict[field_name] = value
                env_count += 1
        if env_count > 0:
            logger.debug(f"Applied {env_count} environment variables")

        # 3. Explicit overrides, skipping unset CLI options
        explicit = {k: v for k, v in overrides.items() if v is not None}
        config_dict.update(explicit)
        if explicit:
            logger.debug(f"Applied {len(explicit)} explicit overrides")

        unknown = sorted(set(config_dict) - set(IndexerConfig.model_fields))
        for key in unknown:
            logger.warning(f"Ignoring unknown setting: {key}")
            config_dict.pop(key)

        try:
            return IndexerConfig(**config_dict)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(
                f"Invalid configuration: {problems}",
                config_file=str(settings_file) if settings_file.exists() else None,
            ) from e


def load_config(settings_file: Path | None = None, **overrides: Any) -> IndexerConfig:
    """Load configuration from multiple sources with precedence.

    Args:
        settings_file: Explicit settings.txt path (defaults to the global one)
        **overrides: Explicit configuration overrides

    Returns:
        Configured IndexerConfig instance
    """
    return ConfigLoader(settings_file=settings_file).load(**overrides)
