"""Configuration package.

Configuration Precedence (highest to lowest):
1. Explicit overrides
2. Environment variables
3. settings.txt (explicit path or ~/.code-context/settings.txt)
4. Defaults
"""

from .config_loader import ConfigLoader, get_default_settings_path, load_config
from .legacy import create_default_settings_file, load_settings_file
from .models import ENV_VARS, IndexerConfig

__all__ = [
    "ENV_VARS",
    "IndexerConfig",
    "ConfigLoader",
    "load_config",
    "load_settings_file",
    "create_default_settings_file",
    "get_default_settings_path",
]
