"""
utils.parsers - Configuration parsing utilities.

Modules:
    global_config_parser - Hierarchical YAML configuration loader (GlobalConfig)
"""

from utils.parsers.global_config_parser import (
    GlobalConfig,
    ConfigError,
    ConfigFileError,
    ConfigValidationError,
)

__all__ = [
    "GlobalConfig",
    "ConfigError",
    "ConfigFileError",
    "ConfigValidationError",
]
