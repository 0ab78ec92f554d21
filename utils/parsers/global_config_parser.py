# global_config_parser.py
"""
YAML-based global configuration loader and validator.

Loads configuration from a structured global_config.yaml file with:
- Hierarchical section-based access (paths.source_dir, hierarchy.top)
- Environment variable interpolation (${ENV_VAR} syntax)
- Type-safe accessor methods (str, bool, int, list, path)
- Path normalization and expansion
- Required-key validation
- Flat HDLNAV_* environment keys mapped onto the sections
- Merge support: layer multiple YAML files (base + local overrides)

Dependencies: PyYAML (pip install pyyaml)

Usage:
    from utils.parsers.global_config_parser import GlobalConfig

    # Auto-discover global_config.yaml
    config = GlobalConfig()

    # Explicit file
    config = GlobalConfig(config_file="./config/chip.yaml")

    # Hierarchical access
    top        = config.get("hierarchy.top")
    fail_cycle = config.get_bool("hierarchy.fail_on_cycle", True)
    source_dir = config.get_path("paths.source_dir")
    exts       = config.get_list("scanning.extensions")

    # Flat-key access
    top        = config.get("HDLNAV_TOP")  # maps to hierarchy.top
"""

from __future__ import annotations

import copy
import os
import re
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import yaml

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Flat-key to YAML-path mapping
# ---------------------------------------------------------------------------

FLAT_KEY_MAP: Dict[str, str] = {
    # Paths
    "HDLNAV_SOURCE_DIR":      "paths.source_dir",
    # Scanning
    "HDLNAV_EXTENSIONS":      "scanning.extensions",
    "HDLNAV_EXCLUDE_DIRS":    "scanning.exclude_dirs",
    "HDLNAV_EXCLUDE_GLOBS":   "scanning.exclude_globs",
    "HDLNAV_MAX_FILES":       "scanning.max_files",
    # Hierarchy
    "HDLNAV_TOP":             "hierarchy.top",
    "HDLNAV_FAIL_ON_CYCLE":   "hierarchy.fail_on_cycle",
    # Logging
    "HDLNAV_LOG_LEVEL":       "logging.level",
    "HDLNAV_DEBUG":           "logging.debug",
}

# Environment variable interpolation pattern: ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-(.*?))?\}")

# Path-type keys for automatic resolution
PATH_KEYS: Set[str] = {
    "paths.source_dir",
}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ConfigError(Exception):
    """Base error for configuration operations."""


class ConfigFileError(ConfigError):
    """Configuration file could not be loaded or parsed."""


class ConfigValidationError(ConfigError):
    """Required configuration keys are missing."""


# ---------------------------------------------------------------------------
# YAML Loading Helpers
# ---------------------------------------------------------------------------

def _load_yaml(filepath: str) -> Dict[str, Any]:
    """
    Load a YAML file.

    Args:
        filepath: Path to the YAML file.

    Returns:
        Parsed dict (empty if the document is not a mapping).

    Raises:
        ConfigFileError: If file cannot be read or parsed.
    """
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigFileError(f"Failed to load YAML config '{filepath}': {e}") from e
    return data if isinstance(data, dict) else {}


def _interpolate_env_vars(value: Any) -> Any:
    """
    Recursively interpolate ${ENV_VAR} and ${ENV_VAR:-default} in string values.

    Args:
        value: A string, dict, list, or scalar.

    Returns:
        Value with environment variables resolved.
    """
    if isinstance(value, str):
        def _replace(match):
            var_name = match.group(1)
            default = match.group(2)  # May be None
            env_val = os.environ.get(var_name)
            if env_val is not None:
                return env_val
            if default is not None:
                return default
            return match.group(0)  # Keep original if not found
        return _ENV_VAR_PATTERN.sub(_replace, value)
    elif isinstance(value, dict):
        return {k: _interpolate_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_interpolate_env_vars(item) for item in value]
    return value


def _deep_merge(base: Dict, override: Dict) -> Dict:
    """
    Deep-merge two dicts. Values in `override` take precedence.
    Nested dicts are merged recursively; other types are replaced.
    """
    merged = dict(base)
    for key, val in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(val, dict):
            merged[key] = _deep_merge(merged[key], val)
        else:
            merged[key] = val
    return merged


# ---------------------------------------------------------------------------
# Dot-path accessor
# ---------------------------------------------------------------------------

def _get_by_path(data: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Retrieve a value from a nested dict using dot notation.

    Args:
        data: The nested configuration dict.
        path: Dot-separated key path (e.g., "hierarchy.top").
        default: Value to return if path not found.

    Returns:
        The value at the path, or default.
    """
    current = data
    for key in path.split("."):
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return default
    return current


def _set_by_path(data: Dict[str, Any], path: str, value: Any) -> None:
    """Set a value in a nested dict using dot notation."""
    keys = path.split(".")
    current = data
    for key in keys[:-1]:
        current = current.setdefault(key, {})
    current[keys[-1]] = value


# ---------------------------------------------------------------------------
# GlobalConfig
# ---------------------------------------------------------------------------

class GlobalConfig:
    """
    Hierarchical YAML configuration with dot-path access and env-var interpolation.

    Features:
    - Structured sections (paths, scanning, hierarchy, logging)
    - Dot-path access: config.get("hierarchy.top")
    - Flat-key access: config.get("HDLNAV_TOP") -> hierarchy.top
    - ${ENV_VAR} interpolation in YAML values
    - Environment variable overrides (env vars always win)
    - Type-safe accessors: get_bool, get_int, get_list, get_path
    - Multiple file layering: base config + local overrides
    - Required-key validation

    Usage:
        config = GlobalConfig()
        config = GlobalConfig(config_file="chip.yaml")
        config = GlobalConfig(config_file="base.yaml", override_file="local.yaml")

        top  = config.get("hierarchy.top")
        scan = config.get_section("scanning")
    """

    # Default search paths for auto-discovery
    SEARCH_PATHS = [
        "global_config.yaml",
        "config/global_config.yaml",
        "global_config.yml",
    ]

    def __init__(
        self,
        config_file: Optional[str] = None,
        override_file: Optional[str] = None,
        required: Optional[List[str]] = None,
        auto_load: bool = True,
        env_override: bool = True,
    ):
        """
        Initialize the global configuration.

        Args:
            config_file: Path to the YAML config file. Auto-discovers if None.
            override_file: Optional second YAML file to layer on top.
            required: List of required dot-paths (e.g., ["hierarchy.top"]).
            auto_load: Load configuration immediately on construction.
            env_override: Allow environment variables to override YAML values.
        """
        self._data: Dict[str, Any] = {}
        self._config_file: Optional[str] = None
        self._override_file: Optional[str] = None
        self._required = required or []
        self._env_override = env_override

        if auto_load:
            self.load(config_file, override_file)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(
        self,
        config_file: Optional[str] = None,
        override_file: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Load, merge, interpolate, and validate configuration.

        Args:
            config_file: Primary YAML file path.
            override_file: Optional override YAML file path.

        Returns:
            The fully resolved configuration dict.

        Raises:
            ConfigFileError: An explicitly named file is missing or unparsable.
            ConfigValidationError: A required key is missing.
        """
        # Step 1: Find and load base config
        if config_file and not os.path.isfile(config_file):
            raise ConfigFileError(f"Config file not found: {config_file}")

        base_path = config_file or self._discover_config_file()
        if base_path:
            self._data = _load_yaml(base_path)
            self._config_file = base_path
        else:
            logger.info("No YAML config file found; using defaults and environment.")
            self._data = {}

        # Step 2: Layer override file
        if override_file and os.path.isfile(override_file):
            override_data = _load_yaml(override_file)
            self._data = _deep_merge(self._data, override_data)
            self._override_file = override_file
            logger.info("Applied override config: %s", override_file)

        # Step 3: Interpolate ${ENV_VAR} references
        self._data = _interpolate_env_vars(self._data)

        # Step 4: Apply environment variable overrides
        if self._env_override:
            self._apply_env_overrides()

        # Step 5: Normalize paths
        self._normalize_paths()

        # Step 6: Validate required keys
        self._validate()

        return self._data

    def _discover_config_file(self) -> Optional[str]:
        """Search for a config file in standard locations."""
        # Check relative to CWD
        for candidate in self.SEARCH_PATHS:
            if os.path.isfile(candidate):
                return candidate

        # Check relative to project root (3 levels up from this file)
        project_root = Path(__file__).resolve().parent.parent.parent
        for candidate in self.SEARCH_PATHS:
            full = project_root / candidate
            if full.is_file():
                return str(full)

        return None

    def _apply_env_overrides(self) -> None:
        """
        Apply environment variable overrides to the loaded configuration.
        Environment variables always win over YAML file values.
        """
        for env_key, dot_path in FLAT_KEY_MAP.items():
            env_val = os.environ.get(env_key)
            if env_val is not None:
                _set_by_path(self._data, dot_path, env_val)

    def _normalize_paths(self) -> None:
        """Resolve and expand path-type values."""
        for path_key in PATH_KEYS:
            val = _get_by_path(self._data, path_key)
            if val and isinstance(val, str):
                try:
                    resolved = str(Path(val).expanduser().resolve())
                except (OSError, RuntimeError) as e:
                    logger.warning("Could not resolve %s=%s: %s", path_key, val, e)
                    continue
                _set_by_path(self._data, path_key, resolved)

    def _validate(self) -> None:
        """Validate required keys are present and non-empty."""
        missing = []
        for key in self._required:
            val = self.get(key)
            if val is None or val == "":
                missing.append(key)
        if missing:
            msg = f"Missing required configuration keys: {missing}"
            logger.error(msg)
            raise ConfigValidationError(msg)

    # ------------------------------------------------------------------
    # Accessors: dot-path with flat-key fallback
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by dot-path or flat env-style key.

        Supports both:
            config.get("hierarchy.top")    # dot-path
            config.get("HDLNAV_TOP")       # flat key (auto-mapped)

        Args:
            key: Dot-path (e.g., "scanning.extensions") or flat key.
            default: Fallback value if key is not found.

        Returns:
            The configuration value, or default.
        """
        if key in FLAT_KEY_MAP:
            val = _get_by_path(self._data, FLAT_KEY_MAP[key])
            if val is not None:
                return val

        val = _get_by_path(self._data, key)
        if val is not None:
            return val

        return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Get a boolean configuration value."""
        val = self.get(key)
        if val is None:
            return default
        if isinstance(val, bool):
            return val
        if isinstance(val, str):
            return val.strip().lower() in ("1", "true", "yes", "on")
        return bool(val)

    def get_int(self, key: str, default: int = 0) -> int:
        """Get an integer configuration value."""
        val = self.get(key)
        if val is None:
            return default
        try:
            return int(val)
        except (ValueError, TypeError):
            return default

    def get_list(
        self,
        key: str,
        separator: str = ",",
        default: Optional[List] = None,
    ) -> List:
        """
        Get a list value. Handles YAML native lists and comma-separated strings.

        Args:
            key: Configuration key.
            separator: Separator for string-to-list conversion.
            default: Fallback if key not found.

        Returns:
            List of values.
        """
        val = self.get(key)
        if val is None:
            return list(default or [])
        if isinstance(val, list):
            return val
        if isinstance(val, str):
            return [item.strip() for item in val.split(separator) if item.strip()]
        return [val]

    def get_path(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get a path value, resolved and expanded."""
        val = self.get(key) or default
        if val and isinstance(val, str):
            return str(Path(val).expanduser().resolve())
        return None

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Get an entire configuration section as a dict.

        Args:
            section: Top-level section name (e.g., "scanning", "hierarchy").

        Returns:
            Dict of key-value pairs for that section, or empty dict.
        """
        val = self._data.get(section)
        if isinstance(val, dict):
            return dict(val)
        return {}

    def has(self, key: str) -> bool:
        """Check if a key is set and non-empty."""
        val = self.get(key)
        return val is not None and val != ""

    def set(self, key: str, value: Any) -> None:
        """Set a value by dot-path or flat key (e.g. from command-line flags)."""
        _set_by_path(self._data, FLAT_KEY_MAP.get(key, key), value)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def to_flat_dict(self) -> Dict[str, Any]:
        """
        Export configuration as a flat dict using HDLNAV_* keys.

        Returns:
            Dict mapping flat keys (e.g., "HDLNAV_TOP") to values.
        """
        flat = {}
        for env_key, dot_path in FLAT_KEY_MAP.items():
            val = _get_by_path(self._data, dot_path)
            if val is not None:
                flat[env_key] = val
        return flat

    def to_dict(self) -> Dict[str, Any]:
        """Return a deep copy of the full hierarchical configuration."""
        return copy.deepcopy(self._data)

    def sections(self) -> List[str]:
        """Return the names of all top-level configuration sections."""
        return [k for k, v in self._data.items() if isinstance(v, dict)]

    def save(self, filepath: str) -> None:
        """
        Save the current configuration to a YAML file.

        Args:
            filepath: Output file path.
        """
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                self._data,
                f,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            )
        logger.info("Config saved to: %s", filepath)

    # ------------------------------------------------------------------
    # Representation
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        source = self._config_file or "no file"
        override = f" + {self._override_file}" if self._override_file else ""
        sections = self.sections()
        return f"GlobalConfig(source='{source}{override}', sections={sections})"

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __getitem__(self, key: str) -> Any:
        val = self.get(key)
        if val is None:
            raise KeyError(f"Configuration key not found: {key}")
        return val
