"""
config.py - Configuration management for wraith

This module handles loading and validating wraith's configuration file,
which can disable rules and ignore individual findings by location.

Example::

    rules:
      template-injection:
        ignore:
          - ci.yml:12
          - release.yml:30:7
      unpinned-uses:
        disable: true
"""

import copy
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

import yaml

from .finding import Finding

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "rules": {},
}

RULE_OPTIONS = {"disable", "ignore"}


class ConfigurationError(Exception):
    """Exception raised for configuration errors"""

    pass


@dataclass(frozen=True)
class IgnorePattern:
    """A ``filename[:line[:column]]`` ignore entry, with 1-based positions"""

    filename: str
    line: Optional[int] = None
    column: Optional[int] = None

    def matches(self, finding: Finding) -> bool:
        location = finding.primary_location
        if location.symbolic.key.filename() != self.filename:
            return False

        start = location.concrete.location.start_point
        if self.line is not None and start.row + 1 != self.line:
            return False
        if self.column is not None and start.column + 1 != self.column:
            return False
        return True


def parse_ignore_pattern(pattern: str) -> IgnorePattern:
    """
    Parse an ignore entry

    Args:
        pattern: Entry such as ``ci.yml``, ``ci.yml:12`` or ``ci.yml:12:7``

    Returns:
        Parsed pattern

    Raises:
        ConfigurationError: If the entry is malformed
    """
    parts = str(pattern).split(":")
    if not parts[0] or len(parts) > 3:
        raise ConfigurationError(f"Invalid ignore pattern '{pattern}'")

    positions: List[int] = []
    for part in parts[1:]:
        try:
            value = int(part)
        except ValueError:
            raise ConfigurationError(f"Invalid ignore pattern '{pattern}': '{part}' is not a number")
        if value <= 0:
            raise ConfigurationError(f"Invalid ignore pattern '{pattern}': positions are 1-based")
        positions.append(value)

    return IgnorePattern(
        filename=parts[0],
        line=positions[0] if len(positions) > 0 else None,
        column=positions[1] if len(positions) > 1 else None,
    )


def get_config_paths() -> List[str]:
    """
    Get list of possible config file locations in priority order

    Returns:
        List of config file paths to check
    """
    cwd = os.getcwd()
    paths = [
        os.path.join(cwd, "wraith.yml"),
        os.path.join(cwd, "wraith.yaml"),
        os.path.join(cwd, ".wraith.yml"),
        os.path.join(cwd, ".wraith.yaml"),
        os.path.join(cwd, ".github", "wraith.yml"),
        os.path.join(cwd, ".github", "wraith.yaml"),
    ]

    home_dir = os.path.expanduser("~")
    paths.append(os.path.join(home_dir, ".config", "wraith", "config.yml"))
    paths.append(os.path.join(home_dir, ".config", "wraith", "config.yaml"))

    return paths


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge two config dictionaries

    Args:
        base: Base configuration
        override: Configuration to override base

    Returns:
        Merged configuration dictionary
    """
    result = base.copy()

    for key, override_value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(override_value, dict):
            result[key] = merge_configs(result[key], override_value)
        else:
            result[key] = override_value

    return result


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values

    Args:
        config: Configuration loaded from YAML

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    if not isinstance(config, dict):
        raise ConfigurationError("Configuration must be a mapping")

    for key in config:
        if key not in DEFAULT_CONFIG:
            raise ConfigurationError(f"Unknown configuration option '{key}'")

    rules = config.get("rules")
    if rules is None:
        rules = {}
    if not isinstance(rules, dict):
        raise ConfigurationError("'rules' must be a dictionary")

    for rule_id, options in rules.items():
        if options is None:
            continue
        if not isinstance(options, dict):
            raise ConfigurationError(f"'rules.{rule_id}' must be a dictionary")

        for option in options:
            if option not in RULE_OPTIONS:
                raise ConfigurationError(f"Unknown option '{option}' for rule '{rule_id}'")

        if "disable" in options and not isinstance(options["disable"], bool):
            raise ConfigurationError(f"'rules.{rule_id}.disable' must be a boolean")

        ignore = options.get("ignore") or []
        if not isinstance(ignore, list):
            raise ConfigurationError(f"'rules.{rule_id}.ignore' must be a list")
        for pattern in ignore:
            parse_ignore_pattern(pattern)


class Config:
    """Validated configuration; also serves as the run's ignore policy"""

    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        data = data or {}
        validate_config(data)
        self.data = merge_configs(copy.deepcopy(DEFAULT_CONFIG), data)

        self._ignores: Dict[str, List[IgnorePattern]] = {}
        self._disabled: Set[str] = set()
        for rule_id, options in (self.data.get("rules") or {}).items():
            options = options or {}
            if options.get("disable", False):
                self._disabled.add(rule_id)
            self._ignores[rule_id] = [
                parse_ignore_pattern(pattern) for pattern in options.get("ignore") or []
            ]

    def is_rule_enabled(self, rule_id: str) -> bool:
        return rule_id not in self._disabled

    def ignores(self, finding: Finding) -> bool:
        """
        Check whether the configuration ignores a finding

        Args:
            finding: Finding to check

        Returns:
            True if an ignore entry for the finding's rule matches its
            primary location
        """
        return any(pattern.matches(finding) for pattern in self._ignores.get(finding.ident, []))


def _read_config_file(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error parsing YAML configuration {path}: {e}")
    except OSError as e:
        raise ConfigurationError(f"Error loading configuration {path}: {e}")
    return data or {}


def load_config(config_path: Optional[str] = None, discover: bool = True) -> Config:
    """
    Load configuration from file or use defaults

    Args:
        config_path: Path to configuration file, or None to auto-detect
        discover: Whether to search the default locations when no path is given

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If configuration file is missing or invalid
    """
    if config_path:
        if not os.path.exists(config_path):
            raise ConfigurationError(f"Configuration file not found: {config_path}")
        return Config(_read_config_file(config_path))

    if discover:
        for path in get_config_paths():
            if os.path.exists(path):
                logger.info("using configuration from %s", path)
                return Config(_read_config_file(path))

    return Config()
