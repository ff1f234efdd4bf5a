"""
Configuration Loader for the Precinct Results Pipeline

This module provides a centralized way to load and access configuration
settings from the config.yaml file.

Usage:
    from ops.config_loader import Config

    config = Config()
    targets = config.get_targets()
    for entry in config.get_elections():
        ...
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml  # type: ignore[import-untyped]
from loguru import logger

from precincts.field_registry import FieldRegistry
from precincts.models import TargetArea


class Config:
    """Configuration manager for the precinct results pipeline."""

    # Default values that can be overridden in config
    DEFAULTS: Dict[str, Any] = {
        "targets": "554821:545911",
        "output_dir": "public/data",
        "pipeline": {
            "zero_match_policy": "continue",
            "write_boundaries": True,
        },
        "aliases": {},
        "elections": [],
    }

    def __init__(
        self,
        config_file: Optional[Union[str, Path]] = None,
        project_root_override: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to config file. If None, looks for:
                        1. Environment variable PIPELINE_CONFIG_PATH
                        2. config.yaml in current directory
                        3. ops/config.yaml
            project_root_override: Directory relative input paths are resolved against
        """
        if config_file is None:
            env_config = os.environ.get("PIPELINE_CONFIG_PATH")
            if env_config and Path(env_config).exists():
                config_file = env_config
                logger.debug(f"Using config from environment: {config_file}")
            elif Path("config.yaml").exists():
                config_file = "config.yaml"
            elif Path("ops/config.yaml").exists():
                config_file = "ops/config.yaml"
                logger.debug("Using ops/config.yaml from project root")
            else:
                raise FileNotFoundError(
                    "No config.yaml found. Check current directory or set PIPELINE_CONFIG_PATH"
                )

        self.config_path = Path(config_file).resolve()

        if project_root_override:
            self.project_root = Path(project_root_override).resolve()
            logger.debug(f"Using project root override: {self.project_root}")
        else:
            self.project_root = self._find_project_root()

        logger.debug(f"Loading config from: {self.config_path}")
        logger.debug(f"Project root: {self.project_root}")

        with open(self.config_path, "r", encoding="utf-8") as f:
            self.data = yaml.safe_load(f) or {}

    @classmethod
    def from_dict(cls, data: Dict[str, Any], project_root: Union[str, Path] = ".") -> "Config":
        """Build a Config from an already-loaded mapping."""
        config = cls.__new__(cls)
        config.config_path = None
        config.project_root = Path(project_root).resolve()
        config.data = data or {}
        return config

    def _find_project_root(self) -> Path:
        """Config in ops/ means the project root is its parent."""
        if self.config_path.parent.name == "ops":
            return self.config_path.parent.parent
        return self.config_path.parent

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation with defaults.

        Args:
            key_path: Dot-separated path to the configuration value
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key_path.split(".")

        for source in (self.data, self.DEFAULTS):
            value: Any = source
            for key in keys:
                if isinstance(value, dict) and key in value:
                    value = value[key]
                else:
                    value = None
                    break
            if value is not None:
                return value

        return default

    def set(self, key_path: str, value: Any) -> None:
        """Set a value using dot notation, creating intermediate sections."""
        keys = key_path.split(".")
        current = self.data
        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]
        current[keys[-1]] = value
        logger.debug(f"Config override: {key_path} = {value}")

    def resolve_path(self, value: Union[str, Path]) -> Path:
        path = Path(value)
        return path if path.is_absolute() else self.project_root / path

    def get_output_dir(self) -> Path:
        return self.resolve_path(self.get("output_dir"))

    def get_targets(self) -> List[TargetArea]:
        """
        Target areas, "AREA[:SUBAREA]" items separated by commas.

        The TARGETS environment variable takes precedence over the config file.
        """
        raw = os.environ.get("TARGETS") or self.get("targets")
        if isinstance(raw, list):
            raw = ",".join(str(item) for item in raw)
        targets = TargetArea.parse_many(str(raw))
        if not targets:
            raise ValueError("No target areas configured")
        return targets

    def get_elections(self, only: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """Election entries, optionally restricted to the given tags."""
        elections = self.get("elections") or []
        for entry in elections:
            if not isinstance(entry, dict) or not entry.get("tag"):
                raise ValueError(f"Election entry without a tag: {entry!r}")
        if only:
            wanted = set(only)
            unknown = wanted - {e["tag"] for e in elections}
            if unknown:
                raise ValueError(f"Unknown election tags: {sorted(unknown)}")
            elections = [e for e in elections if e["tag"] in wanted]
        return elections

    def get_zero_match_policy(self) -> str:
        return str(self.get("pipeline.zero_match_policy"))

    def build_registry(self) -> FieldRegistry:
        """Field registry with the configured alias overrides applied."""
        return FieldRegistry(overrides=self.get("aliases") or {})

    def print_config_summary(self) -> None:
        """Log a summary of the current configuration."""
        logger.debug("📋 Configuration Summary")
        logger.debug("=" * 50)
        logger.debug(f"Project: {self.get('project_name', 'Unknown')}")
        logger.debug(f"Config file: {self.config_path}")
        logger.debug(f"Output directory: {self.get_output_dir()}")
        logger.debug(f"Targets: {[t.label for t in self.get_targets()]}")
        for entry in self.get_elections():
            logger.debug(f"  🗳️ {entry['tag']}: {entry.get('turnout_csv')}")


# Convenience function for easy importing
def load_config(config_file: Optional[str] = None) -> Config:
    """
    Load configuration from file.

    Args:
        config_file: Path to configuration file

    Returns:
        Config instance
    """
    return Config(config_file)
