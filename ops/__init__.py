"""
Operations package for the Precinct Results Pipeline

This package holds the operational tooling around the ``precincts`` core:
- Configuration management
- Pipeline orchestration (click CLI)

The Config class is exposed at the package level for convenient imports:
    from ops import Config
"""

from .config_loader import Config

__all__ = ["Config"]
