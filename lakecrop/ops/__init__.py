"""
Operations package for the Iowa Lakes & Cropland Pipeline

This package centralizes the operational tools:
- Configuration management
- Pipeline orchestration and the CLI

The Config class is exposed at the package level for convenient imports:
    from lakecrop.ops import Config
"""

from .config_loader import Config

__all__ = ["Config"]
