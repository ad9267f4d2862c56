"""
Configuration Loader for the Iowa Lakes & Cropland Pipeline

This module provides a centralized way to load and access configuration
settings from a config.yaml file. Every setting has a default in
``Config.DEFAULTS`` so a config file only needs to name what differs.

Usage:
    from lakecrop.ops import Config

    config = Config()
    cropland_csv = config.get_input_path('cropland_csv')
    county_col = config.get_column_name('cropland', 'county')
    area_crs = config.get('system.area_crs')
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml  # type: ignore[import-untyped]
from loguru import logger

PACKAGED_CONFIG = Path(__file__).parent / "config.yaml"


class Config:
    """Configuration manager for the lakes & cropland pipeline."""

    # Default values that can be overridden in config
    DEFAULTS: Dict[str, Any] = {
        "project_name": "Iowa Lakes and Cropland",
        "description": "County-level relationship between lake coverage and cropland coverage",
        "boundaries": {
            "state": "IA",
            "year": 2020,
            "cartographic": True,
        },
        "input_files": {
            "lakes_url": None,
            "cropland_csv": "data/iowa_cropland.csv",
        },
        "columns": {
            "boundaries": {"county": "NAME"},
            "lakes": {"id": "OBJECTID", "geometry": "the_geom", "county": "County"},
            "cropland": {"county": "County", "value": "Value"},
        },
        "name_overrides": {
            "O Brien": "O'Brien",
            "Obrien": "O'Brien",
        },
        "analysis": {
            "confidence_level": 0.95,
            "min_samples": 3,
        },
        "visualization": {
            "map_dpi": 200,
            "figure_max_width": 12,
            "colormap_lake": "Blues",
            "colormap_crop": "YlGn",
        },
        "system": {
            "lake_crs": "EPSG:4326",
            "boundary_crs": "EPSG:4269",
            "area_crs": "EPSG:26915",
        },
        "directories": {
            "output": "output",
        },
    }

    def __init__(
        self,
        config_file: Optional[Union[str, Path]] = None,
        overrides: Optional[Dict[str, Any]] = None,
        project_root_override: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to config file. If None, looks for:
                        1. Environment variable LAKECROP_CONFIG_PATH
                        2. config.yaml in current directory
                        3. the config.yaml shipped with the package
            overrides: Nested dict applied on top of the loaded file (CLI options)
            project_root_override: Override project root detection
        """
        if config_file is None:
            env_config = os.environ.get("LAKECROP_CONFIG_PATH")
            if env_config and Path(env_config).exists():
                config_file = env_config
                logger.debug(f"Using config from environment: {config_file}")
            elif Path("config.yaml").exists():
                config_file = "config.yaml"
            else:
                config_file = PACKAGED_CONFIG
                logger.debug("Using packaged default config.yaml")

        self.config_path = Path(config_file).resolve()
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        if project_root_override:
            self.project_root = Path(project_root_override).resolve()
            logger.debug(f"Using project root override: {self.project_root}")
        elif self.config_path == PACKAGED_CONFIG.resolve():
            self.project_root = Path.cwd()
        else:
            self.project_root = self.config_path.parent

        logger.debug(f"Loading config from: {self.config_path}")
        logger.debug(f"Project root: {self.project_root}")

        with open(self.config_path, "r") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file must contain a mapping: {self.config_path}")

        self.data: Dict[str, Any] = loaded
        if overrides:
            self.data = copy.deepcopy(self.data)
            self._apply_nested_override(self.data, overrides)

    @staticmethod
    def _apply_nested_override(target: Dict[str, Any], overrides: Dict[str, Any]) -> None:
        """Merge overrides into target in place, descending into nested dicts."""
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                Config._apply_nested_override(target[key], value)
            else:
                target[key] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation, falling back to DEFAULTS.

        Args:
            key_path: Dot-separated path to the configuration value
            default: Default value if key not found in config or DEFAULTS

        Returns:
            Configuration value
        """
        keys = key_path.split(".")

        value: Any = self.data
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                value = None
                break

        if value is None:
            value = self.DEFAULTS
            for key in keys:
                if isinstance(value, dict) and key in value:
                    value = value[key]
                else:
                    return default

        return default if value is None else value

    def get_input_path(self, filename_key: str) -> Union[Path, str]:
        """
        Get the location of an input source.

        URLs are returned untouched; relative paths are joined with the
        project root.

        Args:
            filename_key: Key under input_files

        Returns:
            Absolute Path, or the URL string
        """
        location = self.get(f"input_files.{filename_key}")
        if not location:
            raise ValueError(f"Input source '{filename_key}' not set in config: input_files")

        location = str(location)
        if is_url(location):
            return location

        path = Path(location).expanduser()
        if not path.is_absolute():
            path = self.project_root / path
        return path

    def get_column_name(self, source: str, column_key: str) -> str:
        """Get a source column name with defaults."""
        result = self.get(f"columns.{source}.{column_key}")
        if isinstance(result, str):
            return result
        raise ValueError(f"Column name not found or not a string: {source}.{column_key}")

    def get_name_overrides(self) -> Dict[str, str]:
        """County name corrections keyed by normalized name."""
        overrides = dict(self.DEFAULTS["name_overrides"])
        overrides.update(self.data.get("name_overrides") or {})
        return {str(k): str(v) for k, v in overrides.items()}

    def get_analysis_setting(self, setting_key: str) -> Any:
        """Get analysis setting with defaults."""
        return self.get(f"analysis.{setting_key}")

    def get_visualization_setting(self, setting_key: str) -> Any:
        """Get visualization setting with defaults."""
        return self.get(f"visualization.{setting_key}")

    def get_system_setting(self, setting_key: str) -> Any:
        """Get system setting with defaults."""
        return self.get(f"system.{setting_key}")

    def get_output_dir(self) -> Path:
        """Get (and create) the output directory."""
        output_dir = Path(self.get("directories.output"))
        if not output_dir.is_absolute():
            output_dir = self.project_root / output_dir
        output_dir.mkdir(parents=True, exist_ok=True)
        return output_dir

    def print_config_summary(self) -> None:
        """Log a summary of the current configuration."""
        logger.debug("📋 Configuration Summary")
        logger.debug("=" * 50)
        logger.debug(f"Project: {self.get('project_name', 'Unknown')}")
        logger.debug(f"Description: {self.get('description', 'No description')}")
        logger.debug(f"Config file: {self.config_path}")
        logger.debug(f"State: {self.get('boundaries.state')} ({self.get('boundaries.year')})")
        for key in ("lakes_url", "cropland_csv"):
            logger.debug(f"  {key}: {self.get(f'input_files.{key}', 'not set')}")
        logger.debug(f"Area CRS: {self.get_system_setting('area_crs')}")


def is_url(location: str) -> bool:
    """True for http(s)/ftp locations that pandas reads remotely."""
    return location.split("://", 1)[0].lower() in ("http", "https", "ftp")

