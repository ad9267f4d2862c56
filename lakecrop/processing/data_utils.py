#!/usr/bin/env python3
"""
data_utils.py - Shared Data Processing Utilities

Common functions used across the loader, normalizer and aggregator:
county name normalization, grouped-digit number parsing, geometry repair,
area unit conversion and column validation.
"""

import re
from pathlib import Path
from typing import Dict, Iterable, Optional

import geopandas as gpd
import numpy as np
import pandas as pd
from loguru import logger
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union
from shapely.validation import make_valid

# Square metres to acres
SQM_TO_ACRES = 0.000247105

POLYGONAL_TYPES = ("Polygon", "MultiPolygon")

_APOSTROPHES = str.maketrans({"’": "'", "‘": "'", "`": "'", "´": "'"})
_SPACED_HYPHEN = re.compile(r"\s*-\s*")
_WHITESPACE = re.compile(r"\s+")
_COUNTY_SUFFIX = re.compile(r"\s+county$", re.IGNORECASE)


class DataSourceError(RuntimeError):
    """A source dataset could not be retrieved or lacks required columns."""


def square_meters_to_acres(value):
    """Convert square metres to acres. Works on scalars and pandas objects."""
    return value * SQM_TO_ACRES


def normalize_county_name(name, overrides: Optional[Dict[str, str]] = None) -> Optional[str]:
    """Canonical form of a free-text county name.

    Trims, collapses whitespace, unifies apostrophe and hyphen variants,
    drops a trailing "County", then lowercases and title-cases. The override
    table is applied last, keyed by the normalized value.

    Args:
        name: Raw county name (missing values pass through as None)
        overrides: Mapping of normalized name -> corrected name

    Returns:
        Normalized name, or None for missing/blank input
    """
    if name is None or (not isinstance(name, str) and pd.isna(name)):
        return None

    text = str(name).translate(_APOSTROPHES)
    text = _SPACED_HYPHEN.sub("-", text)
    text = _WHITESPACE.sub(" ", text).strip()
    text = _COUNTY_SUFFIX.sub("", text)
    if not text:
        return None

    text = text.lower().title()
    if overrides:
        text = overrides.get(text, text)
    return text


def normalize_county_names(names: pd.Series, overrides: Optional[Dict[str, str]] = None) -> pd.Series:
    """Apply normalize_county_name to a Series.

    Override keys are normalized too, so "O BRIEN" and "O Brien" in a
    config file both match.
    """
    normalized_overrides: Dict[str, str] = {}
    for raw, corrected in (overrides or {}).items():
        key = normalize_county_name(raw)
        if key is not None:
            normalized_overrides[key] = corrected

    return pd.Series(
        [normalize_county_name(n, normalized_overrides) for n in names], index=names.index, dtype=object
    )


def parse_grouped_number(series: pd.Series) -> pd.Series:
    """
    Parse numbers written with grouping separators ("123,456").

    Anything that still fails to parse (e.g. NASS "(D)" withheld markers)
    becomes NaN, and so do overflowing or infinite values ("1e400", "inf").

    Args:
        series: The pandas Series to clean.

    Returns:
        A float Series.
    """
    s = series.astype(str).str.replace(",", "", regex=False).str.strip()
    parsed = pd.to_numeric(s, errors="coerce").astype(float)
    return parsed.replace([np.inf, -np.inf], np.nan)


def require_columns(df: pd.DataFrame, columns: Iterable[str], source: str) -> None:
    """Raise DataSourceError if any required column is absent."""
    missing = [col for col in columns if col not in df.columns]
    if missing:
        logger.critical(f"❌ {source}: missing required columns {missing}")
        logger.info(f"Available columns: {list(df.columns)}")
        raise DataSourceError(f"{source} is missing required columns: {missing}")


def _polygonal_part(geom: BaseGeometry) -> Optional[BaseGeometry]:
    """Keep the polygonal pieces of a repaired geometry."""
    if geom is None or geom.is_empty:
        return None
    if geom.geom_type in POLYGONAL_TYPES:
        return geom
    if hasattr(geom, "geoms"):
        polygons = [g for g in geom.geoms if g.geom_type in POLYGONAL_TYPES]
        if not polygons:
            return None
        return unary_union(polygons)
    return None


def validate_and_fix_geometries(gdf: gpd.GeoDataFrame, data_type: str = "geodata") -> gpd.GeoDataFrame:
    """Repair invalid (e.g. self-intersecting) geometries with make_valid.

    Repairs are logged, never raised. Line or point debris produced by the
    repair is discarded so area sums are unaffected.

    Args:
        gdf: GeoDataFrame to validate
        data_type: Description for logging

    Returns:
        GeoDataFrame with repaired geometries
    """
    logger.info(f"🔧 Validating {data_type} geometries...")
    gdf = gdf.copy()

    present = gdf.geometry.notna()
    invalid_mask = present & ~gdf.geometry.is_valid
    invalid_count = int(invalid_mask.sum())

    if invalid_count == 0:
        logger.info(f"  ✅ All {int(present.sum()):,} geometries are valid")
        return gdf

    logger.warning(f"  ⚠️ Found {invalid_count} invalid geometries, repairing...")
    # Positional, so repeated index labels are repaired one row at a time
    geometries = gdf.geometry.to_numpy().copy()
    fixed_count = 0
    for pos in np.flatnonzero(invalid_mask.to_numpy()):
        repaired = _polygonal_part(make_valid(geometries[pos]))
        geometries[pos] = repaired
        if repaired is not None and repaired.is_valid:
            fixed_count += 1
        else:
            logger.debug(f"    ⚠️ Repair left no polygon at index {gdf.index[pos]}")

    gdf[gdf.geometry.name] = gpd.GeoSeries(geometries, crs=gdf.crs).values
    logger.success(f"  ✅ Repaired {fixed_count}/{invalid_count} invalid geometries")
    return gdf


def ensure_output_directory(output_path) -> Path:
    """Ensure output directory exists and return Path object."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    return output_path
