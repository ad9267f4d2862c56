"""
aggregate_counties.py

Turns raw lake geometries and raw cropland figures into comparable
per-county proportions.

Key Functionality:
1. Lake geometry handling:
   - Parses WKT geometry strings under a fixed CRS.
   - Repairs invalid (self-intersecting) polygons before measuring them.
   - Computes each lake's area in acres and totals it per county.

2. Cropland handling:
   - Normalizes county names (the USDA source uses upper case) and applies
     the value-keyed override table.
   - Parses grouped-digit acreage strings; unparseable values become NaN.

3. Joining:
   - Outer join of county areas, lake totals and cropland on the normalized
     county name. Every county present in any source survives; missing
     attributes stay NaN and are never filled with zero.
   - Proportions are computed against county area; a missing or zero
     denominator yields NaN.

4. Completeness reporting:
   - Counts counties lacking lake or cropland data and lists names that
     matched no boundary county, so the correlation can be judged.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import geopandas as gpd
import pandas as pd
from loguru import logger
from shapely import wkt
from shapely.errors import ShapelyError

from lakecrop.processing.county_areas import (
    DEFAULT_AREA_CRS,
    DEFAULT_BOUNDARY_CRS,
    compute_county_areas,
    project_for_area,
)
from lakecrop.processing.data_utils import (
    POLYGONAL_TYPES,
    normalize_county_names,
    parse_grouped_number,
    square_meters_to_acres,
    validate_and_fix_geometries,
)

DEFAULT_LAKE_CRS = "EPSG:4326"

METRIC_COLUMNS = [
    "county",
    "county_area_acres",
    "total_lake_area_acres",
    "prop_lake",
    "crop_area_acres",
    "prop_crop",
]


@dataclass
class CompletenessSummary:
    """How much of the joined table is actually populated."""

    total_counties: int
    boundary_counties: int
    missing_county_area: int
    missing_lake_data: int
    missing_cropland_data: int
    complete_cases: int
    unmatched_lake_counties: List[str] = field(default_factory=list)
    unmatched_cropland_counties: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, object]:
        return {
            "total_counties": self.total_counties,
            "boundary_counties": self.boundary_counties,
            "missing_county_area": self.missing_county_area,
            "missing_lake_data": self.missing_lake_data,
            "missing_cropland_data": self.missing_cropland_data,
            "complete_cases": self.complete_cases,
            "unmatched_lake_counties": list(self.unmatched_lake_counties),
            "unmatched_cropland_counties": list(self.unmatched_cropland_counties),
        }


def _load_wkt(text) -> Optional[object]:
    if not isinstance(text, str) or not text.strip():
        return None
    try:
        return wkt.loads(text)
    except ShapelyError:
        return None


def parse_lake_geometries(lakes: pd.DataFrame, source_crs: str = DEFAULT_LAKE_CRS) -> gpd.GeoDataFrame:
    """
    Parse the WKT column into polygon geometries and repair invalid ones.

    Rows whose WKT cannot be parsed, or parses to something other than a
    (multi)polygon, keep a null geometry and are counted in the log.

    Args:
        lakes: DataFrame with columns [lake_id, geometry_wkt, county]
        source_crs: CRS the WKT coordinates are expressed in

    Returns:
        GeoDataFrame with columns [lake_id, county, geometry]
    """
    logger.info(f"🌊 Parsing {len(lakes):,} lake geometries ({source_crs})...")

    geometries = pd.Series([_load_wkt(text) for text in lakes["geometry_wkt"]], index=lakes.index, dtype=object)
    unparsed = int(geometries.isna().sum())
    if unparsed:
        logger.warning(f"  ⚠️ {unparsed} lake geometries could not be parsed")

    non_polygonal = geometries.map(lambda g: g is not None and g.geom_type not in POLYGONAL_TYPES)
    if non_polygonal.any():
        logger.warning(f"  ⚠️ Ignoring {int(non_polygonal.sum())} non-polygon lake geometries")
        geometries = geometries.map(lambda g: None if g is not None and g.geom_type not in POLYGONAL_TYPES else g)

    gdf = gpd.GeoDataFrame(
        lakes.drop(columns=["geometry_wkt"]),
        geometry=geometries.tolist(),
        crs=source_crs,
    )
    return validate_and_fix_geometries(gdf, data_type="lake")


def compute_lake_areas(
    lakes: gpd.GeoDataFrame, area_crs: str = DEFAULT_AREA_CRS, assumed_crs: str = DEFAULT_LAKE_CRS
) -> gpd.GeoDataFrame:
    """Add lake_area_acres to each lake. Null geometries get NaN."""
    projected = project_for_area(lakes, area_crs, assumed_crs)
    projected = projected.copy()
    area_sqm = projected.geometry.area.where(projected.geometry.notna())
    projected["lake_area_acres"] = square_meters_to_acres(area_sqm)

    missing = int(projected["lake_area_acres"].isna().sum())
    if missing:
        logger.debug(f"  💡 {missing} lakes have no measurable area")
    logger.info(f"  📏 Total lake area: {projected['lake_area_acres'].sum():,.1f} acres")
    return projected


def summarize_lakes_by_county(
    lakes: pd.DataFrame, overrides: Optional[Dict[str, str]] = None
) -> pd.DataFrame:
    """
    Total lake area per county.

    Individual lakes with a missing area contribute zero to their county's
    total. Lakes with no county name are dropped.

    Returns:
        DataFrame with columns [county, total_lake_area_acres]
    """
    lakes = pd.DataFrame(lakes[["county", "lake_area_acres"]]).copy()
    lakes["county"] = normalize_county_names(lakes["county"], overrides)

    unnamed = lakes["county"].isna()
    if unnamed.any():
        logger.warning(f"  ⚠️ {int(unnamed.sum())} lakes have no county and are excluded")
        lakes = lakes[~unnamed]

    summary = (
        lakes.groupby("county", sort=True)["lake_area_acres"]
        .sum(min_count=0)
        .rename("total_lake_area_acres")
        .reset_index()
    )
    logger.info(f"  📊 Lake totals for {len(summary):,} counties")
    return summary


def prepare_cropland(cropland: pd.DataFrame, overrides: Optional[Dict[str, str]] = None) -> pd.DataFrame:
    """
    Normalize cropland county names and parse the acreage values.

    Returns:
        DataFrame with columns [county, crop_area_acres], one row per county
    """
    logger.info("🌽 Preparing cropland acreage...")
    prepared = pd.DataFrame(
        {
            "county": normalize_county_names(cropland["county"], overrides),
            "crop_area_acres": parse_grouped_number(cropland["value"]),
        }
    )

    unparsed = prepared["crop_area_acres"].isna() & cropland["value"].notna().to_numpy()
    if unparsed.any():
        logger.warning(f"  ⚠️ {int(unparsed.sum())} cropland values could not be parsed")

    unnamed = prepared["county"].isna()
    if unnamed.any():
        logger.warning(f"  ⚠️ Dropping {int(unnamed.sum())} cropland rows without a county")
        prepared = prepared[~unnamed]

    duplicated = prepared["county"].duplicated(keep="first")
    if duplicated.any():
        logger.warning(
            f"  ⚠️ Duplicate cropland rows, keeping first: {sorted(prepared.loc[duplicated, 'county'].unique())}"
        )
        prepared = prepared[~duplicated]

    return prepared.reset_index(drop=True)


def join_county_tables(
    county_areas: pd.DataFrame, lake_summary: pd.DataFrame, cropland: pd.DataFrame
) -> pd.DataFrame:
    """Outer join of the three per-county tables on the normalized name."""
    logger.info("🔗 Joining county areas, lake totals and cropland...")
    metrics = county_areas.merge(lake_summary, on="county", how="outer")
    metrics = metrics.merge(cropland, on="county", how="outer")
    return metrics.sort_values("county").reset_index(drop=True)


def add_proportions(metrics: pd.DataFrame) -> pd.DataFrame:
    """
    Add prop_lake and prop_crop.

    A missing or zero county area gives NaN rather than inf.
    """
    metrics = metrics.copy()
    denominator = metrics["county_area_acres"].where(metrics["county_area_acres"] > 0)
    metrics["prop_lake"] = metrics["total_lake_area_acres"] / denominator
    metrics["prop_crop"] = metrics["crop_area_acres"] / denominator

    over_one = (metrics["prop_lake"] > 1) | (metrics["prop_crop"] > 1)
    if over_one.any():
        logger.warning(f"  ⚠️ Proportions above 1 for: {metrics.loc[over_one, 'county'].tolist()}")

    return metrics[METRIC_COLUMNS]


def summarize_completeness(
    metrics: pd.DataFrame,
    county_areas: pd.DataFrame,
    lake_summary: pd.DataFrame,
    cropland: pd.DataFrame,
) -> CompletenessSummary:
    """Count missing data and names that matched no boundary county."""
    boundary = set(county_areas["county"])
    summary = CompletenessSummary(
        total_counties=len(metrics),
        boundary_counties=len(boundary),
        missing_county_area=int(metrics["county_area_acres"].isna().sum()),
        missing_lake_data=int(metrics["total_lake_area_acres"].isna().sum()),
        missing_cropland_data=int(metrics["crop_area_acres"].isna().sum()),
        complete_cases=int(metrics[["prop_lake", "prop_crop"]].notna().all(axis=1).sum()),
        unmatched_lake_counties=sorted(set(lake_summary["county"]) - boundary),
        unmatched_cropland_counties=sorted(set(cropland["county"]) - boundary),
    )

    logger.info("📋 Data completeness:")
    logger.info(f"  Counties in output: {summary.total_counties} ({summary.boundary_counties} in boundaries)")
    logger.info(f"  Missing lake data: {summary.missing_lake_data}")
    logger.info(f"  Missing cropland data: {summary.missing_cropland_data}")
    logger.info(f"  Complete cases: {summary.complete_cases}")
    if summary.unmatched_lake_counties:
        logger.warning(f"  ⚠️ Lake counties with no boundary match: {summary.unmatched_lake_counties}")
    if summary.unmatched_cropland_counties:
        logger.warning(f"  ⚠️ Cropland counties with no boundary match: {summary.unmatched_cropland_counties}")

    return summary


def build_county_metrics(
    counties: gpd.GeoDataFrame,
    lakes: pd.DataFrame,
    cropland: pd.DataFrame,
    overrides: Optional[Dict[str, str]] = None,
    lake_crs: str = DEFAULT_LAKE_CRS,
    boundary_crs: str = DEFAULT_BOUNDARY_CRS,
    area_crs: str = DEFAULT_AREA_CRS,
) -> Tuple[pd.DataFrame, CompletenessSummary]:
    """
    Run the whole aggregation: county areas, lake totals, cropland, join,
    proportions and completeness.

    Args:
        counties: Boundary polygons with a 'county' column
        lakes: Raw lake records [lake_id, geometry_wkt, county]
        cropland: Raw cropland records [county, value]
        overrides: County name corrections applied to every source
        lake_crs: CRS of the lake WKT coordinates
        boundary_crs: CRS assumed for boundaries lacking one
        area_crs: Metre-based CRS used for all area measurements

    Returns:
        (county metrics table, completeness summary)
    """
    county_areas = compute_county_areas(counties, area_crs, boundary_crs, overrides)

    lake_gdf = parse_lake_geometries(lakes, lake_crs)
    lake_gdf = compute_lake_areas(lake_gdf, area_crs, lake_crs)
    lake_summary = summarize_lakes_by_county(lake_gdf, overrides)

    crop = prepare_cropland(cropland, overrides)

    metrics = add_proportions(join_county_tables(county_areas, lake_summary, crop))
    completeness = summarize_completeness(metrics, county_areas, lake_summary, crop)

    logger.success(f"✅ Built metrics for {len(metrics):,} counties")
    return metrics, completeness
