"""
county_areas.py

Computes each county's total area in acres from its boundary polygon.

The polygons are reprojected to a metre-based projected CRS before taking
the area (geographic degrees are not an area unit), then converted with
SQM_TO_ACRES. The output holds every boundary county exactly once.
"""

from typing import Dict, Optional

import geopandas as gpd
import pandas as pd
from loguru import logger

from lakecrop.processing.data_utils import normalize_county_names, square_meters_to_acres

DEFAULT_AREA_CRS = "EPSG:26915"  # NAD83 / UTM zone 15N
DEFAULT_BOUNDARY_CRS = "EPSG:4269"  # NAD83, pygris native


def project_for_area(
    gdf: gpd.GeoDataFrame, area_crs: str = DEFAULT_AREA_CRS, assumed_crs: str = DEFAULT_BOUNDARY_CRS
) -> gpd.GeoDataFrame:
    """Reproject to area_crs, assigning assumed_crs first if the input has none."""
    if gdf.crs is None:
        logger.warning(f"  ⚠️ No CRS defined, assuming {assumed_crs}")
        gdf = gdf.set_crs(assumed_crs)

    if gdf.crs != area_crs:
        logger.debug(f"  🔄 Reprojecting from {gdf.crs} to {area_crs}")
        gdf = gdf.to_crs(area_crs)
    return gdf


def compute_county_areas(
    counties: gpd.GeoDataFrame,
    area_crs: str = DEFAULT_AREA_CRS,
    assumed_crs: str = DEFAULT_BOUNDARY_CRS,
    overrides: Optional[Dict[str, str]] = None,
) -> pd.DataFrame:
    """
    Area of every county polygon, in acres.

    Args:
        counties: GeoDataFrame with a 'county' name column
        area_crs: Projected CRS with metre units used for measuring
        assumed_crs: CRS assigned when the input carries none
        overrides: County name corrections (see normalize_county_name)

    Returns:
        DataFrame with columns [county, county_area_acres], one row per county
    """
    logger.info("📐 Computing county areas...")

    counties = counties.copy()
    counties["county"] = normalize_county_names(counties["county"], overrides)
    unnamed = counties["county"].isna()
    if unnamed.any():
        logger.warning(f"  ⚠️ Dropping {int(unnamed.sum())} county polygons without a name")
        counties = counties[~unnamed]

    if counties["county"].duplicated().any():
        duplicated = sorted(counties.loc[counties["county"].duplicated(), "county"].unique())
        logger.warning(f"  ⚠️ Dissolving multi-part counties: {duplicated}")
        counties = counties.dissolve(by="county", as_index=False)

    projected = project_for_area(counties, area_crs, assumed_crs)

    areas = pd.DataFrame(
        {
            "county": projected["county"].to_numpy(),
            "county_area_acres": square_meters_to_acres(projected.geometry.area).to_numpy(),
        }
    )

    non_positive = areas["county_area_acres"] <= 0
    if non_positive.any():
        logger.warning(f"  ⚠️ Counties with non-positive area: {areas.loc[non_positive, 'county'].tolist()}")

    logger.success(
        f"  ✅ {len(areas):,} counties, total {areas['county_area_acres'].sum():,.0f} acres"
    )
    return areas.sort_values("county").reset_index(drop=True)
