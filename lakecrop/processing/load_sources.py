"""
load_sources.py

Loads the three raw datasets the pipeline consumes:

1. County boundaries - Census cartographic boundary polygons fetched with
   pygris for one state.
2. Lake records - a CSV (remote endpoint or local file) carrying an id,
   a WKT geometry column and the owning county's name.
3. Cropland acreage - a USDA NASS QuickStats CSV export with a county
   column and a value column (grouped-digit strings such as "123,456").

No transformation happens here beyond column selection and renaming to the
pipeline's internal names. Any retrieval failure is fatal for the run and is
raised as DataSourceError; there are no retries.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Union

import geopandas as gpd
import pandas as pd
import pygris
from loguru import logger

from lakecrop.ops import Config
from lakecrop.ops.config_loader import is_url
from lakecrop.processing.data_utils import DataSourceError, require_columns


@dataclass
class SourceTables:
    """The raw tables handed from the loader to the later stages."""

    counties: gpd.GeoDataFrame
    lakes: pd.DataFrame
    cropland: pd.DataFrame


def load_county_boundaries(
    state: str = "IA", year: int = 2020, cartographic: bool = True, name_column: str = "NAME"
) -> gpd.GeoDataFrame:
    """
    Fetch county polygons for one state.

    Args:
        state: State abbreviation or FIPS code understood by pygris
        year: Boundary vintage
        cartographic: Use the generalized cartographic boundary file
        name_column: Column holding the county name

    Returns:
        GeoDataFrame with columns [county, geometry] in the provider's CRS
    """
    logger.info(f"🗺️ Fetching county boundaries for {state} ({year})...")
    try:
        counties = pygris.counties(state=state, cb=cartographic, year=year)
    except Exception as e:
        logger.critical(f"❌ Could not retrieve county boundaries for {state}: {e}")
        raise DataSourceError(f"County boundaries for {state} unavailable: {e}") from e

    require_columns(counties, [name_column, "geometry"], "County boundaries")
    counties = counties[[name_column, "geometry"]].rename(columns={name_column: "county"})

    logger.success(f"  ✅ Loaded {len(counties):,} county polygons (CRS: {counties.crs})")
    return counties


def load_lake_records(
    source: Union[str, Path],
    id_column: str = "OBJECTID",
    geometry_column: str = "the_geom",
    county_column: str = "County",
) -> pd.DataFrame:
    """
    Read lake records from a remote endpoint or local CSV.

    Args:
        source: URL or path of the CSV
        id_column: Record identifier column
        geometry_column: Column holding the WKT geometry string
        county_column: Column holding the owning county's name

    Returns:
        DataFrame with columns [lake_id, geometry_wkt, county]
    """
    logger.info(f"🌊 Loading lake records from {source}")
    if not is_url(str(source)) and not Path(source).exists():
        logger.critical(f"❌ Lake file not found: {source}")
        raise DataSourceError(f"Lake file not found: {source}")

    try:
        lakes = pd.read_csv(source, dtype={county_column: str, geometry_column: str})
    except Exception as e:
        logger.critical(f"❌ Could not read lake records: {e}")
        raise DataSourceError(f"Lake records unavailable from {source}: {e}") from e

    require_columns(lakes, [id_column, geometry_column, county_column], "Lake records")
    lakes = lakes[[id_column, geometry_column, county_column]].rename(
        columns={id_column: "lake_id", geometry_column: "geometry_wkt", county_column: "county"}
    )

    logger.success(f"  ✅ Loaded {len(lakes):,} lake records")
    return lakes


def load_cropland_records(
    path: Union[str, Path], county_column: str = "County", value_column: str = "Value"
) -> pd.DataFrame:
    """
    Read cropland acreage by county. Values stay as raw strings.

    Returns:
        DataFrame with columns [county, value]
    """
    logger.info(f"🌽 Loading cropland records from {path}")
    if not is_url(str(path)) and not Path(path).exists():
        logger.critical(f"❌ Cropland file not found: {path}")
        raise DataSourceError(f"Cropland file not found: {path}")

    try:
        cropland = pd.read_csv(path, dtype={county_column: str, value_column: str})
    except Exception as e:
        logger.critical(f"❌ Could not read cropland records: {e}")
        raise DataSourceError(f"Cropland records unavailable from {path}: {e}") from e

    require_columns(cropland, [county_column, value_column], "Cropland records")
    cropland = cropland[[county_column, value_column]].rename(
        columns={county_column: "county", value_column: "value"}
    )

    logger.success(f"  ✅ Loaded {len(cropland):,} cropland records")
    return cropland


def load_all_sources(config: Config) -> SourceTables:
    """Load all three sources using the locations and columns in config."""
    counties = load_county_boundaries(
        state=config.get("boundaries.state"),
        year=int(config.get("boundaries.year")),
        cartographic=bool(config.get("boundaries.cartographic")),
        name_column=config.get_column_name("boundaries", "county"),
    )
    lakes = load_lake_records(
        config.get_input_path("lakes_url"),
        id_column=config.get_column_name("lakes", "id"),
        geometry_column=config.get_column_name("lakes", "geometry"),
        county_column=config.get_column_name("lakes", "county"),
    )
    cropland = load_cropland_records(
        config.get_input_path("cropland_csv"),
        county_column=config.get_column_name("cropland", "county"),
        value_column=config.get_column_name("cropland", "value"),
    )
    return SourceTables(counties=counties, lakes=lakes, cropland=cropland)
