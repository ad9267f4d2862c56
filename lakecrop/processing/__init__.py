"""
Processing package for the Iowa Lakes & Cropland Pipeline

Loaders, county area normalization and the county aggregation stage.
"""

# Import key utilities for easy access
from .aggregate_counties import CompletenessSummary, build_county_metrics
from .county_areas import compute_county_areas
from .data_utils import (
    SQM_TO_ACRES,
    DataSourceError,
    normalize_county_name,
    parse_grouped_number,
    square_meters_to_acres,
)

__all__ = [
    "SQM_TO_ACRES",
    "DataSourceError",
    "normalize_county_name",
    "parse_grouped_number",
    "square_meters_to_acres",
    "compute_county_areas",
    "build_county_metrics",
    "CompletenessSummary",
]
