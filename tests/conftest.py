"""Shared fixtures: small counties in a metre CRS with known areas."""

import sys

import matplotlib

matplotlib.use("Agg")

import geopandas as gpd  # noqa: E402
import pandas as pd  # noqa: E402
import pytest  # noqa: E402
import yaml  # noqa: E402
from loguru import logger  # noqa: E402
from shapely.geometry import box  # noqa: E402

UTM_CRS = "EPSG:26915"

# Somewhere in central Iowa, NAD83 / UTM 15N
X0 = 400_000.0
Y0 = 4_600_000.0


def square(x_km: float, y_km: float, width_m: float, height_m: float = None):
    """Rectangle with its lower-left corner x_km/y_km from the origin."""
    height_m = width_m if height_m is None else height_m
    x = X0 + x_km * 1000
    y = Y0 + y_km * 1000
    return box(x, y, x + width_m, y + height_m)


@pytest.fixture(autouse=True)
def restore_logger():
    yield
    logger.remove()
    logger.add(sys.stderr, level="DEBUG")


@pytest.fixture
def counties() -> gpd.GeoDataFrame:
    """Three counties: 1 km², 2 km², 4 km²."""
    return gpd.GeoDataFrame(
        {"county": ["Adair", "Boone", "O'Brien"]},
        geometry=[square(0, 0, 1000), square(10, 0, 2000, 1000), square(20, 0, 2000)],
        crs=UTM_CRS,
    )


@pytest.fixture
def lakes() -> pd.DataFrame:
    """Raw lake records with WKT in the same metre CRS."""
    return pd.DataFrame(
        {
            "lake_id": [1, 2, 3],
            "geometry_wkt": [
                square(0.1, 0.1, 100).wkt,  # 10,000 m² in Adair
                square(0.5, 0.5, 100, 200).wkt,  # 20,000 m² in Adair
                square(10.1, 0.1, 100).wkt,  # 10,000 m² in Boone
            ],
            "county": ["ADAIR", "adair ", "Boone"],
        }
    )


@pytest.fixture
def cropland() -> pd.DataFrame:
    """NASS-style cropland rows: upper-case names, grouped digits."""
    return pd.DataFrame(
        {
            "county": ["ADAIR", "BOONE", "O BRIEN", "OTHER (COMBINED) COUNTIES"],
            "value": ["100", "(D)", "500", "1,234"],
        }
    )


@pytest.fixture
def config_file(tmp_path):
    """Write a config.yaml in tmp_path using metre CRSs for test geometry."""

    def _write(**extra):
        data = {
            "input_files": {
                "lakes_url": "lakes.csv",
                "cropland_csv": "cropland.csv",
            },
            "system": {"lake_crs": UTM_CRS, "boundary_crs": UTM_CRS, "area_crs": UTM_CRS},
            "directories": {"output": "out"},
        }
        for key, value in extra.items():
            data[key] = value
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(data))
        return path

    return _write
