import math

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import Polygon, box

from lakecrop.processing.data_utils import (
    SQM_TO_ACRES,
    DataSourceError,
    normalize_county_name,
    normalize_county_names,
    parse_grouped_number,
    require_columns,
    square_meters_to_acres,
    validate_and_fix_geometries,
)

DEFAULT_OVERRIDES = {"O Brien": "O'Brien", "Obrien": "O'Brien"}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("ADAIR", "Adair"),
        ("  des   moines ", "Des Moines"),
        ("BLACK HAWK", "Black Hawk"),
        ("O'BRIEN", "O'Brien"),
        ("O’Brien", "O'Brien"),
        ("Clay County", "Clay"),
        ("cerro - gordo", "Cerro-Gordo"),
    ],
)
def test_normalize_county_name(raw, expected):
    assert normalize_county_name(raw) == expected


@pytest.mark.parametrize("raw", [None, float("nan"), "", "   "])
def test_normalize_missing_names(raw):
    assert normalize_county_name(raw) is None


def test_overrides_are_keyed_by_value():
    assert normalize_county_name("O BRIEN") == "O Brien"
    assert normalize_county_name("O BRIEN", DEFAULT_OVERRIDES) == "O'Brien"
    assert normalize_county_name("OBRIEN", DEFAULT_OVERRIDES) == "O'Brien"
    assert normalize_county_name("BOONE", DEFAULT_OVERRIDES) == "Boone"


@pytest.mark.parametrize("dtype", [object, "string"])
def test_normalize_series_normalizes_override_keys(dtype):
    names = pd.Series(["O BRIEN", "ADAIR", None], index=[10, 11, 12], dtype=dtype)
    result = normalize_county_names(names, {"O BRIEN": "O'Brien"})
    assert result.dtype == object
    assert result.tolist() == ["O'Brien", "Adair", None]
    assert result.index.tolist() == [10, 11, 12]


def test_parse_grouped_number():
    values = pd.Series(["123,456", "abc", "(D)", " 7 ", None, "1,000.5"])
    parsed = parse_grouped_number(values)

    assert parsed.iloc[0] == 123456.0
    assert math.isnan(parsed.iloc[1])
    assert math.isnan(parsed.iloc[2])
    assert parsed.iloc[3] == 7.0
    assert math.isnan(parsed.iloc[4])
    assert parsed.iloc[5] == 1000.5
    assert parsed.dtype == float


def test_area_conversion_is_linear():
    assert square_meters_to_acres(1_000_000) == pytest.approx(247.105)
    assert square_meters_to_acres(0) == 0
    series = pd.Series([1.0, 2.0, 4.0])
    assert square_meters_to_acres(series).tolist() == pytest.approx([SQM_TO_ACRES, 2 * SQM_TO_ACRES, 4 * SQM_TO_ACRES])


def test_validate_and_fix_geometries_repairs_bowtie():
    bowtie = Polygon([(0, 0), (2, 2), (2, 0), (0, 2), (0, 0)])
    gdf = gpd.GeoDataFrame({"name": ["bowtie", "ok", "empty"]}, geometry=[bowtie, box(0, 0, 1, 1), None])
    assert not gdf.geometry.iloc[0].is_valid

    fixed = validate_and_fix_geometries(gdf, "test")

    assert fixed.geometry.iloc[0].is_valid
    assert fixed.geometry.iloc[0].area == pytest.approx(2.0)
    assert fixed.geometry.iloc[1].equals(box(0, 0, 1, 1))
    assert fixed.geometry.iloc[2] is None
    # input untouched
    assert not gdf.geometry.iloc[0].is_valid


def test_require_columns():
    df = pd.DataFrame({"a": [1], "b": [2]})
    require_columns(df, ["a", "b"], "test")
    with pytest.raises(DataSourceError, match="missing required columns"):
        require_columns(df, ["a", "c"], "test")


def test_parse_grouped_number_rejects_infinite_values():
    parsed = parse_grouped_number(pd.Series(["inf", "-inf", "1e400", "2,500"]))

    assert parsed.iloc[:3].isna().all()
    assert parsed.iloc[3] == 2500.0


def test_validate_and_fix_geometries_with_repeated_index_labels():
    bowtie = Polygon([(0, 0), (2, 2), (2, 0), (0, 2), (0, 0)])
    gdf = gpd.GeoDataFrame({"name": ["bowtie", "ok"]}, geometry=[bowtie, box(0, 0, 1, 1)], index=[0, 0])

    fixed = validate_and_fix_geometries(gdf, "test")

    assert fixed.index.tolist() == [0, 0]
    assert fixed.geometry.is_valid.all()
    assert fixed.geometry.iloc[0].area == pytest.approx(2.0)
    assert fixed.geometry.iloc[1].equals(box(0, 0, 1, 1))
