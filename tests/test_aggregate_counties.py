import math

import numpy as np
import pandas as pd
import pytest
from shapely.geometry import Polygon

from conftest import UTM_CRS, square
from lakecrop.analysis.correlation import correlate_county_metrics
from lakecrop.processing.aggregate_counties import (
    METRIC_COLUMNS,
    add_proportions,
    build_county_metrics,
    compute_lake_areas,
    join_county_tables,
    parse_lake_geometries,
    prepare_cropland,
    summarize_lakes_by_county,
)
from lakecrop.processing.data_utils import SQM_TO_ACRES
from lakecrop.processing.load_sources import load_lake_records

OVERRIDES = {"O Brien": "O'Brien", "Obrien": "O'Brien"}


def test_parse_lake_geometries_handles_bad_records():
    bowtie = Polygon([(0, 0), (2, 2), (2, 0), (0, 2), (0, 0)])
    raw = pd.DataFrame(
        {
            "lake_id": [1, 2, 3, 4, 5],
            "geometry_wkt": [square(0, 0, 100).wkt, bowtie.wkt, "not wkt", None, "POINT (1 2)"],
            "county": ["Adair"] * 5,
        }
    )
    gdf = parse_lake_geometries(raw, source_crs=UTM_CRS)

    assert list(gdf.columns) == ["lake_id", "county", "geometry"]
    assert gdf.crs == UTM_CRS
    assert gdf.geometry.iloc[0].is_valid
    assert gdf.geometry.iloc[1].is_valid
    assert gdf.geometry.iloc[1].area == pytest.approx(2.0)
    assert gdf.geometry.iloc[2:].isna().all()


def test_lake_areas_in_acres_with_missing_geometry():
    raw = pd.DataFrame(
        {"lake_id": [1, 2], "geometry_wkt": [square(0, 0, 100).wkt, None], "county": ["Adair", "Adair"]}
    )
    lakes = compute_lake_areas(parse_lake_geometries(raw, UTM_CRS), area_crs=UTM_CRS)

    assert lakes["lake_area_acres"].iloc[0] == pytest.approx(10_000 * SQM_TO_ACRES)
    assert math.isnan(lakes["lake_area_acres"].iloc[1])


def test_summarize_lakes_treats_missing_area_as_zero():
    lakes = pd.DataFrame(
        {
            "county": ["ADAIR", "Adair", "Boone", None, "Clay"],
            "lake_area_acres": [1.5, 2.5, np.nan, 9.0, np.nan],
        }
    )
    summary = summarize_lakes_by_county(lakes).set_index("county")["total_lake_area_acres"]

    assert summary["Adair"] == pytest.approx(4.0)
    assert summary["Boone"] == 0.0
    assert summary["Clay"] == 0.0
    assert len(summary) == 3


def test_prepare_cropland(cropland):
    prepared = prepare_cropland(cropland, OVERRIDES).set_index("county")["crop_area_acres"]

    assert prepared["Adair"] == 100.0
    assert math.isnan(prepared["Boone"])
    assert prepared["O'Brien"] == 500.0
    assert prepared["Other (Combined) Counties"] == 1234.0


def test_prepare_cropland_keeps_first_duplicate():
    raw = pd.DataFrame({"county": ["ADAIR", "Adair"], "value": ["10", "20"]})
    prepared = prepare_cropland(raw)

    assert prepared["county"].tolist() == ["Adair"]
    assert prepared["crop_area_acres"].tolist() == [10.0]


def test_outer_join_keeps_every_county():
    areas = pd.DataFrame({"county": ["Adair", "Boone"], "county_area_acres": [100.0, 50.0]})
    lake_summary = pd.DataFrame({"county": ["Adair", "Stray"], "total_lake_area_acres": [5.0, 1.0]})
    crop = pd.DataFrame({"county": ["Boone"], "crop_area_acres": [20.0]})

    joined = join_county_tables(areas, lake_summary, crop).set_index("county")

    assert sorted(joined.index) == ["Adair", "Boone", "Stray"]
    assert math.isnan(joined.loc["Boone", "total_lake_area_acres"])
    assert math.isnan(joined.loc["Adair", "crop_area_acres"])
    assert math.isnan(joined.loc["Stray", "county_area_acres"])


def test_proportions_never_divide_by_missing_or_zero():
    metrics = pd.DataFrame(
        {
            "county": ["A", "Zero", "NoArea"],
            "county_area_acres": [100.0, 0.0, np.nan],
            "total_lake_area_acres": [10.0, 5.0, 5.0],
            "crop_area_acres": [40.0, 5.0, 5.0],
        }
    )
    result = add_proportions(metrics).set_index("county")

    assert list(result.reset_index().columns) == METRIC_COLUMNS
    assert result.loc["A", "prop_lake"] == pytest.approx(0.1)
    assert result[["prop_lake", "prop_crop"]].loc[["Zero", "NoArea"]].isna().all().all()
    assert not np.isinf(result[["prop_lake", "prop_crop"]].to_numpy(dtype=float)).any()


def test_three_county_scenario():
    areas = pd.DataFrame({"county": ["A", "B", "C"], "county_area_acres": [100.0, 50.0, 80.0]})
    lake_summary = pd.DataFrame({"county": ["A", "B"], "total_lake_area_acres": [10.0, 0.0]})
    crop = pd.DataFrame({"county": ["A", "B"], "crop_area_acres": [40.0, 45.0]})

    metrics = add_proportions(join_county_tables(areas, lake_summary, crop))
    rows = metrics.set_index("county")

    assert rows.loc["A", "prop_lake"] == pytest.approx(0.10)
    assert rows.loc["A", "prop_crop"] == pytest.approx(0.40)
    assert rows.loc["B", "prop_lake"] == 0.0
    assert rows.loc["B", "prop_crop"] == pytest.approx(0.90)
    assert math.isnan(rows.loc["C", "prop_lake"])
    assert math.isnan(rows.loc["C", "prop_crop"])

    correlation = correlate_county_metrics(metrics)
    assert correlation.n == 2
    assert correlation.sufficient is False
    assert "minimum sample size" in correlation.note
    assert math.isnan(correlation.coefficient)


def test_build_county_metrics_end_to_end(counties, lakes, cropland):
    metrics, completeness = build_county_metrics(
        counties, lakes, cropland, overrides=OVERRIDES, lake_crs=UTM_CRS, boundary_crs=UTM_CRS, area_crs=UTM_CRS
    )
    rows = metrics.set_index("county")

    assert len(metrics) >= len(counties)
    assert set(counties["county"]) <= set(rows.index)
    assert rows.loc["Adair", "total_lake_area_acres"] == pytest.approx(30_000 * SQM_TO_ACRES)
    assert rows.loc["Adair", "prop_lake"] == pytest.approx(0.03)
    assert rows.loc["Boone", "prop_lake"] == pytest.approx(0.005)
    assert math.isnan(rows.loc["O'Brien", "prop_lake"])
    assert rows.loc["O'Brien", "prop_crop"] == pytest.approx(500 / (4_000_000 * SQM_TO_ACRES))

    assert completeness.boundary_counties == 3
    assert completeness.total_counties == 4
    assert completeness.unmatched_cropland_counties == ["Other (Combined) Counties"]
    assert completeness.unmatched_lake_counties == []
    assert completeness.missing_lake_data == 2
    assert completeness.complete_cases == 1


def test_proportion_invariant_holds(counties, lakes, cropland):
    metrics, _ = build_county_metrics(
        counties, lakes, cropland, overrides=OVERRIDES, lake_crs=UTM_CRS, boundary_crs=UTM_CRS, area_crs=UTM_CRS
    )
    for _, row in metrics.iterrows():
        for prop, numerator in (("prop_lake", "total_lake_area_acres"), ("prop_crop", "crop_area_acres")):
            if not math.isnan(row[prop]):
                assert row[prop] == pytest.approx(row[numerator] / row["county_area_acres"])


def test_header_only_lake_file_leaves_lake_data_missing(counties, cropland, tmp_path):
    path = tmp_path / "lakes.csv"
    path.write_text("OBJECTID,the_geom,County\n")
    lakes = load_lake_records(path)

    metrics, completeness = build_county_metrics(
        counties, lakes, cropland, overrides=OVERRIDES, lake_crs=UTM_CRS, boundary_crs=UTM_CRS, area_crs=UTM_CRS
    )

    assert len(metrics) == 4
    assert metrics["prop_lake"].isna().all()
    assert completeness.missing_lake_data == 4
    assert completeness.complete_cases == 0


def test_lakes_concatenated_without_reindexing(counties, lakes, cropland):
    bowtie = Polygon([(0, 0), (200, 200), (200, 0), (0, 200), (0, 0)])
    extra = pd.DataFrame({"lake_id": [8], "geometry_wkt": [bowtie.wkt], "county": ["Boone"]})
    combined = pd.concat([lakes, extra])
    assert combined.index.has_duplicates

    metrics, _ = build_county_metrics(
        counties, combined, cropland, overrides=OVERRIDES, lake_crs=UTM_CRS, boundary_crs=UTM_CRS, area_crs=UTM_CRS
    )
    rows = metrics.set_index("county")

    assert rows.loc["Adair", "total_lake_area_acres"] == pytest.approx(30_000 * SQM_TO_ACRES)
    assert rows.loc["Boone", "total_lake_area_acres"] == pytest.approx(
        (10_000 + 20_000) * SQM_TO_ACRES
    )
