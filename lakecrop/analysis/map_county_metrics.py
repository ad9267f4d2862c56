"""
map_county_metrics.py

Presentation layer for the county metrics table:
- static Tufte-style choropleths of lake and cropland proportions (PNG)
- interactive folium choropleths with per-county tooltips (HTML)
- a scatterplot of cropland vs lake proportion annotated with the
  correlation result (PNG)

Everything here consumes the pipeline output; nothing feeds back into it.
"""

import pathlib
from typing import Dict, List, Optional, Union

import folium
import geopandas as gpd
import matplotlib as mpl
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns
from loguru import logger

from lakecrop.analysis.correlation import CorrelationResult
from lakecrop.ops import Config
from lakecrop.processing.data_utils import ensure_output_directory, normalize_county_names

LABELS = {
    "prop_lake": "Lake area / county area",
    "prop_crop": "Cropland area / county area",
}


def metrics_geodataframe(
    counties: gpd.GeoDataFrame, metrics: pd.DataFrame, overrides: Optional[Dict[str, str]] = None
) -> gpd.GeoDataFrame:
    """Attach the metrics to county polygons by normalized name (left join)."""
    counties = counties.copy()
    counties["county"] = normalize_county_names(counties["county"], overrides)
    counties = counties.dissolve(by="county", as_index=False)
    return counties.merge(metrics, on="county", how="left")


def county_choropleth(
    gdf: gpd.GeoDataFrame,
    column: str,
    fname: Union[str, pathlib.Path],
    cmap: str = "viridis",
    title: str = "",
    label: str = "",
    note: Optional[str] = None,
    map_dpi: int = 200,
    figure_max_width: float = 12,
) -> pathlib.Path:
    """
    Generates and saves a minimalist choropleth; missing values are hatched.

    Args:
        gdf: GeoDataFrame containing the data to plot (projected CRS preferred).
        column: The name of the column in gdf to plot.
        fname: Filename (including path) to save the map.
        cmap: Colormap to use.
        title: Title of the map.
        label: Label for the colorbar.
        note: Annotation note to display at the bottom of the map.
        map_dpi: Output resolution.
        figure_max_width: Upper bound on figure width in inches.

    Returns:
        Path of the saved PNG
    """
    fname = ensure_output_directory(fname)
    bounds = gdf.total_bounds
    aspect_ratio = (bounds[2] - bounds[0]) / max(bounds[3] - bounds[1], 1e-9)

    if aspect_ratio > 1:
        fig_width = min(figure_max_width, 10 * aspect_ratio)
        fig_height = fig_width / aspect_ratio
    else:
        fig_height = min(figure_max_width, 10 / aspect_ratio)
        fig_width = fig_height * aspect_ratio

    fig, ax = plt.subplots(figsize=(fig_width, fig_height), dpi=map_dpi)

    values = gdf[column].dropna()
    vmin = float(values.min()) if len(values) else 0.0
    vmax = float(values.max()) if len(values) else 1.0

    gdf.plot(
        column=column,
        cmap=cmap,
        linewidth=0.25,
        edgecolor="#444444",
        ax=ax,
        legend=False,
        vmin=vmin,
        vmax=vmax,
        missing_kwds={
            "color": "#f8f8f8",
            "edgecolor": "#cccccc",
            "hatch": "///",
            "linewidth": 0.25,
        },
    )
    ax.set_aspect("equal")
    ax.set_axis_off()

    if title:
        fig.suptitle(title, fontsize=16, fontweight="bold", x=0.02, y=0.95, ha="left", va="top")

    if vmax > vmin:
        sm = mpl.cm.ScalarMappable(norm=mpl.colors.Normalize(vmin=vmin, vmax=vmax), cmap=cmap)
        cbar_ax = fig.add_axes((0.92, 0.15, 0.02, 0.7))
        cbar = fig.colorbar(sm, cax=cbar_ax)
        cbar.ax.tick_params(labelsize=10, colors="#333333")
        cbar.outline.set_edgecolor("#666666")  # type: ignore
        cbar.outline.set_linewidth(0.5)  # type: ignore
        if label:
            cbar.set_label(label, rotation=90, labelpad=12, fontsize=11, color="#333333")

    if note:
        fig.text(0.02, 0.02, note, ha="left", va="bottom", fontsize=9, color="#666666", style="italic")

    plt.savefig(fname, bbox_inches="tight", dpi=map_dpi, facecolor="white", edgecolor="none", pad_inches=0.02)
    plt.close(fig)
    logger.info(f"  🗺️ Map saved: {fname}")
    return fname


def interactive_choropleth(
    gdf: gpd.GeoDataFrame,
    column: str,
    fname: Union[str, pathlib.Path],
    fill_color: str = "YlGnBu",
    legend_name: str = "",
) -> pathlib.Path:
    """Folium choropleth with a tooltip listing every metric for the county."""
    fname = ensure_output_directory(fname)
    web = gdf.to_crs("EPSG:4326")

    bounds = web.total_bounds
    center = [(bounds[1] + bounds[3]) / 2, (bounds[0] + bounds[2]) / 2]
    m = folium.Map(location=center, zoom_start=7, tiles="CartoDB Positron")

    folium.Choropleth(
        geo_data=web.to_json(),
        name=legend_name or column,
        data=web[["county", column]],
        columns=["county", column],
        key_on="feature.properties.county",
        fill_color=fill_color,
        fill_opacity=0.7,
        line_opacity=0.3,
        nan_fill_color="#f0f0f0",
        legend_name=legend_name or column,
    ).add_to(m)

    tooltip_fields = [c for c in ("county", "prop_lake", "prop_crop", "county_area_acres") if c in web.columns]
    folium.GeoJson(
        web[tooltip_fields + ["geometry"]].to_json(),
        name="Counties",
        style_function=lambda f: {"color": "#444444", "weight": 0.5, "fillOpacity": 0},
        tooltip=folium.GeoJsonTooltip(fields=tooltip_fields, localize=True),
    ).add_to(m)

    folium.LayerControl().add_to(m)
    m.save(str(fname))
    logger.info(f"  🌐 Interactive map saved: {fname}")
    return fname


def proportion_scatterplot(
    metrics: pd.DataFrame,
    fname: Union[str, pathlib.Path],
    correlation: Optional[CorrelationResult] = None,
    map_dpi: int = 200,
) -> pathlib.Path:
    """Cropland proportion vs lake proportion with a fitted line."""
    fname = ensure_output_directory(fname)
    data = metrics.dropna(subset=["prop_crop", "prop_lake"])

    sns.set_theme(style="white", context="talk", font_scale=0.9)
    fig, ax = plt.subplots(figsize=(10, 7))
    sns.regplot(
        data=data,
        x="prop_crop",
        y="prop_lake",
        ax=ax,
        scatter_kws={"s": 30, "alpha": 0.7},
        line_kws={"color": "#b2182b"},
        fit_reg=len(data) >= 2,
        ci=None,
    )
    ax.set_xlabel(LABELS["prop_crop"])
    ax.set_ylabel(LABELS["prop_lake"])
    sns.despine()

    if correlation is not None:
        ax.set_title(correlation.describe(), fontsize=12, loc="left")

    plt.tight_layout()
    plt.savefig(fname, dpi=map_dpi, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"  📈 Scatterplot saved: {fname}")
    return fname


def render_all_maps(
    counties: gpd.GeoDataFrame,
    metrics: pd.DataFrame,
    correlation: Optional[CorrelationResult],
    config: Config,
    output_dir: Optional[pathlib.Path] = None,
) -> List[pathlib.Path]:
    """Write every static map, interactive map and the scatterplot."""
    logger.info("🎨 Rendering maps and plots...")
    output_dir = pathlib.Path(output_dir) if output_dir else config.get_output_dir()
    map_dpi = config.get_visualization_setting("map_dpi")
    figure_max_width = config.get_visualization_setting("figure_max_width")

    gdf = metrics_geodataframe(counties, metrics, config.get_name_overrides())
    if gdf.crs is None:
        gdf = gdf.set_crs(config.get_system_setting("boundary_crs"))
    projected = gdf.to_crs(config.get_system_setting("area_crs"))

    outputs = []
    for column, cmap_key in (("prop_lake", "colormap_lake"), ("prop_crop", "colormap_crop")):
        missing = int(gdf[column].isna().sum())
        outputs.append(
            county_choropleth(
                projected,
                column,
                output_dir / f"{column}_map.png",
                cmap=config.get_visualization_setting(cmap_key),
                title=LABELS[column],
                label="Proportion of county area",
                note=f"{missing} counties without data (hatched)" if missing else None,
                map_dpi=map_dpi,
                figure_max_width=figure_max_width,
            )
        )
        outputs.append(
            interactive_choropleth(
                gdf,
                column,
                output_dir / f"{column}_map.html",
                fill_color=config.get_visualization_setting(cmap_key),
                legend_name=LABELS[column],
            )
        )

    outputs.append(proportion_scatterplot(metrics, output_dir / "crop_vs_lake_scatter.png", correlation, map_dpi))
    logger.success(f"✅ Wrote {len(outputs)} figures to {output_dir}")
    return outputs
