#!/usr/bin/env python3
"""
Iowa Lakes & Cropland Pipeline with Click CLI

Runs the four stages once, strictly in order:

    Loader -> Area Normalizer -> Aggregator -> Correlation Analyzer

then (unless --skip-maps) renders the choropleths and the scatterplot.
Configuration comes from config.yaml; any option given on the command line
overrides the matching config value for this run only.

Usage:
    lakecrop --lakes-url "https://.../lakes.csv" --cropland-csv data/cropland.csv

    # Processing modes:
    lakecrop --skip-maps              # Metrics and correlation only
    lakecrop --dry-run                # Show what would run

    # Verbose logging:
    lakecrop --verbose                # Enable DEBUG level logging
    lakecrop --trace                  # Enable TRACE level logging
"""

import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import click
import geopandas as gpd
import pandas as pd
from loguru import logger

from lakecrop.analysis.correlation import CorrelationResult, correlate_county_metrics
from lakecrop.ops.config_loader import Config
from lakecrop.processing.aggregate_counties import CompletenessSummary, build_county_metrics
from lakecrop.processing.data_utils import DataSourceError
from lakecrop.processing.load_sources import SourceTables, load_all_sources

# Level chosen by setup_logging; handle_critical_error adds tracebacks at TRACE
_log_level = "INFO"


@dataclass
class PipelineResult:
    """Everything a downstream report needs from one run."""

    metrics: pd.DataFrame
    correlation: CorrelationResult
    completeness: CompletenessSummary
    counties: gpd.GeoDataFrame


def run_pipeline(config: Config, sources: Optional[SourceTables] = None) -> PipelineResult:
    """
    Run loader, normalizer, aggregator and analyzer once.

    Args:
        config: Configuration instance
        sources: Pre-loaded tables; loaded from config when None

    Returns:
        PipelineResult
    """
    start_time = time.time()

    if sources is None:
        logger.info("📥 Stage 1: Loading sources")
        sources = load_all_sources(config)

    logger.info("🧮 Stages 2-3: County areas and aggregation")
    metrics, completeness = build_county_metrics(
        sources.counties,
        sources.lakes,
        sources.cropland,
        overrides=config.get_name_overrides(),
        lake_crs=config.get_system_setting("lake_crs"),
        boundary_crs=config.get_system_setting("boundary_crs"),
        area_crs=config.get_system_setting("area_crs"),
    )

    logger.info("📈 Stage 4: Correlation")
    correlation = correlate_county_metrics(
        metrics,
        confidence_level=float(config.get_analysis_setting("confidence_level")),
        min_samples=int(config.get_analysis_setting("min_samples")),
    )

    logger.success(f"✅ Pipeline completed in {time.time() - start_time:.1f}s")
    return PipelineResult(
        metrics=metrics, correlation=correlation, completeness=completeness, counties=sources.counties
    )


def export_metrics(result: PipelineResult, output_dir: Path) -> Path:
    """Write the metrics table to CSV."""
    output_path = Path(output_dir) / "county_metrics.csv"
    output_path.parent.mkdir(parents=True, exist_ok=True)
    result.metrics.to_csv(output_path, index=False)
    logger.info(f"  💾 Metrics saved: {output_path}")
    return output_path


def build_overrides(**kwargs) -> Dict[str, Any]:
    """Translate CLI options into a nested config override dict."""
    overrides: Dict[str, Any] = {}

    def add(key: str, value: Any) -> None:
        keys = key.split(".")
        current = overrides
        for k in keys[:-1]:
            current = current.setdefault(k, {})
        current[keys[-1]] = value
        logger.debug(f"Added override: {key} = {value}")

    if kwargs.get("state"):
        add("boundaries.state", kwargs["state"])
    if kwargs.get("year"):
        add("boundaries.year", kwargs["year"])
    if kwargs.get("lakes_url"):
        add("input_files.lakes_url", kwargs["lakes_url"])
    if kwargs.get("cropland_csv"):
        add("input_files.cropland_csv", kwargs["cropland_csv"])
    if kwargs.get("output_dir"):
        add("directories.output", kwargs["output_dir"])
    return overrides


def show_dry_run_info(config: Config, skip_maps: bool, export_csv: bool) -> None:
    """Show dry run information."""
    logger.info("🔍 DRY RUN MODE - nothing will be loaded")
    logger.info("=" * 60)
    logger.info(f"  📋 Project: {config.get('project_name')}")
    logger.info(f"  🗺️ Boundaries: {config.get('boundaries.state')} ({config.get('boundaries.year')})")
    for key in ("lakes_url", "cropland_csv"):
        try:
            location = config.get_input_path(key)
            exists = "🌐" if isinstance(location, str) else ("✅" if location.exists() else "❌")
            logger.info(f"  📄 {key}: {location} {exists}")
        except ValueError as e:
            logger.warning(f"  ❌ {e}")
    logger.info(f"  📐 Area CRS: {config.get_system_setting('area_crs')}")
    logger.info(f"  💾 Export CSV: {export_csv}")
    logger.info(f"  🎨 Maps: {'skipped' if skip_maps else 'rendered'}")


def setup_logging(verbose: bool = False, enable_trace: bool = False) -> None:
    """
    Configure loguru logging with appropriate levels.

    Args:
        verbose: If True, set log level to DEBUG
        enable_trace: If True, enable TRACE level logging for deep debugging
    """
    logger.remove()

    if enable_trace:
        log_level = "TRACE"
        log_format = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
    elif verbose:
        log_level = "DEBUG"
        log_format = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
    else:
        log_level = "INFO"
        log_format = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"

    logger.add(
        sys.stderr,
        format=log_format,
        level=log_level,
        colorize=True,
        backtrace=enable_trace,
        diagnose=enable_trace,
    )
    global _log_level
    _log_level = log_level

    if verbose:
        logger.debug("🔧 Verbose logging enabled (DEBUG level)")
    if enable_trace:
        logger.trace("🔍 Trace logging enabled - maximum detail mode")


def handle_critical_error(error: Exception, context: str = "") -> None:
    """
    Log a fatal error, with the traceback when running at TRACE level.

    Args:
        error: The exception that occurred
        context: Additional context about where the error occurred
    """
    enable_trace = _log_level == "TRACE"

    if enable_trace:
        import traceback

        logger.trace(f"Error context: {context}")
        logger.trace(f"Error type: {type(error).__name__}")
        logger.trace("Full traceback:")
        logger.trace(traceback.format_exc())

    logger.critical(f"💥 CRITICAL ERROR: {context}")
    logger.critical(f"Exception: {type(error).__name__}: {error}")

    if not enable_trace:
        logger.info("💡 For detailed debugging, run with --trace flag")


@click.command()
@click.option("--config", "config_file", type=click.Path(dir_okay=False), help="Path to config.yaml")
@click.option("--state", help="State code for county boundaries (default IA)")
@click.option("--year", type=int, help="Boundary vintage year")
@click.option("--lakes-url", help="URL or path of the lake records CSV")
@click.option("--cropland-csv", help="Path of the cropland acreage CSV")
@click.option("--output-dir", help="Directory for CSV, maps and plots")
@click.option("--skip-maps", is_flag=True, help="Skip map and plot rendering")
@click.option("--export-csv/--no-export-csv", default=True, help="Write county_metrics.csv")
@click.option("--dry-run", is_flag=True, help="Show configuration without running")
@click.option("--verbose", "-v", is_flag=True, help="Enable DEBUG level logging")
@click.option("--trace", is_flag=True, help="Enable TRACE level logging")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also write logs to this file")
def cli(config_file, skip_maps, export_csv, dry_run, verbose, trace, log_file, **kwargs):
    """🌊🌽 Iowa lakes vs cropland county analysis."""
    setup_logging(verbose=verbose, enable_trace=trace)

    if log_file:
        log_level = "TRACE" if trace else ("DEBUG" if verbose else "INFO")
        logger.add(
            log_file,
            level=log_level,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}",
            rotation="10 MB",
            retention="7 days",
        )
        logger.info(f"📄 Also logging to file: {log_file}")

    logger.info("🗺️ Iowa Lakes & Cropland Pipeline")

    try:
        config = Config(config_file, overrides=build_overrides(**kwargs))
    except (FileNotFoundError, ValueError) as e:
        handle_critical_error(e, "Loading configuration")
        sys.exit(1)

    config.print_config_summary()

    if dry_run:
        show_dry_run_info(config, skip_maps, export_csv)
        return

    try:
        result = run_pipeline(config)
    except (DataSourceError, ValueError) as e:
        handle_critical_error(e, "Running pipeline")
        sys.exit(1)

    logger.info(f"📊 {result.correlation.describe()}")

    output_dir = config.get_output_dir()
    if export_csv:
        export_metrics(result, output_dir)

    if not skip_maps:
        # Imported lazily so metric-only runs skip the plotting stack
        from lakecrop.analysis.map_county_metrics import render_all_maps

        render_all_maps(result.counties, result.metrics, result.correlation, config, output_dir)

    logger.success("🎉 Done")


if __name__ == "__main__":
    cli()
