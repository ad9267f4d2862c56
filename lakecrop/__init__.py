"""
lakecrop - county-level analysis of lake coverage vs cropland coverage in Iowa.

Stages: processing.load_sources -> processing.county_areas ->
processing.aggregate_counties -> analysis.correlation, orchestrated by
ops.run_pipeline.
"""

__version__ = "0.1.0"
