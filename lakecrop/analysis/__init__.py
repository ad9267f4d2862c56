"""
Analysis package: correlation of the county proportions and the map layer.
"""

from .correlation import CorrelationResult, correlate_county_metrics, pearson_correlation

__all__ = ["CorrelationResult", "pearson_correlation", "correlate_county_metrics"]
