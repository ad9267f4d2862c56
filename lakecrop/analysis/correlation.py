"""
Pearson correlation between the county proportion columns.

Complete cases only: a county missing either proportion is excluded, never
treated as zero. The confidence interval uses the Fisher z-transform, the
same approximation R's cor.test reports.
"""

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict

import numpy as np
import pandas as pd
from loguru import logger
from scipy import stats

MIN_SAMPLES = 3


@dataclass
class CorrelationResult:
    """Pearson's product-moment correlation with its significance and CI."""

    coefficient: float
    p_value: float
    ci_low: float
    ci_high: float
    n: int
    confidence_level: float = 0.95
    method: str = "pearson"
    sufficient: bool = True
    note: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def describe(self) -> str:
        """One-line summary for logs and plot annotations."""
        if not self.sufficient:
            return f"Correlation not computed (n={self.n}): {self.note}"
        ci = f"{self.confidence_level:.0%} CI [{self.ci_low:.2f}, {self.ci_high:.2f}]"
        if math.isnan(self.ci_low):
            ci = "CI undefined for n=3"
        return f"r = {self.coefficient:.2f}, p = {self.p_value:.2g}, {ci}, n = {self.n}"


def fisher_confidence_interval(r: float, n: int, confidence_level: float = 0.95):
    """
    Confidence interval for a correlation coefficient via Fisher's z.

    Args:
        r: Sample correlation coefficient
        n: Number of complete pairs
        confidence_level: Two-sided coverage

    Returns:
        (low, high); NaN bounds when n <= 3
    """
    if n <= 3 or math.isnan(r):
        return float("nan"), float("nan")

    z = np.arctanh(np.clip(r, -1.0, 1.0))
    se = 1.0 / math.sqrt(n - 3)
    z_crit = stats.norm.ppf(1 - (1 - confidence_level) / 2)
    return float(np.tanh(z - z_crit * se)), float(np.tanh(z + z_crit * se))


def _insufficient(n: int, confidence_level: float, note: str) -> CorrelationResult:
    logger.warning(f"⚠️ {note}")
    nan = float("nan")
    return CorrelationResult(
        coefficient=nan,
        p_value=nan,
        ci_low=nan,
        ci_high=nan,
        n=n,
        confidence_level=confidence_level,
        sufficient=False,
        note=note,
    )


def pearson_correlation(
    x: pd.Series,
    y: pd.Series,
    confidence_level: float = 0.95,
    min_samples: int = MIN_SAMPLES,
) -> CorrelationResult:
    """
    Pearson correlation over the rows where both x and y are present.

    Fewer than min_samples complete rows, or a constant column, returns a
    result flagged sufficient=False with NaN statistics instead of raising.

    Args:
        x: First variable
        y: Second variable (aligned with x by index)
        confidence_level: Coverage of the Fisher-z interval
        min_samples: Smallest complete-case count that is tested

    Returns:
        CorrelationResult
    """
    pairs = pd.concat([x.rename("x"), y.rename("y")], axis=1).dropna()
    n = len(pairs)
    logger.info(f"📈 Pearson correlation over {n} complete cases...")

    if n < max(min_samples, 2):
        return _insufficient(
            n, confidence_level, f"Below minimum sample size ({n} < {min_samples} complete cases)"
        )
    if pairs["x"].nunique() < 2 or pairs["y"].nunique() < 2:
        return _insufficient(n, confidence_level, "Constant input, correlation is undefined")

    r, p_value = stats.pearsonr(pairs["x"].to_numpy(dtype=float), pairs["y"].to_numpy(dtype=float))
    r = float(r)
    ci_low, ci_high = fisher_confidence_interval(r, n, confidence_level)

    result = CorrelationResult(
        coefficient=r,
        p_value=float(p_value),
        ci_low=ci_low,
        ci_high=ci_high,
        n=n,
        confidence_level=confidence_level,
    )
    logger.success(f"  ✅ {result.describe()}")
    return result


def correlate_county_metrics(
    metrics: pd.DataFrame, confidence_level: float = 0.95, min_samples: int = MIN_SAMPLES
) -> CorrelationResult:
    """Correlate cropland proportion with lake proportion across counties."""
    return pearson_correlation(
        metrics["prop_crop"], metrics["prop_lake"], confidence_level=confidence_level, min_samples=min_samples
    )
