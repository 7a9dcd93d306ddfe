"""Threshold-level drought analysis in one call."""

from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

from ..utils.logger import setup_logger
from .indices import DroughtIndices, extract_drought_indices
from .threshold import DroughtThresholds, compute_thresholds, resolve_method

logger = setup_logger("drought_analysis")


@dataclass
class DroughtAnalysis:
    thresholds: DroughtThresholds
    method: str
    threshold: pd.Series
    indices: DroughtIndices


def drought_analysis(
    daily: pd.Series,
    method: str | int = "dma",
    smooth: bool = True,
    quantile: float = 20.0,
    pooling_days: int = 10,
    min_duration_days: int = 10,
    window_days: int = 30,
) -> DroughtAnalysis:
    """Compute all thresholds, pick one and extract the drought indices.

    Args:
        daily: Daily series covering at least one full year
        method: ``"dma"``, ``"mma"``, ``"d30"``, ``"fft"`` or their number 1..4
        smooth: Use the moving average of the series in both steps
        quantile: Threshold percentile (percent)
        pooling_days: Pooling window (days)
        min_duration_days: Minimum drought duration (days)
        window_days: Moving average window (days)

    Returns:
        DroughtAnalysis
    """
    name = resolve_method(method)
    thresholds = compute_thresholds(daily, smooth=smooth, quantile=quantile, window_days=window_days)
    threshold = thresholds.get(name)
    logger.info(f"Drought analysis with the {name.upper()} threshold")
    indices = extract_drought_indices(
        daily,
        threshold,
        smooth=smooth,
        pooling_days=pooling_days,
        min_duration_days=min_duration_days,
        window_days=window_days,
    )
    return DroughtAnalysis(thresholds=thresholds, method=name, threshold=threshold, indices=indices)
