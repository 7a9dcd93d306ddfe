"""Regular-grid reconstruction of irregular time series.

Void detection, fixed-interval aggregation and paired gap filling.
"""

from .aggregation import (
    AggregatedSeries,
    AggregationMode,
    aggregate,
    aggregate_rainfall,
    average_discharge,
)
from .gap_fill import GapFillResult, fill_gaps
from .voids import VoidInterval, detect_valid_intervals, detect_voids, mask_voids, void_inventory

__all__ = [
    "AggregatedSeries",
    "AggregationMode",
    "aggregate",
    "aggregate_rainfall",
    "average_discharge",
    "GapFillResult",
    "fill_gaps",
    "VoidInterval",
    "detect_voids",
    "detect_valid_intervals",
    "mask_voids",
    "void_inventory",
]
