"""Variable-threshold drought analysis."""

from .analysis import DroughtAnalysis, drought_analysis
from .calendar import (
    N_CALENDAR_DAYS,
    calendar_day_index,
    calendar_day_indices,
    threshold_for_dates,
    validate_calendar_indices,
)
from .indices import (
    INDEX_NAMES,
    DroughtEvent,
    DroughtIndices,
    count_runs,
    drop_short_droughts,
    extract_drought_indices,
    pool_droughts,
)
from .threshold import THRESHOLD_METHODS, DroughtThresholds, compute_thresholds, resolve_method, smooth_series

__all__ = [
    "DroughtAnalysis",
    "drought_analysis",
    "N_CALENDAR_DAYS",
    "calendar_day_index",
    "calendar_day_indices",
    "threshold_for_dates",
    "validate_calendar_indices",
    "INDEX_NAMES",
    "DroughtEvent",
    "DroughtIndices",
    "count_runs",
    "drop_short_droughts",
    "extract_drought_indices",
    "pool_droughts",
    "THRESHOLD_METHODS",
    "DroughtThresholds",
    "compute_thresholds",
    "resolve_method",
    "smooth_series",
]
