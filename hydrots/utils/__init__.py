"""Utilities module."""

from .helpers import (
    centered_moving_average,
    circular_interpolate,
    from_seconds,
    hazen_percentile,
    median_interval_minutes,
    round_half_away,
    run_lengths,
    sample_std,
    to_seconds,
    validate_series,
)
from .logger import get_logger, setup_logger

__all__ = [
    "centered_moving_average",
    "circular_interpolate",
    "from_seconds",
    "hazen_percentile",
    "median_interval_minutes",
    "round_half_away",
    "run_lengths",
    "sample_std",
    "to_seconds",
    "validate_series",
    "get_logger",
    "setup_logger",
]
