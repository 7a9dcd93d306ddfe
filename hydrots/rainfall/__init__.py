"""Tipping-bucket rainfall processing.

Depuration of repeated tips, event segmentation and cubic-spline
reconstruction of regular rainfall series.
"""

from .depure import depure_tips
from .events import (
    RainEvent,
    aggregate_tips_to_minute,
    divide_tips,
    inter_tip_limits,
    merge_tips,
    segment_events,
    split_events,
)
from .interpolation import (
    EventInterpolation,
    SplineAggregation,
    aggregate_tips,
    correct_intensities,
    default_floor,
    interpolate_event,
)

__all__ = [
    "depure_tips",
    "RainEvent",
    "aggregate_tips_to_minute",
    "divide_tips",
    "inter_tip_limits",
    "merge_tips",
    "segment_events",
    "split_events",
    "EventInterpolation",
    "SplineAggregation",
    "aggregate_tips",
    "correct_intensities",
    "default_floor",
    "interpolate_event",
]
