"""Configuration module."""

from .settings import (
    AggregationConfig,
    BaseFlowConfig,
    DiversionConfig,
    DroughtConfig,
    GapFillConfig,
    RainfallConfig,
    Settings,
)

__all__ = [
    "Settings",
    "RainfallConfig",
    "AggregationConfig",
    "GapFillConfig",
    "DroughtConfig",
    "BaseFlowConfig",
    "DiversionConfig",
]
