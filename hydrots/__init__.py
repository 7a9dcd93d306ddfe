"""HydroTS - Processing of rainfall and streamflow records."""

__version__ = "0.1.0"
__description__ = "Regular-grid reconstruction, spline rainfall aggregation and drought analysis of hydrological records"

from hydrots.config.settings import Settings
from hydrots.drought import compute_thresholds, drought_analysis, extract_drought_indices
from hydrots.rainfall import aggregate_tips, segment_events
from hydrots.series import aggregate, detect_voids, fill_gaps
from hydrots.workflow import (
    catchment_base_flow,
    catchment_diversion,
    catchment_droughts,
    pair_catchments,
    process_catchment,
)

__all__ = [
    "Settings",
    "compute_thresholds",
    "drought_analysis",
    "extract_drought_indices",
    "aggregate_tips",
    "segment_events",
    "aggregate",
    "detect_voids",
    "fill_gaps",
    "catchment_base_flow",
    "catchment_diversion",
    "catchment_droughts",
    "pair_catchments",
    "process_catchment",
]
