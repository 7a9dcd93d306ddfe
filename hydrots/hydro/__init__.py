"""Hydrological analysis of regular discharge series.

Monthly summaries, flow duration curves, base flow separation and
diversion scenarios, organised into thematic modules.
"""

from .base_flow import BaseFlowResult, BaseFlowSeparation, calculate_bfi, recession_constant
from .diversion import DiversionResult, divert_flows, modified_flows, modified_flows_baseflow
from .flow_duration import FlowDurationCurve, annual_fdcs, calculate_fdc_metrics, hydrological_periods
from .monthly import MonthlySummary, monthly_summary, to_hydrological_years

__all__ = [
    "BaseFlowResult",
    "BaseFlowSeparation",
    "calculate_bfi",
    "recession_constant",
    "DiversionResult",
    "divert_flows",
    "modified_flows",
    "modified_flows_baseflow",
    "FlowDurationCurve",
    "annual_fdcs",
    "calculate_fdc_metrics",
    "hydrological_periods",
    "MonthlySummary",
    "monthly_summary",
    "to_hydrological_years",
]
