"""Flow Duration Curve analysis for hydrological characterization.

This module builds Flow Duration Curves (FDC) with Gringorten (1963)
plotting positions and derives the 33-66 % slope, the hydrological
regulation index and a 100-point summary curve, for the whole record or
per annual period.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from ..utils.helpers import hazen_percentile
from ..utils.logger import setup_logger

logger = setup_logger("flow_duration_curves")

PERCENTILES = (5, 25, 33, 50, 66, 75, 90)


def gringorten_positions(n: int) -> np.ndarray:
    """Exceedance probabilities (%) of ``n`` values sorted in ascending order."""
    ranks = np.arange(1, n + 1)
    return 100 * (1 - (ranks - 0.44) / (n + 0.12))


class FlowDurationCurve:
    """Flow Duration Curve analysis and metrics calculation.

    Missing values are discarded. Discharge is sorted in ascending order so
    the exceedance probability decreases along the curve.
    """

    def __init__(self, discharge: pd.Series | np.ndarray):
        """Initialize FDC with discharge data.

        Args:
            discharge: Discharge values (a Series or an array)
        """
        values = np.asarray(discharge, dtype=float)
        self.sorted_discharge = np.sort(values[np.isfinite(values)])
        if self.sorted_discharge.size == 0:
            raise ValueError("Discharge series contains no valid data")
        self.exceedance_prob = gringorten_positions(self.sorted_discharge.size)

    def get_percentile_flow(self, percentile: float) -> float:
        """Non-exceedance percentile of discharge (Hazen plotting positions)."""
        if not 0 <= percentile <= 100:
            raise ValueError("Percentile must be between 0 and 100")
        return hazen_percentile(self.sorted_discharge, percentile)

    def calculate_flow_percentiles(self) -> dict[str, float]:
        """Discharge at the 5, 25, 33, 50, 66, 75 and 90th percentiles."""
        return {f"p{p:02d}": self.get_percentile_flow(p) for p in PERCENTILES}

    def calculate_fdc_slope(self) -> float:
        """Slope of the FDC between the 33rd and 66th percentiles in log10 space.

        Returns:
            Slope value, ``-inf`` when either percentile is not positive
        """
        q33 = self.get_percentile_flow(33)
        q66 = self.get_percentile_flow(66)
        if q33 <= 0 or q66 <= 0:
            return -np.inf
        return float((np.log10(q33) - np.log10(q66)) / (0.66 - 0.33))

    def regulation_index(self) -> float:
        """Hydrological regulation index.

        Ratio of the area under the curve capped at the median flow for
        exceedance probabilities below 50 % to the total area.
        """
        total = self.sorted_discharge.sum()
        if total == 0:
            return np.nan
        capped = np.where(self.exceedance_prob < 50, self.get_percentile_flow(50), self.sorted_discharge)
        return float(capped.sum() / total)

    def summary_curve(self) -> pd.Series:
        """100-point curve: the 1..100th percentiles at Gringorten positions of 100 values."""
        flows = [self.get_percentile_flow(p) for p in range(1, 101)]
        return pd.Series(flows, index=pd.Index(gringorten_positions(100), name="exceedance_probability"))

    def get_curve_data(self) -> pd.DataFrame:
        """Get FDC curve data for plotting.

        Returns:
            DataFrame with exceedance probabilities and flows
        """
        return pd.DataFrame(
            {
                "exceedance_probability": self.exceedance_prob,
                "discharge": self.sorted_discharge,
            }
        )


def calculate_fdc_metrics(discharge: pd.Series) -> dict[str, float]:
    """Calculate the FDC percentiles, slope and regulation index.

    Args:
        discharge: Discharge time series

    Returns:
        Dictionary of FDC metrics
    """
    fdc = FlowDurationCurve(discharge)
    metrics = fdc.calculate_flow_percentiles()
    metrics["fdc_slope"] = fdc.calculate_fdc_slope()
    metrics["irh"] = fdc.regulation_index()
    return metrics


def hydrological_periods(index: pd.DatetimeIndex, start_month: int = 1) -> list[tuple[pd.Timestamp, pd.Timestamp]]:
    """Annual periods covering an index, labelled by their end year.

    A hydrological year starting in October 2008 ends in September 2009.

    Args:
        index: Datetime index of the record
        start_month: Starting month of the year (1-12)

    Returns:
        List of ``(start, end)`` pairs, ``end`` being the last timestamp of the period
    """
    if not 1 <= start_month <= 12:
        raise ValueError("start_month must be between 1 and 12")
    hydro_year = index.year + (index.month >= start_month).astype(int) if start_month > 1 else index.year
    periods = []
    for year in np.unique(hydro_year):
        stamps = index[hydro_year == year]
        periods.append((stamps[0], stamps[-1]))
    return periods


def annual_fdcs(
    discharge: pd.Series,
    periods: list[tuple[pd.Timestamp, pd.Timestamp]] | None = None,
    start_month: int = 1,
) -> pd.DataFrame:
    """100-point flow duration curves per annual period.

    Args:
        discharge: Discharge time series
        periods: Inclusive ``(start, end)`` pairs; derived from ``start_month`` when omitted
        start_month: Starting month of the hydrological year

    Returns:
        DataFrame indexed by exceedance probability with one column per
        period (labelled by its end year); NaN for periods without data
    """
    if periods is None:
        periods = hydrological_periods(discharge.index, start_month)

    index = pd.Index(gringorten_positions(100), name="exceedance_probability")
    curves = {}
    for start, end in periods:
        window = discharge[(discharge.index >= start) & (discharge.index <= end)]
        label = pd.Timestamp(end).year
        if window.dropna().empty:
            logger.warning(f"No discharge data between {start} and {end}")
            curves[label] = pd.Series(np.nan, index=index)
            continue
        curves[label] = FlowDurationCurve(window).summary_curve()

    logger.debug(f"Annual flow duration curves for {len(curves)} periods")
    return pd.DataFrame(curves, index=index)
