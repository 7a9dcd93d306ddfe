"""Gap filling of paired series by regression of their cumulative curves.

Two gauges close enough to each other are expected to accumulate volume at
proportional rates. The slope ``M`` of ``cum(B) = M * cum(A) + c`` over the
timestamps where both records are valid is used to fill one record from the
other, provided the cumulative curves are strongly correlated.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy import stats

from ..utils.helpers import median_interval_minutes, validate_series
from ..utils.logger import setup_logger
from .aggregation import aggregate_rainfall
from .voids import void_inventory

logger = setup_logger("gap_fill")


@dataclass
class GapFillResult:
    """Aligned (and possibly filled) pair of series with regression diagnostics."""

    series_a: pd.Series
    series_b: pd.Series
    filled: bool
    interval_minutes: int
    slope: float = np.nan
    intercept: float = np.nan
    r_value: float = np.nan
    n_common: int = 0
    message: str = ""

    @property
    def r_squared(self) -> float:
        return self.r_value**2

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"a": self.series_a, "b": self.series_b})


def _to_grid(series: pd.Series, interval_minutes: int) -> pd.Series:
    """Snap timestamps to the nearest grid time, summing collisions."""
    snapped = series.index.round(f"{interval_minutes}min")
    return series.groupby(snapped).sum(min_count=1)


def _common_grid(native_a: pd.Series, native_b: pd.Series, interval_minutes: int) -> pd.DatetimeIndex:
    present = [s.index for s in (native_a, native_b) if not s.empty]
    if not present:
        return pd.DatetimeIndex([])
    return pd.date_range(
        min(index[0] for index in present),
        max(index[-1] for index in present),
        freq=f"{interval_minutes}min",
    )


def fill_gaps(
    series_a: pd.Series,
    series_b: pd.Series,
    cutend: bool = False,
    restore_native: bool = False,
    min_correlation: float = 0.99,
) -> GapFillResult:
    """Fill the missing values of two correlated series from each other.

    Both series are brought to the coarser of their median sampling
    intervals (by summation) and aligned on a common grid spanning both
    records. Missing values in A become ``B / M`` and missing values in B
    become ``A * M``.

    Args:
        series_a: First series (e.g. rainfall of gauge A)
        series_b: Second series, paired with the first
        cutend: Truncate both series at the earlier of their last valid timestamps
        restore_native: Keep each series' own values (valid or missing) at its
            native timestamps, so only timestamps absent from a record are filled
        min_correlation: Minimum correlation coefficient of the cumulative
            curves required to fill

    Returns:
        GapFillResult; ``filled`` is False when either record has fewer than
        two timestamps, the records share at most one valid timestamp or the
        correlation is too weak
    """
    series_a = validate_series(series_a, "series_a")
    series_b = validate_series(series_b, "series_b")

    scales = [median_interval_minutes(s.index) for s in (series_a, series_b) if len(s) > 1]
    interval = max(scales, default=1)
    if len(scales) == 2 and scales[0] != scales[1]:
        logger.info(f"Input series at {scales[0]} and {scales[1]} min, aggregating both to {interval} min")
        series_a = aggregate_rainfall(series_a, interval).values
        series_b = aggregate_rainfall(series_b, interval).values

    void_inventory(series_a)
    void_inventory(series_b)

    native_a = _to_grid(series_a, interval)
    native_b = _to_grid(series_b, interval)
    grid = _common_grid(native_a, native_b, interval)
    full_a = native_a.reindex(grid)
    full_b = native_b.reindex(grid)

    new_a, new_b = full_a, full_b
    if cutend:
        ends = [s.last_valid_index() for s in (native_a, native_b)]
        ends = [t for t in ends if t is not None]
        if ends:
            cut = min(ends)
            new_a = full_a.loc[:cut]
            new_b = full_b.loc[:cut]

    common = new_a.notna() & new_b.notna()
    n_common = int(common.sum())

    def _unfilled(message: str, **diagnostics) -> GapFillResult:
        logger.warning(message)
        return GapFillResult(
            series_a=full_a.copy(),
            series_b=full_b.copy(),
            filled=False,
            interval_minutes=interval,
            n_common=n_common,
            message=message,
            **diagnostics,
        )

    if len(scales) < 2:
        return _unfilled("At least two timestamps per series are required to fill gaps")
    if n_common <= 1:
        return _unfilled("There is no date coincidence between the input series")

    cum_a = new_a[common].cumsum().to_numpy()
    cum_b = new_b[common].cumsum().to_numpy()
    if np.ptp(cum_a) == 0 or np.ptp(cum_b) == 0:
        return _unfilled("Cumulative curves are constant over the common period")

    fit = stats.linregress(cum_a, cum_b)
    if not np.isfinite(fit.rvalue) or fit.rvalue < min_correlation or fit.slope == 0:
        return _unfilled(
            f"The correlation is not significant as to fill the data (R = {fit.rvalue:.4f})",
            slope=float(fit.slope),
            intercept=float(fit.intercept),
            r_value=float(fit.rvalue),
        )

    filled_a = new_a.copy()
    filled_b = new_b.copy()
    missing_a = filled_a.isna()
    filled_a[missing_a] = new_b[missing_a] / fit.slope
    missing_b = filled_b.isna()
    filled_b[missing_b] = filled_a[missing_b] * fit.slope

    if restore_native:
        for filled, native in ((filled_a, native_a), (filled_b, native_b)):
            own = filled.index.intersection(native.index)
            filled.loc[own] = native.loc[own]

    logger.info(
        f"Volumes before filling gaps: {np.nansum(native_a):.2f} and {np.nansum(native_b):.2f}; "
        f"after: {np.nansum(filled_a):.2f} and {np.nansum(filled_b):.2f} (M = {fit.slope:.4f}, "
        f"R = {fit.rvalue:.4f})"
    )
    return GapFillResult(
        series_a=filled_a,
        series_b=filled_b,
        filled=True,
        interval_minutes=interval,
        slope=float(fit.slope),
        intercept=float(fit.intercept),
        r_value=float(fit.rvalue),
        n_common=n_common,
    )
