"""Seasonal drought thresholds from long daily records.

Four variable thresholds are derived, each a 366-value curve indexed by
calendar day (see ``hydrots.drought.calendar``):

* DMA: daily quantile across years, smoothed with a circular 30-day moving average;
* MMA: monthly quantile divided by the month length, smoothed likewise;
* D30: quantile of all values within +/-15 calendar days;
* FFT: low-pass Fourier reconstruction of the daily quantile, with the
  cut-off that best matches D30.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from ..utils.helpers import centered_moving_average, circular_interpolate, hazen_percentile, validate_series
from ..utils.logger import setup_logger
from ..hydro.monthly import monthly_summary
from .calendar import N_CALENDAR_DAYS, calendar_day_indices

logger = setup_logger("drought_threshold")

THRESHOLD_METHODS = ("dma", "mma", "d30", "fft")
CALENDAR_DAYS = pd.RangeIndex(1, N_CALENDAR_DAYS + 1, name="calendar_day")
# month lengths on a leap-year calendar
_MONTH_DAYS = np.array([31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31])


@dataclass
class DroughtThresholds:
    """The four threshold curves and the intermediate quantiles they derive from."""

    dma: pd.Series
    mma: pd.Series
    d30: pd.Series
    fft: pd.Series
    daily_quantile: pd.Series
    monthly_quantile: pd.Series
    fft_cutoff: int

    def get(self, method: str | int) -> pd.Series:
        """Threshold curve by name (``"dma"``, ``"mma"``, ``"d30"``, ``"fft"``) or number 1..4."""
        return getattr(self, resolve_method(method))

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({name: getattr(self, name) for name in THRESHOLD_METHODS})


def resolve_method(method: str | int) -> str:
    """Normalise a threshold method given by name or by number (1..4)."""
    if isinstance(method, (int, np.integer)) and not isinstance(method, bool):
        if 1 <= method <= len(THRESHOLD_METHODS):
            return THRESHOLD_METHODS[method - 1]
    elif str(method).lower() in THRESHOLD_METHODS:
        return str(method).lower()
    raise ValueError(f"method must be one of {list(THRESHOLD_METHODS)} or 1..4, got {method!r}")


def smooth_series(series: pd.Series, window: int = 30) -> pd.Series:
    """Centered moving average of a daily series, NaN-padded at both ends."""
    return pd.Series(centered_moving_average(series.to_numpy(), window), index=series.index, name=series.name)


def _curve(values: np.ndarray) -> pd.Series:
    return pd.Series(values, index=CALENDAR_DAYS)


def _circular_distance(days: np.ndarray, target: int) -> np.ndarray:
    distance = np.abs(days - target)
    return np.minimum(distance, N_CALENDAR_DAYS - distance)


def _fft_threshold(daily_quantile: np.ndarray, reference: np.ndarray) -> tuple[np.ndarray, int]:
    """Low-pass reconstruction closest (least squares) to the reference curve."""
    n = daily_quantile.size
    coefficients = np.fft.fft(daily_quantile)
    frequency = np.minimum(np.arange(n), n - np.arange(n))
    best, best_error, best_cutoff = None, np.inf, 0
    for cutoff in range(1, n // 2 + 1):
        candidate = np.real(np.fft.ifft(np.where(frequency < cutoff, coefficients, 0.0)))
        candidate[candidate < 0] = 0.0
        error = np.nansum((candidate - reference) ** 2)
        if error < best_error:
            best, best_error, best_cutoff = candidate, error, cutoff
    return best, best_cutoff


def compute_thresholds(
    daily: pd.Series,
    smooth: bool = True,
    quantile: float = 20.0,
    window_days: int = 30,
) -> DroughtThresholds:
    """Derive the DMA, MMA, D30 and FFT drought thresholds.

    Args:
        daily: Daily series covering at least one full year
        smooth: Apply a centered moving average to the series first
        quantile: Threshold percentile (percent)
        window_days: Moving average window, also the width of the D30 pool

    Returns:
        DroughtThresholds with four 366-value curves

    Raises:
        ValueError: If the series is shorter than 365 days or the quantile is
            outside (0, 100)
    """
    if not 0 < quantile < 100:
        raise ValueError(f"quantile must lie in (0, 100), got {quantile}")
    daily = validate_series(daily, "daily")
    if len(daily) < 365:
        raise ValueError(f"At least 365 daily values are required, got {len(daily)}")

    assessed = smooth_series(daily, window_days) if smooth else daily
    values = assessed.to_numpy()
    days = calendar_day_indices(daily.index)
    half_window = int(np.ceil(window_days / 2))

    daily_q = np.full(N_CALENDAR_DAYS, np.nan)
    d30 = np.full(N_CALENDAR_DAYS, np.nan)
    for day in range(1, N_CALENDAR_DAYS + 1):
        daily_q[day - 1] = hazen_percentile(values[days == day], quantile)
        d30[day - 1] = hazen_percentile(values[_circular_distance(days, day) <= half_window], quantile)

    n_empty = int(np.isnan(daily_q).sum())
    if n_empty:
        logger.debug(f"{n_empty} calendar day(s) without data, interpolated circularly")
    daily_q = circular_interpolate(daily_q)
    dma = centered_moving_average(daily_q, window_days, circular=True)

    matrix = monthly_summary(assessed, how="sum", min_count=1).matrix
    monthly_q = np.array([hazen_percentile(matrix[m].to_numpy(), quantile) for m in range(1, 13)])
    mma_daily = np.repeat(monthly_q / _MONTH_DAYS, _MONTH_DAYS)
    mma = centered_moving_average(mma_daily, window_days, circular=True)

    fft, cutoff = _fft_threshold(daily_q, d30)
    logger.info(f"Drought thresholds computed from {len(daily)} days; FFT cut-off at {cutoff} cycles/year")

    return DroughtThresholds(
        dma=_curve(dma),
        mma=_curve(mma),
        d30=_curve(d30),
        fft=_curve(fft),
        daily_quantile=_curve(daily_q),
        monthly_quantile=pd.Series(monthly_q, index=pd.RangeIndex(1, 13, name="month")),
        fft_cutoff=cutoff,
    )
