"""Utility functions and helpers shared by the series, rainfall and drought modules."""

from typing import Iterable

import numpy as np
import pandas as pd

_EPOCH = pd.Timestamp(0)
_ONE_SECOND = pd.Timedelta(seconds=1)


def validate_series(series: pd.Series, name: str = "series") -> pd.Series:
    """Check that a series carries a strictly increasing DatetimeIndex.

    Args:
        series: Time series to validate
        name: Name used in error messages

    Returns:
        The series with float values

    Raises:
        TypeError: If the index is not a DatetimeIndex
        ValueError: If timestamps are not strictly increasing
    """
    if not isinstance(series.index, pd.DatetimeIndex):
        raise TypeError(f"{name} must be indexed by a DatetimeIndex")
    if len(series) > 1 and not (series.index.is_monotonic_increasing and series.index.is_unique):
        raise ValueError(f"{name} timestamps must be strictly increasing")
    return series.astype(float)


def to_seconds(index: pd.DatetimeIndex) -> np.ndarray:
    """Convert timestamps to float seconds since the Unix epoch."""
    return np.asarray((index - _EPOCH) / _ONE_SECOND, dtype=float)


def from_seconds(seconds: Iterable[float]) -> pd.DatetimeIndex:
    """Convert float epoch seconds back to timestamps at millisecond resolution."""
    millis = np.round(np.asarray(seconds, dtype=float) * 1000.0).astype("int64")
    return pd.DatetimeIndex(pd.to_datetime(millis, unit="ms"))


def round_half_away(values):
    """Round half away from zero, as opposed to numpy's round-half-to-even."""
    values = np.asarray(values, dtype=float)
    return np.sign(values) * np.floor(np.abs(values) + 0.5)


def hazen_percentile(values, q):
    """Percentile of the finite values using the midpoint (Hazen) plotting rule.

    Returns NaN when no finite value is available.
    """
    arr = np.asarray(values, dtype=float)
    arr = arr[np.isfinite(arr)]
    if arr.size == 0:
        return np.nan
    return float(np.percentile(arr, q, method="hazen"))


def sample_std(values) -> float:
    """Sample standard deviation (ddof=1) that is 0 for a single value and NaN when empty."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return np.nan
    if arr.size == 1:
        return 0.0
    return float(np.std(arr, ddof=1))


def median_interval_minutes(index: pd.DatetimeIndex) -> int:
    """Median sampling interval of an index, rounded to whole minutes (at least 1)."""
    if len(index) < 2:
        raise ValueError("At least two timestamps are required to infer the sampling interval")
    steps = np.diff(to_seconds(index)) / 60.0
    return max(1, int(round_half_away(np.median(steps))))


def run_lengths(mask: np.ndarray) -> tuple:
    """Split a boolean array into maximal runs of equal values.

    Args:
        mask: Boolean array

    Returns:
        Tuple ``(starts, lengths, values)`` of equal-length arrays describing
        every run in order.
    """
    mask = np.asarray(mask, dtype=bool)
    if mask.size == 0:
        empty = np.array([], dtype=int)
        return empty, empty, np.array([], dtype=bool)
    change = np.flatnonzero(mask[1:] != mask[:-1]) + 1
    starts = np.concatenate(([0], change))
    lengths = np.diff(np.concatenate((starts, [mask.size])))
    return starts, lengths, mask[starts]


def centered_moving_average(values: np.ndarray, window: int = 30, circular: bool = False) -> np.ndarray:
    """Centered moving mean ignoring NaN.

    The window covers offsets ``-(window // 2 - 1) .. window // 2`` for even
    windows (``-14..+15`` for 30 days) and is symmetric for odd windows.
    Linear series are padded with NaN so edge windows average only the
    samples they cover; circular series wrap around both ends.

    Args:
        values: 1-D array
        window: Window length in samples
        circular: Treat the array as periodic

    Returns:
        Smoothed array of the same length
    """
    values = np.asarray(values, dtype=float)
    n = values.size
    if n == 0:
        return values.copy()
    after = window // 2
    before = window - 1 - after

    if circular:
        reps = int(np.ceil(window / max(n, 1))) + 1
        padded = np.tile(values, 2 * reps + 1)[reps * n - before : reps * n + n + after]
    else:
        padded = np.concatenate((np.full(before, np.nan), values, np.full(after, np.nan)))

    valid = np.isfinite(padded)
    kernel = np.ones(window)
    sums = np.convolve(np.where(valid, padded, 0.0), kernel, mode="valid")
    counts = np.convolve(valid.astype(float), kernel, mode="valid")

    with np.errstate(invalid="ignore", divide="ignore"):
        result = sums / counts
    result[counts == 0] = np.nan
    return result


def circular_interpolate(values: np.ndarray) -> np.ndarray:
    """Fill NaN entries of a periodic array by linear interpolation across the wrap."""
    values = np.asarray(values, dtype=float)
    valid = np.isfinite(values)
    if valid.all() or not valid.any():
        return values.copy()
    n = values.size
    x = np.arange(n)
    return np.interp(x, x[valid], values[valid], period=n)
