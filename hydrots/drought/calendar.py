"""Calendar day convention shared by drought thresholds and indices.

Days are numbered 1..366 on a leap-year calendar: day 60 is 29 February,
and every date from 1 March of a non-leap year is shifted by one so that a
given calendar day always maps to the same index. In non-leap years index
60 is therefore never used.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

N_CALENDAR_DAYS = 366
LEAP_DAY = 60


def calendar_day_indices(dates) -> np.ndarray:
    """Calendar day index (1..366) of every date.

    Args:
        dates: DatetimeIndex or anything ``pd.DatetimeIndex`` accepts

    Returns:
        Integer array aligned with ``dates``
    """
    dates = pd.DatetimeIndex(dates)
    doy = np.asarray(dates.dayofyear, dtype=int)
    shift = (~np.asarray(dates.is_leap_year)) & (doy >= LEAP_DAY)
    return doy + shift.astype(int)


def calendar_day_index(date) -> int:
    """Calendar day index (1..366) of a single date."""
    return int(calendar_day_indices([pd.Timestamp(date)])[0])


def validate_calendar_indices(indices: np.ndarray) -> np.ndarray:
    """Raise if any index falls outside 1..366."""
    indices = np.asarray(indices)
    if indices.size and (indices.min() < 1 or indices.max() > N_CALENDAR_DAYS):
        raise ValueError(f"Calendar day indices must lie in 1..{N_CALENDAR_DAYS}")
    return indices


def threshold_for_dates(threshold: pd.Series | np.ndarray, dates) -> np.ndarray:
    """Look up a 366-day threshold curve at the calendar day of each date.

    Raises:
        ValueError: If the curve does not hold exactly 366 values
    """
    curve = np.asarray(threshold, dtype=float)
    if curve.shape != (N_CALENDAR_DAYS,):
        raise ValueError(f"Threshold curve must have {N_CALENDAR_DAYS} values, got {curve.size}")
    indices = validate_calendar_indices(calendar_day_indices(dates))
    return curve[indices - 1]
