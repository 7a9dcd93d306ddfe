"""Drought events and indices from a daily series and a seasonal threshold.

A day is in drought when the (optionally smoothed) value falls below the
threshold of its calendar day. Non-drought spells shorter than the pooling
window are absorbed into drought, then droughts shorter than the minimum
duration are discarded. The deficit of an event is the sum of its negative
departures from the threshold and is therefore reported as a negative
number; ``deficit_max`` is the most negative one.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from ..hydro.monthly import monthly_summary
from ..utils.helpers import run_lengths, sample_std, validate_series
from ..utils.logger import setup_logger
from .calendar import threshold_for_dates
from .threshold import smooth_series

logger = setup_logger("drought_indices")

INDEX_NAMES = (
    "n_years",
    "annual_mean",
    "annual_std",
    "droughts_per_year",
    "duration_mean",
    "duration_std",
    "duration_max",
    "deficit_mean",
    "deficit_std",
    "deficit_max",
)


@dataclass(frozen=True)
class DroughtEvent:
    """A drought surviving pooling and duration filtering."""

    start: pd.Timestamp
    end: pd.Timestamp
    duration: int
    deficit: float


@dataclass
class DroughtIndices:
    """Summary indices of the droughts in a record.

    Durations are in days; deficits are in the units of the series and are
    negative. Duration and deficit statistics are NaN when no event survives.
    """

    n_years: float
    annual_mean: float
    annual_std: float
    droughts_per_year: float
    duration_mean: float
    duration_std: float
    duration_max: float
    deficit_mean: float
    deficit_std: float
    deficit_max: float
    events: list[DroughtEvent] = field(default_factory=list)
    n_raw_events: int = 0
    n_pooled_events: int = 0
    daily: pd.DataFrame | None = None

    def as_array(self) -> np.ndarray:
        """The ten indices in their documented order."""
        return np.array([getattr(self, name) for name in INDEX_NAMES], dtype=float)

    def as_dict(self) -> dict[str, float]:
        return {name: float(getattr(self, name)) for name in INDEX_NAMES}


def count_runs(mask: np.ndarray) -> int:
    """Number of maximal True runs in a boolean array."""
    _, _, values = run_lengths(mask)
    return int(values.sum())


def pool_droughts(drought: np.ndarray, pooling_days: int = 10) -> np.ndarray:
    """Absorb non-drought spells shorter than ``pooling_days`` into drought."""
    pooled = np.asarray(drought, dtype=bool).copy()
    for start, length, value in zip(*run_lengths(pooled)):
        if not value and length < pooling_days:
            pooled[start : start + length] = True
    return pooled


def drop_short_droughts(drought: np.ndarray, min_duration_days: int = 10) -> np.ndarray:
    """Discard drought runs shorter than ``min_duration_days``."""
    kept = np.asarray(drought, dtype=bool).copy()
    for start, length, value in zip(*run_lengths(kept)):
        if value and length < min_duration_days:
            kept[start : start + length] = False
    return kept


def extract_drought_indices(
    daily: pd.Series,
    threshold: pd.Series | np.ndarray,
    smooth: bool = True,
    pooling_days: int = 10,
    min_duration_days: int = 10,
    window_days: int = 30,
) -> DroughtIndices:
    """Identify drought events and summarise them.

    Args:
        daily: Daily series
        threshold: 366-value threshold curve indexed by calendar day
        smooth: Compare the centered moving average of the series instead of the raw values
        pooling_days: Non-drought spells shorter than this are pooled into drought
        min_duration_days: Droughts shorter than this are discarded after pooling
        window_days: Moving average window

    Returns:
        DroughtIndices

    Raises:
        ValueError: If the threshold curve does not hold 366 values
    """
    daily = validate_series(daily, "daily")
    if daily.empty:
        raise ValueError("Cannot extract drought indices from an empty series")
    thr = threshold_for_dates(threshold, daily.index)
    assessed = (smooth_series(daily, window_days) if smooth else daily).to_numpy()

    with np.errstate(invalid="ignore"):
        drought = assessed < thr
    n_raw = count_runs(drought)
    pooled = pool_droughts(drought, pooling_days)
    n_pooled = count_runs(pooled)
    final = drop_short_droughts(pooled, min_duration_days)

    departure = assessed - thr
    events = []
    for start, length, value in zip(*run_lengths(final)):
        if not value:
            continue
        window = departure[start : start + length]
        deficit = float(np.nansum(window[window < 0]))
        events.append(
            DroughtEvent(daily.index[start], daily.index[start + length - 1], int(length), deficit)
        )

    annual = monthly_summary(daily, how="sum").annual.to_numpy()
    durations = np.array([e.duration for e in events], dtype=float)
    deficits = np.array([e.deficit for e in events], dtype=float)
    n_years = len(daily) / 365.25

    indices = DroughtIndices(
        n_years=n_years,
        annual_mean=float(np.nanmean(annual)),
        annual_std=sample_std(annual[np.isfinite(annual)]),
        droughts_per_year=len(events) / n_years,
        duration_mean=float(durations.mean()) if events else np.nan,
        duration_std=sample_std(durations),
        duration_max=float(durations.max()) if events else np.nan,
        deficit_mean=float(deficits.mean()) if events else np.nan,
        deficit_std=sample_std(deficits),
        deficit_max=float(deficits.min()) if events else np.nan,
        events=events,
        n_raw_events=n_raw,
        n_pooled_events=n_pooled,
        daily=pd.DataFrame(
            {"value": assessed, "threshold": thr, "drought": final},
            index=daily.index,
        ),
    )
    logger.info(
        f"Drought analysis period {daily.index[0].year}-{daily.index[-1].year}: "
        f"{len(events)} droughts ({n_raw} before pooling), "
        f"{indices.droughts_per_year:.2f} per year, max duration {indices.duration_max} days, "
        f"max deficit {indices.deficit_max:.2f}"
    )
    return indices
