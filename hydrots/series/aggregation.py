"""Fixed-interval aggregation of irregular series.

Rainfall records are summed into regular buckets, discharge and stage
records are averaged. Each raw sample at time ``t`` belongs to the bucket
labelled ``ceil(t)`` on the interval grid, i.e. the bucket
``(previous grid time, grid time]``. Voids of the raw record are carried
over to the regular grid and reported separately.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np
import pandas as pd

from ..utils.helpers import validate_series
from ..utils.logger import setup_logger
from .voids import detect_voids, mask_voids

logger = setup_logger("aggregation")


class AggregationMode(str, Enum):
    """How raw samples inside a bucket are combined."""

    SUM = "sum"
    AVERAGE = "average"


@dataclass
class AggregatedSeries:
    """Regular-grid series with its cumulative curve and the values hidden by voids."""

    values: pd.Series
    cumulative: pd.Series
    void_values: pd.Series
    mean: float
    maximum: float
    minimum: float

    @property
    def interval(self) -> pd.Timedelta | None:
        if len(self.values) < 2:
            return None
        return self.values.index[1] - self.values.index[0]

    def to_frame(self) -> pd.DataFrame:
        """Values, cumulative curve and void values as a single frame."""
        return pd.DataFrame(
            {"value": self.values, "cumulative": self.cumulative, "void": self.void_values}
        )


def _summary(values: np.ndarray) -> tuple[float, float, float]:
    valid = values[np.isfinite(values)]
    if valid.size == 0:
        return np.nan, np.nan, np.nan
    return float(valid.mean()), float(valid.max()), float(valid.min())


def _empty_result(name) -> AggregatedSeries:
    empty = pd.Series([], index=pd.DatetimeIndex([]), dtype=float, name=name)
    return AggregatedSeries(empty, empty.copy(), empty.copy(), np.nan, np.nan, np.nan)


def aggregate(
    series: pd.Series,
    interval_minutes: int,
    mode: AggregationMode | str = AggregationMode.SUM,
) -> AggregatedSeries:
    """Aggregate a series onto a regular grid.

    Args:
        series: Irregular or regular time series, NaN marking missing samples
        interval_minutes: Grid spacing in minutes
        mode: ``AggregationMode.SUM`` for rainfall, ``AggregationMode.AVERAGE``
            for discharge or stage

    Returns:
        AggregatedSeries on the grid ``ceil(first) .. ceil(last)``

    Raises:
        ValueError: If ``interval_minutes`` is not positive or the mode is unknown
    """
    if interval_minutes <= 0:
        raise ValueError(f"interval_minutes must be positive, got {interval_minutes}")
    mode = AggregationMode(mode)
    series = validate_series(series)
    if series.empty:
        return _empty_result(series.name)

    freq = f"{int(interval_minutes)}min"
    buckets = series.index.ceil(freq)
    grid = pd.date_range(buckets[0], buckets[-1], freq=freq)
    n = len(grid)

    valid = series.notna()
    n_raw = series.groupby(buckets).size().reindex(grid, fill_value=0).to_numpy()
    n_valid = valid.groupby(buckets).sum().reindex(grid, fill_value=0).to_numpy()
    sums = series.fillna(0.0).groupby(buckets).sum().reindex(grid, fill_value=0.0).to_numpy()
    only_missing = (n_raw > 0) & (n_valid == 0)

    voids = detect_voids(series)
    in_void = mask_voids(grid, voids, strict=True)

    if mode is AggregationMode.SUM:
        raw = sums.astype(float)
        masked = in_void | only_missing
    else:
        with np.errstate(invalid="ignore", divide="ignore"):
            raw = np.where(n_valid > 0, sums / np.maximum(n_valid, 1), np.nan)
        interpolated = np.zeros(n, dtype=bool)
        for i in range(1, n - 1):
            if np.isnan(raw[i]) and np.isfinite(raw[i - 1]) and np.isfinite(raw[i + 1]):
                raw[i] = 0.5 * (raw[i - 1] + raw[i + 1])
                interpolated[i] = True
        raw = np.where(np.isnan(raw), 0.0, raw)
        masked = in_void | (only_missing & ~interpolated)

    values = np.where(masked, np.nan, raw)

    # start-up and shut-down artefacts at the grid edges
    if n > 1:
        for edge, neighbour in ((0, 1), (n - 1, n - 2)):
            if values[edge] != 0:
                continue
            if mode is AggregationMode.SUM:
                artefact = np.isnan(values[neighbour])
            else:
                artefact = values[neighbour] != 0
            if artefact:
                values[edge] = np.nan
                masked[edge] = True

    cumulative = np.cumsum(raw)
    cumulative[masked] = np.nan
    void_values = np.where(masked, raw, np.nan)

    mean, maximum, minimum = _summary(values)
    if masked.any():
        logger.debug(f"{int(masked.sum())} of {n} cells masked as void at {freq}")

    return AggregatedSeries(
        values=pd.Series(values, index=grid, name=series.name),
        cumulative=pd.Series(cumulative, index=grid, name=series.name),
        void_values=pd.Series(void_values, index=grid, name=series.name),
        mean=mean,
        maximum=maximum,
        minimum=minimum,
    )


def aggregate_rainfall(series: pd.Series, interval_minutes: int) -> AggregatedSeries:
    """Sum rainfall depths into regular buckets."""
    return aggregate(series, interval_minutes, AggregationMode.SUM)


def average_discharge(series: pd.Series, interval_minutes: int) -> AggregatedSeries:
    """Average discharge or stage samples into regular buckets."""
    return aggregate(series, interval_minutes, AggregationMode.AVERAGE)
