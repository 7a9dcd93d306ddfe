"""Segmentation of tipping-bucket records into rainfall events.

The inter-tip time limits follow from the bucket resolution and the range of
realistic intensities:

* ``MaxT = 3600 * bucket / min_intensity`` seconds is the longest gap still
  inside an event (0.2 mm at 0.2 mm/h gives one hour);
* ``MinT = 3600 * bucket / max_intensity`` seconds is the shortest gap a gauge
  can physically resolve (0.2 mm at 127 mm/h gives about 5.7 s).

Tips closer than ``MinT`` are merged (or collapsed onto the 1-minute grid),
tips isolated by a gap between ``MaxT / 2`` and ``MaxT`` are spread in two
halves, and events are delimited by gaps longer than ``MaxT``.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from ..utils.helpers import from_seconds, to_seconds, validate_series
from ..utils.logger import setup_logger

logger = setup_logger("rain_events")


@dataclass
class RainEvent:
    """Tips of a single rainfall event."""

    times: pd.DatetimeIndex
    volumes: np.ndarray

    def __post_init__(self):
        self.volumes = np.asarray(self.volumes, dtype=float)
        if len(self.times) != self.volumes.size:
            raise ValueError("times and volumes must have the same length")
        if self.volumes.size == 0:
            raise ValueError("A rainfall event needs at least one tip")

    @property
    def n_tips(self) -> int:
        return int(self.volumes.size)

    @property
    def start(self) -> pd.Timestamp:
        return self.times[0]

    @property
    def end(self) -> pd.Timestamp:
        return self.times[-1]

    @property
    def duration(self) -> pd.Timedelta:
        return self.end - self.start

    @property
    def total_volume(self) -> float:
        return float(self.volumes.sum())

    @property
    def is_single_tip(self) -> bool:
        return self.n_tips == 1

    @property
    def seconds(self) -> np.ndarray:
        """Tip times as epoch seconds."""
        return to_seconds(self.times)


def inter_tip_limits(
    bucket_volume: float,
    min_intensity: float = 0.2,
    max_intensity: float = 127.0,
) -> tuple[float, float]:
    """Return ``(MaxT, MinT)`` in seconds for a gauge and intensity range.

    Raises:
        ValueError: If the bucket volume or the intensity bounds are invalid
    """
    if bucket_volume <= 0:
        raise ValueError(f"bucket_volume must be positive, got {bucket_volume}")
    if min_intensity <= 0:
        raise ValueError(f"min_intensity must be positive, got {min_intensity}")
    if max_intensity <= min_intensity:
        raise ValueError("max_intensity must be greater than min_intensity")
    return 3600.0 * bucket_volume / min_intensity, 3600.0 * bucket_volume / max_intensity


def _as_tips(tips: pd.Series) -> pd.Series:
    """Drop missing and zero records, keeping actual tips only."""
    tips = validate_series(tips, "tips")
    return tips[tips.fillna(0.0) != 0.0]


def aggregate_tips_to_minute(tips: pd.Series) -> pd.Series:
    """Collapse tips onto the 1-minute grid.

    Each tip is assigned to the minute ending at or after it; minutes without
    rain are dropped.
    """
    tips = _as_tips(tips)
    if tips.empty:
        return tips
    collapsed = tips.groupby(tips.index.ceil("min")).sum()
    collapsed = collapsed[collapsed != 0.0]
    logger.info(
        f"Tips aggregated at 1-min interval: {len(tips)} -> {len(collapsed)} points, "
        f"volume {tips.sum():.2f} -> {collapsed.sum():.2f} mm"
    )
    return collapsed


def _merge(seconds: np.ndarray, volumes: np.ndarray, min_gap: float) -> tuple[np.ndarray, np.ndarray]:
    keep = np.ones(seconds.size, dtype=bool)
    merged = volumes.astype(float).copy()
    carry = 0.0
    for k in range(seconds.size):
        merged[k] += carry
        carry = 0.0
        if k + 1 < seconds.size and seconds[k + 1] - seconds[k] <= min_gap:
            carry = merged[k]
            keep[k] = False
    return seconds[keep], merged[keep]


def merge_tips(tips: pd.Series, min_gap_seconds: float) -> pd.Series:
    """Merge tips recorded closer than ``min_gap_seconds`` to the following tip.

    The earlier tip is removed and its volume carried to the later one, so a
    burst of fast tips collapses onto its last record.
    """
    tips = _as_tips(tips)
    if tips.empty:
        return tips
    seconds, volumes = _merge(to_seconds(tips.index), tips.to_numpy(), min_gap_seconds)
    logger.info(
        f"Merging tips faster than MinT = {min_gap_seconds:.2f} s: "
        f"{len(tips) - seconds.size} tips removed, volume {tips.sum():.2f} -> {volumes.sum():.2f} mm"
    )
    return pd.Series(volumes, index=from_seconds(seconds), name=tips.name)


def _divide(seconds: np.ndarray, volumes: np.ndarray, max_gap: float) -> tuple[np.ndarray, np.ndarray]:
    n = seconds.size
    if n < 2:
        return seconds.copy(), volumes.astype(float).copy()
    gaps = np.concatenate(([np.inf], np.diff(seconds), [np.inf]))
    before = gaps[1:n]  # gap leading to tip k, for k = 1 .. n-1
    after = gaps[2 : n + 1]  # gap following tip k
    previous = gaps[0 : n - 1]  # gap leading to tip k-1
    split = np.zeros(n, dtype=bool)
    split[1:] = (before > max_gap / 2) & (before <= max_gap) & ((after <= max_gap) | (previous <= max_gap))
    # the last tip has no following gap to hold it inside the event
    split[-1] = False

    new_seconds = []
    new_volumes = []
    for k in range(n):
        if split[k]:
            half = volumes[k] / 2.0
            new_seconds.extend((seconds[k] - gaps[k] / 2.0, seconds[k]))
            new_volumes.extend((half, half))
        else:
            new_seconds.append(seconds[k])
            new_volumes.append(volumes[k])
    return np.asarray(new_seconds, dtype=float), np.asarray(new_volumes, dtype=float)


def divide_tips(tips: pd.Series, max_gap_seconds: float) -> pd.Series:
    """Spread tips that follow a gap between ``MaxT / 2`` and ``MaxT``.

    A tip is split in two halves, one of them moved to the middle of the
    preceding gap, when the neighbouring gaps keep it inside an event.
    """
    tips = _as_tips(tips)
    if tips.empty:
        return tips
    seconds, volumes = _divide(to_seconds(tips.index), tips.to_numpy(), max_gap_seconds)
    logger.info(
        f"Spreading tips occurring between {max_gap_seconds / 120:.2f} and "
        f"{max_gap_seconds / 60:.2f} min: {seconds.size - len(tips)} tips added, "
        f"volume {tips.sum():.2f} -> {volumes.sum():.2f} mm"
    )
    return pd.Series(volumes, index=from_seconds(seconds), name=tips.name)


def split_events(tips: pd.Series, max_gap_seconds: float) -> list[RainEvent]:
    """Cut a prepared tip series wherever the gap exceeds ``max_gap_seconds``."""
    if tips.empty:
        return []
    seconds = to_seconds(tips.index)
    boundaries = np.flatnonzero(np.diff(seconds) > max_gap_seconds) + 1
    starts = np.concatenate(([0], boundaries))
    ends = np.concatenate((boundaries, [seconds.size]))
    volumes = tips.to_numpy()
    return [RainEvent(tips.index[s:e], volumes[s:e]) for s, e in zip(starts, ends)]


def segment_events(
    tips: pd.Series,
    bucket_volume: float = 0.2,
    min_intensity: float = 0.2,
    max_intensity: float = 127.0,
    mintip: bool = True,
) -> list[RainEvent]:
    """Partition a tipping-bucket record into rainfall events.

    Args:
        tips: Tip volumes (mm) indexed by tip time; zeros and NaN are ignored
        bucket_volume: Rain depth of one tip (mm)
        min_intensity: Lowest intensity still inside an event (mm/h)
        max_intensity: Highest plausible intensity (mm/h)
        mintip: Collapse tips onto the 1-minute grid instead of merging tips
            faster than ``MinT``

    Returns:
        List of RainEvent in chronological order

    Raises:
        ValueError: If the bucket volume or the intensity bounds are invalid
    """
    max_gap, min_gap = inter_tip_limits(bucket_volume, min_intensity, max_intensity)
    prepared = aggregate_tips_to_minute(tips) if mintip else merge_tips(tips, min_gap)
    prepared = divide_tips(prepared, max_gap)
    events = split_events(prepared, max_gap)

    multi = [e.duration / pd.Timedelta(minutes=1) for e in events if not e.is_single_tip]
    n_single = sum(e.is_single_tip for e in events)
    mean_duration = float(np.mean(multi)) if multi else float("nan")
    logger.info(
        f"Rainfall events identified: {len(events)}; average duration {mean_duration:.2f} min; "
        f"events of 1 tip only: {n_single}"
    )
    return events
