"""Detection of data voids (runs of missing values) in time series.

A missing sample at position ``i`` leaves the span ``[t[i], t[i+1])`` without
data. The final sample has no successor, so its span ends at its own
timestamp. Adjacent spans are coalesced, and the valid spans are the exact
complement, so both lists together tile ``[first, last]``.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from ..utils.helpers import run_lengths, validate_series
from ..utils.logger import setup_logger

logger = setup_logger("voids")


@dataclass(frozen=True)
class VoidInterval:
    """Maximal span ``[start, end)`` sharing the same data state."""

    start: pd.Timestamp
    end: pd.Timestamp

    @property
    def duration(self) -> pd.Timedelta:
        return self.end - self.start

    def contains(self, timestamps: pd.DatetimeIndex, strict: bool = True) -> np.ndarray:
        """Boolean mask of timestamps lying inside the interval.

        Args:
            timestamps: Timestamps to test
            strict: Exclude both end points when True

        Returns:
            Boolean array aligned with ``timestamps``
        """
        if strict:
            return np.asarray((timestamps > self.start) & (timestamps < self.end))
        return np.asarray((timestamps >= self.start) & (timestamps <= self.end))


def _spans(series: pd.Series, missing: bool) -> list[VoidInterval]:
    if series.empty:
        return []
    index = series.index
    # successor timestamps, with the last one duplicated
    successors = index[np.minimum(np.arange(1, len(index) + 1), len(index) - 1)]
    starts, lengths, values = run_lengths(series.isna().to_numpy())
    return [
        VoidInterval(index[s], successors[s + n - 1])
        for s, n, v in zip(starts, lengths, values)
        if v == missing
    ]


def detect_voids(series: pd.Series) -> list[VoidInterval]:
    """Coalesced intervals covered by missing values.

    Args:
        series: Time series with NaN marking missing samples

    Returns:
        Sorted, non-overlapping list of ``VoidInterval``; empty when the
        series has no missing value
    """
    series = validate_series(series)
    return _spans(series, missing=True)


def detect_valid_intervals(series: pd.Series) -> list[VoidInterval]:
    """Coalesced intervals covered by valid values (complement of the voids)."""
    series = validate_series(series)
    return _spans(series, missing=False)


def mask_voids(index: pd.DatetimeIndex, voids: list[VoidInterval], strict: bool = True) -> np.ndarray:
    """Boolean mask of the timestamps falling inside any of the voids."""
    mask = np.zeros(len(index), dtype=bool)
    for void in voids:
        mask |= void.contains(index, strict=strict)
    return mask


def void_inventory(series: pd.Series) -> pd.DataFrame:
    """Tabulate data and void spans of a series and log the inventory.

    Args:
        series: Time series with NaN marking missing samples

    Returns:
        DataFrame with columns ``kind`` ("data" or "void"), ``start``, ``end``
        and ``duration``, sorted by start
    """
    series = validate_series(series)
    rows = [
        {"kind": kind, "start": span.start, "end": span.end, "duration": span.duration}
        for kind, spans in (("data", _spans(series, False)), ("void", _spans(series, True)))
        for span in spans
    ]
    inventory = pd.DataFrame(rows, columns=["kind", "start", "end", "duration"])
    inventory = inventory.sort_values("start", kind="stable").reset_index(drop=True)

    n_voids = int((inventory["kind"] == "void").sum())
    logger.info(f"Identified {len(inventory) - n_voids} data spans and {n_voids} voids")
    for row in inventory.itertuples():
        logger.debug(f"{row.kind:>4}: {row.start} -> {row.end}")
    return inventory
