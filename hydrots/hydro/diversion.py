"""Water diversion and the hydrograph it leaves downstream.

A diversion intake takes the discharge exceeding a minimum residual flow,
up to its capacity, during the wet seasons only. Part of the diverted water
(the recovery rate) returns to the stream later, delayed by a distribution
of residence times.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import product
from typing import Sequence

import numba
import numpy as np
import pandas as pd

from ..utils.helpers import to_seconds, validate_series
from ..utils.logger import setup_logger

logger = setup_logger("flow_diversion")


@dataclass
class DiversionResult:
    """Diverted and remaining flow, with diverted volumes per wet season.

    ``diverted`` and ``remaining`` hold the last ``(q_max, q_min)``
    combination. ``volumes`` (hm3) is indexed by the start and end year of
    each season, with one column per combination.
    """

    diverted: pd.Series
    remaining: pd.Series
    volumes: pd.DataFrame


def _as_pairs(value: float | Sequence[float]) -> list[float]:
    return [float(v) for v in np.atleast_1d(value)]


def divert_flows(
    discharge: pd.Series,
    q_min: float | Sequence[float] = 0.0,
    q_max: float | Sequence[float] = np.inf,
    wet_seasons: Sequence[tuple[pd.Timestamp, pd.Timestamp]] | None = None,
) -> DiversionResult:
    """Divert discharge above ``q_min`` and below ``q_max`` inside wet seasons.

    Args:
        discharge: Discharge series (m3/s)
        q_min: Minimum residual flow(s) left in the stream
        q_max: Intake capacity(ies)
        wet_seasons: ``(start, end)`` pairs; the whole record when omitted.
            Flow is diverted strictly between the two dates.

    Returns:
        DiversionResult
    """
    discharge = validate_series(discharge, "discharge")
    if len(discharge) < 2:
        raise ValueError("At least two discharge values are required")
    if wet_seasons is None:
        wet_seasons = [(discharge.index[0], discharge.index[-1])]

    seconds = to_seconds(discharge.index)
    step_days = float(np.median(np.diff(seconds))) / 86400
    q = discharge.to_numpy()
    seasons = [(to_seconds(pd.DatetimeIndex([s]))[0], to_seconds(pd.DatetimeIndex([e]))[0]) for s, e in wet_seasons]
    inside = np.zeros(len(q), dtype=bool)
    for start, end in seasons:
        inside |= (seconds > start) & (seconds < end)

    maxima, minima = _as_pairs(q_max), _as_pairs(q_min)
    combinations = [(qmax, qmin) for qmin, qmax in product(minima, maxima)]
    volumes = np.zeros((len(seasons), len(combinations)))
    diverted = np.zeros_like(q)

    logger.info("Estimating diverted flows")
    for col, (qmax, qmin) in enumerate(combinations):
        diverted = np.clip(q - qmin, 0.0, qmax)
        diverted = np.where(inside, diverted, 0.0)
        for row, (start, end) in enumerate(seasons):
            season = (seconds >= start) & (seconds <= end)
            volumes[row, col] = np.nansum(diverted[season]) * step_days * 86400 / 1e6

    logger.info("Estimating flows remaining in the stream after diversion")
    remaining = q - diverted
    index = pd.MultiIndex.from_tuples(
        [(pd.Timestamp(s).year, pd.Timestamp(e).year) for s, e in wet_seasons],
        names=["start_year", "end_year"],
    )
    columns = pd.MultiIndex.from_tuples(combinations, names=["q_max", "q_min"])
    return DiversionResult(
        diverted=pd.Series(diverted, index=discharge.index, name="diverted"),
        remaining=pd.Series(remaining, index=discharge.index, name="remaining"),
        volumes=pd.DataFrame(volumes, index=index, columns=columns),
    )


@numba.jit(nopython=True)
def _return_flows(remaining: np.ndarray, diverted: np.ndarray, lags: np.ndarray, recovery: float) -> np.ndarray:
    """Add the recovered share of each diverted value to the following steps."""
    n1 = len(remaining)
    n2 = len(lags)
    modified = remaining.copy()
    for i in range(n1):
        if diverted[i] > 0:
            for j in range(min(n2, n1 - i)):
                modified[i + j] += diverted[i] * recovery * lags[j]
    return modified


@numba.jit(nopython=True)
def _return_flows_baseflow(
    remaining: np.ndarray,
    diverted: np.ndarray,
    baseflow: np.ndarray,
    residence: np.ndarray,
    recovery: float,
) -> np.ndarray:
    """Residence-time weights scaled by the shape of the base flow ahead of each step."""
    n1 = len(remaining)
    n2 = len(residence)
    modified = remaining.copy()
    weights = np.empty(n2)
    for i in range(n1):
        if not diverted[i] > 0:
            continue
        m = min(n2, n1 - i)
        base_total = 0.0
        for j in range(m):
            if not np.isnan(baseflow[i + j]):
                base_total += baseflow[i + j]
        total = 0.0
        for j in range(m):
            if base_total > 0:
                weights[j] = residence[j] * baseflow[i + j] / base_total
            else:
                weights[j] = residence[j]
            if np.isnan(weights[j]):
                weights[j] = 0.0
            total += weights[j]
        if total <= 0:
            continue
        for j in range(m):
            modified[i + j] += diverted[i] * recovery * weights[j] / total
    return modified


def modified_flows(
    remaining: pd.Series,
    diverted: pd.Series,
    lags: Sequence[float] | np.ndarray,
    recovery_rate: float = 0.5,
) -> pd.Series:
    """Hydrograph after diversion with delayed return flows.

    Args:
        remaining: Flow left in the stream
        diverted: Diverted flow, aligned with ``remaining``
        lags: Fraction of the returned water reaching the stream at each lag
        recovery_rate: Share of the diverted water that returns

    Returns:
        Modified discharge series
    """
    if len(remaining) != len(diverted):
        raise ValueError("Remaining and diverted flows must have the same length")
    if not 0 <= recovery_rate <= 1:
        raise ValueError("recovery_rate must be between 0 and 1")
    logger.info("Modifying hydrograph")
    values = _return_flows(
        remaining.to_numpy(dtype=float),
        diverted.to_numpy(dtype=float),
        np.asarray(lags, dtype=float),
        float(recovery_rate),
    )
    return pd.Series(values, index=remaining.index, name="modified")


def modified_flows_baseflow(
    remaining: pd.Series,
    diverted: pd.Series,
    baseflow: pd.Series,
    residence_times: Sequence[float] | np.ndarray,
    recovery_rate: float = 0.5,
) -> pd.Series:
    """Hydrograph after diversion with return flows following the base flow.

    The residence-time distribution is normalised, then weighted by the
    normalised base flow over the following steps, so more water returns
    when the base flow is higher. Where the base flow ahead is undefined
    the residence times alone apply.

    Args:
        remaining: Flow left in the stream
        diverted: Diverted flow
        baseflow: Base flow of the natural hydrograph
        residence_times: Residence-time distribution per step
        recovery_rate: Share of the diverted water that returns

    Returns:
        Modified discharge series
    """
    if not len(remaining) == len(diverted) == len(baseflow):
        raise ValueError("Remaining, diverted and base flows must have the same length")
    if not 0 <= recovery_rate <= 1:
        raise ValueError("recovery_rate must be between 0 and 1")
    residence = np.asarray(residence_times, dtype=float)
    total = np.nansum(residence)
    if total <= 0:
        raise ValueError("Residence times must have a positive sum")
    logger.info("Modifying hydrograph following the base flow")
    values = _return_flows_baseflow(
        remaining.to_numpy(dtype=float),
        diverted.to_numpy(dtype=float),
        baseflow.to_numpy(dtype=float),
        residence / total,
        float(recovery_rate),
    )
    return pd.Series(values, index=remaining.index, name="modified")
