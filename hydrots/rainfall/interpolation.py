"""Cubic-spline interpolation of tipping-bucket rainfall with bias correction.

Each event's cumulative rainfall curve is interpolated at 1-minute
resolution; the per-minute rates are then corrected so that no rate is
negative or below a low-intensity floor while the event volume is
preserved. The corrected events are superposed on a global 1-minute
cumulative curve, which is resampled to the requested interval.

Rates are labelled by the end of the minute they cover.
"""

from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from functools import partial
import time
from typing import Callable

import numpy as np
import pandas as pd
from scipy.interpolate import CubicSpline
from tqdm import tqdm

from ..series.voids import detect_voids, mask_voids
from ..utils.helpers import from_seconds, round_half_away, to_seconds, validate_series
from ..utils.logger import setup_logger
from .events import RainEvent, segment_events

logger = setup_logger("spline_interpolation")

_MINUTE = 60.0


@dataclass
class EventInterpolation:
    """Per-minute rainfall of one event.

    Attributes:
        rates: Rainfall depth per minute (mm), indexed by the end of each minute
        target_volume: Total tip volume of the event (mm)
        bias: Relative volume bias of the interpolated curve before correction
        linear_fallback: Linear interpolation replaced the spline
        converged: The correction loop met its tolerance
        iterations: Correction iterations performed
        single_tip: The event was distributed at the nominal intensity
    """

    rates: pd.Series
    target_volume: float
    bias: float = 0.0
    linear_fallback: bool = False
    converged: bool = True
    iterations: int = 0
    single_tip: bool = False

    @property
    def cumulative(self) -> pd.Series:
        return self.rates.cumsum()

    @property
    def volume(self) -> float:
        return float(self.rates.sum())


@dataclass
class SplineAggregation:
    """Regular rainfall series reconstructed from tips."""

    values: pd.Series
    cumulative: pd.Series
    single_tip: pd.Series
    events: list[EventInterpolation] = field(default_factory=list)

    @property
    def n_events(self) -> int:
        return len(self.events)

    @property
    def n_linear(self) -> int:
        return sum(e.linear_fallback for e in self.events)

    @property
    def n_unconverged(self) -> int:
        return sum(not e.converged for e in self.events)

    @property
    def max_bias(self) -> float:
        biases = [e.bias for e in self.events if not e.single_tip]
        return max(biases) if biases else 0.0


def default_floor(min_intensity: float = 0.2) -> float:
    """Lowest per-minute rate kept after correction (mm/min)."""
    return min(0.1, min_intensity / 2.0) / _MINUTE


def correct_intensities(
    rates: np.ndarray,
    target_volume: float,
    floor: float,
    max_iterations: int = 10,
) -> tuple[np.ndarray, bool, int]:
    """Remove negative and sub-floor rates while keeping the event volume.

    Each iteration clips negative rates to zero, raises positive rates below
    the floor up to it and rescales the rates at or above the floor so the
    total matches ``target_volume``.

    Args:
        rates: Per-minute rates (mm)
        target_volume: Volume the rates must add up to (mm)
        floor: Lowest admissible non-zero rate (mm)
        max_iterations: Iteration cap

    Returns:
        Tuple ``(rates, converged, iterations)``
    """
    r = np.asarray(rates, dtype=float).copy()

    def _violated(values: np.ndarray) -> bool:
        nonzero = values[values != 0]
        return bool(
            abs(target_volume - values.sum()) > floor or np.any(np.round(nonzero, 8) < floor)
        )

    iterations = 0
    while iterations < max_iterations and _violated(r):
        iterations += 1
        r[r < 0] = 0.0
        r[(r > 0) & (r < floor)] = floor
        low = r < floor
        denominator = r.sum() - r[low].sum()
        if denominator <= 0:
            break
        r[~low] *= (target_volume - r[low].sum()) / denominator

    return r, not _violated(r), iterations


def _finish(rates: np.ndarray, target_volume: float, halves: bool) -> np.ndarray:
    """Rebuild rates from a cumulative curve pinned to the target volume."""
    cumulative = np.minimum(np.cumsum(rates), target_volume)
    cumulative[-1] = target_volume
    if halves and cumulative.size > 1:
        cumulative[-2] = target_volume
    return np.concatenate(([cumulative[0]], np.diff(cumulative)))


def _rates_from_curve(curve: np.ndarray, halves: bool) -> np.ndarray:
    curve = curve.copy()
    if halves and curve.size > 1:
        curve[0] = 0.0
        curve[-1] = curve[-2]
    return np.concatenate(([curve[0]], np.diff(curve)))


def _evaluate(x: np.ndarray, y: np.ndarray, x1m: np.ndarray, spline: bool, halves: bool) -> np.ndarray:
    """Cumulative rainfall at the minute marks, constant outside the control points."""
    if spline:
        bc_type = ((1, 0.0), (1, 0.0)) if halves else "natural"
        curve = CubicSpline(x, y, bc_type=bc_type)(x1m)
    else:
        curve = np.interp(x1m, x, y)
    curve = np.where(x1m < x[0], 0.0, curve)
    return np.where(x1m > x[-1], y[-1], curve)


def _single_tip(event: RainEvent, nominal_intensity: float) -> EventInterpolation:
    volume = event.total_volume
    n_minutes = max(1, int(round_half_away(_MINUTE * volume / nominal_intensity)))
    tip_second = event.seconds[0]
    pieces = tip_second - _MINUTE * np.arange(n_minutes)[::-1]
    labels = np.ceil(pieces / _MINUTE) * _MINUTE
    rates = pd.Series(np.full(n_minutes, volume / n_minutes), index=from_seconds(labels))
    return EventInterpolation(rates=rates, target_volume=volume, single_tip=True)


def interpolate_event(
    event: RainEvent,
    bucket_volume: float = 0.2,
    low_intensity_floor: float | None = None,
    min_intensity: float = 0.2,
    nominal_intensity: float = 3.0,
    halves: bool = True,
    max_bias: float = 0.25,
    max_iterations: int = 10,
    spline: bool = True,
) -> EventInterpolation:
    """Distribute an event's rainfall over 1-minute intervals.

    Events of three tips or more are interpolated with a cubic spline of the
    cumulative curve, two-tip events linearly, and single tips are spread at
    ``nominal_intensity`` over the minutes ending at the tip.

    With ``halves`` the curve is padded with an estimated start, where half a
    bucket is assumed to have fallen before the first recorded tip, and an
    estimated end, and the spline is clamped (zero slope) at both.

    Args:
        event: Event to interpolate
        bucket_volume: Rain depth of one tip (mm)
        low_intensity_floor: Lowest non-zero per-minute rate (mm);
            defaults to ``min(0.1, min_intensity / 2) / 60``
        min_intensity: Lowest realistic intensity (mm/h)
        nominal_intensity: Intensity used for single tips (mm/h)
        halves: Pad the curve with half-bucket end points
        max_bias: Relative bias above which the spline is abandoned
        max_iterations: Correction iteration cap
        spline: Use the spline for events of three tips or more

    Returns:
        EventInterpolation whose rates add up to the event volume
    """
    if bucket_volume <= 0:
        raise ValueError(f"bucket_volume must be positive, got {bucket_volume}")
    if nominal_intensity <= 0:
        raise ValueError(f"nominal_intensity must be positive, got {nominal_intensity}")
    if event.is_single_tip:
        return _single_tip(event, nominal_intensity)

    floor = default_floor(min_intensity) if low_intensity_floor is None else low_intensity_floor
    seconds = event.seconds
    first, last = seconds[0], seconds[-1]
    x = seconds - first
    y = np.cumsum(event.volumes)
    target = float(y[-1])

    if halves:
        x0 = bucket_volume * (x[1] - x[0]) / (y[1] - y[0]) - 0.5
        xf = bucket_volume * (x[-1] - x[-2]) / (y[-1] - y[-2])
        x = np.concatenate(([0.0], x + x0, [x[-1] + x0 + xf]))
        y = np.concatenate(([0.0], y - bucket_volume / 2.0, [target]))
        x = round_half_away(x)
        minutes = np.arange(np.floor((first - x0) / _MINUTE), np.ceil((last + xf) / _MINUTE) + 1)
        x1m = round_half_away(_MINUTE * minutes - first + x0)
    else:
        minutes = np.arange(np.floor((first + 0.5) / _MINUTE), np.ceil(last / _MINUTE) + 1)
        x1m = round_half_away(_MINUTE * minutes - first)

    # rounding may collapse neighbouring control points
    increasing = np.concatenate(([True], np.diff(x) > 0))
    x, y = x[increasing], y[increasing]

    use_spline = spline and event.n_tips >= 3 and x.size >= 3
    rates = _rates_from_curve(_evaluate(x, y, x1m, use_spline, halves), halves)
    bias = abs(target - rates[rates > 0].sum()) / target
    linear_fallback = False
    if use_spline and (bias > max_bias or not np.all(np.isfinite(rates))):
        linear_fallback = True
        rates = _rates_from_curve(_evaluate(x, y, x1m, False, halves), halves)
        bias = abs(target - rates[rates > 0].sum()) / target

    rates, converged, iterations = correct_intensities(rates, target, floor, max_iterations)
    rates = _finish(rates, target, halves)

    if not converged:
        logger.warning(
            f"Bias correction did not converge after {iterations} iterations for the event "
            f"starting {event.start}; keeping the best approximation"
        )
    return EventInterpolation(
        rates=pd.Series(rates, index=from_seconds(_MINUTE * minutes)),
        target_volume=target,
        bias=float(bias),
        linear_fallback=linear_fallback,
        converged=converged,
        iterations=iterations,
    )


def _interpolate_worker(event: RainEvent, **kwargs) -> EventInterpolation:
    """Interpolate one event, degrading to linear interpolation on numerical failure."""
    try:
        return interpolate_event(event, **kwargs)
    except (ValueError, np.linalg.LinAlgError) as e:
        logger.error(f"Spline interpolation failed for the event starting {event.start}: {e!s}")
        result = interpolate_event(event, **{**kwargs, "spline": False})
        result.linear_fallback = True
        return result


def aggregate_tips(
    tips: pd.Series,
    interval_minutes: int = 1,
    bucket_volume: float = 0.2,
    min_intensity: float = 0.2,
    max_intensity: float = 127.0,
    nominal_intensity: float = 3.0,
    mintip: bool = True,
    halves: bool = True,
    max_bias: float = 0.25,
    max_iterations: int = 10,
    n_workers: int | None = None,
    show_progress: bool = False,
    on_progress: Callable[[float], None] | None = None,
    deadline: float | None = None,
) -> SplineAggregation:
    """Rebuild a regular rainfall series from tipping-bucket records.

    Args:
        tips: Tip volumes (mm) indexed by tip time; NaN marks gauge failures
        interval_minutes: Interval of the output series
        bucket_volume: Rain depth of one tip (mm)
        min_intensity: Lowest intensity still inside an event (mm/h)
        max_intensity: Highest plausible intensity (mm/h)
        nominal_intensity: Intensity used for single tips (mm/h)
        mintip: Collapse tips onto the 1-minute grid before segmentation
        halves: Pad events with half-bucket end points
        max_bias: Relative bias above which the spline is abandoned
        max_iterations: Correction iteration cap
        n_workers: Interpolate events in that many processes; sequential when None
        show_progress: Show a progress bar
        on_progress: Callback receiving the fraction of events processed
        deadline: ``time.monotonic()`` value after which processing stops

    Returns:
        SplineAggregation on the grid ``ceil(first) .. ceil(last)`` with voids
        of the raw record masked as NaN. Rain interpolated before ``ceil(first)``
        or after ``ceil(last)`` (the half-tip padding of the first and last
        events) is cut, so the total volume is only conserved when the record
        starts and ends with zero-volume records

    Raises:
        ValueError: If the interval or the gauge parameters are invalid
        TimeoutError: If ``deadline`` passes before all events are processed
    """
    if interval_minutes <= 0:
        raise ValueError(f"interval_minutes must be positive, got {interval_minutes}")
    tips = validate_series(tips, "tips")
    if tips.empty:
        raise ValueError("tips must contain at least one record")

    voids = detect_voids(tips)
    events = segment_events(tips, bucket_volume, min_intensity, max_intensity, mintip)
    options = dict(
        bucket_volume=bucket_volume,
        min_intensity=min_intensity,
        nominal_intensity=nominal_intensity,
        halves=halves,
        max_bias=max_bias,
        max_iterations=max_iterations,
    )
    worker = partial(_interpolate_worker, **options)

    def _consume(results) -> list[EventInterpolation]:
        done = []
        for result in tqdm(results, total=len(events), desc="Interpolating events", disable=not show_progress):
            done.append(result)
            if on_progress is not None:
                on_progress(len(done) / len(events))
            if deadline is not None and time.monotonic() > deadline:
                raise TimeoutError(f"Deadline reached after {len(done)} of {len(events)} events")
        return done

    if n_workers and n_workers > 1 and len(events) > 1:
        executor = ProcessPoolExecutor(max_workers=n_workers)
        try:
            interpolated = _consume(executor.map(worker, events))
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
    else:
        interpolated = _consume(worker(event) for event in events)

    freq = f"{int(interval_minutes)}min"
    first_cell = tips.index[0].ceil(freq)
    last_cell = tips.index[-1].ceil(freq)

    # 1-minute buffer over whole days, events superposed in chronological order
    bounds = [tips.index[0].normalize(), max(tips.index[-1].ceil("D"), last_cell)]
    for result in interpolated:
        bounds.extend((result.rates.index[0], result.rates.index[-1]))
    bound_minutes = _minutes(pd.DatetimeIndex(bounds))
    start_minute, end_minute = bound_minutes.min(), bound_minutes.max()
    rates_1min = np.zeros(int(end_minute - start_minute) + 1)
    single_1min = np.zeros_like(rates_1min)
    for result in interpolated:
        positions = (_minutes(result.rates.index) - start_minute).astype(int)
        rates_1min[positions] += result.rates.to_numpy()
        if result.single_tip:
            single_1min[positions] += result.rates.to_numpy()

    values, single = _resample(rates_1min, single_1min, start_minute, interval_minutes)
    cumulative = values.cumsum()
    values, single, cumulative = (s.loc[first_cell:last_cell].copy() for s in (values, single, cumulative))

    masked = mask_voids(values.index, voids, strict=True)
    for s in (values, single, cumulative):
        s[masked] = np.nan
        s.name = tips.name

    summary = SplineAggregation(values=values, cumulative=cumulative, single_tip=single, events=interpolated)
    logger.info(
        f"Maximum bias corrected in event interpolation: {100 * summary.max_bias:.2f}%; "
        f"{summary.n_linear} event(s) interpolated linearly; {summary.n_unconverged} not converged"
    )
    logger.info(
        f"Rainfall volume before aggregation: {np.nansum(tips):.2f} mm; after: {np.nansum(values):.2f} mm"
    )
    return summary


def _minutes(index: pd.DatetimeIndex) -> np.ndarray:
    return np.round(to_seconds(index) / _MINUTE)


def _resample(
    rates_1min: np.ndarray,
    single_1min: np.ndarray,
    start_minute: float,
    interval_minutes: int,
) -> tuple[pd.Series, pd.Series]:
    """Sum 1-minute rates into intervals aligned with the epoch grid."""
    labels = from_seconds(_MINUTE * (start_minute + np.arange(rates_1min.size)))
    bins = labels.ceil(f"{interval_minutes}min")
    values = pd.Series(rates_1min, index=labels).groupby(bins).sum()
    single = pd.Series(single_1min, index=labels).groupby(bins).sum()
    values[values.round(8) == 0] = 0.0
    single[single.round(8) == 0] = 0.0
    return values, single
