"""Catchment-level processing of rainfall and discharge records.

``process_catchment`` turns the raw tipping-bucket records of one or more
gauges and the discharge record of a catchment into a single regular table;
``pair_catchments`` brings two such tables to a common resolution and fills
the rainfall of each from the other. The remaining entry points run the
drought, base flow and diversion analyses of a discharge record with the
parameters held in ``Settings``.
"""

from __future__ import annotations

from itertools import combinations

import numpy as np
import pandas as pd

from .config.settings import Settings, default_settings
from .drought.analysis import DroughtAnalysis, drought_analysis
from .hydro.base_flow import BaseFlowResult, BaseFlowSeparation
from .hydro.diversion import DiversionResult, divert_flows, modified_flows, modified_flows_baseflow
from .rainfall.depure import depure_tips
from .rainfall.interpolation import aggregate_tips
from .series.aggregation import aggregate_rainfall, average_discharge
from .series.gap_fill import fill_gaps
from .utils.helpers import median_interval_minutes, validate_series
from .utils.logger import setup_logger

logger = setup_logger("workflow")


def _compile(columns: dict[str, pd.Series], interval: int) -> pd.DataFrame:
    """Place series on one regular grid spanning all of them."""
    present = [s for s in columns.values() if not s.empty]
    grid = pd.date_range(
        min(s.index[0] for s in present),
        max(s.index[-1] for s in present),
        freq=f"{interval}min",
    )
    return pd.DataFrame({name: s.reindex(grid) for name, s in columns.items()}, index=grid)


def process_catchment(
    area: float,
    discharge: pd.Series,
    gauges: dict[str, pd.Series],
    settings: Settings | None = None,
    n_workers: int | None = None,
    show_progress: bool = False,
) -> pd.DataFrame:
    """Build the regular precipitation and discharge table of a catchment.

    Steps: depure every gauge, rebuild each one at the discharge resolution
    with the spline aggregation, fill the gaps of every pair of gauges, take
    the mean of the filled records as catchment precipitation, average the
    discharge and normalise it by the catchment area.

    Args:
        area: Catchment area (km2)
        discharge: Discharge record
        gauges: Raw tip records by gauge name
        settings: Processing settings
        n_workers: Worker processes for the spline aggregation
        show_progress: Show progress bars

    Returns:
        DataFrame with ``precipitation``, ``discharge`` (per unit area) and
        one column per gauge holding its filled record

    Raises:
        ValueError: If no gauge is given or the area is not positive
    """
    settings = settings or default_settings
    if not gauges:
        raise ValueError("At least one rain gauge record is required")
    if area <= 0:
        raise ValueError("Catchment area must be positive")
    discharge = validate_series(discharge, "discharge")
    rain = settings.rainfall

    logger.info(f"Processing catchment with {len(gauges)} rain gauge(s)")
    interval = settings.aggregation.interval_minutes or median_interval_minutes(discharge.index)
    logger.info(f"Working resolution: {interval} min")

    precipitation: dict[str, pd.Series] = {}
    for name, tips in gauges.items():
        depured = depure_tips(tips, rain.depure_seconds)
        result = aggregate_tips(
            depured,
            interval_minutes=interval,
            bucket_volume=rain.bucket_volume,
            min_intensity=rain.min_intensity,
            max_intensity=rain.max_intensity,
            nominal_intensity=rain.nominal_intensity,
            mintip=rain.mintip,
            halves=rain.halves,
            max_bias=rain.max_bias,
            max_iterations=rain.max_iterations,
            n_workers=n_workers,
            show_progress=show_progress,
        )
        precipitation[name] = result.values.rename(name)

    if len(precipitation) > 1:
        filled: dict[str, list[pd.Series]] = {name: [] for name in precipitation}
        for name_a, name_b in combinations(precipitation, 2):
            logger.info(f"Filling gaps between {name_a} and {name_b}")
            pair = fill_gaps(
                precipitation[name_a],
                precipitation[name_b],
                cutend=settings.gap_fill.cutend,
                restore_native=settings.gap_fill.restore_native,
                min_correlation=settings.gap_fill.min_correlation,
            )
            filled[name_a].append(pair.series_a)
            filled[name_b].append(pair.series_b)
        gauge_columns = {
            name: pd.concat(versions, axis=1).mean(axis=1).rename(name) for name, versions in filled.items()
        }
        # catchment rainfall is the mean of every filled pair member
        every_version = pd.concat([s for versions in filled.values() for s in versions], axis=1)
        mean_precipitation = every_version.mean(axis=1)
    else:
        gauge_columns = dict(precipitation)
        mean_precipitation = next(iter(precipitation.values()))

    flow = average_discharge(discharge, interval).values
    table = _compile(
        {"precipitation": mean_precipitation, "discharge": flow / area, **gauge_columns},
        interval,
    )
    logger.info(
        f"Catchment table from {table.index[0]} to {table.index[-1]}: "
        f"{np.nansum(table['precipitation']):.1f} mm of rainfall, "
        f"{int(table['discharge'].isna().sum())} missing discharge values"
    )
    return table


def _harmonise(table: pd.DataFrame, interval: int) -> pd.DataFrame:
    precipitation = aggregate_rainfall(table["precipitation"], interval).values
    flow = average_discharge(table["discharge"], interval).values
    return _compile({"precipitation": precipitation, "discharge": flow}, interval)


def pair_catchments(
    table_1: pd.DataFrame,
    table_2: pd.DataFrame,
    settings: Settings | None = None,
) -> pd.DataFrame:
    """Bring two catchment tables to a common grid and fill their rainfall.

    The finer table is re-aggregated to the coarser resolution (rainfall
    summed, discharge averaged), then the two precipitation records are
    filled from each other.

    Args:
        table_1: Table with ``precipitation`` and ``discharge`` columns
        table_2: Table of the paired catchment

    Returns:
        DataFrame with ``precipitation_1``, ``discharge_1``,
        ``precipitation_2`` and ``discharge_2``
    """
    settings = settings or default_settings
    for table in (table_1, table_2):
        missing = {"precipitation", "discharge"} - set(table.columns)
        if missing:
            raise ValueError(f"Catchment table lacks columns: {sorted(missing)}")

    logger.info("Processing paired catchments")
    scale_1 = median_interval_minutes(table_1.index)
    scale_2 = median_interval_minutes(table_2.index)
    interval = max(scale_1, scale_2)
    if scale_1 < interval:
        table_1 = _harmonise(table_1, interval)
    elif scale_2 < interval:
        table_2 = _harmonise(table_2, interval)

    pair = fill_gaps(
        table_1["precipitation"],
        table_2["precipitation"],
        cutend=settings.gap_fill.cutend,
        restore_native=settings.gap_fill.restore_native,
        min_correlation=settings.gap_fill.min_correlation,
    )
    paired = _compile(
        {
            "precipitation_1": pair.series_a,
            "discharge_1": table_1["discharge"],
            "precipitation_2": pair.series_b,
            "discharge_2": table_2["discharge"],
        },
        interval,
    )
    logger.info(f"Paired table at {interval} min, rainfall filled: {pair.filled}")
    return paired


def catchment_droughts(discharge: pd.Series, settings: Settings | None = None) -> DroughtAnalysis:
    """Drought analysis of the daily average of a discharge record.

    Args:
        discharge: Discharge record of any regular resolution
        settings: Settings providing the threshold method, quantile,
            smoothing, pooling and minimum duration

    Returns:
        DroughtAnalysis
    """
    settings = settings or default_settings
    daily = average_discharge(validate_series(discharge, "discharge"), 1440).values
    logger.info(f"Drought analysis of {len(daily)} daily values")
    return drought_analysis(daily, **settings.drought.model_dump())


def catchment_base_flow(
    discharge: pd.Series,
    settings: Settings | None = None,
    method: str = "chapman",
) -> BaseFlowResult:
    """Base flow separation with the configured filter parameters.

    ``method`` is ``"chapman"`` (two-parameter filter) or ``"uk"`` (smoothed
    block minima).
    """
    settings = settings or default_settings
    separation = BaseFlowSeparation(**settings.base_flow.model_dump())
    if method == "chapman":
        return separation.chapman(discharge)
    if method == "uk":
        return separation.uk_minima(discharge)
    raise ValueError(f"Unknown base flow method: {method}")


def catchment_diversion(
    discharge: pd.Series,
    settings: Settings | None = None,
    wet_seasons: list[tuple[pd.Timestamp, pd.Timestamp]] | None = None,
    baseflow: pd.Series | None = None,
) -> tuple[DiversionResult, pd.Series]:
    """Divert a discharge record and rebuild the hydrograph with return flows.

    The recovered water returns following the configured residence factors,
    weighted by ``baseflow`` when one is given.

    Args:
        discharge: Discharge record (m3/s)
        settings: Settings providing capacities, residual flows, recovery
            rate and residence factors
        wet_seasons: ``(start, end)`` pairs; the whole record when omitted
        baseflow: Base flow of the natural hydrograph, aligned with ``discharge``

    Returns:
        Tuple of (DiversionResult, modified discharge series). The
        modified series follows the last capacity and residual flow pair.
    """
    settings = settings or default_settings
    config = settings.diversion
    result = divert_flows(discharge, config.q_min, config.q_max, wet_seasons)
    if baseflow is None:
        factors = np.asarray(config.residence_factors, dtype=float)
        modified = modified_flows(result.remaining, result.diverted, factors / factors.sum(), config.recovery_rate)
    else:
        modified = modified_flows_baseflow(
            result.remaining,
            result.diverted,
            baseflow.reindex(result.remaining.index),
            config.residence_factors,
            config.recovery_rate,
        )
    return result, modified
