"""Monthly and annual aggregation of daily (or finer) series.

Rainfall is accumulated (``how="sum"``), discharge is averaged
(``how="mean"``). Months before the first and after the last recorded month
are left undefined in the year x month matrix.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import numpy as np
import pandas as pd

from ..utils.helpers import validate_series
from ..utils.logger import setup_logger

logger = setup_logger("monthly")

MONTHS = list(range(1, 13))


@dataclass
class MonthlySummary:
    """Monthly and annual statistics of a series.

    Attributes:
        monthly: One value per calendar month, indexed by the first day of the month
        annual: One value per year
        monthly_average: Sample-weighted average of each calendar month (1..12)
        annual_average: Mean of the annual values
        matrix: Year x month table
        annual_min: Annual minimum with its day of year (``value``, ``dayofyear``)
        annual_max: Annual maximum with its day of year
    """

    monthly: pd.Series
    annual: pd.Series
    monthly_average: pd.Series
    annual_average: float
    matrix: pd.DataFrame
    annual_min: pd.DataFrame
    annual_max: pd.DataFrame


def _annual_extreme(series: pd.Series, years: np.ndarray, which: str) -> pd.DataFrame:
    rows = {}
    for year in years:
        values = series[series.index.year == year].dropna()
        if values.empty:
            rows[year] = (np.nan, np.nan)
            continue
        when = values.idxmin() if which == "min" else values.idxmax()
        rows[year] = (values.loc[when], when.dayofyear)
    frame = pd.DataFrame.from_dict(rows, orient="index", columns=["value", "dayofyear"])
    frame.index.name = "year"
    return frame


def monthly_summary(
    series: pd.Series,
    how: Literal["sum", "mean"] = "sum",
    min_count: int = 0,
) -> MonthlySummary:
    """Aggregate a series by calendar month and year.

    Args:
        series: Time series (typically daily)
        how: ``"sum"`` for rainfall, ``"mean"`` for discharge
        min_count: Valid samples a month or year needs for a sum; below it the
            sum is NaN (0 keeps the NaN-ignoring sum)

    Returns:
        MonthlySummary
    """
    if how not in ("sum", "mean"):
        raise ValueError(f"how must be 'sum' or 'mean', got {how!r}")
    series = validate_series(series)
    if series.empty:
        raise ValueError("Cannot summarise an empty series")

    years = np.arange(series.index.year.min(), series.index.year.max() + 1)
    keys = [series.index.year, series.index.month]
    full_index = pd.MultiIndex.from_product([years, MONTHS])

    grouped = series.groupby(keys)
    if how == "sum":
        cells = grouped.sum(min_count=min_count)
        annual = series.groupby(series.index.year).sum(min_count=min_count)
        fill = 0.0 if min_count == 0 else np.nan
    else:
        cells = grouped.mean()
        annual = series.groupby(series.index.year).mean()
        fill = np.nan
    matrix = cells.reindex(full_index, fill_value=fill).unstack()
    sizes = grouped.size().reindex(full_index, fill_value=0).unstack()
    annual = annual.reindex(years, fill_value=fill)
    annual.index.name = "year"

    weights = sizes.where(matrix.notna(), 0)
    monthly_average = (matrix * weights).sum(axis=0) / sizes.sum(axis=0)
    monthly_average.index.name = "month"

    first_month, last_month = series.index[0].month, series.index[-1].month
    if first_month > 1:
        matrix.loc[years[0], 1 : first_month - 1] = np.nan
    if last_month < 12:
        matrix.loc[years[-1], last_month + 1 : 12] = np.nan
    matrix.index.name = "year"
    matrix.columns.name = "month"

    monthly = matrix.stack(future_stack=True)
    monthly.index = pd.DatetimeIndex(
        [pd.Timestamp(year=y, month=m, day=1) for y, m in monthly.index]
    )
    monthly.name = series.name

    return MonthlySummary(
        monthly=monthly,
        annual=annual,
        monthly_average=monthly_average,
        annual_average=float(annual.mean()),
        matrix=matrix,
        annual_min=_annual_extreme(series, years, "min"),
        annual_max=_annual_extreme(series, years, "max"),
    )


def to_hydrological_years(
    matrix: pd.DataFrame,
    start_month: int,
    first_year: int,
    last_year: int,
) -> tuple[pd.DataFrame, pd.Series]:
    """Rearrange a year x month table into hydrological years.

    A hydrological year runs from ``start_month`` of one calendar year to the
    month before ``start_month`` of the next and is labelled by the year in
    which it ends.

    Args:
        matrix: Year x month table as produced by ``monthly_summary``
        start_month: First month of the hydrological year (1..12)
        first_year: Calendar year in which the first hydrological year starts
        last_year: Calendar year in which the last hydrological year ends

    Returns:
        Tuple ``(monthly, annual)``: the hydrological year x month table (columns
        in hydrological order) and the NaN-ignoring annual totals
    """
    if not 1 <= start_month <= 12:
        raise ValueError(f"start_month must lie in 1..12, got {start_month}")
    # calendar years when the hydrological year starts in January
    shift = 1 if start_month > 1 else 0
    if last_year < first_year + shift:
        raise ValueError("last_year must be after first_year")

    end_years = np.arange(first_year + shift, last_year + 1)
    table = matrix.reindex(index=np.arange(first_year, last_year + 1), columns=MONTHS)
    head = table.loc[end_years - shift, start_month:12].to_numpy()
    tail = table.loc[end_years, 1 : start_month - 1].to_numpy()
    columns = list(range(start_month, 13)) + list(range(1, start_month))

    monthly = pd.DataFrame(np.hstack((head, tail)), index=end_years, columns=columns)
    monthly.index.name = "hydro_year"
    annual = monthly.sum(axis=1)
    annual.name = "annual"
    return monthly, annual
