"""Tests for monthly summaries, flow duration curves, base flow and diversion."""

import numpy as np
import pandas as pd
import pytest

from hydrots.hydro import (
    BaseFlowSeparation,
    FlowDurationCurve,
    annual_fdcs,
    calculate_bfi,
    calculate_fdc_metrics,
    divert_flows,
    hydrological_periods,
    modified_flows,
    modified_flows_baseflow,
    monthly_summary,
    recession_constant,
    to_hydrological_years,
)


def _daily(values, start="2021-01-01"):
    index = pd.date_range(start, periods=len(values), freq="D")
    return pd.Series(values, index=index, dtype=float)


class TestMonthlySummary:
    """Test monthly and annual aggregation."""

    def test_monthly_sums(self):
        """Test totals of a constant daily series."""
        series = _daily(np.ones(365))
        summary = monthly_summary(series, how="sum")

        assert summary.matrix.loc[2021, 1] == 31
        assert summary.matrix.loc[2021, 2] == 28
        assert summary.annual.loc[2021] == 365
        assert len(summary.monthly) == 12

    def test_monthly_means(self):
        """Test averages and annual extremes."""
        values = np.ones(365)
        values[100] = 10.0
        summary = monthly_summary(_daily(values), how="mean")

        assert summary.matrix.loc[2021, 1] == pytest.approx(1.0)
        assert summary.annual_max.loc[2021, "value"] == 10.0
        assert summary.annual_max.loc[2021, "dayofyear"] == 101

    def test_partial_years_are_masked(self):
        """Test that months outside the record are undefined."""
        series = _daily(np.ones(120), start="2021-03-01")
        summary = monthly_summary(series, how="sum")

        assert np.isnan(summary.matrix.loc[2021, 1])
        assert np.isnan(summary.matrix.loc[2021, 12])
        assert summary.matrix.loc[2021, 3] == 31

    def test_invalid_aggregation(self):
        """Test that unknown aggregations raise."""
        with pytest.raises(ValueError, match="how must be"):
            monthly_summary(_daily(np.ones(10)), how="median")

    def test_hydrological_years(self):
        """Test rearranging into October to September years."""
        series = _daily(np.ones(731), start="2020-01-01")
        matrix = monthly_summary(series, how="sum").matrix
        monthly, annual = to_hydrological_years(matrix, start_month=10, first_year=2020, last_year=2021)

        assert list(monthly.index) == [2021]
        assert list(monthly.columns[:3]) == [10, 11, 12]
        assert annual.loc[2021] == 365


class TestFlowDurationCurve:
    """Test flow duration curves and their indices."""

    def test_plotting_positions(self):
        """Test Gringorten exceedance probabilities."""
        fdc = FlowDurationCurve(np.arange(1.0, 101.0))
        curve = fdc.get_curve_data()

        assert curve["exceedance_probability"].iloc[0] == pytest.approx(100 * (1 - 0.56 / 100.12))
        assert curve["discharge"].iloc[0] == 1.0
        assert curve["exceedance_probability"].is_monotonic_decreasing

    def test_slope_and_percentiles(self):
        """Test the 33-66 % slope in log space."""
        fdc = FlowDurationCurve(np.arange(1.0, 101.0))
        percentiles = fdc.calculate_flow_percentiles()

        assert percentiles["p50"] == pytest.approx(50.5)
        expected = (np.log10(percentiles["p33"]) - np.log10(percentiles["p66"])) / 0.33
        assert fdc.calculate_fdc_slope() == pytest.approx(expected)

    def test_slope_with_zero_flows(self):
        """Test that the slope is -inf when low flows are zero."""
        fdc = FlowDurationCurve(np.concatenate((np.zeros(50), np.ones(50))))

        assert fdc.calculate_fdc_slope() == -np.inf

    def test_regulation_index(self):
        """Test the regulation index bounds."""
        assert FlowDurationCurve(np.full(20, 3.0)).regulation_index() == pytest.approx(1.0)
        assert FlowDurationCurve(np.arange(1.0, 101.0)).regulation_index() < 1.0

    def test_summary_curve(self):
        """Test the 100-point curve."""
        curve = FlowDurationCurve(np.arange(1.0, 101.0)).summary_curve()

        assert len(curve) == 100
        assert curve.is_monotonic_increasing

    def test_metrics_and_missing_data(self):
        """Test that missing values are ignored and empty input raises."""
        metrics = calculate_fdc_metrics(_daily([1.0, np.nan, 2.0, 3.0]))

        assert metrics["p50"] == pytest.approx(2.0)
        assert "irh" in metrics
        with pytest.raises(ValueError, match="no valid data"):
            FlowDurationCurve(np.array([np.nan]))

    def test_annual_curves(self):
        """Test one curve per calendar year."""
        discharge = _daily(np.arange(1.0, 731.0), start="2021-01-01")
        curves = annual_fdcs(discharge)

        assert curves.shape == (100, 2)
        assert list(curves.columns) == [2021, 2022]

    def test_hydrological_periods(self):
        """Test periods labelled by their end year."""
        index = pd.date_range("2020-10-01", "2022-09-30", freq="D")
        periods = hydrological_periods(index, start_month=10)

        assert len(periods) == 2
        assert periods[0] == (pd.Timestamp("2020-10-01"), pd.Timestamp("2021-09-30"))


class TestBaseFlow:
    """Test base flow separation."""

    @pytest.fixture
    def hydrograph(self):
        """Exponential recession interrupted by storm peaks."""
        t = np.arange(120)
        values = 10.0 * np.exp(-0.02 * t)
        for peak in (20, 55, 90):
            values[peak : peak + 5] += 20.0 * np.exp(-0.8 * np.arange(5))
        return _daily(values)

    def test_recession_constant_of_pure_recession(self):
        """Test that a clean exponential recession gives its decay rate."""
        discharge = _daily(10.0 * np.exp(-0.05 * np.arange(60)))

        assert recession_constant(discharge) == pytest.approx(np.exp(-0.05), rel=1e-6)

    def test_no_recession(self):
        """Test that a rising record has no recession constant."""
        discharge = _daily(np.arange(1.0, 61.0))

        assert np.isnan(recession_constant(discharge))
        assert np.isnan(calculate_bfi(discharge))

    def test_chapman_filter(self, hydrograph):
        """Test that base flow stays below discharge."""
        separation = BaseFlowSeparation()
        result = separation.chapman(hydrograph)

        assert 0.0 < result.k < 1.0
        assert (result.baseflow <= hydrograph + 1e-12).all()
        assert 0.0 < result.bfi <= 1.0
        assert result.stormflow.min() >= -1e-12

    def test_filter_variants(self, hydrograph):
        """Test the one-, two- and three-parameter filters."""
        variants = BaseFlowSeparation().filter_variants(hydrograph)

        assert list(variants.columns) == ["one_parameter", "two_parameter", "three_parameter"]
        assert (variants.le(hydrograph + 1e-12, axis=0)).all().all()

    def test_uk_minima(self):
        """Test that block minima of a flat base flow give that base flow."""
        values = np.ones(100)
        values[::3] = 5.0
        discharge = _daily(values)
        result = BaseFlowSeparation().uk_minima(discharge)

        np.testing.assert_allclose(result.baseflow.to_numpy(), 1.0)
        assert 0.0 < result.bfi < 1.0

    def test_baseflow_stats(self, hydrograph):
        """Test the summary statistics."""
        stats = BaseFlowSeparation().calculate_baseflow_stats(hydrograph)

        assert stats["quickflow_ratio"] == pytest.approx(1.0 - stats["bfi"])
        assert stats["baseflow_min"] <= stats["baseflow_mean"] <= stats["baseflow_max"]

    def test_unknown_method(self, hydrograph):
        """Test that unknown methods raise."""
        with pytest.raises(ValueError, match="Unknown base flow method"):
            BaseFlowSeparation().separate(hydrograph, method="lyne")


class TestDiversion:
    """Test diversion and modified hydrographs."""

    def test_diversion_inside_season(self):
        """Test diverted and remaining flows with a single combination."""
        index = pd.date_range("2024-01-01", periods=48, freq="h")
        discharge = pd.Series(3.0, index=index)
        result = divert_flows(discharge, q_min=1.0, q_max=1.5)

        assert result.diverted.iloc[0] == 0.0
        assert result.diverted.iloc[-1] == 0.0
        assert (result.diverted.iloc[1:-1] == 1.5).all()
        np.testing.assert_allclose(result.diverted + result.remaining, discharge)
        expected = 1.5 * 46 * 3600 / 1e6
        assert result.volumes.iloc[0, 0] == pytest.approx(expected)

    def test_combinations(self):
        """Test one volume column per capacity and residual flow."""
        index = pd.date_range("2024-01-01", periods=10, freq="D")
        discharge = pd.Series(3.0, index=index)
        result = divert_flows(discharge, q_min=[0.0, 1.0], q_max=[1.0, 2.0])

        assert list(result.volumes.columns) == [(1.0, 0.0), (2.0, 0.0), (1.0, 1.0), (2.0, 1.0)]
        assert result.diverted.iloc[5] == 2.0

    def test_wet_seasons(self):
        """Test that flow is diverted only strictly inside wet seasons."""
        index = pd.date_range("2024-01-01", periods=30, freq="D")
        discharge = pd.Series(2.0, index=index)
        season = (pd.Timestamp("2024-01-10"), pd.Timestamp("2024-01-20"))
        result = divert_flows(discharge, q_max=1.0, wet_seasons=[season])

        assert result.diverted.loc[season[0]] == 0.0
        assert result.diverted.loc[pd.Timestamp("2024-01-15")] == 1.0
        assert result.diverted.sum() == 9.0
        assert result.volumes.index.names == ["start_year", "end_year"]

    def test_modified_flows(self):
        """Test delayed return of the recovered water."""
        index = pd.date_range("2024-01-01", periods=5, freq="D")
        remaining = pd.Series(0.0, index=index)
        diverted = pd.Series([1.0, 0.0, 0.0, 0.0, 0.0], index=index)
        modified = modified_flows(remaining, diverted, lags=[0.5, 0.5], recovery_rate=0.5)

        np.testing.assert_allclose(modified.to_numpy(), [0.25, 0.25, 0.0, 0.0, 0.0])

    def test_modified_flows_with_flat_baseflow(self):
        """Test that a flat base flow leaves the residence times unchanged."""
        index = pd.date_range("2024-01-01", periods=6, freq="D")
        remaining = pd.Series(1.0, index=index)
        diverted = pd.Series([2.0, 0.0, 1.0, 0.0, 0.0, 0.0], index=index)
        baseflow = pd.Series(0.5, index=index)

        by_baseflow = modified_flows_baseflow(remaining, diverted, baseflow, [1.0, 2.0, 1.0])
        by_lags = modified_flows(remaining, diverted, lags=[0.25, 0.5, 0.25])

        np.testing.assert_allclose(by_baseflow.to_numpy(), by_lags.to_numpy())

    def test_recovery_rate_validation(self):
        """Test that recovery rates outside [0, 1] raise."""
        index = pd.date_range("2024-01-01", periods=3, freq="D")
        flows = pd.Series(1.0, index=index)
        with pytest.raises(ValueError, match="recovery_rate"):
            modified_flows(flows, flows, lags=[1.0], recovery_rate=1.5)


class TestCalendarHydrologicalYears:
    """Test hydrological years starting in January."""

    def test_january_start_keeps_calendar_years(self):
        """Test that a January start labels each year by itself."""
        values = np.concatenate((np.ones(365), np.full(365, 2.0)))
        matrix = monthly_summary(_daily(values), how="sum").matrix
        monthly, annual = to_hydrological_years(matrix, start_month=1, first_year=2021, last_year=2022)

        assert list(monthly.index) == [2021, 2022]
        assert annual.loc[2021] == 365
        assert annual.loc[2022] == 730
