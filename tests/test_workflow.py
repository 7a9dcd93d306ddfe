"""Tests for catchment processing and catchment pairing."""

import numpy as np
import pandas as pd
import pytest

from hydrots.config.settings import BaseFlowConfig, DiversionConfig, DroughtConfig, Settings
from hydrots.drought import compute_thresholds
from hydrots.series.aggregation import average_discharge
from hydrots.workflow import (
    catchment_base_flow,
    catchment_diversion,
    catchment_droughts,
    pair_catchments,
    process_catchment,
)


def _gauge():
    index = pd.DatetimeIndex(
        [
            "2024-01-01 00:00:00",
            "2024-01-01 12:00:00",
            "2024-01-01 12:03:00",
            "2024-01-01 18:00:00",
            "2024-01-01 23:55:00",
        ]
    )
    return pd.Series([0.0, 0.2, 0.2, 0.2, 0.0], index=index)


@pytest.fixture
def discharge():
    """Constant discharge every five minutes over one day."""
    index = pd.date_range("2024-01-01 00:00", "2024-01-02 00:00", freq="5min")
    return pd.Series(2.0, index=index)


class TestProcessCatchment:
    """Test the single-catchment table."""

    def test_single_gauge(self, discharge):
        """Test rainfall volume and discharge per unit area."""
        table = process_catchment(4.0, discharge, {"gauge_a": _gauge()})

        assert {"precipitation", "discharge", "gauge_a"} <= set(table.columns)
        assert np.nansum(table["precipitation"]) == pytest.approx(0.6, abs=1e-6)
        assert table["discharge"].dropna().eq(0.5).all()
        assert table.index[1] - table.index[0] == pd.Timedelta(minutes=5)

    def test_two_identical_gauges(self, discharge):
        """Test that identical gauges average to the same record."""
        table = process_catchment(4.0, discharge, {"gauge_a": _gauge(), "gauge_b": _gauge()})

        assert np.nansum(table["precipitation"]) == pytest.approx(0.6, abs=1e-6)
        np.testing.assert_allclose(
            table["gauge_a"].fillna(-1).to_numpy(), table["gauge_b"].fillna(-1).to_numpy()
        )

    def test_invalid_inputs(self, discharge):
        """Test that missing gauges and non-positive areas raise."""
        with pytest.raises(ValueError, match="At least one rain gauge"):
            process_catchment(4.0, discharge, {})
        with pytest.raises(ValueError, match="area must be positive"):
            process_catchment(0.0, discharge, {"gauge_a": _gauge()})


class TestPairCatchments:
    """Test the paired-catchment table."""

    def test_finer_table_is_harmonised(self, discharge):
        """Test that both catchments end up on the coarser grid."""
        table_1 = process_catchment(4.0, discharge, {"gauge_a": _gauge()})
        index = pd.date_range("2024-01-01 00:00", "2024-01-02 00:00", freq="10min")
        rain = np.zeros(len(index))
        rain[73] = 0.4
        rain[109] = 0.2
        table_2 = pd.DataFrame({"precipitation": rain, "discharge": 1.0}, index=index)

        paired = pair_catchments(table_1, table_2)

        assert list(paired.columns) == ["precipitation_1", "discharge_1", "precipitation_2", "discharge_2"]
        assert paired.index[1] - paired.index[0] == pd.Timedelta(minutes=10)
        assert paired["discharge_2"].dropna().eq(1.0).all()
        assert paired["discharge_1"].dropna().eq(0.5).all()

    def test_missing_columns(self, discharge):
        """Test that tables without the required columns raise."""
        table = pd.DataFrame({"precipitation": [0.0, 0.0]}, index=pd.date_range("2024-01-01", periods=2, freq="h"))
        with pytest.raises(ValueError, match="lacks columns"):
            pair_catchments(table, table)


class TestCatchmentDroughts:
    """Test the drought analysis driven by the settings."""

    def test_settings_select_threshold(self):
        """Test that the configured method and quantile reach the analysis."""
        index = pd.date_range("2018-01-01", "2020-12-31", freq="D")
        t = np.arange(len(index))
        discharge = pd.Series(10.0 + 5.0 * np.sin(2 * np.pi * t / 365.25), index=index)
        settings = Settings(drought=DroughtConfig(method="d30", quantile=10.0))

        analysis = catchment_droughts(discharge, settings)

        daily = average_discharge(discharge, 1440).values
        expected = compute_thresholds(daily, quantile=10.0).d30
        assert analysis.method == "d30"
        pd.testing.assert_series_equal(analysis.threshold, expected)


class TestCatchmentBaseFlow:
    """Test base flow separation driven by the settings."""

    @pytest.fixture
    def hydrograph(self):
        """Daily exponential recession interrupted by storm peaks."""
        t = np.arange(120)
        values = 10.0 * np.exp(-0.02 * t)
        for peak in (20, 55, 90):
            values[peak : peak + 5] += 20.0 * np.exp(-0.8 * np.arange(5))
        return pd.Series(values, index=pd.date_range("2021-01-01", periods=120, freq="D"))

    def test_filter_parameter_from_settings(self, hydrograph):
        """Test that the configured C factor is applied per day."""
        settings = Settings(base_flow=BaseFlowConfig(c_factor=0.05))
        result = catchment_base_flow(hydrograph, settings)

        assert result.method == "chapman"
        assert result.c == pytest.approx(0.05)

    def test_unknown_method(self, hydrograph):
        """Test that unknown methods raise."""
        with pytest.raises(ValueError, match="Unknown base flow method"):
            catchment_base_flow(hydrograph, method="lyne")


class TestCatchmentDiversion:
    """Test diversion driven by the settings."""

    @pytest.fixture
    def settings(self):
        """Single intake with two-day return flows."""
        return Settings(
            diversion=DiversionConfig(q_max=[1.5], q_min=[1.0], recovery_rate=0.5, residence_factors=[1.0, 1.0])
        )

    @pytest.fixture
    def flows(self):
        """Constant daily discharge."""
        return pd.Series(3.0, index=pd.date_range("2024-01-01", periods=10, freq="D"))

    def test_return_flows_follow_residence_factors(self, flows, settings):
        """Test the diverted flow and its delayed partial return."""
        result, modified = catchment_diversion(flows, settings)

        assert result.diverted.iloc[1] == 1.5
        assert modified.iloc[0] == pytest.approx(3.0)
        assert modified.iloc[1] == pytest.approx(1.875)
        assert modified.iloc[2] == pytest.approx(2.25)
        assert modified.iloc[-1] == pytest.approx(3.375)

    def test_flat_baseflow_matches_residence_factors(self, flows, settings):
        """Test that a flat base flow leaves the return distribution unchanged."""
        _, by_factors = catchment_diversion(flows, settings)
        _, by_baseflow = catchment_diversion(flows, settings, baseflow=pd.Series(0.5, index=flows.index))

        np.testing.assert_allclose(by_baseflow.to_numpy(), by_factors.to_numpy())
