"""Tests for void detection, fixed-interval aggregation and gap filling."""

import numpy as np
import pandas as pd
import pytest

from hydrots.series import (
    AggregationMode,
    aggregate,
    aggregate_rainfall,
    average_discharge,
    detect_valid_intervals,
    detect_voids,
    fill_gaps,
    void_inventory,
)


def _series(values, start="2024-01-01", freq="5min"):
    index = pd.date_range(start, periods=len(values), freq=freq)
    return pd.Series(values, index=index, dtype=float)


class TestVoidDetection:
    """Test the void detector."""

    def test_no_voids(self):
        """Test that a complete series has a single valid interval."""
        series = _series([1.0, 2.0, 3.0])

        assert detect_voids(series) == []
        valid = detect_valid_intervals(series)
        assert len(valid) == 1
        assert valid[0].start == series.index[0]
        assert valid[0].end == series.index[-1]

    def test_void_spans_to_next_sample(self):
        """Test that a run of missing samples ends at the next timestamp."""
        series = _series([1.0, np.nan, np.nan, 4.0, 5.0])
        voids = detect_voids(series)

        assert len(voids) == 1
        assert voids[0].start == series.index[1]
        assert voids[0].end == series.index[3]
        assert voids[0].duration == pd.Timedelta(minutes=10)

    def test_voids_and_valid_intervals_tile_the_record(self):
        """Test that voids and valid intervals cover the record without overlap."""
        values = [1.0, np.nan, 2.0, 3.0, np.nan, np.nan, 4.0, np.nan]
        series = _series(values)
        spans = sorted(detect_voids(series) + detect_valid_intervals(series), key=lambda s: s.start)

        assert spans[0].start == series.index[0]
        assert spans[-1].end == series.index[-1]
        for previous, following in zip(spans[:-1], spans[1:]):
            assert previous.end == following.start

    def test_inventory(self):
        """Test the tabulated inventory of spans."""
        series = _series([1.0, np.nan, 2.0])
        inventory = void_inventory(series)

        assert list(inventory.columns) == ["kind", "start", "end", "duration"]
        assert list(inventory["kind"]) == ["data", "void", "data"]


class TestAggregation:
    """Test the fixed-interval aggregator."""

    def test_single_missing_value_is_interpolated(self):
        """Test that one missing average is resolved from its neighbours."""
        series = _series([1.0, 2.0, np.nan, 4.0, 5.0])
        result = average_discharge(series, 5)

        np.testing.assert_allclose(result.values.to_numpy(), [1.0, 2.0, 3.0, 4.0, 5.0])

    def test_missing_sum_stays_missing(self):
        """Test that a missing rainfall cell is not invented."""
        series = _series([1.0, 2.0, np.nan, 4.0, 5.0])
        result = aggregate_rainfall(series, 5)

        assert np.isnan(result.values.iloc[2])
        assert result.values.iloc[3] == 4.0

    def test_aggregation_at_native_interval_is_identity(self):
        """Test that a regular series aggregated at its own interval is unchanged."""
        series = _series([0.2, 0.0, 0.4, 1.2, 0.6, 0.2])

        for mode in (AggregationMode.SUM, AggregationMode.AVERAGE):
            result = aggregate(series, 5, mode)
            pd.testing.assert_index_equal(result.values.index, series.index, check_names=False)
            np.testing.assert_allclose(result.values.to_numpy(), series.to_numpy())

    def test_sum_to_coarser_interval(self):
        """Test summation into 10-minute buckets ending at the grid time."""
        series = _series([1.0, 1.0, 1.0, 1.0, 1.0], start="2024-01-01 00:05")
        result = aggregate_rainfall(series, 10)

        # buckets (00:00, 00:10], (00:10, 00:20], (00:20, 00:30]
        assert list(result.values.index) == list(
            pd.date_range("2024-01-01 00:10", periods=3, freq="10min")
        )
        np.testing.assert_allclose(result.values.to_numpy(), [2.0, 2.0, 1.0])
        np.testing.assert_allclose(result.cumulative.to_numpy(), [2.0, 4.0, 5.0])

    def test_average_to_coarser_interval(self):
        """Test averaging into hourly buckets."""
        series = _series([1.0, 3.0, 5.0, 7.0], start="2024-01-01 00:30", freq="30min")
        result = average_discharge(series, 60)

        np.testing.assert_allclose(result.values.to_numpy(), [2.0, 6.0])
        assert result.mean == pytest.approx(4.0)

    def test_long_void_is_masked(self):
        """Test that cells inside a void are masked and their raw value kept aside."""
        index = pd.DatetimeIndex(
            ["2024-01-01 00:05", "2024-01-01 00:10", "2024-01-01 01:00", "2024-01-01 01:05"]
        )
        series = pd.Series([1.0, np.nan, 2.0, 3.0], index=index)
        result = aggregate_rainfall(series, 5)

        inside = result.values.loc["2024-01-01 00:15":"2024-01-01 00:55"]
        assert inside.isna().all()
        assert result.void_values.loc[pd.Timestamp("2024-01-01 00:30")] == 0.0
        assert result.values.loc[pd.Timestamp("2024-01-01 01:00")] == 2.0

    def test_invalid_interval(self):
        """Test that non-positive intervals are rejected."""
        with pytest.raises(ValueError, match="interval_minutes must be positive"):
            aggregate(_series([1.0, 2.0]), 0)

    def test_empty_series(self):
        """Test that an empty series gives an empty result."""
        empty = pd.Series([], index=pd.DatetimeIndex([]), dtype=float)
        result = aggregate(empty, 5)

        assert result.values.empty
        assert np.isnan(result.mean)


class TestGapFilling:
    """Test cross-correlation gap filling."""

    def test_no_overlap_returns_unfilled(self):
        """Test that records without common timestamps are left unfilled."""
        a = _series([1.0, 2.0, 3.0], start="2024-01-01 00:00")
        b = _series([1.0, 2.0, 3.0], start="2024-01-02 00:00")
        result = fill_gaps(a, b)

        assert result.filled is False
        assert result.n_common == 0
        assert "no date coincidence" in result.message
        assert result.series_a.dropna().sum() == pytest.approx(6.0)
        assert result.series_b.dropna().sum() == pytest.approx(6.0)

    def test_proportional_records_are_filled(self):
        """Test that missing values are filled with the fitted proportion."""
        rain = np.array([0.2, 0.0, 0.4, 1.2, 0.6, 0.2, 0.0, 0.8, 0.4, 0.2])
        a = _series(rain.copy())
        b = _series(2.0 * rain)
        a.iloc[4] = np.nan
        b.iloc[7] = np.nan

        result = fill_gaps(a, b)

        assert result.filled is True
        assert result.slope == pytest.approx(2.0, rel=1e-3)
        assert result.r_value > 0.99
        assert result.series_a.iloc[4] == pytest.approx(0.6, rel=1e-3)
        assert result.series_b.iloc[7] == pytest.approx(1.6, rel=1e-3)

    def test_weak_correlation_is_refused(self):
        """Test that poorly correlated records are not filled."""
        a = _series([2.0, 2.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, np.nan])
        b = _series([0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 2.0, 2.0, 1.0])

        result = fill_gaps(a, b)

        assert result.filled is False
        assert result.r_value < 0.99
        assert np.isnan(result.series_a.iloc[8])

    def test_cutend_truncates_at_earlier_end(self):
        """Test that both records stop at the earlier last valid timestamp."""
        rain = np.array([0.2, 0.4, 0.6, 0.2, 0.8, 0.4])
        a = _series(rain)
        b = _series(np.concatenate((rain, [0.2, 0.2])))

        result = fill_gaps(a, b, cutend=True)

        assert result.series_a.index[-1] == a.index[-1]
        assert result.series_b.index[-1] == a.index[-1]

    def test_single_sample_record_is_left_unfilled(self):
        """Test that a record too short to have an interval is reported, not raised."""
        a = pd.Series([1.0], index=pd.DatetimeIndex(["2024-01-01 00:00"]))
        b = _series([1.0, 2.0, 3.0])

        result = fill_gaps(a, b)

        assert result.filled is False
        assert result.interval_minutes == 5
        assert "two timestamps" in result.message
        assert len(result.series_a) == 3
        assert result.series_a.iloc[0] == 1.0
        assert result.series_a.iloc[1:].isna().all()
        assert result.series_b.sum() == pytest.approx(6.0)

    def test_restore_native_fills_only_absent_timestamps(self):
        """Test that missing values recorded by a gauge are kept as missing."""
        rain = np.array([0.2, 0.0, 0.4, 1.2, 0.6, 0.2, 0.0, 0.8, 0.4, 0.2])
        a = _series(rain.copy())
        a.iloc[4] = np.nan
        absent = a.index[8]
        a = a.drop(absent)
        b = _series(2.0 * rain)

        restored = fill_gaps(a, b, restore_native=True)
        filled = fill_gaps(a, b)

        assert restored.filled is True
        assert np.isnan(restored.series_a.iloc[4])
        assert restored.series_a.loc[absent] == pytest.approx(0.4, rel=1e-3)
        assert filled.series_a.iloc[4] == pytest.approx(0.6, rel=1e-3)
