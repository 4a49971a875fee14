"""
Tests for the median-of-window-means summariser.

Windows are half-open, so the sample sitting exactly at the end of the span
never contributes. Fixtures below add a trailing value-less sample where they
need every value to count.
"""

from __future__ import annotations

import math

import pytest

from floorprint.models import CaptureSummary, Sample
from floorprint.summarizer import summarize, with_ble_counts

from .helpers import make_ble_sample


class TestSummarizeDegenerate:
    """Inputs too small to window."""

    @pytest.mark.parametrize("count", [0, 1])
    def test_fewer_than_two_samples_gives_null_summary(self, count: int) -> None:
        samples = [Sample(t=0.0, lat=1.0, lon=2.0, pressure_kpa=101.3)][:count]

        summary = summarize(samples)

        assert summary == CaptureSummary(sample_count=count), (
            f"Expected an all-null summary with sample_count={count}, got {summary}. "
            f"A single reading has no span to window."
        )

    def test_zero_span_uses_minimum_window(self) -> None:
        samples = [Sample(t=5.0, pressure_kpa=100.0), Sample(t=5.0, pressure_kpa=102.0)]
        summary = summarize(samples)
        assert summary.pressure_kpa == pytest.approx(101.0)
        assert summary.sample_count == 2


class TestSummarizeWindowMedian:
    """Outer median over per-window means."""

    def test_outlier_window_is_rejected(self) -> None:
        # Two samples per window; window means are 1, 2, 3, 4, 100.
        samples = []
        for window, value in enumerate((1.0, 2.0, 3.0, 4.0, 100.0)):
            samples.append(Sample(t=float(window), pressure_kpa=value))
            samples.append(Sample(t=window + 0.5, pressure_kpa=value))
        samples.append(Sample(t=5.0))

        summary = summarize(samples, window_count=5)

        assert summary.pressure_kpa == pytest.approx(3.0), (
            f"Median of window means {{1,2,3,4,100}} should be 3, got {summary.pressure_kpa}. "
            f"The 100 window is a sustained outlier the outer median must reject."
        )
        assert summary.sample_count == 11

    def test_inner_mean_smooths_glitch(self) -> None:
        samples = [
            Sample(t=0.0, rel_alt_m=10.0),
            Sample(t=0.5, rel_alt_m=20.0),
            Sample(t=1.0),
        ]
        assert summarize(samples, window_count=1).rel_alt_m == pytest.approx(15.0)

    def test_even_number_of_windows_averages_middle_pair(self) -> None:
        samples = [Sample(t=float(t), lat=v) for t, v in enumerate((1.0, 2.0, 3.0, 10.0))]
        samples.append(Sample(t=4.0))
        assert summarize(samples, window_count=4).lat == pytest.approx(2.5)

    def test_empty_windows_do_not_contribute(self) -> None:
        # All values land in the first and last windows; the middle three are empty.
        samples = [
            Sample(t=0.0, h_acc_m=5.0),
            Sample(t=4.5, h_acc_m=7.0),
            Sample(t=5.0),
        ]
        assert summarize(samples, window_count=5).h_acc_m == pytest.approx(6.0)

    def test_final_sample_is_outside_last_window(self) -> None:
        samples = [
            Sample(t=0.0, pressure_kpa=1.0),
            Sample(t=1.0, pressure_kpa=1.0),
            Sample(t=2.0, pressure_kpa=99.0),
        ]
        summary = summarize(samples, window_count=2)
        assert summary.pressure_kpa == pytest.approx(1.0), (
            f"Got {summary.pressure_kpa}; the t=2.0 sample sits on the open end of [1, 2) "
            f"and must be excluded."
        )

    def test_missing_quantity_is_null_without_affecting_others(self) -> None:
        samples = [Sample(t=0.0, lat=50.0, lon=8.0), Sample(t=0.5, lat=50.0, lon=8.0), Sample(t=1.0)]
        summary = summarize(samples, window_count=2)
        assert summary.lat == pytest.approx(50.0)
        assert summary.lon == pytest.approx(8.0)
        assert summary.pressure_kpa is None
        assert summary.mag_norm_ut is None
        assert summary.h_acc_m is None


class TestSummarizeMagneticNorm:
    """The field norm is taken per sample, before any averaging."""

    def test_norm_is_per_sample_not_per_axis(self) -> None:
        samples = [
            Sample(t=0.0, mag_x=3.0, mag_y=4.0, mag_z=0.0),
            Sample(t=0.5, mag_x=0.0, mag_y=3.0, mag_z=4.0),
            Sample(t=1.0),
        ]
        summary = summarize(samples, window_count=1)

        axis_mean_norm = math.sqrt(1.5**2 + 3.5**2 + 2.0**2)
        assert summary.mag_norm_ut == pytest.approx(5.0), (
            f"Both samples have norm 5, summary gave {summary.mag_norm_ut}. "
            f"Averaging axes first would give {axis_mean_norm:.2f}."
        )

    def test_incomplete_axes_are_skipped(self) -> None:
        samples = [
            Sample(t=0.0, mag_x=3.0, mag_y=4.0, mag_z=0.0),
            Sample(t=0.5, mag_x=30.0, mag_y=40.0),
            Sample(t=1.0),
        ]
        assert summarize(samples, window_count=1).mag_norm_ut == pytest.approx(5.0)

    def test_ble_counters_are_left_at_zero(self) -> None:
        samples = [Sample(t=0.0, lat=1.0), Sample(t=1.0, lat=1.0)]
        summary = summarize(samples)
        assert summary.ble_unique_devices == 0
        assert summary.ble_sample_count == 0
        assert summary.ble_ibeacon_sample_count == 0


def test_with_ble_counts():
    ble = [
        make_ble_sample("a", -60),
        make_ble_sample("a", -62),
        make_ble_sample("b", -70, is_ibeacon=True, ibeacon_uuid="U", ibeacon_major=1, ibeacon_minor=2),
    ]
    base = CaptureSummary(lat=1.0, sample_count=10)

    summary = with_ble_counts(base, ble)

    assert summary.ble_unique_devices == 2
    assert summary.ble_sample_count == 3
    assert summary.ble_ibeacon_sample_count == 1
    assert summary.lat == 1.0
    assert summary.sample_count == 10
    assert base.ble_sample_count == 0, "with_ble_counts must not modify its input"
