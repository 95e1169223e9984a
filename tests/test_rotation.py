"""Tests for the relative-strength rotation signal."""

from __future__ import annotations

from datetime import timedelta

import pytest

from sectorscope.domain import Setup, Trend, Trigger
from sectorscope.quant_engine.rotation import (
    classify_setup,
    classify_trend,
    classify_trigger,
    compute_rotation_signal,
    moving_average,
    ratio_series,
    relative_strength_above_ma,
    trigger_confidence,
)


def _signal(make_points, sector_closes, zscore, config):
    sector = make_points(sector_closes)
    bench = make_points([100.0] * len(sector_closes))
    return compute_rotation_signal(sector, bench, zscore, "XLE", "SPY", config)


RISING_TAIL = [50.0] * 35 + [52.0, 54.0, 56.0, 58.0, 60.0]
FALLING_TAIL = [50.0] * 35 + [48.0, 46.0, 44.0, 42.0, 40.0]
STEP_THEN_FLAT = [50.0] * 30 + [60.0] * 10


class TestRatioSeries:
    """ratio_series walks both inputs once with a forward-only cursor."""

    def test_same_dates(self, make_points):
        ratios = ratio_series(make_points([10.0, 20.0]), make_points([5.0, 5.0]))
        assert [r.value for r in ratios] == [2.0, 4.0]

    def test_offset_dates_use_nearest(self, make_points):
        bench = make_points([100.0, 200.0, 400.0])
        sector = make_points([100.0, 100.0, 100.0], start=bench[0].date + timedelta(days=3))
        ratios = ratio_series(sector, bench)
        assert [r.value for r in ratios] == [1.0, 0.5, 0.25]

    def test_beyond_tolerance_dropped(self, make_points):
        bench = make_points([100.0])
        sector = make_points([100.0, 100.0, 100.0])
        ratios = ratio_series(sector, bench, tolerance_days=10)
        assert len(ratios) == 2

    def test_empty_denominator(self, make_points):
        assert ratio_series(make_points([1.0]), ()) == []


class TestClassification:
    @pytest.mark.parametrize(
        "z,setup", [(-1.01, Setup.WEAK), (-1.0, Setup.NEUTRAL), (1.0, Setup.NEUTRAL), (1.5, Setup.STRONG)]
    )
    def test_setup(self, z, setup):
        assert classify_setup(z) is setup

    def test_trend_flat_band(self):
        assert classify_trend(1.004, 1.0, 0.005) is Trend.FLAT
        assert classify_trend(1.01, 1.0, 0.005) is Trend.UP
        assert classify_trend(0.99, 1.0, 0.005) is Trend.DOWN

    def test_trigger_table(self):
        assert classify_trigger(Setup.WEAK, True, Trend.UP) is Trigger.BUY_ROTATION
        assert classify_trigger(Setup.STRONG, False, Trend.DOWN) is Trigger.SELL_ROTATION
        assert classify_trigger(Setup.WEAK, False, Trend.UP) is Trigger.WATCH
        assert classify_trigger(Setup.STRONG, True, Trend.DOWN) is Trigger.CAUTION
        assert classify_trigger(Setup.NEUTRAL, True, Trend.UP) is Trigger.WAIT

    def test_confidence_caps_at_100(self):
        assert trigger_confidence(-5.0, Setup.WEAK, True, Trigger.BUY_ROTATION) == 100.0

    def test_moving_average_needs_full_window(self):
        assert moving_average([1.0, 2.0], 3) is None
        assert moving_average([1.0, 2.0, 3.0, 4.0], 2) == 3.5


class TestComputeRotationSignal:
    """End-to-end rotation classification."""

    def test_buy_rotation(self, make_points, quant_config):
        signal = _signal(make_points, RISING_TAIL, -2.5, quant_config)
        assert signal.setup is Setup.WEAK
        assert signal.above_ma is True
        assert signal.trending is Trend.UP
        assert signal.trigger is Trigger.BUY_ROTATION
        assert signal.confidence == pytest.approx(95.0)
        assert signal.ratio == pytest.approx(0.6)
        assert signal.points == 40
        assert (signal.sector, signal.benchmark) == ("XLE", "SPY")

    def test_sell_rotation(self, make_points, quant_config):
        signal = _signal(make_points, FALLING_TAIL, 2.5, quant_config)
        assert signal.trigger is Trigger.SELL_ROTATION
        assert signal.confidence == pytest.approx(95.0)

    def test_watch_without_support(self, make_points, quant_config):
        signal = _signal(make_points, FALLING_TAIL, -1.5, quant_config)
        assert signal.trigger is Trigger.WATCH
        assert signal.confidence == 30.0

    def test_watch_with_support_scales_with_z(self, make_points, quant_config):
        signal = _signal(make_points, STEP_THEN_FLAT, -1.5, quant_config)
        assert signal.above_ma is True
        assert signal.trending is Trend.FLAT
        assert signal.trigger is Trigger.WATCH
        assert signal.confidence == pytest.approx(65.0)

    def test_caution(self, make_points, quant_config):
        signal = _signal(make_points, RISING_TAIL, 1.5, quant_config)
        assert signal.trigger is Trigger.CAUTION
        assert signal.confidence == 30.0

    def test_wait(self, make_points, quant_config):
        signal = _signal(make_points, RISING_TAIL, 0.2, quant_config)
        assert signal.trigger is Trigger.WAIT
        assert signal.confidence == 0.0

    def test_no_zscore_no_signal(self, make_points, quant_config):
        assert _signal(make_points, RISING_TAIL, None, quant_config) is None

    def test_too_few_points_no_signal(self, make_points, quant_config):
        assert _signal(make_points, [50.0] * 29, -2.5, quant_config) is None

    def test_relative_strength_above_ma(self, make_points, quant_config):
        bench = make_points([100.0] * 40)
        assert relative_strength_above_ma(make_points(RISING_TAIL), bench, quant_config) is True
        assert relative_strength_above_ma(make_points(FALLING_TAIL), bench, quant_config) is False
        assert relative_strength_above_ma(make_points([50.0] * 5), bench, quant_config) is None
