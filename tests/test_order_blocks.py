# -*- coding: utf-8 -*-
"""
Tests for Order Block Detector
==============================

- flat series → no pivots / no blocks
- single volume spike in a rising series → one bullish block
- mitigation is one-way (mitigation_time fixed by the first hit)
- retention caps active blocks per direction
"""
import numpy as np
import pytest

from src.indicators.candles import Candle
from src.indicators.errors import InsufficientDataError
from src.zone.order_blocks import (
    OrderBlock,
    OrderBlockConfig,
    analyze_order_blocks,
    calculate_order_block_stats,
    check_mitigation,
    create_order_block,
    detect_order_blocks,
    detect_volume_pivots,
    find_nearest_order_blocks,
    get_active_levels,
    local_trend_at,
    update_mitigation,
)


def flat_candles(n: int = 30):
    return [Candle(i * 1000, 100.0, 100.0, 100.0, 100.0, 100.0) for i in range(n)]


def rising_candles(n: int = 30, spike_at: int = 10, spike_volume: float = 1000.0):
    candles = []
    for i in range(n):
        base = 100.0 + i
        volume = spike_volume if i == spike_at else 100.0
        candles.append(Candle(i * 1000, base, base + 1.0, base - 1.0, base + 0.5, volume))
    return candles


def random_candles(n: int = 400, seed: int = 42):
    np.random.seed(seed)
    close = 100 * np.exp(np.cumsum(np.random.randn(n) * 0.01))
    open_ = np.r_[close[0], close[:-1]]
    high = np.maximum(open_, close) * (1 + np.abs(np.random.randn(n)) * 0.004)
    low = np.minimum(open_, close) * (1 - np.abs(np.random.randn(n)) * 0.004)
    volume = np.random.lognormal(4.0, 0.6, n)
    return [Candle(i * 1000, open_[i], high[i], low[i], close[i], volume[i]) for i in range(n)]


def _block(block_type="bullish", top=101.0, bottom=99.0, pivot_index=0):
    return OrderBlock(
        id=f"{block_type}_0_{pivot_index}",
        timestamp=0,
        pivot_index=pivot_index,
        top=top,
        bottom=bottom,
        average=(top + bottom) / 2,
        volume=500.0,
        type=block_type,
    )


class TestConfig:
    def test_min_candles(self):
        assert OrderBlockConfig(volume_pivot_length=5).min_candles == 20

    @pytest.mark.parametrize("kwargs", [
        {"volume_pivot_length": 0},
        {"bullish_blocks": 0},
        {"mitigation_method": "body"},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            OrderBlockConfig(**kwargs)


class TestDetection:
    def test_flat_series_no_blocks(self):
        det = detect_order_blocks(flat_candles(30))
        assert det.volume_pivots == []
        assert det.bullish_blocks == []
        assert det.bearish_blocks == []

    def test_single_spike_bullish_block(self):
        candles = rising_candles(30, spike_at=10)
        det = detect_order_blocks(candles, OrderBlockConfig(volume_pivot_length=3))

        assert det.volume_pivots == [10]
        assert det.bearish_blocks == []
        assert len(det.bullish_blocks) == 1

        ob = det.bullish_blocks[0]
        assert ob.pivot_index == 10
        assert ob.bottom == candles[10].low
        assert ob.top == pytest.approx((candles[10].high + candles[10].low) / 2)
        assert ob.is_active
        assert ob.id == f"bullish_{candles[10].timestamp}_10"

    def test_insufficient_data(self):
        with pytest.raises(InsufficientDataError):
            detect_order_blocks(flat_candles(15), OrderBlockConfig(volume_pivot_length=3))

    def test_pivots_strict(self):
        candles = flat_candles(20)
        candles[5] = Candle(5000, 100.0, 100.0, 100.0, 100.0, 500.0)
        candles[7] = Candle(7000, 100.0, 100.0, 100.0, 100.0, 500.0)
        # equal peaks inside each other's window are not strict maxima
        assert detect_volume_pivots(candles, 3) == []

    def test_retention_caps_active_blocks(self):
        cfg = OrderBlockConfig(volume_pivot_length=2, bullish_blocks=2, bearish_blocks=1)
        det = detect_order_blocks(random_candles(400), cfg)
        assert len(det.bullish_blocks) <= 2
        assert len(det.bearish_blocks) <= 1
        assert all(ob.is_active for ob in det.bullish_blocks + det.bearish_blocks)
        assert all(ob.top >= ob.bottom for ob in det.bullish_blocks + det.bearish_blocks + det.mitigated_blocks)

    def test_mitigation_after_pivot_only(self):
        candles = rising_candles(30, spike_at=10)
        # a deep wick before the pivot cannot mitigate it
        candles[5] = Candle(5000, 105.0, 106.0, 50.0, 105.5, 100.0)
        det = detect_order_blocks(candles, OrderBlockConfig(volume_pivot_length=3))
        assert len(det.bullish_blocks) == 1


class TestLocalTrend:
    def test_uptrend(self):
        assert local_trend_at(rising_candles(20), 10, 3) == "uptrend"

    def test_downtrend(self):
        candles = list(reversed(rising_candles(20)))
        assert local_trend_at(candles, 10, 3) == "downtrend"

    def test_ambiguous_defaults_to_uptrend(self):
        candles = flat_candles(20)
        assert local_trend_at(candles, 10, 3) == "uptrend"

    def test_bearish_block_shape(self):
        candles = rising_candles(20)
        ob = create_order_block(candles, 10, "bearish")
        assert ob.bottom == pytest.approx((candles[10].high + candles[10].low) / 2)
        assert ob.top == candles[10].high


class TestMitigation:
    def test_wick_vs_close(self):
        ob = _block("bullish", top=101.0, bottom=99.0)
        wick_only = Candle(1, 100.0, 100.5, 98.0, 100.0, 10.0)
        assert check_mitigation(ob, wick_only, "wick")
        assert not check_mitigation(ob, wick_only, "close")

    def test_bearish(self):
        ob = _block("bearish", top=101.0, bottom=99.0)
        assert check_mitigation(ob, Candle(1, 100.0, 102.0, 99.5, 100.0, 10.0), "wick")
        assert not check_mitigation(ob, Candle(1, 100.0, 100.5, 99.5, 100.0, 10.0), "wick")

    def test_one_way(self):
        ob = _block("bullish", pivot_index=0)
        candles = [
            Candle(0, 100.0, 101.0, 99.0, 100.0, 10.0),
            Candle(1000, 98.0, 98.5, 97.0, 98.0, 10.0),
            Candle(2000, 96.0, 96.5, 95.0, 96.0, 10.0),
        ]
        blocks, bull, bear = update_mitigation([ob], candles, 1, "wick")
        assert bull and not bear
        assert blocks[0].mitigated
        assert blocks[0].mitigation_time == 1000

        again, bull2, _ = update_mitigation(blocks, candles, 2, "wick")
        assert not bull2
        assert again[0].mitigated
        assert again[0].mitigation_time == 1000
        assert again[0].mitigate(5000).mitigation_time == 1000

    def test_invalid_block(self):
        with pytest.raises(ValueError):
            _block(top=98.0, bottom=99.0)


class TestLevelsAndStats:
    def test_active_levels_sorted(self):
        blocks = [
            _block("bullish", 101.0, 99.0),
            _block("bullish", 111.0, 109.0),
            _block("bearish", 131.0, 129.0),
            _block("bearish", 121.0, 119.0),
            _block("bullish", 91.0, 89.0).mitigate(1),
        ]
        levels = get_active_levels(blocks)
        assert levels.support == [110.0, 100.0]
        assert levels.resistance == [120.0, 130.0]

    def test_stats(self):
        stats = calculate_order_block_stats(
            [_block("bullish"), _block("bullish").mitigate(3)],
            [_block("bearish")],
        )
        assert stats.total_blocks == 3
        assert stats.active_bullish_blocks == 1
        assert stats.active_bearish_blocks == 1
        assert stats.mitigated_blocks == 1
        assert stats.average_volume == pytest.approx(500.0)

    def test_nearest(self):
        near = _block("bullish", 101.0, 99.0)
        far = _block("bearish", 121.0, 119.0)
        assert find_nearest_order_blocks([far, near], 102.0) == [near]
        assert find_nearest_order_blocks([near], 0.0) == []

    def test_analyze(self):
        report = analyze_order_blocks(rising_candles(30), OrderBlockConfig(volume_pivot_length=3))
        assert report.current_support == [pytest.approx(report.bullish_blocks[0].average)]
        assert report.current_resistance == []
        assert report.stats.total_blocks == 1
        assert report.config.volume_pivot_length == 3
