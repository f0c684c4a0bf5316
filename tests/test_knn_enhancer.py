# -*- coding: utf-8 -*-
"""
Tests for KNN RSI Enhancer
==========================

- neutral result on empty windows
- exact blend for a single zero-distance neighbour
- adaptive thresholds bounded (OB >= 60, OS <= 40)
- smoothing post-filter alignment
"""
import numpy as np
import pytest

from src.features.extractor import FeatureVector, build_feature_series
from src.indicators.candles import Candle
from src.indicators.errors import DegenerateInputWarning
from src.indicators.math_utils import compute_rsi
from src.knn.enhancer import (
    KNNConfig,
    KNNResult,
    Neighbor,
    apply_smoothing,
    batch_knn_enhance,
    calculate_adaptive_thresholds,
    find_k_nearest_neighbors,
    knn_enhance,
    neutral_result,
)


def generate_candles(n: int = 300, seed: int = 42):
    np.random.seed(seed)
    close = 100 * np.exp(np.cumsum(np.random.randn(n) * 0.015))
    return [
        Candle(i * 60_000, close[i], close[i] * 1.002, close[i] * 0.998, close[i], 100.0 + i)
        for i in range(n)
    ]


def flat_candles(n: int = 20, price: float = 100.0):
    return [Candle(i, price, price, price, price, 100.0) for i in range(n)]


class TestKNNConfig:
    def test_defaults(self):
        cfg = KNNConfig()
        assert (cfg.neighbors, cfg.lookback_period, cfg.ml_weight, cfg.feature_count) == (5, 100, 0.4, 3)
        assert cfg.smoothing == "none"

    @pytest.mark.parametrize("kwargs", [
        {"neighbors": 0},
        {"lookback_period": 0},
        {"ml_weight": 1.5},
        {"feature_count": 6},
        {"smoothing": "gaussian"},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            KNNConfig(**kwargs)


class TestNeighbourSearch:
    def test_sorted_and_bounded(self):
        cfg = KNNConfig(neighbors=3, feature_count=2)
        hist = [FeatureVector(rsi=float(r), momentum=float(r % 7)) for r in range(20, 80, 3)]
        hist_rsi = [fv.rsi for fv in hist]

        nbs = find_k_nearest_neighbors(FeatureVector(rsi=50.0, momentum=2.0), hist, hist_rsi, cfg)
        assert len(nbs) == 3
        assert [nb.distance for nb in nbs] == sorted(nb.distance for nb in nbs)

    def test_shape_mismatch_skipped(self):
        cfg = KNNConfig(neighbors=3, feature_count=3)
        hist = [FeatureVector(rsi=50.0 + i) for i in range(10)]
        current = FeatureVector(rsi=50.0, momentum=1.0, volatility=2.0)
        assert find_k_nearest_neighbors(current, hist, [fv.rsi for fv in hist], cfg) == []

    def test_none_entries_skipped(self):
        cfg = KNNConfig(neighbors=5, feature_count=1)
        hist = [None, FeatureVector(rsi=40.0), None]
        nbs = find_k_nearest_neighbors(FeatureVector(rsi=41.0), hist, [0.0, 40.0, 0.0], cfg, start_index=10)
        assert len(nbs) == 1
        assert nbs[0].source_index == 11
        assert nbs[0].rsi_value == 40.0

    def test_only_trailing_lookback_used(self):
        cfg = KNNConfig(neighbors=50, lookback_period=10, feature_count=1)
        hist = [FeatureVector(rsi=float(i)) for i in range(40)]
        nbs = find_k_nearest_neighbors(FeatureVector(rsi=5.0), hist, list(range(40)), cfg)
        assert len(nbs) == 10
        assert min(nb.source_index for nb in nbs) == 30

    def test_zero_range_dimension_warns(self):
        cfg = KNNConfig(neighbors=5, feature_count=1)
        hist = [FeatureVector(rsi=50.0)] * 5
        with pytest.warns(DegenerateInputWarning):
            nbs = find_k_nearest_neighbors(FeatureVector(rsi=50.0), hist, [50.0] * 5, cfg)
        assert len(nbs) == 5
        assert all(nb.distance == 0.0 for nb in nbs)

    def test_exact_match_weight_is_one(self):
        cfg = KNNConfig(neighbors=1, feature_count=1)
        nbs = find_k_nearest_neighbors(FeatureVector(rsi=30.0), [FeatureVector(rsi=30.0), FeatureVector(rsi=60.0)],
                                       [30.0, 60.0], cfg)
        assert nbs[0].distance == 0.0
        assert nbs[0].weight == 1.0


class TestAdaptiveThresholds:
    def test_defaults_without_signal(self):
        nbs = [Neighbor(source_index=2, distance=0.1, rsi_value=50.0, weight=10.0)]
        assert calculate_adaptive_thresholds(nbs, flat_candles()) == (70.0, 30.0)

    def test_rally_marks_oversold(self):
        candles = flat_candles(20)
        candles[7] = Candle(7, 105.0, 105.0, 105.0, 105.0, 100.0)  # +5% five bars after index 2
        nbs = [Neighbor(source_index=2, distance=0.1, rsi_value=35.0, weight=10.0)]
        overbought, oversold = calculate_adaptive_thresholds(nbs, candles)
        assert oversold == pytest.approx(35.0)
        assert overbought == 70.0

    def test_drop_marks_overbought_floored(self):
        candles = flat_candles(20)
        candles[7] = Candle(7, 95.0, 95.0, 95.0, 95.0, 100.0)
        nbs = [Neighbor(source_index=2, distance=0.1, rsi_value=50.0, weight=10.0)]
        overbought, oversold = calculate_adaptive_thresholds(nbs, candles)
        assert overbought == 60.0
        assert oversold == 30.0

    def test_neighbour_without_future_ignored(self):
        nbs = [Neighbor(source_index=18, distance=0.1, rsi_value=10.0, weight=10.0)]
        assert calculate_adaptive_thresholds(nbs, flat_candles(20)) == (70.0, 30.0)


class TestKNNEnhance:
    def test_zero_neighbours_is_neutral(self):
        res = knn_enhance(57.25, FeatureVector(rsi=57.25), [], [], flat_candles(), KNNConfig())
        assert res == neutral_result(57.25)
        assert res.enhanced_rsi == 57.25
        assert res.confidence == 0.0
        assert res.effective_neighbors == 0

    def test_single_exact_neighbour_blend(self):
        cfg = KNNConfig(neighbors=1, ml_weight=0.4, feature_count=3)
        current = FeatureVector(rsi=40.0, momentum=2.0, volatility=3.0)
        hist = [
            FeatureVector(rsi=40.0, momentum=2.0, volatility=3.0),
            FeatureVector(rsi=70.0, momentum=-4.0, volatility=1.0),
            FeatureVector(rsi=20.0, momentum=5.0, volatility=6.0),
        ]
        hist_rsi = [62.0, 70.0, 20.0]

        res = knn_enhance(40.0, current, hist, hist_rsi, flat_candles(), cfg)

        assert res.enhanced_rsi == pytest.approx(0.6 * 40.0 + 0.4 * 62.0)
        assert res.effective_neighbors == 1
        assert res.knn_divergence == 0.0
        assert res.confidence == pytest.approx(100.0)

    def test_ml_weight_zero_keeps_rsi(self):
        cfg = KNNConfig(neighbors=2, ml_weight=0.0, feature_count=1)
        hist = [FeatureVector(rsi=10.0), FeatureVector(rsi=90.0)]
        res = knn_enhance(55.0, FeatureVector(rsi=55.0), hist, [10.0, 90.0], flat_candles(), cfg)
        assert res.enhanced_rsi == pytest.approx(55.0)


class TestBatch:
    def setup_method(self):
        self.candles = generate_candles(300)
        self.rsi = compute_rsi([c.close for c in self.candles], 14)

    def test_length_and_bounds(self):
        cfg = KNNConfig(lookback_period=50)
        features = build_feature_series(self.candles, self.rsi, cfg.feature_count, cfg.lookback_period)
        results = batch_knn_enhance(self.rsi, features, self.candles, cfg)

        assert len(results) == len(self.rsi) - 50
        for r in results:
            assert r.adaptive_overbought >= 60.0
            assert r.adaptive_oversold <= 40.0
            assert 0.0 <= r.enhanced_rsi <= 100.0
            assert 0.0 <= r.confidence <= 100.0

    def test_short_series_empty(self):
        cfg = KNNConfig(lookback_period=500)
        features = build_feature_series(self.candles, self.rsi, 3, 500)
        assert batch_knn_enhance(self.rsi, features, self.candles, cfg) == []

    @pytest.mark.parametrize("method", ["kalman", "alma", "double_ema"])
    def test_smoothed_batch_bounded(self, method):
        cfg = KNNConfig(lookback_period=50, smoothing=method)
        features = build_feature_series(self.candles, self.rsi, 3, 50)
        results = batch_knn_enhance(self.rsi, features, self.candles, cfg)
        assert len(results) == len(self.rsi) - 50
        assert all(0.0 <= r.enhanced_rsi <= 100.0 for r in results)


class TestSmoothing:
    def _results(self, values):
        return [neutral_result(v) for v in values]

    def test_none_passthrough(self):
        res = self._results([10.0, 20.0])
        assert apply_smoothing(res, "none") == res

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            apply_smoothing(self._results([1.0]), "median")

    def test_alma_tail_aligned(self):
        values = [float(v) for v in range(30)]
        out = apply_smoothing(self._results(values), "alma")
        assert len(out) == 30
        # first period - 1 keep raw values
        assert [r.enhanced_rsi for r in out[:13]] == values[:13]
        assert out[-1].enhanced_rsi != values[-1]

    def test_kalman_preserves_other_fields(self):
        res = [KNNResult(50.0 + i, 1.0, 3, 65.0, 35.0, 80.0) for i in range(10)]
        out = apply_smoothing(res, "kalman")
        assert all(r.adaptive_overbought == 65.0 and r.effective_neighbors == 3 for r in out)
        assert out[0].enhanced_rsi == 50.0

    def test_clamped(self):
        out = apply_smoothing(self._results([100.0] * 20), "double_ema")
        assert all(r.enhanced_rsi <= 100.0 for r in out)
