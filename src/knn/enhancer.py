# -*- coding: utf-8 -*-
"""
KNN RSI Enhancer
================

Non-parametric pattern matching over a sliding window of historical feature
vectors. Nothing is trained or stored: every bar looks up its nearest
neighbours in the trailing `lookback_period` bars.

Pipeline (per bar):
1. Min-max normalise every feature dimension over the window (+ current bar)
2. Euclidean distance current → each historical vector of the same shape
3. Stable sort by distance, keep `neighbors` closest
4. Inverse-distance weights (weight = 1 below WEIGHT_DISTANCE_FLOOR)
5. enhanced = (1 - ml_weight) * rsi + ml_weight * weighted neighbour RSI
6. Adaptive OB/OS thresholds from the neighbours' 5-bar forward returns
7. Confidence from neighbour similarity and neighbour count

Usage:
```python
from src.knn import KNNConfig, batch_knn_enhance

cfg = KNNConfig(neighbors=5, lookback_period=100, ml_weight=0.4, feature_count=3)
results = batch_knn_enhance(rsi, features, candles, cfg)
```
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import List, Literal, Optional, Sequence, Tuple

import numpy as np

from src.features.extractor import MAX_FEATURE_COUNT, MIN_FEATURE_COUNT, FeatureVector
from src.indicators.candles import Candle
from src.indicators.math_utils import (
    ArrayLike,
    alma,
    double_ema,
    euclidean_distance,
    kalman_filter,
    warn_degenerate,
)

logger = logging.getLogger(__name__)


SmoothingMethod = Literal["none", "kalman", "alma", "double_ema"]
SMOOTHING_METHODS: Tuple[str, ...] = ("none", "kalman", "alma", "double_ema")

# Inverse-distance weighting floor (exact / near-exact matches get weight 1).
WEIGHT_DISTANCE_FLOOR = 1e-4

# Adaptive threshold parameters
FORWARD_BARS = 5
FORWARD_RETURN_THRESHOLD = 0.02
DEFAULT_OVERBOUGHT = 70.0
DEFAULT_OVERSOLD = 30.0
OVERBOUGHT_FLOOR = 60.0
OVERSOLD_CEILING = 40.0

# Post-filter parameters
KALMAN_PROCESS_NOISE = 0.01
KALMAN_MEASUREMENT_NOISE = 0.1
ALMA_PERIOD = 14
ALMA_OFFSET = 0.85
ALMA_SIGMA = 6.0
DOUBLE_EMA_PERIOD = 10


# =============================================================================
# Types
# =============================================================================

@dataclass
class KNNConfig:
    """KNN 파라미터"""
    neighbors: int = 5
    lookback_period: int = 100
    ml_weight: float = 0.4
    feature_count: int = 3
    smoothing: SmoothingMethod = "none"

    def __post_init__(self):
        if self.neighbors < 1:
            raise ValueError(f"neighbors must be >= 1, got {self.neighbors}")
        if self.lookback_period < 1:
            raise ValueError(f"lookback_period must be >= 1, got {self.lookback_period}")
        if not 0.0 <= self.ml_weight <= 1.0:
            raise ValueError(f"ml_weight must be in [0, 1], got {self.ml_weight}")
        if not MIN_FEATURE_COUNT <= self.feature_count <= MAX_FEATURE_COUNT:
            raise ValueError(
                f"feature_count must be in [{MIN_FEATURE_COUNT}, {MAX_FEATURE_COUNT}], "
                f"got {self.feature_count}"
            )
        if self.smoothing not in SMOOTHING_METHODS:
            raise ValueError(f"Unknown smoothing '{self.smoothing}'. Valid: {SMOOTHING_METHODS}")


@dataclass(frozen=True)
class Neighbor:
    source_index: int  # candle index of the historical bar
    distance: float
    rsi_value: float
    weight: float


@dataclass(frozen=True)
class KNNResult:
    enhanced_rsi: float
    knn_divergence: float
    effective_neighbors: int
    adaptive_overbought: float
    adaptive_oversold: float
    confidence: float


def neutral_result(rsi: float) -> KNNResult:
    """Result used when no neighbour is available: input RSI, default thresholds, zero confidence."""
    return KNNResult(
        enhanced_rsi=rsi,
        knn_divergence=0.0,
        effective_neighbors=0,
        adaptive_overbought=DEFAULT_OVERBOUGHT,
        adaptive_oversold=DEFAULT_OVERSOLD,
        confidence=0.0,
    )


# =============================================================================
# Neighbour search
# =============================================================================

def _normalize_window(current: np.ndarray, history: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Per-dimension min-max over history + current. Zero-range dimensions map to 0.5."""
    stacked = np.vstack([history, current[None, :]])
    lo = stacked.min(axis=0)
    rng = stacked.max(axis=0) - lo
    flat = rng == 0
    warn_degenerate(int(flat.sum()), len(rng), "zero-range feature dimensions mapped to 0.5")

    def _scale(x: np.ndarray) -> np.ndarray:
        out = np.full(x.shape, 0.5)
        np.divide(x - lo, rng, out=out, where=~flat)
        return out

    return _scale(current), _scale(history)


def find_k_nearest_neighbors(
    current: FeatureVector,
    historical: Sequence[Optional[FeatureVector]],
    historical_rsi: ArrayLike,
    config: KNNConfig,
    start_index: int = 0,
) -> List[Neighbor]:
    """
    K nearest historical bars by normalised feature distance

    Args:
        current: feature vector of the bar being enhanced
        historical: window of past vectors (None / shape mismatch entries skipped)
        historical_rsi: RSI aligned with `historical`
        config: KNNConfig
        start_index: candle index of historical[0]

    Returns:
        up to config.neighbors Neighbors, closest first
    """
    rsi_hist = np.asarray(historical_rsi, dtype=np.float64)
    size = min(len(historical), len(rsi_hist))
    if size == 0:
        return []

    # keep the most recent lookback_period bars
    first = max(0, size - config.lookback_period)

    shape = current.active_fields()
    cur_vec = current.as_array()
    if not np.all(np.isfinite(cur_vec)):
        return []

    positions: List[int] = []
    rows: List[np.ndarray] = []
    for k in range(first, size):
        fv = historical[k]
        if fv is None or fv.active_fields() != shape or not np.isfinite(rsi_hist[k]):
            continue
        vec = fv.as_array()
        if not np.all(np.isfinite(vec)):
            continue
        positions.append(k)
        rows.append(vec)

    if not rows:
        return []

    cur_norm, hist_norm = _normalize_window(cur_vec, np.vstack(rows))

    candidates = [
        (k, euclidean_distance(cur_norm, hist_norm[row]))
        for row, k in enumerate(positions)
    ]
    candidates.sort(key=lambda c: c[1])

    return [
        Neighbor(
            source_index=start_index + k,
            distance=dist,
            rsi_value=float(rsi_hist[k]),
            weight=1.0 if dist < WEIGHT_DISTANCE_FLOOR else 1.0 / dist,
        )
        for k, dist in candidates[:config.neighbors]
    ]


def calculate_adaptive_thresholds(
    neighbors: Sequence[Neighbor],
    candles: Sequence[Candle],
    default_overbought: float = DEFAULT_OVERBOUGHT,
    default_oversold: float = DEFAULT_OVERSOLD,
) -> Tuple[float, float]:
    """
    Adaptive overbought / oversold from what followed each neighbour

    A neighbour followed by a > +2% move over FORWARD_BARS marks its RSI as an
    oversold candidate, a < -2% move as an overbought candidate.

    Returns:
        (overbought >= 60, oversold <= 40)
    """
    overbought_pool: List[float] = []
    oversold_pool: List[float] = []

    for nb in neighbors:
        future_idx = nb.source_index + FORWARD_BARS
        if nb.source_index < 0 or future_idx >= len(candles):
            continue
        price_now = candles[nb.source_index].close
        if price_now == 0:
            continue
        forward_return = (candles[future_idx].close - price_now) / price_now

        if forward_return > FORWARD_RETURN_THRESHOLD:
            oversold_pool.append(nb.rsi_value)
        elif forward_return < -FORWARD_RETURN_THRESHOLD:
            overbought_pool.append(nb.rsi_value)

    overbought = float(np.mean(overbought_pool)) if overbought_pool else default_overbought
    oversold = float(np.mean(oversold_pool)) if oversold_pool else default_oversold

    return max(overbought, OVERBOUGHT_FLOOR), min(oversold, OVERSOLD_CEILING)


# =============================================================================
# Enhancement
# =============================================================================

def knn_enhance(
    rsi: float,
    features: FeatureVector,
    historical_features: Sequence[Optional[FeatureVector]],
    historical_rsi: ArrayLike,
    candles: Sequence[Candle],
    config: KNNConfig,
    start_index: int = 0,
) -> KNNResult:
    """
    Enhance one RSI value with its nearest historical neighbours

    Args:
        rsi: current RSI
        features: current feature vector
        historical_features: window of past vectors (<= lookback_period used)
        historical_rsi: RSI aligned with historical_features
        candles: full candle series (forward returns for thresholds)
        config: KNNConfig
        start_index: candle index of historical_features[0]

    Returns:
        KNNResult. Never raises on an empty window: zero neighbours give the
        neutral result (enhanced = rsi, confidence = 0).
    """
    neighbors = find_k_nearest_neighbors(
        features, historical_features, historical_rsi, config, start_index=start_index,
    )
    if not neighbors:
        return neutral_result(rsi)

    weights = np.array([nb.weight for nb in neighbors])
    neighbor_rsi = np.array([nb.rsi_value for nb in neighbors])
    distances = np.array([nb.distance for nb in neighbors])

    weighted_rsi = float(np.dot(weights, neighbor_rsi) / weights.sum())
    enhanced = (1.0 - config.ml_weight) * rsi + config.ml_weight * weighted_rsi
    enhanced = min(100.0, max(0.0, enhanced))

    avg_distance = float(distances.mean())
    max_distance = float(distances.max())

    overbought, oversold = calculate_adaptive_thresholds(neighbors, candles)

    similarity = 1.0 - avg_distance / max_distance if max_distance > 0 else 1.0
    count_factor = min(len(neighbors) / config.neighbors, 1.0)

    return KNNResult(
        enhanced_rsi=enhanced,
        knn_divergence=avg_distance * 100.0,
        effective_neighbors=len(neighbors),
        adaptive_overbought=overbought,
        adaptive_oversold=oversold,
        confidence=similarity * count_factor * 100.0,
    )


def apply_smoothing(results: Sequence[KNNResult], method: str) -> List[KNNResult]:
    """
    Post-filter the enhanced RSI series (kalman / alma / double_ema)

    Smoothers that shorten the series are aligned to its tail; leading
    results keep their raw value. Output is clamped to [0, 100].
    """
    if method not in SMOOTHING_METHODS:
        raise ValueError(f"Unknown smoothing '{method}'. Valid: {SMOOTHING_METHODS}")
    if method == "none" or not results:
        return list(results)

    values = np.array([r.enhanced_rsi for r in results], dtype=np.float64)
    n = len(values)

    if method == "kalman":
        smoothed = kalman_filter(values, KALMAN_PROCESS_NOISE, KALMAN_MEASUREMENT_NOISE)
    elif method == "alma":
        smoothed = alma(values, min(ALMA_PERIOD, n), ALMA_OFFSET, ALMA_SIGMA)
    else:
        smoothed = double_ema(values, min(DOUBLE_EMA_PERIOD, n))

    smoothed = np.clip(smoothed, 0.0, 100.0)
    pad = n - len(smoothed)

    return [
        r if k < pad else replace(r, enhanced_rsi=float(smoothed[k - pad]))
        for k, r in enumerate(results)
    ]


def batch_knn_enhance(
    rsi_series: ArrayLike,
    all_features: Sequence[Optional[FeatureVector]],
    candles: Sequence[Candle],
    config: KNNConfig,
) -> List[KNNResult]:
    """
    KNN-enhance every RSI value from index lookback_period onwards

    Args:
        rsi_series: compute_rsi() output (right-aligned with candles)
        all_features: one vector (or None) per RSI index
        candles: candle series
        config: KNNConfig (config.smoothing applied at the end)

    Returns:
        len(rsi_series) - lookback_period results (empty if shorter)
    """
    rsi = np.asarray(rsi_series, dtype=np.float64)
    lookback = config.lookback_period
    offset = len(candles) - len(rsi)

    results: List[KNNResult] = []
    for i in range(lookback, len(rsi)):
        current = all_features[i] if i < len(all_features) else None
        if current is None:
            results.append(neutral_result(float(rsi[i])))
            continue

        start = i - lookback
        results.append(knn_enhance(
            float(rsi[i]),
            current,
            all_features[start:i],
            rsi[start:i],
            candles,
            config,
            start_index=start + offset,
        ))

    logger.debug(
        f"KNN batch: {len(results)} bars, k={config.neighbors}, "
        f"lookback={lookback}, smoothing={config.smoothing}"
    )
    return apply_smoothing(results, config.smoothing)
