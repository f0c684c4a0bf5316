# -*- coding: utf-8 -*-
"""
ML-RSI Report
=============

Candles → standard RSI → feature vectors → batch KNN enhancement → per-bar
report points with a trend label.

Usage:
```python
from src.knn.ml_rsi import compute_ml_rsi

report = compute_ml_rsi(candles, rsi_length=14, config=KNNConfig(smoothing="kalman"))
last = report.points[-1]
print(last.ml_rsi, last.adaptive_overbought, last.trend)
```
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Literal, Optional, Sequence

from src.features.extractor import build_feature_series, feature_names
from src.indicators.candles import Candle, require_length
from src.indicators.math_utils import compute_rsi
from src.knn.enhancer import KNNConfig, batch_knn_enhance

logger = logging.getLogger(__name__)


TrendLabel = Literal["bullish", "bearish", "neutral"]

NEUTRAL_UPPER = 55.0
NEUTRAL_LOWER = 45.0


@dataclass(frozen=True)
class MLRSIPoint:
    timestamp: int
    standard_rsi: float
    ml_rsi: float
    adaptive_overbought: float
    adaptive_oversold: float
    knn_divergence: float
    effective_neighbors: int
    trend: TrendLabel
    confidence: float


@dataclass
class MLRSIReport:
    points: List[MLRSIPoint]
    features_used: List[str]
    smoothing_applied: str
    rsi_length: int
    knn_config: KNNConfig
    ml_enabled: bool = True


def determine_trend(rsi: float, overbought: float, oversold: float) -> TrendLabel:
    """
    RSI → trend label

    Above the adaptive overbought level reads as bearish (exhaustion), below
    oversold as bullish; inside the band the 55/45 lines decide.
    """
    if rsi > overbought:
        return "bearish"
    if rsi < oversold:
        return "bullish"
    if rsi > NEUTRAL_UPPER:
        return "bullish"
    if rsi < NEUTRAL_LOWER:
        return "bearish"
    return "neutral"


def compute_ml_rsi(
    candles: Sequence[Candle],
    rsi_length: int = 14,
    config: Optional[KNNConfig] = None,
    limit: int = 200,
) -> MLRSIReport:
    """
    KNN-enhanced RSI over a candle series

    Args:
        candles: chronological candles
        rsi_length: RSI period
        config: KNNConfig (default KNNConfig())
        limit: only the last `limit` candles are reported

    Feature vectors before index lookback_period of the RSI series are
    rsi-only and never match a full-shape vector, so the first results see
    0, 1, 2, ... neighbours until the window holds full vectors. The
    market-structure ML-RSI summary extracts from index 0 instead, so its
    last-bar value can differ from the last point reported here.

    Returns:
        MLRSIReport (one point per reported candle that has a KNN result,
        at least one)

    Raises:
        InsufficientDataError: fewer than rsi_length + lookback_period + 1 candles
        ValueError: limit < 1
    """
    config = config or KNNConfig()
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")
    require_length(len(candles), rsi_length + config.lookback_period + 1, "candles")

    closes = [c.close for c in candles]
    rsi = compute_rsi(closes, rsi_length)

    features = build_feature_series(candles, rsi, config.feature_count, config.lookback_period)
    results = batch_knn_enhance(rsi, features, candles, config)

    rsi_offset = len(candles) - len(rsi)
    result_offset = rsi_offset + config.lookback_period
    start = max(0, len(candles) - limit)

    points: List[MLRSIPoint] = []
    for candle_idx in range(max(start, result_offset), len(candles)):
        res = results[candle_idx - result_offset]
        points.append(MLRSIPoint(
            timestamp=candles[candle_idx].timestamp,
            standard_rsi=float(rsi[candle_idx - rsi_offset]),
            ml_rsi=res.enhanced_rsi,
            adaptive_overbought=res.adaptive_overbought,
            adaptive_oversold=res.adaptive_oversold,
            knn_divergence=res.knn_divergence,
            effective_neighbors=res.effective_neighbors,
            trend=determine_trend(res.enhanced_rsi, res.adaptive_overbought, res.adaptive_oversold),
            confidence=res.confidence,
        ))

    logger.debug(f"ML-RSI: {len(points)} points (rsi_length={rsi_length}, smoothing={config.smoothing})")

    return MLRSIReport(
        points=points,
        features_used=feature_names(config.feature_count),
        smoothing_applied=config.smoothing,
        rsi_length=rsi_length,
        knn_config=config,
    )
