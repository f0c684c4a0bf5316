# -*- coding: utf-8 -*-
"""
Market Structure Classifier
===========================

가격 행동 + ML-RSI + Order Block 통합 → 레짐 / 추세 강도 / 변동성 / 핵심 레벨 / 권고.

레짐 (우선순위 순):
- volatile: 최근 10봉 평균 변동성(20봉 std) > 현재가의 2%
- trending_up: 20봉 변화 > +3% and 최근 10봉 평균 RSI > 45
- trending_down: 20봉 변화 < -3% and 최근 10봉 평균 RSI < 55
- ranging: 나머지

사용법:
```python
from src.regime.market_structure import classify_market_structure

result = classify_market_structure(candles)
print(result.market_regime, result.trend_strength, result.volatility_level)
for line in result.recommendations:
    print(line)
```
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Literal, Optional, Sequence

import numpy as np

from src.features.extractor import FeatureVector, extract_features
from src.indicators.candles import Candle, candle_arrays, require_length
from src.indicators.errors import InsufficientDataError
from src.indicators.math_utils import (
    ArrayLike,
    compute_rsi,
    linear_regression_slope,
    pearson_correlation,
    volatility,
)
from src.knn.enhancer import KNNConfig, knn_enhance, neutral_result
from src.knn.ml_rsi import TrendLabel, determine_trend
from src.zone.order_blocks import OrderBlock, OrderBlockConfig, detect_order_blocks

logger = logging.getLogger(__name__)


MarketRegime = Literal["trending_up", "trending_down", "ranging", "volatile"]
VolatilityLevel = Literal["low", "medium", "high"]
DataQuality = Literal["excellent", "good", "fair", "poor"]

MIN_CANDLES = 50

# Regime
REGIME_WINDOW = 20
REGIME_MIN_BARS = 10
AVG_WINDOW = 10
VOLATILE_PRICE_FRACTION = 0.02
TREND_MOVE = 0.03
UP_RSI_BIAS = 45.0
DOWN_RSI_BIAS = 55.0

# Trend strength
TREND_WINDOW = 20
SLOPE_SCALE = 1000.0
SLOPE_BASE = 50.0
STRONG_TREND = 70

# Volatility level
LOW_VOL_RATIO = 0.3
HIGH_VOL_RATIO = 0.7

# Key levels
LEVEL_LOOKBACK = 5
MAX_LEVELS = 5
LIQUIDITY_STRENGTH = 75.0

# RSI zones for recommendations
RSI_OVERBOUGHT_ZONE = 70.0
RSI_OVERSOLD_ZONE = 30.0


# =============================================================================
# Configuration / Results
# =============================================================================

def _structure_order_block_config() -> OrderBlockConfig:
    return OrderBlockConfig(volume_pivot_length=3, bullish_blocks=5, bearish_blocks=5, mitigation_method="wick")


@dataclass
class MarketStructureConfig:
    """Market structure 파라미터"""
    rsi_length: int = 14
    volatility_period: int = 20
    include_order_blocks: bool = True
    include_ml_rsi: bool = True
    include_liquidity_zones: bool = True
    order_blocks: OrderBlockConfig = field(default_factory=_structure_order_block_config)
    knn: KNNConfig = field(default_factory=KNNConfig)

    def __post_init__(self):
        if self.rsi_length < 1:
            raise ValueError(f"rsi_length must be >= 1, got {self.rsi_length}")
        if self.volatility_period < 1:
            raise ValueError(f"volatility_period must be >= 1, got {self.volatility_period}")


@dataclass(frozen=True)
class LiquidityZone:
    price: float
    strength: float
    type: Literal["support", "resistance"]


@dataclass
class KeyLevels:
    support: List[float]       # descending
    resistance: List[float]    # ascending
    liquidity_zones: List[LiquidityZone] = field(default_factory=list)


@dataclass
class OrderBlockSummary:
    bullish_blocks: List[OrderBlock]
    bearish_blocks: List[OrderBlock]
    active_bullish_blocks: int
    active_bearish_blocks: int


@dataclass(frozen=True)
class MLRSISummary:
    current_rsi: float
    ml_rsi: float
    adaptive_overbought: float
    adaptive_oversold: float
    trend: TrendLabel
    confidence: float
    effective_neighbors: int


@dataclass
class MarketStructureResult:
    market_regime: MarketRegime
    trend_strength: int
    volatility_level: VolatilityLevel
    key_levels: KeyLevels
    order_blocks: Optional[OrderBlockSummary]
    ml_rsi: Optional[MLRSISummary]
    recommendations: List[str]
    confidence: float
    data_quality: DataQuality
    analysis_depth: int


# =============================================================================
# Components
# =============================================================================

def _tail_mean(values: np.ndarray, n: int, default: float) -> float:
    if len(values) == 0:
        return default
    return float(np.mean(values[-n:]))


def determine_market_regime(closes: ArrayLike, rsi: ArrayLike, vol: ArrayLike) -> MarketRegime:
    closes = np.asarray(closes, dtype=np.float64)
    rsi = np.asarray(rsi, dtype=np.float64)
    vol = np.asarray(vol, dtype=np.float64)

    recent = closes[-REGIME_WINDOW:]
    if len(recent) < REGIME_MIN_BARS:
        return "ranging"

    first, last = float(recent[0]), float(recent[-1])
    price_change = (last - first) / first if first != 0 else 0.0

    avg_vol = _tail_mean(vol, AVG_WINDOW, 0.0)
    avg_rsi = _tail_mean(rsi, AVG_WINDOW, 50.0)

    if avg_vol > last * VOLATILE_PRICE_FRACTION:
        return "volatile"
    if price_change > TREND_MOVE and avg_rsi > UP_RSI_BIAS:
        return "trending_up"
    if price_change < -TREND_MOVE and avg_rsi < DOWN_RSI_BIAS:
        return "trending_down"
    return "ranging"


def calculate_trend_strength(closes: ArrayLike) -> int:
    """Mean of normalised |OLS slope| and |Pearson r| over the last 20 closes (0-100)."""
    closes = np.asarray(closes, dtype=np.float64)
    if len(closes) < TREND_WINDOW:
        return 50

    recent = closes[-TREND_WINDOW:]
    slope_val = linear_regression_slope(recent)
    corr = pearson_correlation(recent)

    norm_slope = min(100.0, max(0.0, abs(slope_val) * SLOPE_SCALE + SLOPE_BASE))
    norm_corr = abs(corr) * 100.0

    return int(round((norm_slope + norm_corr) / 2.0))


def determine_volatility_level(vol: ArrayLike) -> VolatilityLevel:
    """Recent (10) average vs. 20-bar max volatility: < 0.3 low, > 0.7 high."""
    vol = np.asarray(vol, dtype=np.float64)
    if len(vol) == 0:
        return "medium"

    avg_vol = _tail_mean(vol, AVG_WINDOW, 0.0)
    max_vol = float(np.max(vol[-REGIME_WINDOW:]))
    if max_vol <= 0:
        return "medium"

    ratio = avg_vol / max_vol
    if ratio < LOW_VOL_RATIO:
        return "low"
    if ratio > HIGH_VOL_RATIO:
        return "high"
    return "medium"


def find_significant_levels(
    values: ArrayLike,
    kind: Literal["high", "low"],
    lookback: int = LEVEL_LOOKBACK,
) -> List[float]:
    """Strict local extrema over a symmetric window, chronological order."""
    values = np.asarray(values, dtype=np.float64)
    levels: List[float] = []

    for i in range(lookback, len(values) - lookback):
        window = np.concatenate([values[i - lookback:i], values[i + 1:i + lookback + 1]])
        if kind == "high":
            if values[i] > window.max():
                levels.append(float(values[i]))
        elif values[i] < window.min():
            levels.append(float(values[i]))

    return levels


def identify_key_levels(highs: ArrayLike, lows: ArrayLike, include_liquidity_zones: bool = True) -> KeyLevels:
    resistance = find_significant_levels(highs, "high")[:MAX_LEVELS]
    support = find_significant_levels(lows, "low")[:MAX_LEVELS]

    zones: List[LiquidityZone] = []
    if include_liquidity_zones:
        zones.extend(LiquidityZone(price=p, strength=LIQUIDITY_STRENGTH, type="resistance") for p in resistance)
        zones.extend(LiquidityZone(price=p, strength=LIQUIDITY_STRENGTH, type="support") for p in support)

    return KeyLevels(
        support=sorted(support, reverse=True),
        resistance=sorted(resistance),
        liquidity_zones=zones,
    )


def calculate_confidence(data_points: int, vol: ArrayLike) -> float:
    """Base 50, +20/+10 for > 150/> 100 bars, +15/-10 for calm/hot relative volatility."""
    vol = np.asarray(vol, dtype=np.float64)
    confidence = 50.0

    if data_points > 150:
        confidence += 20
    elif data_points > 100:
        confidence += 10

    if len(vol) > 0:
        max_vol = float(np.max(vol))
        if max_vol > 0:
            ratio = _tail_mean(vol, AVG_WINDOW, 0.0) / max_vol
            if ratio < LOW_VOL_RATIO:
                confidence += 15
            elif ratio > HIGH_VOL_RATIO:
                confidence -= 10

    return min(100.0, max(0.0, confidence))


def assess_data_quality(data_points: int) -> DataQuality:
    if data_points > 200:
        return "excellent"
    if data_points > 150:
        return "good"
    if data_points > 100:
        return "fair"
    return "poor"


def generate_recommendations(
    market_regime: MarketRegime,
    trend_strength: int,
    volatility_level: VolatilityLevel,
    ml_rsi: Optional[MLRSISummary] = None,
    order_blocks: Optional[OrderBlockSummary] = None,
) -> List[str]:
    recs: List[str] = []

    if market_regime == "trending_up":
        recs.append("Market is in an uptrend - consider long positions on pullbacks")
        if trend_strength > STRONG_TREND:
            recs.append("Strong uptrend detected - momentum strategies may be effective")
    elif market_regime == "trending_down":
        recs.append("Market is in a downtrend - consider short positions on rallies")
        if trend_strength > STRONG_TREND:
            recs.append("Strong downtrend detected - avoid catching falling knives")
    elif market_regime == "ranging":
        recs.append("Market is ranging - consider mean reversion strategies")
        recs.append("Look for support and resistance bounces")
    else:
        recs.append("High volatility detected - use smaller position sizes")
        recs.append("Consider volatility-based strategies or wait for calmer conditions")

    if volatility_level == "high":
        recs.append("High volatility - use wider stops and smaller positions")
    elif volatility_level == "low":
        recs.append("Low volatility - potential for breakout moves")

    if ml_rsi is not None:
        if ml_rsi.current_rsi > RSI_OVERBOUGHT_ZONE:
            recs.append("RSI indicates overbought conditions - watch for potential reversal")
        elif ml_rsi.current_rsi < RSI_OVERSOLD_ZONE:
            recs.append("RSI indicates oversold conditions - potential buying opportunity")

    if order_blocks is not None and (order_blocks.active_bullish_blocks > 0 or order_blocks.active_bearish_blocks > 0):
        recs.append("Active order blocks detected - watch for reactions at these levels")

    return recs


def summarize_ml_rsi(candles: Sequence[Candle], rsi: ArrayLike, knn: KNNConfig) -> MLRSISummary:
    """
    KNN-enhance the last RSI value

    The neighbour window is shrunk to the available RSI history; feature
    vectors are extracted from index 0 so every bar with filled feature
    windows can participate.

    Raises:
        InsufficientDataError: fewer than two RSI values
    """
    rsi = np.asarray(rsi, dtype=np.float64)
    if len(rsi) < 2:
        raise InsufficientDataError(2, len(rsi), "RSI values")

    idx = len(rsi) - 1
    lookback = min(knn.lookback_period, idx)
    cfg = replace(knn, lookback_period=lookback, smoothing="none")
    start = idx - lookback
    current_rsi = float(rsi[idx])

    current = extract_features(candles, idx, rsi, cfg.feature_count, 0) or FeatureVector(rsi=current_rsi)
    history = [extract_features(candles, j, rsi, cfg.feature_count, 0) for j in range(start, idx)]

    res = knn_enhance(
        current_rsi, current, history, rsi[start:idx], candles, cfg,
        start_index=start + (len(candles) - len(rsi)),
    )
    return MLRSISummary(
        current_rsi=current_rsi,
        ml_rsi=res.enhanced_rsi,
        adaptive_overbought=res.adaptive_overbought,
        adaptive_oversold=res.adaptive_oversold,
        trend=determine_trend(res.enhanced_rsi, res.adaptive_overbought, res.adaptive_oversold),
        confidence=res.confidence,
        effective_neighbors=res.effective_neighbors,
    )


# =============================================================================
# Classifier
# =============================================================================

def classify_market_structure(
    candles: Sequence[Candle],
    config: Optional[MarketStructureConfig] = None,
) -> MarketStructureResult:
    """
    Regime / trend strength / volatility level / key levels / recommendations

    Args:
        candles: chronological candles (>= 50)
        config: MarketStructureConfig

    Raises:
        InsufficientDataError: fewer than 50 candles
    """
    config = config or MarketStructureConfig()
    require_length(len(candles), MIN_CANDLES, "candles")

    arr = candle_arrays(candles)
    closes = arr["close"]
    rsi = compute_rsi(closes, config.rsi_length)
    vol = volatility(closes, config.volatility_period)

    regime = determine_market_regime(closes, rsi, vol)
    trend_strength = calculate_trend_strength(closes)
    vol_level = determine_volatility_level(vol)

    ob_summary: Optional[OrderBlockSummary] = None
    if config.include_order_blocks:
        det = detect_order_blocks(candles, config.order_blocks)
        ob_summary = OrderBlockSummary(
            bullish_blocks=det.bullish_blocks,
            bearish_blocks=det.bearish_blocks,
            active_bullish_blocks=len(det.bullish_blocks),
            active_bearish_blocks=len(det.bearish_blocks),
        )

    ml_summary: Optional[MLRSISummary] = None
    if config.include_ml_rsi and len(rsi) > 0:
        try:
            ml_summary = summarize_ml_rsi(candles, rsi, config.knn)
        except InsufficientDataError as e:
            logger.warning(f"ML-RSI summary fallback: {e}")
            neutral = neutral_result(float(rsi[-1]))
            ml_summary = MLRSISummary(
                current_rsi=float(rsi[-1]),
                ml_rsi=neutral.enhanced_rsi,
                adaptive_overbought=neutral.adaptive_overbought,
                adaptive_oversold=neutral.adaptive_oversold,
                trend=determine_trend(neutral.enhanced_rsi, neutral.adaptive_overbought, neutral.adaptive_oversold),
                confidence=neutral.confidence,
                effective_neighbors=0,
            )

    key_levels = identify_key_levels(arr["high"], arr["low"], config.include_liquidity_zones)
    recommendations = generate_recommendations(regime, trend_strength, vol_level, ml_summary, ob_summary)
    confidence = calculate_confidence(len(candles), vol)

    logger.info(
        f"Market structure: regime={regime}, trend_strength={trend_strength}, "
        f"volatility={vol_level}, confidence={confidence:.0f}%"
    )

    return MarketStructureResult(
        market_regime=regime,
        trend_strength=trend_strength,
        volatility_level=vol_level,
        key_levels=key_levels,
        order_blocks=ob_summary,
        ml_rsi=ml_summary,
        recommendations=recommendations,
        confidence=confidence,
        data_quality=assess_data_quality(len(candles)),
        analysis_depth=len(candles),
    )
