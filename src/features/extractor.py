# -*- coding: utf-8 -*-
"""
Feature Extractor
=================

RSI 시리즈 → KNN 비교용 per-bar feature vector.

feature_count:
    1 = rsi
    2 = + RSI momentum (3 bars)
    3 = + RSI volatility (10 bars)
    4 = + RSI slope (5 bars)
    5 = + close momentum (5 bars)

Index convention: `index` addresses the RSI series. rsi_series[j] belongs to
candle j + (len(candles) - len(rsi_series)), i.e. RSI is right-aligned with
the candle array as produced by compute_rsi().
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import List, Optional, Sequence, Tuple

import numpy as np

from src.indicators.candles import Candle
from src.indicators.math_utils import ArrayLike, slope, volatility


FEATURE_NAMES: Tuple[str, ...] = ("rsi", "momentum", "volatility", "slope", "price_momentum")

RSI_MOMENTUM_PERIOD = 3
RSI_VOLATILITY_PERIOD = 10
RSI_SLOPE_PERIOD = 5
PRICE_MOMENTUM_PERIOD = 5

MIN_FEATURE_COUNT = 1
MAX_FEATURE_COUNT = len(FEATURE_NAMES)


@dataclass(frozen=True)
class FeatureVector:
    """RSI plus up to four secondary features (absent = None)."""
    rsi: float
    momentum: Optional[float] = None
    volatility: Optional[float] = None
    slope: Optional[float] = None
    price_momentum: Optional[float] = None

    def active_fields(self) -> Tuple[str, ...]:
        return tuple(f.name for f in fields(self) if getattr(self, f.name) is not None)

    @property
    def dimensions(self) -> int:
        return len(self.active_fields())

    def as_array(self) -> np.ndarray:
        return np.array([getattr(self, name) for name in self.active_fields()], dtype=np.float64)


def _check_feature_count(feature_count: int) -> int:
    feature_count = int(feature_count)
    if not MIN_FEATURE_COUNT <= feature_count <= MAX_FEATURE_COUNT:
        raise ValueError(
            f"feature_count must be in [{MIN_FEATURE_COUNT}, {MAX_FEATURE_COUNT}], got {feature_count}"
        )
    return feature_count


def feature_names(feature_count: int) -> List[str]:
    """Names of the features used for a given feature_count."""
    return list(FEATURE_NAMES[:_check_feature_count(feature_count)])


def extract_features(
    candles: Sequence[Candle],
    index: int,
    rsi_series: ArrayLike,
    feature_count: int,
    lookback: int,
) -> Optional[FeatureVector]:
    """
    Build the feature vector at an RSI index

    Args:
        candles: candle series the RSI was computed from
        index: position in rsi_series
        rsi_series: RSI values (compute_rsi output)
        feature_count: 1-5
        lookback: first index allowed to produce a vector

    Returns:
        FeatureVector, or None before `lookback` / beyond the RSI history.
        A secondary feature whose own window is not yet filled is left absent.
    """
    feature_count = _check_feature_count(feature_count)
    rsi = np.asarray(rsi_series, dtype=np.float64)

    if index < lookback or index >= len(rsi):
        return None

    history = rsi[:index + 1]
    values = {"rsi": float(rsi[index])}

    if feature_count >= 2 and len(history) > RSI_MOMENTUM_PERIOD:
        values["momentum"] = float(history[-1] - history[-1 - RSI_MOMENTUM_PERIOD])

    if feature_count >= 3 and len(history) >= RSI_VOLATILITY_PERIOD:
        values["volatility"] = float(
            volatility(history[-RSI_VOLATILITY_PERIOD:], RSI_VOLATILITY_PERIOD)[-1]
        )

    if feature_count >= 4 and len(history) >= RSI_SLOPE_PERIOD:
        values["slope"] = float(slope(history[-RSI_SLOPE_PERIOD:], RSI_SLOPE_PERIOD)[-1])

    if feature_count >= 5:
        candle_idx = index + (len(candles) - len(rsi))
        if PRICE_MOMENTUM_PERIOD <= candle_idx < len(candles):
            values["price_momentum"] = float(
                candles[candle_idx].close - candles[candle_idx - PRICE_MOMENTUM_PERIOD].close
            )

    return FeatureVector(**values)


def build_feature_series(
    candles: Sequence[Candle],
    rsi_series: ArrayLike,
    feature_count: int,
    lookback: int,
) -> List[FeatureVector]:
    """One vector per RSI index; rsi-only default where extraction returns None."""
    rsi = np.asarray(rsi_series, dtype=np.float64)
    out: List[FeatureVector] = []
    for i in range(len(rsi)):
        fv = extract_features(candles, i, rsi, feature_count, lookback)
        out.append(fv if fv is not None else FeatureVector(rsi=float(rsi[i])))
    return out
