# -*- coding: utf-8 -*-
"""
Indicator Math Library
======================

RSI, momentum, volatility, regression slope, rolling min-max normalisation,
moving-average family (SMA/EMA/ALMA/double EMA), Kalman smoother and the
Euclidean distance used by the KNN enhancer.

Output convention:
- Every rolling function returns a *trimmed* float64 array (no NaN padding).
  The first output corresponds to the first input index that has a full
  window behind it.
- compute_rsi(closes, n)  -> len(closes) - n values
- momentum(values, n)     -> len(values) - n values
- volatility/slope/normalize/sma/alma(values, n) -> len(values) - n + 1 values
- ema/kalman_filter       -> len(values) values
- double_ema(values, n)   -> len(values) - n + 1 values
"""
from __future__ import annotations

import warnings
from typing import Sequence, Union

import numpy as np
import pandas as pd
from numpy.lib.stride_tricks import sliding_window_view
from scipy import stats

from .errors import DegenerateInputWarning, DimensionMismatchError


ArrayLike = Union[Sequence[float], np.ndarray]

# Floors for division-by-zero paths (overridable by callers).
RSI_LOSS_EPSILON = 1e-4
VOLATILITY_EPSILON = 1e-10

# Mid value for zero-range normalisation windows.
NORMALIZE_FLAT_VALUE = 0.5


def _as_float_array(values: ArrayLike) -> np.ndarray:
    return np.asarray(values, dtype=np.float64).ravel()


def _check_period(period: int, minimum: int = 1) -> int:
    period = int(period)
    if period < minimum:
        raise ValueError(f"period must be >= {minimum}, got {period}")
    return period


def warn_degenerate(count: int, total: int, what: str) -> None:
    """Emit one DegenerateInputWarning summarising `count` of `total` fallbacks."""
    if count:
        warnings.warn(
            f"{count}/{total} {what}",
            DegenerateInputWarning,
            stacklevel=3,
        )


# =============================================================================
# RSI
# =============================================================================

def _rsi_from_averages(avg_gain: float, avg_loss: float, eps: float) -> float:
    if avg_loss > 0:
        rs = avg_gain / avg_loss
    elif avg_gain > 0:
        rs = avg_gain / eps
    else:
        # flat window: no losses at all reads as full strength
        return 100.0
    return 100.0 - (100.0 / (1.0 + rs))


def compute_rsi(closes: ArrayLike, period: int = 14, *, eps: float = RSI_LOSS_EPSILON) -> np.ndarray:
    """
    Wilder's RSI

    First value uses simple averages of the first `period` gains/losses,
    subsequent values use avg = (avg * (period - 1) + x) / period.

    Args:
        closes: close prices (chronological)
        period: RSI period
        eps: avg_loss floor when no losses occurred in the window

    Returns:
        RSI array of length len(closes) - period, values in [0, 100].
        Empty when fewer than period + 1 closes are given.
    """
    period = _check_period(period)
    closes = _as_float_array(closes)
    n = len(closes)
    if n < period + 1:
        return np.array([], dtype=np.float64)

    delta = np.diff(closes)
    gains = np.where(delta > 0, delta, 0.0)
    losses = np.where(delta < 0, -delta, 0.0)

    out = np.empty(n - period, dtype=np.float64)
    avg_gain = float(gains[:period].mean())
    avg_loss = float(losses[:period].mean())
    out[0] = _rsi_from_averages(avg_gain, avg_loss, eps)

    for k, i in enumerate(range(period, len(gains)), start=1):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        out[k] = _rsi_from_averages(avg_gain, avg_loss, eps)

    return out


# =============================================================================
# Rolling statistics
# =============================================================================

def momentum(values: ArrayLike, period: int = 1) -> np.ndarray:
    """values[i] - values[i - period]"""
    period = _check_period(period)
    values = _as_float_array(values)
    if len(values) <= period:
        return np.array([], dtype=np.float64)
    return values[period:] - values[:-period]


def volatility(values: ArrayLike, period: int = 10, *, eps: float = VOLATILITY_EPSILON) -> np.ndarray:
    """Rolling population standard deviation, floored at eps."""
    period = _check_period(period)
    values = _as_float_array(values)
    if len(values) < period:
        return np.array([], dtype=np.float64)

    std = sliding_window_view(values, period).std(axis=1)
    flat = std < eps
    warn_degenerate(int(flat.sum()), len(std), "zero-variance volatility windows floored to epsilon")
    return np.where(flat, eps, std)


def slope(values: ArrayLike, period: int = 5) -> np.ndarray:
    """Rolling OLS slope of value vs. bar index."""
    period = _check_period(period, minimum=2)
    values = _as_float_array(values)
    if len(values) < period:
        return np.array([], dtype=np.float64)

    x = np.arange(period, dtype=np.float64)
    x = x - x.mean()
    denom = float((x ** 2).sum())

    windows = sliding_window_view(values, period)
    centered = windows - windows.mean(axis=1, keepdims=True)
    return centered @ x / denom


def normalize(values: ArrayLike, period: int) -> np.ndarray:
    """
    Rolling min-max normalisation to [0, 1]

    Each output is the position of values[i] inside the range of the window
    ending at i. Zero-range windows map to exactly 0.5.
    """
    period = _check_period(period)
    values = _as_float_array(values)
    if len(values) < period:
        return np.array([], dtype=np.float64)

    windows = sliding_window_view(values, period)
    lo = windows.min(axis=1)
    hi = windows.max(axis=1)
    rng = hi - lo
    current = values[period - 1:]

    flat = rng == 0
    warn_degenerate(int(flat.sum()), len(rng), "zero-range normalisation windows mapped to 0.5")

    out = np.full(len(current), NORMALIZE_FLAT_VALUE)
    np.divide(current - lo, rng, out=out, where=~flat)
    return np.clip(out, 0.0, 1.0)


def euclidean_distance(vector1: ArrayLike, vector2: ArrayLike) -> float:
    a = _as_float_array(vector1)
    b = _as_float_array(vector2)
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))
    return float(np.sqrt(np.sum((a - b) ** 2)))


def linear_regression_slope(values: ArrayLike) -> float:
    """OLS slope of the whole window against its index."""
    y = _as_float_array(values)
    if len(y) < 2:
        return 0.0
    return float(stats.linregress(np.arange(len(y), dtype=np.float64), y).slope)


def pearson_correlation(values: ArrayLike) -> float:
    """Pearson r of the whole window against its index (0 when undefined)."""
    y = _as_float_array(values)
    if len(y) < 2:
        return 0.0
    r = float(stats.linregress(np.arange(len(y), dtype=np.float64), y).rvalue)
    return r if np.isfinite(r) else 0.0


# =============================================================================
# Moving averages / smoothers
# =============================================================================

def sma(values: ArrayLike, period: int) -> np.ndarray:
    """Simple Moving Average"""
    period = _check_period(period)
    values = _as_float_array(values)
    if len(values) < period:
        return np.array([], dtype=np.float64)
    return pd.Series(values).rolling(period, min_periods=period).mean().to_numpy()[period - 1:]


def ema(values: ArrayLike, period: int) -> np.ndarray:
    """Exponential Moving Average seeded with the first value (alpha = 2 / (period + 1))."""
    period = _check_period(period)
    values = _as_float_array(values)
    if len(values) == 0:
        return np.array([], dtype=np.float64)
    return pd.Series(values).ewm(span=period, adjust=False).mean().to_numpy()


def alma(values: ArrayLike, period: int, offset: float = 0.85, sigma: float = 6.0) -> np.ndarray:
    """Arnaud Legoux Moving Average (Gaussian-weighted window)."""
    period = _check_period(period)
    if sigma <= 0:
        raise ValueError(f"sigma must be > 0, got {sigma}")
    values = _as_float_array(values)
    if len(values) < period:
        return np.array([], dtype=np.float64)

    m = np.floor(offset * (period - 1))
    s = period / sigma
    j = np.arange(period, dtype=np.float64)
    weights = np.exp(-((j - m) ** 2) / (2.0 * s * s))

    return sliding_window_view(values, period) @ weights / weights.sum()


def double_ema(values: ArrayLike, period: int) -> np.ndarray:
    """2 * EMA - EMA(EMA), first period - 1 values dropped."""
    period = _check_period(period)
    first = ema(values, period)
    if len(first) == 0:
        return first
    second = ema(first, period)
    return (2.0 * first - second)[period - 1:]


def kalman_filter(
    values: ArrayLike,
    process_noise: float = 0.01,
    measurement_noise: float = 0.1,
) -> np.ndarray:
    """
    Scalar recursive Kalman smoother (random-walk state model)

    Args:
        values: input series
        process_noise: Q, added to the error estimate at each prediction
        measurement_noise: R, observation noise

    Returns:
        filtered series, same length as values
    """
    values = _as_float_array(values)
    n = len(values)
    if n == 0:
        return np.array([], dtype=np.float64)

    out = np.empty(n, dtype=np.float64)
    estimate = values[0]
    error = 1.0
    out[0] = estimate

    for i in range(1, n):
        predicted_error = error + process_noise
        gain = predicted_error / (predicted_error + measurement_noise)
        estimate = estimate + gain * (values[i] - estimate)
        error = (1.0 - gain) * predicted_error
        out[i] = estimate

    return out
