"""
Indicators Layer - Candles + Math Library + Errors
==================================================

- candles.py: Candle container, DataFrame ingestion, length guards
- math_utils.py: RSI / momentum / volatility / slope / normalize / MA family / Kalman
- errors.py: InsufficientDataError, DimensionMismatchError, DegenerateInputWarning
"""
from .errors import (
    IndicatorEngineError,
    InsufficientDataError,
    DimensionMismatchError,
    DegenerateInputWarning,
)
from .candles import (
    Candle,
    OHLCV_COLUMNS,
    candles_from_frame,
    candle_arrays,
    require_length,
)
from .math_utils import (
    RSI_LOSS_EPSILON,
    VOLATILITY_EPSILON,
    compute_rsi,
    momentum,
    volatility,
    slope,
    normalize,
    euclidean_distance,
    linear_regression_slope,
    pearson_correlation,
    sma,
    ema,
    alma,
    double_ema,
    kalman_filter,
)

__all__ = [
    # Errors
    'IndicatorEngineError',
    'InsufficientDataError',
    'DimensionMismatchError',
    'DegenerateInputWarning',

    # Candles
    'Candle',
    'OHLCV_COLUMNS',
    'candles_from_frame',
    'candle_arrays',
    'require_length',

    # Math
    'RSI_LOSS_EPSILON',
    'VOLATILITY_EPSILON',
    'compute_rsi',
    'momentum',
    'volatility',
    'slope',
    'normalize',
    'euclidean_distance',
    'linear_regression_slope',
    'pearson_correlation',
    'sma',
    'ema',
    'alma',
    'double_ema',
    'kalman_filter',
]
