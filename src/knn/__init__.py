"""
KNN Layer - ML-RSI
==================

- enhancer.py: neighbour search, adaptive thresholds, RSI blending, smoothing post-filter
- ml_rsi.py: candle series → per-bar ML-RSI report
"""
from .enhancer import (
    KNNConfig,
    KNNResult,
    Neighbor,
    SMOOTHING_METHODS,
    WEIGHT_DISTANCE_FLOOR,
    neutral_result,
    find_k_nearest_neighbors,
    calculate_adaptive_thresholds,
    knn_enhance,
    batch_knn_enhance,
    apply_smoothing,
)
from .ml_rsi import (
    MLRSIPoint,
    MLRSIReport,
    compute_ml_rsi,
    determine_trend,
)

__all__ = [
    # Enhancer
    'KNNConfig',
    'KNNResult',
    'Neighbor',
    'SMOOTHING_METHODS',
    'WEIGHT_DISTANCE_FLOOR',
    'neutral_result',
    'find_k_nearest_neighbors',
    'calculate_adaptive_thresholds',
    'knn_enhance',
    'batch_knn_enhance',
    'apply_smoothing',

    # Report
    'MLRSIPoint',
    'MLRSIReport',
    'compute_ml_rsi',
    'determine_trend',
]
