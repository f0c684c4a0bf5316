"""
Adaptive Indicator Engine
=========================

Core Components:
- indicators/: candles, error taxonomy, numeric primitives (RSI, volatility, smoothing)
- features/: per-bar feature vectors for KNN
- knn/: KNN-enhanced RSI + ML-RSI report
- zone/: volume-pivot order blocks
- regime/: market structure classifier
- config/: YAML parameter loader
"""
