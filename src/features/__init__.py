# -*- coding: utf-8 -*-
"""Feature extraction for KNN pattern matching."""

from src.features.extractor import (
    FEATURE_NAMES,
    FeatureVector,
    build_feature_series,
    extract_features,
    feature_names,
)

__all__ = [
    "FEATURE_NAMES",
    "FeatureVector",
    "build_feature_series",
    "extract_features",
    "feature_names",
]
