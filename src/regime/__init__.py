"""
Regime Classification Module
============================

시장 구조 분류 모듈.

- market_structure.py: 레짐 (trending_up/trending_down/ranging/volatile),
  추세 강도, 변동성 레벨, 핵심 레벨, 권고
"""
from src.regime.market_structure import (
    MarketRegime,
    VolatilityLevel,
    DataQuality,
    MarketStructureConfig,
    MarketStructureResult,
    KeyLevels,
    LiquidityZone,
    OrderBlockSummary,
    MLRSISummary,
    classify_market_structure,
    determine_market_regime,
    calculate_trend_strength,
    determine_volatility_level,
    find_significant_levels,
    identify_key_levels,
    calculate_confidence,
    assess_data_quality,
    generate_recommendations,
    summarize_ml_rsi,
)

__all__ = [
    # Types
    'MarketRegime',
    'VolatilityLevel',
    'DataQuality',
    'MarketStructureConfig',
    'MarketStructureResult',
    'KeyLevels',
    'LiquidityZone',
    'OrderBlockSummary',
    'MLRSISummary',

    # Classifier
    'classify_market_structure',
    'determine_market_regime',
    'calculate_trend_strength',
    'determine_volatility_level',
    'find_significant_levels',
    'identify_key_levels',
    'calculate_confidence',
    'assess_data_quality',
    'generate_recommendations',
    'summarize_ml_rsi',
]
