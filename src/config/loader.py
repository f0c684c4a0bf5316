"""
Config Loader
=============

YAML 기반 지표 엔진 파라미터 로더.

사용법:
    from src.config import load_symbol_config, get_knn_config

    # 심볼별 설정 로드
    config = load_symbol_config("BTCUSDT")
    print(config.rsi_length)            # 14
    print(config.knn.neighbors)         # 5
    print(config.order_blocks.mitigation_method)  # wick

    # 특정 파라미터만
    knn = get_knn_config("BTCUSDT")

환경변수 오버라이드:
    INDICATOR_RSI_LENGTH=21            # RSI 기간
    INDICATOR_KNN_NEIGHBORS=8          # KNN 이웃 수
    INDICATOR_ML_WEIGHT=0.6            # ML 블렌딩 가중치
    INDICATOR_MITIGATION_METHOD=close  # wick | close
    INDICATOR_SMOOTHING=kalman         # none | kalman | alma | double_ema
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional
import yaml

from src.knn.enhancer import KNNConfig
from src.regime.market_structure import MarketStructureConfig
from src.zone.order_blocks import OrderBlockConfig


CONFIG_DIR = Path(__file__).parent.parent.parent / "config"


@dataclass
class EngineConfig:
    """통합 지표 엔진 설정"""
    symbol: str
    rsi_length: int = 14
    knn: KNNConfig = field(default_factory=KNNConfig)
    order_blocks: OrderBlockConfig = field(default_factory=OrderBlockConfig)
    structure: MarketStructureConfig = field(default_factory=MarketStructureConfig)
    raw: Dict[str, Any] = field(default_factory=dict)


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def _deep_merge(base: Dict, override: Dict) -> Dict:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: Dict) -> Dict:
    if os.getenv("INDICATOR_RSI_LENGTH"):
        config["rsi_length"] = int(os.getenv("INDICATOR_RSI_LENGTH"))
    if os.getenv("INDICATOR_KNN_NEIGHBORS"):
        config.setdefault("knn", {})
        config["knn"]["neighbors"] = int(os.getenv("INDICATOR_KNN_NEIGHBORS"))
    if os.getenv("INDICATOR_ML_WEIGHT"):
        config.setdefault("knn", {})
        config["knn"]["ml_weight"] = float(os.getenv("INDICATOR_ML_WEIGHT"))
    if os.getenv("INDICATOR_SMOOTHING"):
        config.setdefault("knn", {})
        config["knn"]["smoothing"] = os.getenv("INDICATOR_SMOOTHING").lower()
    if os.getenv("INDICATOR_MITIGATION_METHOD"):
        config.setdefault("order_blocks", {})
        config["order_blocks"]["mitigation_method"] = os.getenv("INDICATOR_MITIGATION_METHOD").lower()
    return config


def _knn_from(section: Dict[str, Any]) -> KNNConfig:
    return KNNConfig(
        neighbors=section.get("neighbors", 5),
        lookback_period=section.get("lookback_period", 100),
        ml_weight=section.get("ml_weight", 0.4),
        feature_count=section.get("feature_count", 3),
        smoothing=section.get("smoothing", "none"),
    )


def _order_blocks_from(section: Dict[str, Any], defaults: OrderBlockConfig) -> OrderBlockConfig:
    return OrderBlockConfig(
        volume_pivot_length=section.get("volume_pivot_length", defaults.volume_pivot_length),
        bullish_blocks=section.get("bullish_blocks", defaults.bullish_blocks),
        bearish_blocks=section.get("bearish_blocks", defaults.bearish_blocks),
        mitigation_method=section.get("mitigation_method", defaults.mitigation_method),
    )


def load_config(config_dir: Optional[Path] = None) -> Dict[str, Any]:
    """기본 설정 로드"""
    config_dir = Path(config_dir) if config_dir else CONFIG_DIR
    return _apply_env_overrides(_load_yaml(config_dir / "default.yaml"))


def load_symbol_config(symbol: str, config_dir: Optional[Path] = None) -> EngineConfig:
    """
    심볼별 설정 로드 (default + symbol override + env)

    Raises:
        ValueError: 잘못된 파라미터 (dataclass 검증)
    """
    config_dir = Path(config_dir) if config_dir else CONFIG_DIR
    base = _load_yaml(config_dir / "default.yaml")
    symbol_cfg = _load_yaml(config_dir / "symbols" / f"{symbol}.yaml")
    merged = _apply_env_overrides(_deep_merge(base, symbol_cfg))

    rsi_length = merged.get("rsi_length", 14)
    knn = _knn_from(merged.get("knn", {}))
    order_blocks = _order_blocks_from(merged.get("order_blocks", {}), OrderBlockConfig())

    st = merged.get("structure", {})
    structure_defaults = MarketStructureConfig()
    structure = MarketStructureConfig(
        rsi_length=st.get("rsi_length", rsi_length),
        volatility_period=st.get("volatility_period", 20),
        include_order_blocks=st.get("include_order_blocks", True),
        include_ml_rsi=st.get("include_ml_rsi", True),
        include_liquidity_zones=st.get("include_liquidity_zones", True),
        order_blocks=_order_blocks_from(st.get("order_blocks", {}), structure_defaults.order_blocks),
        knn=knn,
    )

    return EngineConfig(
        symbol=symbol,
        rsi_length=rsi_length,
        knn=knn,
        order_blocks=order_blocks,
        structure=structure,
        raw=merged,
    )


def get_knn_config(symbol: str, config_dir: Optional[Path] = None) -> KNNConfig:
    """KNN 파라미터 조회"""
    return load_symbol_config(symbol, config_dir).knn


def get_order_block_config(symbol: str, config_dir: Optional[Path] = None) -> OrderBlockConfig:
    """Order Block 파라미터 조회"""
    return load_symbol_config(symbol, config_dir).order_blocks


def list_symbols(config_dir: Optional[Path] = None) -> List[str]:
    """설정된 심볼 목록"""
    symbols_dir = (Path(config_dir) if config_dir else CONFIG_DIR) / "symbols"
    if not symbols_dir.exists():
        return []
    return sorted(f.stem for f in symbols_dir.glob("*.yaml"))
