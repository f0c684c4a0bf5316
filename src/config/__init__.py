"""
Config Module
=============

심볼별 지표 파라미터 관리.
YAML 파일에서 설정 로드 + 환경변수 오버라이드.
"""

from .loader import (
    load_config,
    load_symbol_config,
    get_knn_config,
    get_order_block_config,
    list_symbols,
    EngineConfig,
)

__all__ = [
    'load_config',
    'load_symbol_config',
    'get_knn_config',
    'get_order_block_config',
    'list_symbols',
    'EngineConfig',
]
