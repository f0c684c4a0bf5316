"""
Zone Layer - Volume-Pivot Order Blocks
======================================

- order_blocks.py: pivot detection, block construction, mitigation, retention, levels
"""
from .order_blocks import (
    OrderBlock,
    OrderBlockConfig,
    OrderBlockDetection,
    OrderBlockReport,
    OrderBlockStats,
    ActiveLevels,
    detect_volume_pivots,
    local_trend_at,
    create_order_block,
    check_mitigation,
    update_mitigation,
    remove_mitigated,
    get_active_levels,
    detect_order_blocks,
    calculate_order_block_stats,
    find_nearest_order_blocks,
    analyze_order_blocks,
)

__all__ = [
    'OrderBlock',
    'OrderBlockConfig',
    'OrderBlockDetection',
    'OrderBlockReport',
    'OrderBlockStats',
    'ActiveLevels',
    'detect_volume_pivots',
    'local_trend_at',
    'create_order_block',
    'check_mitigation',
    'update_mitigation',
    'remove_mitigated',
    'get_active_levels',
    'detect_order_blocks',
    'calculate_order_block_stats',
    'find_nearest_order_blocks',
    'analyze_order_blocks',
]
