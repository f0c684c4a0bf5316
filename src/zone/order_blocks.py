# -*- coding: utf-8 -*-
"""
Order Block Detector
====================

거래량 피벗 기반 Order Block 감지 + mitigation 추적.

구조:
1. Volume pivot: 좌우 pivot_length 봉보다 거래량이 엄격히 큰 봉
2. Local trend: 피벗 봉 high/low vs 직전 구간 max-high/min-low
   - 둘 다 높음 → uptrend, 둘 다 낮음 → downtrend, 애매하면 uptrend
3. Block: uptrend → bullish [low, hl2], downtrend → bearish [hl2, high]
4. Mitigation: 피벗 이후 봉이 bullish bottom 아래 / bearish top 위로 돌파
   (wick = low/high, close = 종가). Active → Mitigated 단방향.
5. Retention: 방향별 가장 최근 N개의 active block만 유지

사용법:
```python
from src.zone.order_blocks import OrderBlockConfig, detect_order_blocks

det = detect_order_blocks(candles, OrderBlockConfig(volume_pivot_length=5))
for ob in det.bullish_blocks:
    print(ob.id, ob.bottom, ob.top)
```
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Literal, Optional, Sequence, Tuple

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from src.indicators.candles import Candle, candle_arrays, require_length

logger = logging.getLogger(__name__)


BlockType = Literal["bullish", "bearish"]
TrendType = Literal["uptrend", "downtrend"]
MitigationMethod = Literal["wick", "close"]

MITIGATION_METHODS = ("wick", "close")

# extra bars required beyond the two pivot margins
MIN_EXTRA_BARS = 10

# support/resistance levels reported by analyze_order_blocks()
REPORT_LEVELS = 5


@dataclass
class OrderBlockConfig:
    """Order Block 파라미터"""
    volume_pivot_length: int = 5
    bullish_blocks: int = 3
    bearish_blocks: int = 3
    mitigation_method: MitigationMethod = "wick"

    def __post_init__(self):
        if self.volume_pivot_length < 1:
            raise ValueError(f"volume_pivot_length must be >= 1, got {self.volume_pivot_length}")
        if self.bullish_blocks < 1 or self.bearish_blocks < 1:
            raise ValueError(
                f"block counts must be >= 1, got bullish={self.bullish_blocks}, "
                f"bearish={self.bearish_blocks}"
            )
        if self.mitigation_method not in MITIGATION_METHODS:
            raise ValueError(
                f"Unknown mitigation_method '{self.mitigation_method}'. Valid: {MITIGATION_METHODS}"
            )

    @property
    def min_candles(self) -> int:
        return 2 * self.volume_pivot_length + MIN_EXTRA_BARS


@dataclass(frozen=True)
class OrderBlock:
    """
    Price range anchored at a volume pivot

    Two states: active (mitigated=False) → mitigated. The only transition is
    mitigate(), which returns a new block; a mitigated block never changes.
    """
    id: str
    timestamp: int
    pivot_index: int
    top: float
    bottom: float
    average: float
    volume: float
    type: BlockType
    mitigated: bool = False
    mitigation_time: Optional[int] = None

    def __post_init__(self):
        if self.top < self.bottom:
            raise ValueError(f"OrderBlock {self.id}: top {self.top} < bottom {self.bottom}")

    @property
    def is_active(self) -> bool:
        return not self.mitigated

    def mitigate(self, timestamp: int) -> "OrderBlock":
        if self.mitigated:
            return self
        return replace(self, mitigated=True, mitigation_time=int(timestamp))


@dataclass
class OrderBlockDetection:
    bullish_blocks: List[OrderBlock]
    bearish_blocks: List[OrderBlock]
    volume_pivots: List[int]
    mitigated_blocks: List[OrderBlock] = field(default_factory=list)


@dataclass(frozen=True)
class ActiveLevels:
    support: List[float]      # descending
    resistance: List[float]   # ascending


@dataclass(frozen=True)
class OrderBlockStats:
    total_blocks: int
    active_bullish_blocks: int
    active_bearish_blocks: int
    mitigated_blocks: int
    average_volume: float


@dataclass
class OrderBlockReport:
    bullish_blocks: List[OrderBlock]
    bearish_blocks: List[OrderBlock]
    current_support: List[float]
    current_resistance: List[float]
    volume_pivots: List[int]
    stats: OrderBlockStats
    config: OrderBlockConfig


# =============================================================================
# Detection steps
# =============================================================================

def detect_volume_pivots(candles: Sequence[Candle], pivot_length: int) -> List[int]:
    """
    Indices whose volume strictly exceeds every other volume in
    [i - pivot_length, i + pivot_length]
    """
    volume = candle_arrays(candles)["volume"]
    width = 2 * pivot_length + 1
    if len(volume) < width:
        return []

    windows = sliding_window_view(volume, width)
    center = windows[:, pivot_length]
    others = np.maximum(
        windows[:, :pivot_length].max(axis=1),
        windows[:, pivot_length + 1:].max(axis=1),
    )
    return [int(i) + pivot_length for i in np.nonzero(center > others)[0]]


def local_trend_at(candles: Sequence[Candle], index: int, lookback: int) -> TrendType:
    """
    Higher-high + higher-low vs. the prior window → uptrend,
    lower-high + lower-low → downtrend. Ambiguous defaults to uptrend.
    """
    start = max(0, index - lookback)
    prior = candles[start:index]
    if not prior:
        return "uptrend"

    current = candles[index]
    prev_high = max(c.high for c in prior)
    prev_low = min(c.low for c in prior)

    if current.high > prev_high and current.low > prev_low:
        return "uptrend"
    if current.high < prev_high and current.low < prev_low:
        return "downtrend"
    return "uptrend"


def create_order_block(candles: Sequence[Candle], pivot_index: int, block_type: BlockType) -> OrderBlock:
    """Bullish: [low, hl2], bearish: [hl2, high]."""
    c = candles[pivot_index]
    hl2 = (c.high + c.low) / 2.0

    if block_type == "bullish":
        bottom, top = c.low, hl2
    else:
        bottom, top = hl2, c.high

    return OrderBlock(
        id=f"{block_type}_{c.timestamp}_{pivot_index}",
        timestamp=c.timestamp,
        pivot_index=pivot_index,
        top=top,
        bottom=bottom,
        average=(top + bottom) / 2.0,
        volume=c.volume,
        type=block_type,
    )


def check_mitigation(block: OrderBlock, candle: Candle, method: MitigationMethod) -> bool:
    """True when `candle` invalidates the block (already-mitigated blocks stay True)."""
    if block.mitigated:
        return True
    if block.type == "bullish":
        price = candle.low if method == "wick" else candle.close
        return price < block.bottom
    price = candle.high if method == "wick" else candle.close
    return price > block.top


def update_mitigation(
    blocks: Sequence[OrderBlock],
    candles: Sequence[Candle],
    current_index: int,
    method: MitigationMethod,
) -> Tuple[List[OrderBlock], bool, bool]:
    """
    Test every active block created before `current_index` against that bar

    Returns:
        (blocks, mitigated_bullish, mitigated_bearish)
    """
    candle = candles[current_index]
    mitigated_bullish = False
    mitigated_bearish = False
    out: List[OrderBlock] = []

    for block in blocks:
        if block.is_active and block.pivot_index < current_index and check_mitigation(block, candle, method):
            block = block.mitigate(candle.timestamp)
            if block.type == "bullish":
                mitigated_bullish = True
            else:
                mitigated_bearish = True
        out.append(block)

    return out, mitigated_bullish, mitigated_bearish


def remove_mitigated(blocks: Sequence[OrderBlock]) -> List[OrderBlock]:
    return [b for b in blocks if b.is_active]


def get_active_levels(blocks: Sequence[OrderBlock]) -> ActiveLevels:
    """Support = bullish averages (desc), resistance = bearish averages (asc)."""
    active = remove_mitigated(blocks)
    support = sorted((b.average for b in active if b.type == "bullish"), reverse=True)
    resistance = sorted(b.average for b in active if b.type == "bearish")
    return ActiveLevels(support=support, resistance=resistance)


def detect_order_blocks(candles: Sequence[Candle], config: Optional[OrderBlockConfig] = None) -> OrderBlockDetection:
    """
    Volume pivots → blocks → mitigation scan → retention

    Raises:
        InsufficientDataError: fewer than 2 * volume_pivot_length + 10 candles
    """
    config = config or OrderBlockConfig()
    require_length(len(candles), config.min_candles, "candles")

    pivot_length = config.volume_pivot_length
    pivots = detect_volume_pivots(candles, pivot_length)

    blocks: List[OrderBlock] = []
    for idx in pivots:
        trend = local_trend_at(candles, idx, pivot_length)
        blocks.append(create_order_block(candles, idx, "bullish" if trend == "uptrend" else "bearish"))

    if blocks:
        first_pivot = blocks[0].pivot_index
        for i in range(first_pivot + 1, len(candles)):
            blocks, _, _ = update_mitigation(blocks, candles, i, config.mitigation_method)

    active_bullish = [b for b in blocks if b.is_active and b.type == "bullish"]
    active_bearish = [b for b in blocks if b.is_active and b.type == "bearish"]

    detection = OrderBlockDetection(
        bullish_blocks=active_bullish[-config.bullish_blocks:],
        bearish_blocks=active_bearish[-config.bearish_blocks:],
        volume_pivots=pivots,
        mitigated_blocks=[b for b in blocks if b.mitigated],
    )

    logger.debug(
        f"Order blocks: pivots={len(pivots)}, active bullish={len(detection.bullish_blocks)}, "
        f"active bearish={len(detection.bearish_blocks)}, mitigated={len(detection.mitigated_blocks)}"
    )
    return detection


# =============================================================================
# Reporting helpers
# =============================================================================

def calculate_order_block_stats(
    bullish_blocks: Sequence[OrderBlock],
    bearish_blocks: Sequence[OrderBlock],
) -> OrderBlockStats:
    all_blocks = list(bullish_blocks) + list(bearish_blocks)
    return OrderBlockStats(
        total_blocks=len(all_blocks),
        active_bullish_blocks=sum(1 for b in bullish_blocks if b.is_active),
        active_bearish_blocks=sum(1 for b in bearish_blocks if b.is_active),
        mitigated_blocks=sum(1 for b in all_blocks if b.mitigated),
        average_volume=float(np.mean([b.volume for b in all_blocks])) if all_blocks else 0.0,
    )


def find_nearest_order_blocks(
    blocks: Sequence[OrderBlock],
    current_price: float,
    max_distance: float = 0.05,
) -> List[OrderBlock]:
    """Active blocks whose average lies within max_distance (fraction) of price, nearest first."""
    if current_price <= 0:
        return []
    near = [
        b for b in remove_mitigated(blocks)
        if abs(b.average - current_price) / current_price <= max_distance
    ]
    return sorted(near, key=lambda b: abs(b.average - current_price))


def analyze_order_blocks(candles: Sequence[Candle], config: Optional[OrderBlockConfig] = None) -> OrderBlockReport:
    """detect_order_blocks() + active levels (top 5 each) + statistics."""
    config = config or OrderBlockConfig()
    det = detect_order_blocks(candles, config)

    levels = get_active_levels(det.bullish_blocks + det.bearish_blocks)
    mitigated_bullish = [b for b in det.mitigated_blocks if b.type == "bullish"]
    mitigated_bearish = [b for b in det.mitigated_blocks if b.type == "bearish"]
    stats = calculate_order_block_stats(
        det.bullish_blocks + mitigated_bullish,
        det.bearish_blocks + mitigated_bearish,
    )

    return OrderBlockReport(
        bullish_blocks=det.bullish_blocks,
        bearish_blocks=det.bearish_blocks,
        current_support=levels.support[:REPORT_LEVELS],
        current_resistance=levels.resistance[:REPORT_LEVELS],
        volume_pivots=det.volume_pivots,
        stats=stats,
        config=config,
    )
