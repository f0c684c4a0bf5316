# -*- coding: utf-8 -*-
"""
Candle Series
=============

OHLCV container used by every engine module.

- Candle: immutable bar, timestamp in epoch milliseconds
- candles_from_frame(): DataFrame -> tuple[Candle, ...]
- candle_arrays(): tuple[Candle, ...] -> dict of float64 arrays
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import InsufficientDataError


OHLCV_COLUMNS = ("open", "high", "low", "close", "volume")


@dataclass(frozen=True)
class Candle:
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float


def require_length(actual: int, minimum: int, what: str = "data points") -> None:
    """Raise InsufficientDataError when actual < minimum."""
    if actual < minimum:
        raise InsufficientDataError(minimum, actual, what)


def _epoch_ms(idx: pd.DatetimeIndex) -> np.ndarray:
    """Datetimes (any unit, naive = UTC) -> epoch milliseconds."""
    if idx.tz is not None:
        idx = idx.tz_convert(None)
    return np.asarray((idx - pd.Timestamp("1970-01-01")) // pd.Timedelta("1ms"), dtype="int64")


def candles_from_frame(df: pd.DataFrame, timestamp_col: str = "timestamp") -> Tuple[Candle, ...]:
    """
    DataFrame -> Candle tuple (chronological)

    Args:
        df: open/high/low/close/volume columns, plus a timestamp column
            (epoch ms or datetime64) or a DatetimeIndex
        timestamp_col: timestamp column name

    Returns:
        tuple of Candle sorted by timestamp
    """
    missing = [c for c in OHLCV_COLUMNS if c not in df.columns]
    if missing:
        raise KeyError(f"DataFrame missing columns: {missing}")

    if timestamp_col in df.columns:
        col = df[timestamp_col]
        if pd.api.types.is_datetime64_any_dtype(col):
            ts = _epoch_ms(pd.DatetimeIndex(col))
        else:
            ts = col.astype("int64").to_numpy()
    elif isinstance(df.index, pd.DatetimeIndex):
        ts = _epoch_ms(df.index)
    else:
        raise KeyError(f"Expected '{timestamp_col}' column or DatetimeIndex")

    values = df.loc[:, list(OHLCV_COLUMNS)].astype("float64").to_numpy()
    order = np.argsort(ts, kind="stable")

    return tuple(
        Candle(
            timestamp=int(ts[i]),
            open=float(values[i, 0]),
            high=float(values[i, 1]),
            low=float(values[i, 2]),
            close=float(values[i, 3]),
            volume=float(values[i, 4]),
        )
        for i in order
    )


def candle_arrays(candles: Sequence[Candle]) -> Dict[str, np.ndarray]:
    """Column arrays (float64) for vectorised math."""
    out = {
        col: np.fromiter((getattr(c, col) for c in candles), dtype=np.float64, count=len(candles))
        for col in OHLCV_COLUMNS
    }
    out["timestamp"] = np.fromiter((c.timestamp for c in candles), dtype=np.int64, count=len(candles))
    return out
