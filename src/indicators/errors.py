# -*- coding: utf-8 -*-
"""Error taxonomy for the indicator engine."""

from __future__ import annotations


class IndicatorEngineError(RuntimeError):
    pass


class InsufficientDataError(IndicatorEngineError):
    """Input series shorter than an operation's minimum length."""

    def __init__(self, required: int, actual: int, what: str = "data points"):
        self.required = int(required)
        self.actual = int(actual)
        self.what = what
        super().__init__(
            f"Insufficient data. Need at least {self.required} {what}, got {self.actual}"
        )


class DimensionMismatchError(IndicatorEngineError):
    def __init__(self, left: int, right: int):
        self.left = int(left)
        self.right = int(right)
        super().__init__(f"Vectors must have the same length (got {self.left} and {self.right})")


class DegenerateInputWarning(UserWarning):
    """Zero-range / zero-variance window resolved by a fallback value.

    Emitted with warnings.warn(), never raised.
    """
