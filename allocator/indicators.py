#!/usr/bin/env python3
"""
Indicator library for the Weekly Allocator

Pure numeric helpers over ordered close sequences:
- EMA (exponential moving average, seeded with the first value)
- Sample standard deviation
- OLS slope against the position index

Every function is total: degenerate input gives 0 (or an empty list),
never an exception or NaN.
"""

from typing import List, Sequence

import numpy as np


def ema(values: Sequence[float], period: float) -> List[float]:
    """
    Exponential moving average

    Args:
        values: Ordered values
        period: Smoothing period, k = 2 / (period + 1)

    Returns:
        List with the same length as values; first element equals values[0]
    """
    data = np.asarray(values, dtype=float)
    if data.size == 0:
        return []

    k = 2.0 / (period + 1.0)
    out = np.empty_like(data)
    out[0] = data[0]

    # Recursive smoothing, seeded with the first value
    for i in range(1, len(data)):
        out[i] = data[i] * k + out[i - 1] * (1.0 - k)

    return out.tolist()


def stdev(values: Sequence[float]) -> float:
    """Sample standard deviation (n - 1 divisor), 0 for fewer than 2 values"""
    data = np.asarray(values, dtype=float)
    if data.size < 2:
        return 0.0
    return float(np.std(data, ddof=1))


def slope(values: Sequence[float]) -> float:
    """
    Least-squares slope of values against x = 0..n-1

    The x axis is the position in the sequence, not calendar time.
    """
    y = np.asarray(values, dtype=float)
    n = y.size
    if n < 2:
        return 0.0

    x = np.arange(n, dtype=float)
    dx = x - x.mean()
    dy = y - y.mean()

    den = float(np.sum(dx * dx))
    if den == 0:
        return 0.0

    return float(np.sum(dx * dy)) / den
