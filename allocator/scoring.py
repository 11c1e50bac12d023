#!/usr/bin/env python3
"""
Composite score calculation for the Weekly Allocator

Combines three sub-scores per symbol into one weighted sum:
- Trend: OLS slope of the last 20 closes divided by their volatility
- Momentum: EMA(10) vs EMA(20) spread relative to EMA(20)
- Recent: 5-day return

Weights are passed in explicitly and are not normalized. A series shorter
than MIN_POINTS scores -inf ("unscoreable"), which sorts last.

Nothing in this module raises; every numeric edge case degrades to 0 or -inf.
"""

import math
from typing import Dict, List, Mapping, Sequence

from .indicators import ema, slope, stdev
from .models import PricePoint, ScoreResult, Weights
from .utils import finite_or, get_logger

logger = get_logger(__name__)

UNSCOREABLE = -math.inf

MIN_POINTS = 5
TREND_WINDOW = 20
MOMENTUM_MIN_POINTS = 21
MOMENTUM_FAST = 10
MOMENTUM_SLOW = 20
RECENT_WINDOW = 5


def closes_of(series: Sequence[PricePoint]) -> List[float]:
    """Extract close values from an ascending price series"""
    return [point.close for point in series]


def slope_score(closes: Sequence[float]) -> float:
    """
    Trend score: slope / stdev over the last TREND_WINDOW closes

    Args:
        closes: Ascending closes for one symbol

    Returns:
        Volatility-normalized slope, 0 with fewer than MIN_POINTS closes or a flat window
    """
    if len(closes) < MIN_POINTS:
        return 0.0

    recent = list(closes[-TREND_WINDOW:])
    s = slope(recent)
    vol = stdev(recent)
    if not vol:
        return 0.0

    return finite_or(s / vol)


def momentum_score(closes: Sequence[float]) -> float:
    """
    Momentum score: (EMA fast - EMA slow) / EMA slow, both over full history

    Returns 0 with fewer than MOMENTUM_MIN_POINTS closes.
    """
    if len(closes) < MOMENTUM_MIN_POINTS:
        return 0.0

    fast_last = ema(closes, MOMENTUM_FAST)[-1]
    slow_last = ema(closes, MOMENTUM_SLOW)[-1]

    # Zero baseline is replaced by 1; changing this changes rankings
    base = slow_last or 1.0

    return finite_or((fast_last - slow_last) / base)


def recent_return(closes: Sequence[float]) -> float:
    """Return over the last RECENT_WINDOW closes, 0 for an empty series"""
    if not closes:
        return 0.0

    recent = list(closes[-RECENT_WINDOW:])
    first = recent[0]
    last = recent[-1]

    # Same zero-baseline substitution as momentum_score
    base = first or 1.0

    return finite_or((last - first) / base)


def composite_score(closes: Sequence[float], weights: Weights) -> float:
    """
    Weighted composite of trend, momentum and recent return

    Args:
        closes: Ascending closes for one symbol
        weights: Snapshot of the weights for this ranking pass

    Returns:
        Finite composite, or -inf when fewer than MIN_POINTS closes exist
    """
    if len(closes) < MIN_POINTS:
        return UNSCOREABLE

    score = (
        weights.slope * slope_score(closes)
        + weights.momentum * momentum_score(closes)
        + weights.recent * recent_return(closes)
    )
    return finite_or(score)


def score_symbol(symbol: str, series: Sequence[PricePoint], weights: Weights) -> ScoreResult:
    """Score one symbol and keep its components for display"""
    closes = closes_of(series)

    if len(closes) < MIN_POINTS:
        logger.debug(f"{symbol}: {len(closes)} closes, not enough to score")
        return ScoreResult(symbol=symbol, composite_score=UNSCOREABLE, points=len(closes))

    trend = slope_score(closes)
    momentum = momentum_score(closes)
    recent = recent_return(closes)

    result = ScoreResult(
        symbol=symbol,
        composite_score=composite_score(closes, weights),
        trend=trend,
        momentum=momentum,
        recent=recent,
        points=len(closes),
    )

    logger.debug(
        f"{symbol}: composite={result.composite_score:.4f} "
        f"(trend={trend:.4f}, momentum={momentum:.4f}, recent={recent:.4f}, n={len(closes)})"
    )
    return result


def score_universe(
    series_by_symbol: Mapping[str, Sequence[PricePoint]], weights: Weights
) -> List[ScoreResult]:
    """
    Score every symbol in mapping order

    Args:
        series_by_symbol: Symbol -> ascending price series (may be empty)
        weights: Weights snapshot shared by the whole pass

    Returns:
        One ScoreResult per symbol
    """
    results = [
        score_symbol(symbol, series, weights)
        for symbol, series in series_by_symbol.items()
    ]

    scoreable = sum(1 for r in results if r.is_scoreable)
    logger.info(f"Scored {len(results)} symbols ({scoreable} with enough data)")
    return results


def explain_score(result: ScoreResult, weights: Weights) -> str:
    """
    Short pick reason from the weighted components that push the score up

    Args:
        result: Scored symbol
        weights: Weights used for the score

    Returns:
        Text such as "momentum & trend vs. volatility"
    """
    if not result.is_scoreable:
        return "Not enough data"

    contributions: Dict[str, float] = {
        "trend vs. volatility": weights.slope * result.trend,
        "momentum": weights.momentum * result.momentum,
        "5-day return": weights.recent * result.recent,
    }

    positive = sorted(
        ((label, value) for label, value in contributions.items() if value > 0),
        key=lambda item: item[1],
        reverse=True,
    )

    if not positive:
        return "No positive signals"

    return " & ".join(label for label, _ in positive[:2])
