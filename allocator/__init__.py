#!/usr/bin/env python3
"""
Weekly Allocator

Ranks a small set of instruments once per refresh cycle by a weighted
composite of:
- Trend (20-day slope normalized by volatility)
- EMA momentum (10 vs 20 period)
- 5-day return

Daily closes and live quotes come from Stooq (free), Finnhub or Alpha Vantage.

get_series and get_quote are a convenience API for one-off lookups: they
never raise and return an empty series or an absent quote instead. The
refresh loop calls the raising fetch_series/fetch_quote directly so it can
record each failure in the RankingReport.

Usage:
    python -m allocator --once
"""

__version__ = "1.0.0"

from .utils import get_logger
from .models import DisplayPrice, Instrument, PricePoint, Provider, Quote, RankingReport, ScoreResult, Weights
from .indicators import ema, slope, stdev
from .scoring import composite_score, momentum_score, recent_return, score_universe, slope_score
from .pricing import resolve_display_price, resolve_display_prices
from .ranking import rank_scores, run_ranking_pass, select_recommendation
from .datasources import get_quote, get_series
from .refresh import RefreshLoop

__all__ = [
    "get_logger",
    "DisplayPrice",
    "Instrument",
    "PricePoint",
    "Provider",
    "Quote",
    "RankingReport",
    "ScoreResult",
    "Weights",
    "ema",
    "slope",
    "stdev",
    "composite_score",
    "momentum_score",
    "recent_return",
    "score_universe",
    "slope_score",
    "resolve_display_price",
    "resolve_display_prices",
    "rank_scores",
    "run_ranking_pass",
    "select_recommendation",
    "get_quote",
    "get_series",
    "RefreshLoop",
]
