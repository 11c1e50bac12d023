#!/usr/bin/env python3
"""
Ranking pipeline for the Weekly Allocator

Implements one ranking pass:
1. Composite score per symbol
2. Display price per symbol (live quote or last close)
3. Finite scores sorted descending; top entry is the recommendation
4. Optional CSV report

Ties keep insertion order (Python's sort is stable), so the symbol listed
first in the universe wins a tie.
"""

import math
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .models import Instrument, PricePoint, Quote, RankingReport, ScoreResult, Weights
from .pricing import resolve_display_prices
from .scoring import score_universe
from .utils import ensure_directory, get_logger

logger = get_logger(__name__)

REPORT_FILE = "ranking.csv"


def rank_scores(scores: Mapping[str, float]) -> List[Tuple[str, float]]:
    """
    Order symbols by score, highest first

    Args:
        scores: Symbol -> composite score

    Returns:
        (symbol, score) pairs with non-finite scores removed
    """
    entries = [(symbol, score) for symbol, score in scores.items() if math.isfinite(score)]
    entries.sort(key=lambda item: item[1], reverse=True)
    return entries


def select_recommendation(scores: Mapping[str, float]) -> Optional[str]:
    """Top-ranked symbol, or None when no symbol has a finite score yet"""
    ranked = rank_scores(scores)
    if not ranked:
        return None
    return ranked[0][0]


def rank_results(results: Sequence[ScoreResult]) -> List[ScoreResult]:
    """Scoreable results sorted by composite score, highest first"""
    ranked = [r for r in results if r.is_scoreable]
    ranked.sort(key=lambda r: r.composite_score, reverse=True)
    return ranked


def run_ranking_pass(
    series_by_symbol: Mapping[str, Sequence[PricePoint]],
    quotes_by_symbol: Optional[Mapping[str, Quote]],
    weights: Weights,
    provider: Optional[str] = None,
    errors: Optional[Mapping[str, str]] = None,
) -> RankingReport:
    """
    Score, price and rank one refresh cycle

    Args:
        series_by_symbol: Symbol -> ascending daily closes, in universe order
        quotes_by_symbol: Symbol -> live quote (missing symbols have none)
        weights: Weights snapshot for this pass
        provider: Provider that supplied the data, for reporting
        errors: Per-symbol fetch failures to carry into the report

    Returns:
        RankingReport for the pass
    """
    scores = score_universe(series_by_symbol, weights)
    ranked = rank_results(scores)
    recommendation = select_recommendation(
        {result.symbol: result.composite_score for result in scores}
    )
    prices = resolve_display_prices(series_by_symbol, quotes_by_symbol)

    if recommendation:
        logger.info(
            f"Recommendation: {recommendation} "
            f"(score {ranked[0].composite_score:.3f}, {len(ranked)}/{len(scores)} ranked)"
        )
    else:
        logger.info("No recommendation yet: no symbol has enough data")

    return RankingReport(
        scores=scores,
        ranked=ranked,
        recommendation=recommendation,
        prices=prices,
        weights=weights,
        provider=provider,
        errors=dict(errors or {}),
    )


def save_results(
    report: RankingReport,
    output_dir,
    instruments: Optional[Sequence[Instrument]] = None,
) -> str:
    """
    Save a ranking report to CSV

    Args:
        report: Ranking pass result
        output_dir: Output directory
        instruments: Universe, used for the Name column

    Returns:
        Path to saved file
    """
    ensure_directory(output_dir)
    names: Dict[str, str] = {i.symbol: i.name for i in (instruments or [])}

    # Ranked symbols first, unscoreable ones after in universe order
    ordered = list(report.ranked) + [r for r in report.scores if not r.is_scoreable]

    rows = []
    for result in ordered:
        price = report.prices.get(result.symbol)
        rank = report.rank_of(result.symbol)
        rows.append(
            {
                "Symbol": result.symbol,
                "Name": names.get(result.symbol, result.symbol),
                "Rank": rank if rank is not None else "N/A",
                "CompositeScore": result.composite_score,
                "TrendScore": result.trend,
                "MomentumScore": result.momentum,
                "RecentReturn": result.recent,
                "Points": result.points,
                "Price": price.value if price else None,
                "PriceSource": price.source if price else "N/A",
                "AsOf": price.as_of if price and price.as_of else "N/A",
                "Recommended": result.symbol == report.recommendation,
            }
        )

    columns = [
        "Symbol", "Name", "Rank", "CompositeScore", "TrendScore", "MomentumScore",
        "RecentReturn", "Points", "Price", "PriceSource", "AsOf", "Recommended",
    ]
    df = pd.DataFrame(rows, columns=columns)

    # Scores: 4 decimals, unscoreable as N/A
    for col in ["CompositeScore", "TrendScore", "MomentumScore", "RecentReturn"]:
        df[col] = df[col].apply(lambda x: f"{x:.4f}" if math.isfinite(x) else "N/A")

    # Prices: 2 decimals
    df["Price"] = df["Price"].apply(lambda x: f"{x:.2f}" if x is not None and not pd.isna(x) else "N/A")

    output_file = Path(output_dir) / REPORT_FILE
    df.to_csv(output_file, index=False)

    logger.info(f"Saved {len(df)} results to {output_file}")
    return str(output_file)
