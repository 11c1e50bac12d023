#!/usr/bin/env python3
"""
Display price resolution

Chooses between a live quote and the last daily close for each symbol.
Never fetches; works only on data already handed in.
"""

from typing import Dict, Mapping, Optional, Sequence

from .models import (
    PRICE_SOURCE_CLOSE,
    PRICE_SOURCE_QUOTE,
    DisplayPrice,
    PricePoint,
    Quote,
)


def resolve_display_price(
    symbol: str, series: Sequence[PricePoint], quote: Optional[Quote] = None
) -> DisplayPrice:
    """
    Resolve the price to show for one symbol

    Args:
        symbol: Instrument symbol
        series: Ascending daily closes (may be empty)
        quote: Live quote, or None when the provider has none

    Returns:
        Quote price when available, otherwise the last close, otherwise no value
    """
    if quote is not None and quote.is_available:
        return DisplayPrice(
            symbol=symbol,
            value=quote.price,
            source=PRICE_SOURCE_QUOTE,
            as_of=quote.timestamp,
        )

    if series:
        last = series[-1]
        return DisplayPrice(
            symbol=symbol,
            value=last.close,
            source=PRICE_SOURCE_CLOSE,
            as_of=last.date.isoformat(),
        )

    return DisplayPrice(symbol=symbol, value=None, source=PRICE_SOURCE_CLOSE, as_of=None)


def resolve_display_prices(
    series_by_symbol: Mapping[str, Sequence[PricePoint]],
    quotes_by_symbol: Optional[Mapping[str, Quote]] = None,
) -> Dict[str, DisplayPrice]:
    """Resolve display prices for every symbol in series_by_symbol"""
    quotes_by_symbol = quotes_by_symbol or {}
    return {
        symbol: resolve_display_price(symbol, series, quotes_by_symbol.get(symbol))
        for symbol, series in series_by_symbol.items()
    }
