#!/usr/bin/env python3
"""
Value types shared by the data sources, scoring engine and ranking pass.

Everything here is recomputed each refresh cycle; nothing is persisted.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

PRICE_SOURCE_QUOTE = "quote"
PRICE_SOURCE_CLOSE = "close"


class Provider(str, Enum):
    """Upstream price data providers"""

    STOOQ = "stooq"
    FINNHUB = "finnhub"
    ALPHAVANTAGE = "alphavantage"

    @property
    def requires_key(self) -> bool:
        return self is not Provider.STOOQ

    @property
    def has_quotes(self) -> bool:
        return self is not Provider.STOOQ


@dataclass(frozen=True)
class Instrument:
    symbol: str
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or self.symbol


DEFAULT_INSTRUMENTS = (
    Instrument("VOO", "Vanguard S&P 500 ETF"),
    Instrument("BRK.B", "Berkshire Hathaway Class B"),
    Instrument("NVDA", "NVIDIA Corporation"),
)


@dataclass(frozen=True)
class PricePoint:
    """One daily close"""

    date: date
    close: float


@dataclass(frozen=True)
class Quote:
    """Live quote; price None means no quote is available"""

    price: Optional[float] = None
    timestamp: Optional[str] = None

    def __post_init__(self):
        # Non-finite prices never leave the adapter layer
        if self.price is not None and not math.isfinite(self.price):
            object.__setattr__(self, "price", None)

    @classmethod
    def absent(cls) -> "Quote":
        return cls(price=None, timestamp=None)

    @property
    def is_available(self) -> bool:
        return self.price is not None


@dataclass(frozen=True)
class Weights:
    """
    Composite score weights, each in [0, 1].

    Not normalized: the composite is a literal weighted sum.
    """

    slope: float = 0.5
    momentum: float = 0.35
    recent: float = 0.15

    def __post_init__(self):
        for name in ("slope", "momentum", "recent"):
            value = getattr(self, name)
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise ValueError(f"Weight '{name}' must be a number, got {value!r}")
            if not math.isfinite(value) or not 0.0 <= value <= 1.0:
                raise ValueError(f"Weight '{name}' must be within [0, 1], got {value}")
            object.__setattr__(self, name, value)

    def replace(self, **changes) -> "Weights":
        return replace(self, **changes)

    def as_dict(self) -> Dict[str, float]:
        return {"slope": self.slope, "momentum": self.momentum, "recent": self.recent}


@dataclass(frozen=True)
class ScoreResult:
    """Composite score for one symbol; -inf marks an unscoreable series"""

    symbol: str
    composite_score: float
    trend: float = 0.0
    momentum: float = 0.0
    recent: float = 0.0
    points: int = 0

    @property
    def is_scoreable(self) -> bool:
        return math.isfinite(self.composite_score)


@dataclass(frozen=True)
class DisplayPrice:
    symbol: str
    value: Optional[float]
    source: str = PRICE_SOURCE_CLOSE
    as_of: Optional[str] = None

    @property
    def is_live(self) -> bool:
        return self.source == PRICE_SOURCE_QUOTE


@dataclass
class RankingReport:
    """Outcome of one ranking pass"""

    scores: List[ScoreResult]
    ranked: List[ScoreResult]
    recommendation: Optional[str]
    prices: Dict[str, DisplayPrice]
    weights: Weights
    provider: Optional[str] = None
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    errors: Dict[str, str] = field(default_factory=dict)

    def score_for(self, symbol: str) -> Optional[ScoreResult]:
        for result in self.scores:
            if result.symbol == symbol:
                return result
        return None

    def rank_of(self, symbol: str) -> Optional[int]:
        for position, result in enumerate(self.ranked, start=1):
            if result.symbol == symbol:
                return position
        return None
