#!/usr/bin/env python3
"""
Settings for the Weekly Allocator

Values come from the environment (a .env file is loaded if present).
The CLI uses them as argparse defaults, so flags override the environment.

Environment:
    ALLOCATOR_PROVIDER          stooq | finnhub | alphavantage (default stooq)
    FINNHUB_API_KEY             Finnhub token
    ALPHAVANTAGE_API_KEY        Alpha Vantage key
    ALLOCATOR_REFRESH_SECONDS   refresh interval, at least 30 (default 60)
    ALLOCATOR_WEIGHT_SLOPE      trend weight (default 0.5)
    ALLOCATOR_WEIGHT_MOMENTUM   momentum weight (default 0.35)
    ALLOCATOR_WEIGHT_RECENT     5-day return weight (default 0.15)
    ALLOCATOR_TICKERS           e.g. "VOO=Vanguard S&P 500 ETF,NVDA"
    ALLOCATOR_OUTPUT_DIR        CSV output directory (default out)
    ALLOCATOR_SYMBOL_MAP        symbol override JSON (default data/symbol_mapping.json)
    ALLOCATOR_MAX_WORKERS       concurrent fetches per pass (default 4)
    ALLOCATOR_LOG_LEVEL         DEBUG | INFO | WARNING | ERROR (default INFO)
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple, Union

from dotenv import load_dotenv

from .datasources import parse_provider
from .models import DEFAULT_INSTRUMENTS, Instrument, Provider, Weights

DEFAULT_REFRESH_SECONDS = 60
MIN_REFRESH_SECONDS = 30
DEFAULT_MAX_WORKERS = 4
DEFAULT_OUTPUT_DIR = "out"
DEFAULT_SYMBOL_MAP = "data/symbol_mapping.json"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
DEFAULT_WEIGHTS = Weights()


@dataclass
class Settings:
    """Runtime configuration for a refresh loop or a single pass"""

    provider: Provider = Provider.STOOQ
    finnhub_api_key: Optional[str] = None
    alphavantage_api_key: Optional[str] = None
    refresh_seconds: int = DEFAULT_REFRESH_SECONDS
    weights: Weights = field(default_factory=Weights)
    instruments: Tuple[Instrument, ...] = DEFAULT_INSTRUMENTS
    output_dir: str = DEFAULT_OUTPUT_DIR
    symbol_map_file: str = DEFAULT_SYMBOL_MAP
    max_workers: int = DEFAULT_MAX_WORKERS
    log_level: str = "INFO"

    def api_key_for(self, provider: Optional[Provider] = None) -> Optional[str]:
        """API key matching provider (the configured one by default)"""
        provider = provider or self.provider
        if provider is Provider.FINNHUB:
            return self.finnhub_api_key
        if provider is Provider.ALPHAVANTAGE:
            return self.alphavantage_api_key
        return None

    @property
    def symbols(self) -> Tuple[str, ...]:
        return tuple(i.symbol for i in self.instruments)


def clamp_refresh_seconds(seconds: Union[int, float, str]) -> int:
    """Refresh interval in whole seconds, never below MIN_REFRESH_SECONDS"""
    try:
        value = int(float(seconds))
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"Refresh interval must be a number, got {seconds!r}")
    return max(MIN_REFRESH_SECONDS, value)


def parse_weights(text: str) -> Weights:
    """Parse 'slope,momentum,recent', e.g. '0.5,0.35,0.15'"""
    parts = [p.strip() for p in str(text).split(",")]
    if len(parts) != 3:
        raise ValueError(f"Weights must be 'slope,momentum,recent', got {text!r}")
    try:
        slope_w, momentum_w, recent_w = (float(p) for p in parts)
    except ValueError:
        raise ValueError(f"Weights must be numbers, got {text!r}")
    return Weights(slope=slope_w, momentum=momentum_w, recent=recent_w)


def parse_instruments(items: Union[str, Sequence[str]]) -> Tuple[Instrument, ...]:
    """
    Parse tickers from 'SYM' or 'SYM=Name' entries

    Accepts a comma separated string or a list of entries. Duplicates are
    dropped, keeping the first occurrence.
    """
    if isinstance(items, str):
        items = items.split(",")

    instruments = []
    seen = set()
    for item in items:
        item = item.strip()
        if not item:
            continue
        symbol, _, name = item.partition("=")
        symbol = symbol.strip().upper()
        if not symbol or symbol in seen:
            continue
        seen.add(symbol)
        instruments.append(Instrument(symbol=symbol, name=name.strip()))

    if not instruments:
        raise ValueError("At least one ticker is required")
    return tuple(instruments)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def load_settings(dotenv: bool = True) -> Settings:
    """Load settings from environment (and .env when dotenv is True)"""
    if dotenv:
        load_dotenv()

    provider = parse_provider(os.getenv("ALLOCATOR_PROVIDER", Provider.STOOQ.value))

    weights = Weights(
        slope=_env_float("ALLOCATOR_WEIGHT_SLOPE", DEFAULT_WEIGHTS.slope),
        momentum=_env_float("ALLOCATOR_WEIGHT_MOMENTUM", DEFAULT_WEIGHTS.momentum),
        recent=_env_float("ALLOCATOR_WEIGHT_RECENT", DEFAULT_WEIGHTS.recent),
    )

    tickers = os.getenv("ALLOCATOR_TICKERS")
    instruments = parse_instruments(tickers) if tickers else DEFAULT_INSTRUMENTS

    log_level = os.getenv("ALLOCATOR_LOG_LEVEL", "INFO").upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(f"ALLOCATOR_LOG_LEVEL must be one of {LOG_LEVELS}, got {log_level!r}")

    max_workers = _env_int("ALLOCATOR_MAX_WORKERS", DEFAULT_MAX_WORKERS)
    if max_workers < 1:
        raise ValueError("ALLOCATOR_MAX_WORKERS must be >= 1")

    return Settings(
        provider=provider,
        finnhub_api_key=os.getenv("FINNHUB_API_KEY") or None,
        alphavantage_api_key=os.getenv("ALPHAVANTAGE_API_KEY") or None,
        refresh_seconds=clamp_refresh_seconds(
            os.getenv("ALLOCATOR_REFRESH_SECONDS", DEFAULT_REFRESH_SECONDS)
        ),
        weights=weights,
        instruments=instruments,
        output_dir=os.getenv("ALLOCATOR_OUTPUT_DIR", DEFAULT_OUTPUT_DIR),
        symbol_map_file=os.getenv("ALLOCATOR_SYMBOL_MAP", DEFAULT_SYMBOL_MAP),
        max_workers=max_workers,
        log_level=log_level,
    )
