"""
Pytest configuration and fixtures.
"""
from datetime import date, timedelta

import pytest

from allocator.models import Instrument, PricePoint, Weights


def make_series(closes, start=date(2024, 1, 1)):
    """Ascending daily series from a list of closes."""
    return [
        PricePoint(date=start + timedelta(days=i), close=float(close))
        for i, close in enumerate(closes)
    ]


@pytest.fixture
def series_factory():
    """Fixture providing the make_series helper."""
    return make_series


@pytest.fixture
def rising_series():
    """30 strictly rising closes, 100 -> 129."""
    return make_series([100 + i for i in range(30)])


@pytest.fixture
def falling_series():
    """30 strictly falling closes, 129 -> 100."""
    return make_series([129 - i for i in range(30)])


@pytest.fixture
def short_series():
    """3 closes, too few to score."""
    return make_series([50.0, 51.0, 52.0])


@pytest.fixture
def default_weights():
    return Weights()


@pytest.fixture
def instruments():
    return (
        Instrument("UP", "Rising Corp"),
        Instrument("DOWN", "Falling Corp"),
        Instrument("SHORT", "Newly Listed Inc"),
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove allocator settings from the environment."""
    for name in (
        "ALLOCATOR_PROVIDER",
        "FINNHUB_API_KEY",
        "ALPHAVANTAGE_API_KEY",
        "ALLOCATOR_REFRESH_SECONDS",
        "ALLOCATOR_WEIGHT_SLOPE",
        "ALLOCATOR_WEIGHT_MOMENTUM",
        "ALLOCATOR_WEIGHT_RECENT",
        "ALLOCATOR_TICKERS",
        "ALLOCATOR_OUTPUT_DIR",
        "ALLOCATOR_SYMBOL_MAP",
        "ALLOCATOR_MAX_WORKERS",
        "ALLOCATOR_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
