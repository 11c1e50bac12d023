#!/usr/bin/env python3
"""
Data source adapters for the Weekly Allocator

Provides daily close series and live quotes from:
- Stooq (CSV, free, no quotes)
- Finnhub (JSON candles and quotes, API key)
- Alpha Vantage (JSON daily series and global quote, API key)

Each provider has its own parse functions; fetch_series/fetch_quote dispatch
on the Provider enum. Network failures are retried with tenacity. get_series
and get_quote never raise: any adapter error becomes an empty series or an
absent quote so one bad symbol cannot stop a ranking pass.
"""

import io
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd
import pytz
import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .models import PricePoint, Provider, Quote
from .symbol_mapper import SymbolMapper
from .utils import (
    DataSourceError,
    MissingCredential,
    RetryableError,
    UnsupportedProvider,
    UpstreamRequestFailed,
    UpstreamShapeUnexpected,
    get_logger,
    safe_float,
)

logger = get_logger(__name__)

REQUEST_TIMEOUT = 10
FINNHUB_LOOKBACK_DAYS = 400

STOOQ_URL = "https://stooq.com/q/d/l/"
FINNHUB_URL = "https://finnhub.io/api/v1"
ALPHAVANTAGE_URL = "https://www.alphavantage.co/query"

ALPHAVANTAGE_SERIES_KEY = "Time Series (Daily)"
ALPHAVANTAGE_CLOSE_KEY = "4. close"
ALPHAVANTAGE_QUOTE_KEY = "Global Quote"
ALPHAVANTAGE_PRICE_KEYS = ("05. price", "05. Price", "05. PRICE")
ALPHAVANTAGE_DAY_KEY = "07. latest trading day"

upstream_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(RetryableError),
    reraise=True,
)


def parse_provider(value: Union[Provider, str]) -> Provider:
    """Parse provider name, raising UnsupportedProvider for unknown names"""
    if isinstance(value, Provider):
        return value
    try:
        return Provider(str(value).strip().lower())
    except ValueError:
        raise UnsupportedProvider(f"Unknown provider: {value}")


def resolve_provider(provider: Union[Provider, str], api_key: Optional[str] = None) -> Provider:
    """
    Effective provider for a request

    A keyed provider without a key falls back to Stooq daily closes.
    """
    provider = parse_provider(provider)
    if provider.requires_key and not (api_key or "").strip():
        logger.warning(f"No API key for {provider.value}, falling back to stooq")
        return Provider.STOOQ
    return provider


# ---- Normalization ----

def _coerce_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip()[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def normalize_series(rows: Iterable[Tuple[Any, Any]]) -> List[PricePoint]:
    """
    Build a clean ascending series from raw (date, close) pairs

    Drops rows with unparseable dates, non-finite or negative closes.
    Duplicate dates keep the last row seen.
    """
    by_date: Dict[date, float] = {}
    dropped = 0

    for raw_date, raw_close in rows:
        day = _coerce_date(raw_date)
        close = safe_float(raw_close)
        if day is None or close is None or close < 0:
            dropped += 1
            continue
        by_date[day] = close

    if dropped:
        logger.debug(f"Dropped {dropped} invalid rows while normalizing series")

    return [PricePoint(date=day, close=by_date[day]) for day in sorted(by_date)]


# ---- Parsers ----

def parse_stooq_csv(text: str) -> List[PricePoint]:
    """Parse Stooq daily CSV (Date,Open,High,Low,Close,Volume)"""
    try:
        df = pd.read_csv(io.StringIO(text or ""))
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise UpstreamShapeUnexpected(f"Stooq CSV could not be parsed: {e}")

    missing_cols = [col for col in ("Date", "Close") if col not in df.columns]
    if missing_cols:
        raise UpstreamShapeUnexpected(f"Stooq CSV missing columns: {missing_cols}")

    closes = pd.to_numeric(df["Close"], errors="coerce")
    return normalize_series(zip(df["Date"], closes))


def parse_finnhub_candles(payload: Any) -> List[PricePoint]:
    """Parse Finnhub /stock/candle response ({s, t[], c[]})"""
    if not isinstance(payload, dict) or payload.get("s") != "ok":
        status = payload.get("s") if isinstance(payload, dict) else type(payload).__name__
        raise UpstreamShapeUnexpected(f"Finnhub bad status: {status}")

    timestamps = payload.get("t") or []
    closes = payload.get("c") or []
    if not isinstance(timestamps, list) or not isinstance(closes, list):
        raise UpstreamShapeUnexpected(
            f"Finnhub candle arrays expected, got t={type(timestamps).__name__} c={type(closes).__name__}"
        )
    if len(timestamps) != len(closes):
        raise UpstreamShapeUnexpected(
            f"Finnhub candle length mismatch: {len(timestamps)} t vs {len(closes)} c"
        )

    rows = []
    for ts, close in zip(timestamps, closes):
        moment = _utc_datetime(safe_float(ts))
        if moment is None:
            continue
        rows.append((moment.date(), close))

    return normalize_series(rows)


def parse_alphavantage_daily(payload: Any) -> List[PricePoint]:
    """Parse Alpha Vantage TIME_SERIES_DAILY_ADJUSTED response"""
    if not isinstance(payload, dict):
        raise UpstreamShapeUnexpected("Alpha Vantage response is not an object")

    series = payload.get(ALPHAVANTAGE_SERIES_KEY)
    if not isinstance(series, dict):
        message = (
            payload.get("Note")
            or payload.get("Information")
            or payload.get("Error Message")
            or f"missing '{ALPHAVANTAGE_SERIES_KEY}'"
        )
        raise UpstreamShapeUnexpected(f"Alpha Vantage: {message}")

    rows = [
        (day, values.get(ALPHAVANTAGE_CLOSE_KEY) if isinstance(values, dict) else None)
        for day, values in series.items()
    ]
    return normalize_series(rows)


def _utc_datetime(seconds: Optional[float]) -> Optional[datetime]:
    """UTC datetime for an epoch, None when missing or out of range"""
    if seconds is None:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=pytz.UTC)
    except (OverflowError, OSError, ValueError):
        return None


def parse_finnhub_quote(payload: Any) -> Quote:
    """Parse Finnhub /quote response ({c, d, dp, h, l, o, pc, t})"""
    if not isinstance(payload, dict):
        raise UpstreamShapeUnexpected("Finnhub quote is not an object")

    price = safe_float(payload.get("c"))
    seconds = safe_float(payload.get("t"))
    moment = _utc_datetime(seconds) if seconds else None
    timestamp = moment.strftime("%Y-%m-%dT%H:%M:%SZ") if moment else None
    return Quote(price=price, timestamp=timestamp)


def parse_alphavantage_quote(payload: Any) -> Quote:
    """Parse Alpha Vantage GLOBAL_QUOTE response"""
    if not isinstance(payload, dict):
        raise UpstreamShapeUnexpected("Alpha Vantage quote is not an object")

    quote = payload.get(ALPHAVANTAGE_QUOTE_KEY) or {}
    if not isinstance(quote, dict):
        raise UpstreamShapeUnexpected("Alpha Vantage global quote is not an object")
    raw_price = next((quote[key] for key in ALPHAVANTAGE_PRICE_KEYS if quote.get(key)), None)
    timestamp = quote.get(ALPHAVANTAGE_DAY_KEY) or None
    return Quote(price=safe_float(raw_price), timestamp=timestamp)


# ---- Transport ----

def _http_get(url: str, params: Dict[str, Any]) -> requests.Response:
    try:
        response = requests.get(url, params=params, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise UpstreamRequestFailed(f"Request to {url} failed: {e}")

    if not response.ok:
        raise UpstreamRequestFailed(f"HTTP {response.status_code} from {url}")
    return response


def _json(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise UpstreamShapeUnexpected(f"Invalid JSON from {response.url}: {e}")


def _provider_name(provider: Union[Provider, str]) -> str:
    return getattr(provider, "value", str(provider))


def _require_key(api_key: Optional[str], provider: Provider) -> str:
    key = (api_key or "").strip()
    if not key:
        raise MissingCredential(f"{provider.value} requires an API key")
    return key


# ---- Fetchers ----

@upstream_retry
def fetch_stooq_series(symbol: str, mapper: Optional[SymbolMapper] = None) -> List[PricePoint]:
    """
    Get daily closes from Stooq

    Args:
        symbol: Display ticker (mapped to e.g. "brk-b.us")
        mapper: Symbol mapper, default table when omitted

    Returns:
        Ascending price series
    """
    mapper = mapper or SymbolMapper()
    mapped = mapper.map_symbol(symbol, Provider.STOOQ)
    logger.debug(f"Fetching Stooq data for {symbol} ({mapped})")

    response = _http_get(STOOQ_URL, {"s": mapped, "i": "d"})
    series = parse_stooq_csv(response.text)

    logger.debug(f"Retrieved {len(series)} days of data for {symbol}")
    return series


@upstream_retry
def fetch_finnhub_series(
    symbol: str,
    api_key: Optional[str],
    mapper: Optional[SymbolMapper] = None,
    now: Optional[datetime] = None,
) -> List[PricePoint]:
    """Get ~400 calendar days of daily closes from Finnhub"""
    key = _require_key(api_key, Provider.FINNHUB)
    mapper = mapper or SymbolMapper()
    mapped = mapper.map_symbol(symbol, Provider.FINNHUB)

    now = now or datetime.now(pytz.UTC)
    to_ts = int(now.timestamp())
    from_ts = int((now - timedelta(days=FINNHUB_LOOKBACK_DAYS)).timestamp())

    logger.debug(f"Fetching Finnhub candles for {mapped}")
    response = _http_get(
        f"{FINNHUB_URL}/stock/candle",
        {"symbol": mapped, "resolution": "D", "from": from_ts, "to": to_ts, "token": key},
    )
    series = parse_finnhub_candles(_json(response))

    logger.debug(f"Retrieved {len(series)} days of data for {symbol}")
    return series


@upstream_retry
def fetch_alphavantage_series(
    symbol: str, api_key: Optional[str], mapper: Optional[SymbolMapper] = None
) -> List[PricePoint]:
    """Get the compact (~100 days) daily adjusted series from Alpha Vantage"""
    key = _require_key(api_key, Provider.ALPHAVANTAGE)
    mapper = mapper or SymbolMapper()
    mapped = mapper.map_symbol(symbol, Provider.ALPHAVANTAGE)

    logger.debug(f"Fetching Alpha Vantage daily series for {mapped}")
    response = _http_get(
        ALPHAVANTAGE_URL,
        {
            "function": "TIME_SERIES_DAILY_ADJUSTED",
            "symbol": mapped,
            "outputsize": "compact",
            "apikey": key,
        },
    )
    series = parse_alphavantage_daily(_json(response))

    logger.debug(f"Retrieved {len(series)} days of data for {symbol}")
    return series


@upstream_retry
def fetch_finnhub_quote(
    symbol: str, api_key: Optional[str], mapper: Optional[SymbolMapper] = None
) -> Quote:
    """Get the live quote from Finnhub"""
    key = _require_key(api_key, Provider.FINNHUB)
    mapper = mapper or SymbolMapper()
    mapped = mapper.map_symbol(symbol, Provider.FINNHUB)

    response = _http_get(f"{FINNHUB_URL}/quote", {"symbol": mapped, "token": key})
    return parse_finnhub_quote(_json(response))


@upstream_retry
def fetch_alphavantage_quote(
    symbol: str, api_key: Optional[str], mapper: Optional[SymbolMapper] = None
) -> Quote:
    """Get the latest global quote from Alpha Vantage"""
    key = _require_key(api_key, Provider.ALPHAVANTAGE)
    mapper = mapper or SymbolMapper()
    mapped = mapper.map_symbol(symbol, Provider.ALPHAVANTAGE)

    response = _http_get(
        ALPHAVANTAGE_URL, {"function": "GLOBAL_QUOTE", "symbol": mapped, "apikey": key}
    )
    return parse_alphavantage_quote(_json(response))


def fetch_series(
    provider: Union[Provider, str],
    symbol: str,
    api_key: Optional[str] = None,
    mapper: Optional[SymbolMapper] = None,
) -> List[PricePoint]:
    """Fetch a daily series from the given provider; raises DataSourceError"""
    provider = parse_provider(provider)
    if provider is Provider.STOOQ:
        return fetch_stooq_series(symbol, mapper=mapper)
    if provider is Provider.FINNHUB:
        return fetch_finnhub_series(symbol, api_key, mapper=mapper)
    return fetch_alphavantage_series(symbol, api_key, mapper=mapper)


def fetch_quote(
    provider: Union[Provider, str],
    symbol: str,
    api_key: Optional[str] = None,
    mapper: Optional[SymbolMapper] = None,
) -> Quote:
    """Fetch a live quote from the given provider; Stooq has none"""
    provider = parse_provider(provider)
    if provider is Provider.FINNHUB:
        return fetch_finnhub_quote(symbol, api_key, mapper=mapper)
    if provider is Provider.ALPHAVANTAGE:
        return fetch_alphavantage_quote(symbol, api_key, mapper=mapper)
    return Quote.absent()


def get_series(
    provider: Union[Provider, str],
    symbol: str,
    api_key: Optional[str] = None,
    mapper: Optional[SymbolMapper] = None,
) -> List[PricePoint]:
    """Fetch a daily series, returning an empty series on any adapter error"""
    try:
        return fetch_series(provider, symbol, api_key, mapper=mapper)
    except DataSourceError as e:
        logger.warning(f"No series for {symbol} from {_provider_name(provider)}: {e}")
        return []


def get_quote(
    provider: Union[Provider, str],
    symbol: str,
    api_key: Optional[str] = None,
    mapper: Optional[SymbolMapper] = None,
) -> Quote:
    """Fetch a live quote, returning an absent quote on any adapter error"""
    try:
        return fetch_quote(provider, symbol, api_key, mapper=mapper)
    except DataSourceError as e:
        logger.warning(f"No quote for {symbol} from {_provider_name(provider)}: {e}")
        return Quote.absent()
