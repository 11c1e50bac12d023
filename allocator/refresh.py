#!/usr/bin/env python3
"""
Periodic refresh loop for the Weekly Allocator

Each tick fetches every tracked symbol, scores the universe and publishes the
resulting RankingReport to subscribers. The loop holds the only mutable state
(current weights, current provider, last fetched data); scoring receives a
snapshot of it.

stop() prevents further ticks. A tick that is already running finishes and
publishes before the loop exits.
"""

import functools
import signal
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Tuple, Union

from .config import Settings, clamp_refresh_seconds
from .datasources import fetch_quote, fetch_series, parse_provider, resolve_provider
from .models import PricePoint, Provider, Quote, RankingReport, Weights
from .ranking import run_ranking_pass
from .symbol_mapper import SymbolMapper
from .utils import get_logger

logger = get_logger(__name__)

SeriesFetcher = Callable[[Provider, str, Optional[str]], List[PricePoint]]
QuoteFetcher = Callable[[Provider, str, Optional[str]], Quote]
Subscriber = Callable[[RankingReport], None]


class RefreshLoop:
    """Cancellable fetch -> score -> publish loop"""

    def __init__(
        self,
        settings: Settings,
        series_fetcher: Optional[SeriesFetcher] = None,
        quote_fetcher: Optional[QuoteFetcher] = None,
        mapper: Optional[SymbolMapper] = None,
    ):
        self.settings = settings
        self.mapper = mapper or SymbolMapper(settings.symbol_map_file)
        self._series_fetcher = series_fetcher or functools.partial(fetch_series, mapper=self.mapper)
        self._quote_fetcher = quote_fetcher or functools.partial(fetch_quote, mapper=self.mapper)

        self._lock = threading.Lock()
        self._weights = settings.weights
        self._provider = settings.provider
        self._subscribers: List[Subscriber] = []

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        # Last fetched data, kept between ticks
        self.series: Dict[str, List[PricePoint]] = {}
        self.quotes: Dict[str, Quote] = {}
        self.last_report: Optional[RankingReport] = None
        self.ticks = 0

    # ---- State ----

    @property
    def interval(self) -> int:
        return clamp_refresh_seconds(self.settings.refresh_seconds)

    @property
    def weights(self) -> Weights:
        with self._lock:
            return self._weights

    @property
    def provider(self) -> Provider:
        with self._lock:
            return self._provider

    def update_weights(self, weights: Optional[Weights] = None, **changes) -> Weights:
        """Replace the weights, or adjust some of them; applies from the next tick"""
        with self._lock:
            self._weights = weights if weights is not None else self._weights.replace(**changes)
            logger.info(f"Weights updated: {self._weights.as_dict()}")
            return self._weights

    def set_provider(self, provider: Union[Provider, str]) -> Provider:
        """Switch provider; applies from the next tick"""
        provider = parse_provider(provider)
        with self._lock:
            self._provider = provider
        logger.info(f"Provider set to {provider.value}")
        return provider

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    # ---- Tick ----

    def _fetch_symbol(
        self, provider: Provider, api_key: Optional[str], symbol: str
    ) -> Tuple[List[PricePoint], Quote, List[str]]:
        errors = []

        try:
            series = list(self._series_fetcher(provider, symbol, api_key))
        except Exception as e:
            logger.warning(f"Series fetch failed for {symbol}: {e}")
            errors.append(f"series: {e}")
            series = []

        quote = Quote.absent()
        if provider.has_quotes:
            try:
                quote = self._quote_fetcher(provider, symbol, api_key) or Quote.absent()
            except Exception as e:
                logger.warning(f"Quote fetch failed for {symbol}: {e}")
                errors.append(f"quote: {e}")

        return series, quote, errors

    def _fetch_all(
        self, provider: Provider, api_key: Optional[str]
    ) -> Tuple[Dict[str, List[PricePoint]], Dict[str, Quote], Dict[str, str]]:
        symbols = self.settings.symbols
        workers = max(1, min(self.settings.max_workers, len(symbols) or 1))

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                symbol: pool.submit(self._fetch_symbol, provider, api_key, symbol)
                for symbol in symbols
            }

        # Collect in universe order so ties resolve by listing order
        series: Dict[str, List[PricePoint]] = {}
        quotes: Dict[str, Quote] = {}
        errors: Dict[str, str] = {}
        for symbol in symbols:
            symbol_series, quote, symbol_errors = futures[symbol].result()
            series[symbol] = symbol_series
            quotes[symbol] = quote
            if symbol_errors:
                errors[symbol] = "; ".join(symbol_errors)

        return series, quotes, errors

    def run_once(self) -> RankingReport:
        """
        Run one tick synchronously

        Returns:
            RankingReport published to subscribers
        """
        with self._lock:
            weights = self._weights
            requested = self._provider

        provider = resolve_provider(requested, self.settings.api_key_for(requested))
        api_key = self.settings.api_key_for(provider)

        logger.info(f"Refreshing {len(self.settings.symbols)} symbols from {provider.value}")
        series, quotes, errors = self._fetch_all(provider, api_key)

        report = run_ranking_pass(series, quotes, weights, provider=provider.value, errors=errors)

        self.series = series
        self.quotes = quotes
        self.last_report = report
        self.ticks += 1

        self._publish(report)
        return report

    def _publish(self, report: RankingReport) -> None:
        for callback in list(self._subscribers):
            try:
                callback(report)
            except Exception as e:
                logger.error(f"Subscriber {getattr(callback, '__name__', callback)} failed: {e}")

    # ---- Scheduling ----

    def _run(self) -> None:
        logger.info(f"=== Refresh loop started (every {self.interval}s) ===")
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"Error in refresh tick: {e}")

            self._stop_event.wait(self.interval)
        logger.info("=== Refresh loop stopped ===")

    def start(self) -> None:
        """Run ticks on a background thread"""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="allocator-refresh", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop scheduling ticks; a tick in flight still completes"""
        self._stop_event.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run_forever(self) -> None:
        """Run ticks in the calling thread until stop() or SIGINT/SIGTERM"""
        if threading.current_thread() is threading.main_thread():
            self._setup_signal_handlers()
        self._stop_event.clear()
        self._run()

    def _setup_signal_handlers(self) -> None:
        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, stopping after current tick...")
            self.stop()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)
