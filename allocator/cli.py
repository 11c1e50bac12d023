#!/usr/bin/env python3
"""
Command-line interface for the Weekly Allocator

Usage:
    python -m allocator --once
    python -m allocator --provider finnhub --interval 120
    python -m allocator --once --weights 0.6,0.3,0.1 --tickers VOO NVDA QQQ
"""

import argparse
import dataclasses
import logging
import sys
from typing import List, Optional

from .config import (
    Settings,
    clamp_refresh_seconds,
    load_settings,
    parse_instruments,
    parse_weights,
)
from .datasources import parse_provider
from .market_timing import market_status
from .models import Instrument, Provider, RankingReport
from .ranking import save_results
from .refresh import RefreshLoop
from .scoring import explain_score
from .utils import format_price, format_score, get_logger, set_log_level

logger = get_logger(__name__)

DISCLAIMER = "For informational purposes only; not financial advice."


def _weights_arg(text: str):
    try:
        return parse_weights(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def _provider_arg(text: str) -> Provider:
    try:
        return parse_provider(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="allocator",
        description="Weekly Allocator - rank instruments by trend, momentum and recent return",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # One ranking pass with the free Stooq daily data
  python -m allocator --once

  # Live quotes from Finnhub (FINNHUB_API_KEY in environment or .env)
  python -m allocator --provider finnhub --interval 120

  # Custom weights (trend, momentum, 5-day return) and tickers
  python -m allocator --once --weights 0.6,0.3,0.1 --tickers VOO NVDA "QQQ=Invesco QQQ"
        """,
    )

    parser.add_argument(
        "--provider",
        type=_provider_arg,
        default=settings.provider,
        help=f"Data provider: {', '.join(p.value for p in Provider)} (default: {settings.provider.value})",
    )
    parser.add_argument(
        "--once", action="store_true", help="Run a single ranking pass and exit"
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=settings.refresh_seconds,
        help=f"Refresh interval in seconds, minimum 30 (default: {settings.refresh_seconds})",
    )
    parser.add_argument(
        "--weights",
        type=_weights_arg,
        default=settings.weights,
        help="Weights as slope,momentum,recent each in [0,1] (default: %(default)s)",
    )
    parser.add_argument(
        "--tickers",
        nargs="+",
        default=None,
        help="Tickers to rank, SYM or SYM=Name (default: VOO BRK.B NVDA)",
    )
    parser.add_argument(
        "--output",
        default=settings.output_dir,
        help=f"Output directory for ranking.csv (default: {settings.output_dir})",
    )
    parser.add_argument(
        "--no-save", action="store_true", help="Do not write ranking.csv"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    return parser


def format_report(report: RankingReport, instruments: List[Instrument], fallback: bool = False) -> str:
    """Render a ranking report as a plain-text table"""
    lines = []
    provider = (report.provider or "").upper()
    note = " (no key -> fallback)" if fallback else ""
    lines.append(f"Provider: {provider}{note} | US market {market_status()} | Live when available")
    lines.append("")

    lines.append(f"{'Symbol':8s} {'Name':32s} {'Price':>14s} {'Source':6s} {'Score':>8s}")
    lines.append("-" * 72)
    for instrument in instruments:
        price = report.prices.get(instrument.symbol)
        result = report.score_for(instrument.symbol)
        source = "Live" if price and price.is_live else "Close"
        score = format_score(result.composite_score) if result else "-"
        marker = " *" if instrument.symbol == report.recommendation else ""
        lines.append(
            f"{instrument.symbol:8s} {instrument.label[:32]:32s} "
            f"{format_price(price.value if price else None):>14s} {source:6s} {score:>8s}{marker}"
        )
    lines.append("")

    if report.recommendation:
        top = report.ranked[0]
        lines.append(f"This week's recommendation: {report.recommendation}")
        lines.append(f"Based on {explain_score(top, report.weights)}.")
    else:
        lines.append("Fetching data...")

    for symbol, error in report.errors.items():
        lines.append(f"! {symbol}: {error}")

    lines.append("")
    lines.append(DISCLAIMER)
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point"""
    try:
        settings = load_settings()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    parser = build_parser(settings)
    args = parser.parse_args(argv)

    # Configure logging level
    if args.debug:
        set_log_level(logging.DEBUG)
        logger.debug("Debug logging enabled")
    elif args.verbose:
        set_log_level(logging.INFO)
        logger.info("Verbose logging enabled")
    else:
        set_log_level(getattr(logging, settings.log_level))

    try:
        instruments = parse_instruments(args.tickers) if args.tickers else settings.instruments
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    if args.interval < 30:
        logger.warning(f"Interval {args.interval}s is below the 30s minimum, using 30s")

    settings = dataclasses.replace(
        settings,
        provider=args.provider,
        refresh_seconds=clamp_refresh_seconds(args.interval),
        weights=args.weights,
        instruments=instruments,
        output_dir=args.output,
    )
    fallback = settings.provider.requires_key and not settings.api_key_for()

    # Show configuration
    logger.info("Weekly Allocator Starting")
    logger.info("=" * 50)
    logger.info(f"Provider: {settings.provider.value}{' (no key, using stooq)' if fallback else ''}")
    logger.info(f"Tickers: {', '.join(settings.symbols)}")
    logger.info(f"Weights: {settings.weights.as_dict()}")
    logger.info(f"Mode: {'single pass' if args.once else f'refresh every {settings.refresh_seconds}s'}")
    logger.info("=" * 50)

    loop = RefreshLoop(settings)

    def publish(report: RankingReport) -> None:
        print("\n" + format_report(report, list(settings.instruments), fallback=fallback), flush=True)
        if not args.no_save:
            save_results(report, settings.output_dir, settings.instruments)

    loop.subscribe(publish)

    try:
        if args.once:
            loop.run_once()
        else:
            loop.run_forever()
        sys.exit(0)

    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        sys.exit(1)

    except Exception as e:
        logger.error(f"Allocator failed: {e}")
        if args.debug:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
