#!/usr/bin/env python3
"""
Utilities for the Weekly Allocator

Provides logging, date parsing, numeric guards, display formatting and the
data source error taxonomy.
"""

import logging
import math
import os
from pathlib import Path
from datetime import datetime, date
from typing import Optional


def get_logger(name: str) -> logging.Logger:
    """Get configured logger with file and console output"""

    # Create logs directory
    logs_dir = Path(os.getenv("ALLOCATOR_LOG_DIR", "logs"))
    logs_dir.mkdir(parents=True, exist_ok=True)

    # Configure logger
    logger = logging.getLogger(name)

    if not logger.handlers:  # Avoid duplicate handlers
        logger.setLevel(logging.INFO)

        # File handler
        file_handler = logging.FileHandler(logs_dir / "allocator.log")
        file_handler.setLevel(logging.INFO)

        # Console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)

        # Formatter
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        file_handler.setFormatter(formatter)
        console_handler.setFormatter(formatter)

        logger.addHandler(file_handler)
        logger.addHandler(console_handler)

    return logger


def set_log_level(level: int) -> None:
    """Apply level to every allocator logger and its handlers"""
    for name in list(logging.Logger.manager.loggerDict):
        if name == "allocator" or name.startswith("allocator."):
            logger = logging.getLogger(name)
            logger.setLevel(level)
            for handler in logger.handlers:
                handler.setLevel(level)


def parse_date(date_str: str) -> date:
    """Parse ISO date string to date object"""
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError:
        raise ValueError(f"Invalid date format: {date_str}. Use YYYY-MM-DD")


def safe_float(value, default: Optional[float] = None) -> Optional[float]:
    """Convert value to a finite float, returning default otherwise"""
    try:
        if value is None or value == "" or value == "N/A":
            return default
        result = float(value)
    except (ValueError, TypeError):
        return default
    if not math.isfinite(result):
        return default
    return result


def finite_or(value: float, default: float = 0.0) -> float:
    """Return value unless it is NaN or infinite"""
    return value if math.isfinite(value) else default


def format_price(value: Optional[float], decimals: int = 2) -> str:
    """Format price as USD, e.g. $1,234.56"""
    if value is None:
        return "-"
    return f"${value:,.{decimals}f}"


def format_score(value: float, decimals: int = 3) -> str:
    """Format composite score; unscoreable values render as a dash"""
    if not math.isfinite(value):
        return "-"
    return f"{value:.{decimals}f}"


def ensure_directory(path) -> Path:
    """Ensure directory exists, create if not"""
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


class RetryableError(Exception):
    """Exception that should trigger retry logic"""
    pass


class DataSourceError(Exception):
    """Base class for provider adapter failures"""
    pass


class MissingCredential(DataSourceError):
    """Keyed provider called without an API key"""
    pass


class UpstreamRequestFailed(DataSourceError, RetryableError):
    """Network error, timeout or non-2xx response from a provider"""
    pass


class UpstreamShapeUnexpected(DataSourceError):
    """Provider payload could not be parsed into the common shape"""
    pass


class UnsupportedProvider(DataSourceError, ValueError):
    """Unknown provider name"""
    pass
