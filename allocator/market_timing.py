#!/usr/bin/env python3
"""
US market timing

Tells whether NYSE is trading, so a missing live quote can be read as
"market closed" rather than "provider failed".
"""

from datetime import datetime, time
from typing import Optional

import exchange_calendars as xcals
import pandas as pd
import pytz

NY_TZ = pytz.timezone("America/New_York")

MARKET_OPEN = time(9, 30)
MARKET_CLOSE = time(16, 0)

_calendar = None


def get_nyse_calendar():
    """NYSE calendar, loaded once"""
    global _calendar
    if _calendar is None:
        _calendar = xcals.get_calendar("XNYS")
    return _calendar


def _utc(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(pytz.UTC)
    if now.tzinfo is None:
        return pytz.UTC.localize(now)
    return now.astimezone(pytz.UTC)


def is_us_market_open(now: Optional[datetime] = None) -> bool:
    """
    Check whether the US market is open

    Uses the NYSE calendar (holidays, early closes). Falls back to a plain
    09:30-16:00 ET weekday window if the calendar cannot answer.
    """
    now_utc = _utc(now)
    try:
        return bool(get_nyse_calendar().is_open_at_time(pd.Timestamp(now_utc)))
    except Exception:
        now_et = now_utc.astimezone(NY_TZ)
        if now_et.weekday() >= 5:  # Saturday/Sunday
            return False
        return MARKET_OPEN <= now_et.time() <= MARKET_CLOSE


def market_status(now: Optional[datetime] = None) -> str:
    """'open' or 'closed'"""
    return "open" if is_us_market_open(now) else "closed"
