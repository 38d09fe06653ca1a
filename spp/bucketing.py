"""
SPP Display - Time Bucketer
Maps absolute UTC instants onto ERCOT display slots.

Slot conventions
----------------
  interval-ending  5-minute slots labelled by the END of the interval:
                   "00:05", "00:10", ... "23:55", "24:00"  (288 per day)
  hour-ending      hourly slots "01:00" ... "24:00"        (24 per day)

A value for the local hour [H, H+1) is labelled hour-ending H+1, so the last
hour of the trading day is "24:00" and "00:00" is never produced.

All conversions use the fixed market offset in ``spp.settings``
(UTC-6, no daylight-saving rule).
"""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from spp.settings import MARKET_TIMEZONE

INTERVAL_SECONDS = 300
INTERVALS_PER_DAY = 288
HOURS_PER_DAY = 24


class Granularity(str, Enum):
    FIVE_MINUTE = "5min"
    HOURLY = "hourly"


# ---------------------------------------------------------------------------
# Localisation
# ---------------------------------------------------------------------------


def to_market_time(ts: datetime) -> datetime:
    """Convert an instant to market-local wall time. Naive input is taken as UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(MARKET_TIMEZONE)


def localize(ts: datetime) -> tuple[int, int, int]:
    """Return ``(hour, minute, second)`` of *ts* in market-local time."""
    local = to_market_time(ts)
    return local.hour, local.minute, local.second


def _hour_label(hour: int) -> str:
    # local hour 0 on the hour closes the previous hour: label it 24
    return f"{hour if hour else 24:02d}:00"


# ---------------------------------------------------------------------------
# Bucketing
# ---------------------------------------------------------------------------


def bucket_hour_ending(ts: datetime) -> str:
    """
    Hour-ending slot for an hourly record stamped at the START of its hour.

    Local 00:xx -> "01:00", local 23:xx -> "24:00".
    """
    hour, _, _ = localize(ts)
    return f"{hour + 1:02d}:00"


def bucket_interval_ending(ts: datetime) -> str:
    """
    Interval-ending slot for a 5-minute record.

    An instant exactly on the hour keeps the hour-ending form (local midnight
    is the day's final slot, "24:00"). Anything else rounds the elapsed time
    within the hour up to the next 5-minute boundary; reaching 60 minutes
    rolls into the next hour.
    """
    local = to_market_time(ts)
    if local.minute == 0 and local.second == 0 and local.microsecond == 0:
        return _hour_label(local.hour)

    elapsed = local.minute * 60 + local.second + local.microsecond / 1_000_000
    minutes = math.ceil(elapsed / INTERVAL_SECONDS) * INTERVAL_SECONDS // 60
    if minutes == 60:
        return f"{local.hour + 1:02d}:00"
    return f"{local.hour:02d}:{minutes:02d}"


def bucket(ts: datetime, granularity: Granularity) -> str:
    if granularity is Granularity.FIVE_MINUTE:
        return bucket_interval_ending(ts)
    return bucket_hour_ending(ts)


# ---------------------------------------------------------------------------
# Enumeration
# ---------------------------------------------------------------------------


def all_interval_slots() -> list[str]:
    """The 288 interval-ending slots of a trading day, chronological."""
    slots = []
    for n in range(1, INTERVALS_PER_DAY + 1):
        hour, minute = divmod(n * 5, 60)
        slots.append(f"{hour:02d}:{minute:02d}")
    return slots


def all_hour_slots() -> list[str]:
    """The 24 hour-ending slots of a trading day, chronological."""
    return [f"{he:02d}:00" for he in range(1, HOURS_PER_DAY + 1)]


def all_slots(granularity: Granularity) -> list[str]:
    if granularity is Granularity.FIVE_MINUTE:
        return all_interval_slots()
    return all_hour_slots()


# ---------------------------------------------------------------------------
# Trading-day calendar
# ---------------------------------------------------------------------------


def trading_day_utc_range(day: date) -> tuple[datetime, datetime]:
    """Half-open UTC range ``[local midnight, next local midnight)`` for *day*."""
    start_local = datetime(day.year, day.month, day.day, tzinfo=MARKET_TIMEZONE)
    start = start_local.astimezone(timezone.utc)
    return start, start + timedelta(days=1)


def market_today(now: Optional[datetime] = None) -> date:
    """Current market-local calendar date."""
    return to_market_time(now or datetime.now(tz=timezone.utc)).date()


def market_tomorrow(now: Optional[datetime] = None) -> date:
    return market_today(now) + timedelta(days=1)


def format_oper_day(day: date) -> str:
    """ERCOT operating-day label, e.g. ``03/15/2025``."""
    return day.strftime("%m/%d/%Y")


def round_half_up(value: float, places: int = 2) -> float:
    """Round with ties toward +infinity (``round()`` would round half to even)."""
    factor = 10 ** places
    return math.floor(value * factor + 0.5) / factor
