"""
SPP Display - record types

``PriceRecord`` and ``PredictionRecord`` are the rows produced by the source
adapters. ``Fetched`` / ``Unavailable`` form the result type of best-effort
fetches: callers branch on it instead of catching exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Generic, Iterable, TypeVar, Union

import pandas as pd

T = TypeVar("T")

PRICE_COLUMNS = ["timestamp", "settlement_point", "price"]


@dataclass(frozen=True)
class PriceRecord:
    """One price observation for one settlement point."""

    timestamp: datetime        # absolute instant, UTC
    settlement_point: str
    price: float               # $/MWh


@dataclass(frozen=True)
class PredictionRecord:
    """One day-ahead price prediction; best-effort enrichment."""

    timestamp: datetime
    settlement_point: str
    hour_ending: int           # 1..24
    predicted_price: float


@dataclass(frozen=True)
class Fetched(Generic[T]):
    value: T


@dataclass(frozen=True)
class Unavailable:
    source: str
    reason: str


FetchOutcome = Union[Fetched[T], Unavailable]


def records_to_frame(records: Iterable[PriceRecord]) -> pd.DataFrame:
    """Tabulate records in input order with the ``PRICE_COLUMNS`` schema."""
    rows = [(r.timestamp, r.settlement_point, r.price) for r in records]
    return pd.DataFrame(rows, columns=PRICE_COLUMNS)
