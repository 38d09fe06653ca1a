"""Builders and fakes shared by the test modules."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Iterable, Optional

from spp.records import PriceRecord

TRADING_DAY = date(2025, 3, 15)


def local_ts(hour: int, minute: int = 0, second: int = 0, day: date = TRADING_DAY) -> datetime:
    """UTC instant for a market-local (UTC-6) wall time on *day*."""
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc) + timedelta(
        hours=hour + 6, minutes=minute, seconds=second
    )


def price(point: str, hour: int, minute: int, value: float, second: int = 0) -> PriceRecord:
    return PriceRecord(timestamp=local_ts(hour, minute, second), settlement_point=point, price=value)


class FakeQueryApi:
    """Stands in for ``influxdb_client``'s QueryApi, keyed by measurement name."""

    _MEASUREMENT = re.compile(r'r\._measurement == "(\w+)"')

    def __init__(
        self,
        series: Optional[dict[str, list[dict]]] = None,
        failing: Iterable[str] = (),
    ) -> None:
        self.series = series or {}
        self.failing = set(failing)
        self.queries: list[str] = []

    def query(self, flux: str):
        self.queries.append(flux)
        name = self._MEASUREMENT.search(flux).group(1)
        if name in self.failing:
            raise ConnectionError(f"{name}: connection refused")
        records = [SimpleNamespace(values=dict(row)) for row in self.series.get(name, [])]
        return [SimpleNamespace(records=records)]


def lmp_row(point: str, ts: datetime, value: float) -> dict:
    return {"_time": ts, "settlement_point": point, "lmp": value}
