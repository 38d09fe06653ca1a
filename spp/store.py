"""
SPP Display - time-series store adapter
Reads settlement point prices from InfluxDB through the Flux query API.

Series (measurements)
---------------------
  rtm_lmp_api       5-minute RTM prices, settled, ~6h delay      field: lmp
  rtm_lmp_realtime  5-minute RTM prices, provisional, ~5 min     field: lmp
  dam_lmp           hourly DAM prices, hour-beginning stamps     field: lmp
  dam_prediction    hourly DAM predictions                       fields:
                                                                 predicted_price,
                                                                 hour_ending

Every series is tagged with ``settlement_point``. A trading day is queried
as the half-open UTC range of its market-local midnights.

The ``PriceStore`` is built once at startup and shared read-only by all
requests.
"""

from __future__ import annotations

import asyncio
import re
from datetime import date, datetime
from typing import Any, Optional, Sequence

from influxdb_client import InfluxDBClient
from loguru import logger

from spp.bucketing import trading_day_utc_range
from spp.errors import InvalidSettlementPoint, SourceUnavailable
from spp.merge import merge_sources
from spp.records import Fetched, FetchOutcome, PredictionRecord, PriceRecord, Unavailable
from spp.settings import (
    DAM_PREDICTION_SERIES,
    PRICE_FIELD,
    RTM_API_SERIES,
    RTM_REALTIME_SERIES,
    InfluxSettings,
)

_POINT_RE = re.compile(r"^[A-Z0-9_]+$")


def _rfc3339(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def _check_points(points: Sequence[str]) -> None:
    bad = [p for p in points if not _POINT_RE.match(p)]
    if bad:
        raise InvalidSettlementPoint(bad)


def build_flux(
    bucket: str,
    series: str,
    start: datetime,
    stop: datetime,
    points: Sequence[str],
    fields: Sequence[str],
) -> str:
    """Flux query for *fields* of *series* over ``[start, stop)``, one row per instant."""
    point_set = ", ".join(f'"{p}"' for p in points)
    field_filter = " or ".join(f'r._field == "{f}"' for f in fields)
    return f'''
        from(bucket: "{bucket}")
          |> range(start: {_rfc3339(start)}, stop: {_rfc3339(stop)})
          |> filter(fn: (r) => r._measurement == "{series}")
          |> filter(fn: (r) => contains(value: r.settlement_point, set: [{point_set}]))
          |> filter(fn: (r) => {field_filter})
          |> pivot(rowKey: ["_time"], columnKey: ["_field"], valueColumn: "_value")
          |> group()
          |> sort(columns: ["_time"])
    '''


class PriceStore:
    """
    Read-only access to the price series.

    Parameters
    ----------
    query_api:
        An ``influxdb_client`` ``QueryApi`` (anything with ``query(flux)``
        returning Flux tables).
    bucket:
        InfluxDB bucket holding the series.
    client:
        Owning ``InfluxDBClient``; closed by :meth:`close`.
    """

    def __init__(self, query_api: Any, bucket: str, client: Optional[InfluxDBClient] = None) -> None:
        self._query_api = query_api
        self._bucket = bucket
        self._client = client

    @classmethod
    def from_settings(cls, settings: InfluxSettings) -> "PriceStore":
        client = InfluxDBClient(url=settings.url, token=settings.token, org=settings.org)
        logger.info("InfluxDB client initialised ({} / bucket={}).", settings.url, settings.bucket)
        return cls(client.query_api(), settings.bucket, client=client)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("InfluxDB client closed.")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _query(
        self,
        series: str,
        day: date,
        points: Sequence[str],
        fields: Sequence[str],
    ) -> list[dict]:
        """Run one series query; raises ``SourceUnavailable`` on any client failure."""
        start, stop = trading_day_utc_range(day)
        flux = build_flux(self._bucket, series, start, stop, points, fields)

        logger.info("Querying {} | {} to {} | {} points", series, _rfc3339(start), _rfc3339(stop), len(points))
        try:
            tables = self._query_api.query(flux)
        except Exception as exc:
            logger.error("Query on {} failed: {}", series, exc)
            raise SourceUnavailable(series, str(exc)) from exc

        rows = [rec.values for table in tables for rec in table.records]
        logger.debug("{}: {} rows.", series, len(rows))
        return rows

    # ------------------------------------------------------------------
    # Public methods
    # ------------------------------------------------------------------

    def fetch(self, day: date, points: Sequence[str], series: str) -> list[PriceRecord]:
        """
        Price records of *series* for the trading *day*, ascending by time.

        Raises
        ------
        SourceUnavailable
            When the store query fails.
        InvalidSettlementPoint
            When an identifier in *points* is not ``[A-Z0-9_]+``.
        """
        if not points:
            return []
        _check_points(points)

        records = []
        for row in self._query(series, day, points, [PRICE_FIELD]):
            price = row.get(PRICE_FIELD)
            if price is None:
                continue
            records.append(
                PriceRecord(
                    timestamp=row["_time"],
                    settlement_point=row["settlement_point"],
                    price=float(price),
                )
            )
        records.sort(key=lambda r: r.timestamp)
        return records

    def fetch_predictions(
        self, day: date, points: Sequence[str]
    ) -> FetchOutcome[list[PredictionRecord]]:
        """
        Prediction records for *day*.

        A failed query or an unparseable row yields ``Unavailable`` rather than
        an exception.

        Raises
        ------
        InvalidSettlementPoint
            When an identifier in *points* is not ``[A-Z0-9_]+``.
        """
        if not points:
            return Fetched([])
        _check_points(points)

        try:
            rows = self._query(
                DAM_PREDICTION_SERIES, day, points, ["predicted_price", "hour_ending"]
            )
            records = [
                PredictionRecord(
                    timestamp=row["_time"],
                    settlement_point=row["settlement_point"],
                    hour_ending=int(row["hour_ending"]),
                    predicted_price=float(row["predicted_price"]),
                )
                for row in rows
                if row.get("hour_ending") is not None and row.get("predicted_price") is not None
            ]
        except SourceUnavailable as exc:
            logger.warning("DAM predictions unavailable for {}: {}", day, exc.reason)
            return Unavailable(DAM_PREDICTION_SERIES, exc.reason)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("DAM predictions for {} could not be parsed: {}", day, exc)
            return Unavailable(DAM_PREDICTION_SERIES, f"malformed row: {exc}")

        return Fetched(records)


# ---------------------------------------------------------------------------
# Logical feeds
# ---------------------------------------------------------------------------


async def fetch_realtime(store: PriceStore, day: date, points: Sequence[str]) -> list[PriceRecord]:
    """
    Real-time prices for *day*: settled series overlaid by the provisional one.

    Both series are queried concurrently and fully materialised before the
    merge, so completion order has no effect on the result.
    """
    settled, provisional = await asyncio.gather(
        asyncio.to_thread(store.fetch, day, points, RTM_API_SERIES),
        asyncio.to_thread(store.fetch, day, points, RTM_REALTIME_SERIES),
    )
    logger.info(
        "RTM {} | settled={} provisional={}", day, len(settled), len(provisional)
    )
    return merge_sources(settled, provisional)
