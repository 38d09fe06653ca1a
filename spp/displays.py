"""
SPP Display - views
Assembles the three displays served by the API:

  RTM grid   288 interval-ending rows, settled + provisional RTM merged
  DAM grid   24 hour-ending rows, with per-point predictions attached
  Chart      24 hourly buckets: RTM average vs DAM actual vs DAM predicted

Fetches for one display run concurrently and are all settled before the
grid is built. A failure of a primary price series propagates
(``SourceUnavailable``); prediction failures degrade to null predictions.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional, Sequence

from loguru import logger

from spp.bucketing import Granularity, format_oper_day
from spp.compose import ChartPoint, compose_hourly
from spp.pivot import PivotedRow, pivot
from spp.predictions import PredictionServiceClient
from spp.records import Fetched, PredictionRecord
from spp.settings import DAM_SERIES
from spp.store import PriceStore, fetch_realtime


def _now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


@dataclass
class GridDisplay:
    date: str                                   # YYYY-MM-DD, market-local
    settlement_points: list[str]
    rows: list[PivotedRow]
    last_updated: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict:
        return {
            "date":              self.date,
            "settlement_points": list(self.settlement_points),
            "data":              [r.to_dict() for r in self.rows],
            "last_updated":      self.last_updated,
        }


@dataclass
class ChartDisplay:
    date: str
    settlement_point: str
    points: list[ChartPoint]
    last_updated: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict:
        return {
            "date":             self.date,
            "settlement_point": self.settlement_point,
            "data":             [p.to_dict() for p in self.points],
            "last_updated":     self.last_updated,
        }


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


async def build_rtm_display(store: PriceStore, day: date, points: Sequence[str]) -> GridDisplay:
    """Real-time SPP grid for *day*."""
    records = await fetch_realtime(store, day, points)
    rows = pivot(records, Granularity.FIVE_MINUTE, points, oper_day=format_oper_day(day))
    logger.info("RTM display {} | {} records -> {} rows", day, len(records), len(rows))
    return GridDisplay(date=day.isoformat(), settlement_points=list(points), rows=rows)


async def build_dam_display(
    store: PriceStore,
    predictor: Optional[PredictionServiceClient],
    day: date,
    points: Sequence[str],
) -> GridDisplay:
    """
    Day-ahead SPP grid for *day* with predicted prices alongside.

    Without a *predictor*, or when the service fails for a point, that
    point's predictions are all null.
    """
    dam_task = asyncio.to_thread(store.fetch, day, points, DAM_SERIES)
    if predictor is None:
        records = await dam_task
        outcomes = {}
    else:
        records, outcomes = await asyncio.gather(dam_task, predictor.fetch_many(points, day))

    by_point: dict[str, dict[str, float]] = {}
    for point in points:
        outcome = outcomes.get(point)
        if isinstance(outcome, Fetched):
            by_point[point] = outcome.value
        else:
            by_point[point] = {}

    rows = pivot(records, Granularity.HOURLY, points, oper_day=format_oper_day(day))
    for row in rows:
        row.predictions = {point: by_point[point].get(row.slot) for point in points}

    available = sum(bool(p) for p in by_point.values())
    logger.info(
        "DAM display {} | {} records | predictions for {}/{} points",
        day, len(records), available, len(points),
    )
    return GridDisplay(date=day.isoformat(), settlement_points=list(points), rows=rows)


async def build_chart(store: PriceStore, day: date, point: str) -> ChartDisplay:
    """Hourly actual-vs-predicted chart for a single settlement point."""
    realtime, day_ahead, pred_outcome = await asyncio.gather(
        fetch_realtime(store, day, [point]),
        asyncio.to_thread(store.fetch, day, [point], DAM_SERIES),
        asyncio.to_thread(store.fetch_predictions, day, [point]),
    )

    predictions: list[PredictionRecord] = []
    if isinstance(pred_outcome, Fetched):
        predictions = [p for p in pred_outcome.value if p.settlement_point == point]
    else:
        logger.warning("Chart {} {}: no predictions ({}).", point, day, pred_outcome.reason)

    chart = compose_hourly(
        [r for r in realtime if r.settlement_point == point],
        [r for r in day_ahead if r.settlement_point == point],
        predictions,
    )
    return ChartDisplay(date=day.isoformat(), settlement_point=point, points=chart)
