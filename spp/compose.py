"""
SPP Display - Cross-Series Composer
Aligns real-time actuals, day-ahead actuals and day-ahead predictions on one
24-bucket hourly frame for charting.

Bucket index
------------
The chart frame uses the zero-based local hour 0..23, not the hour-ending
labels of the display grid:

  actual real-time   5-minute prices averaged over the local hour of their
                     timestamp, rounded to cents
  actual day-ahead   the hourly price at the local hour of its timestamp
                     (hour-beginning), rounded to cents
  predicted DA       keyed by hour-ending 1..24, placed at index he - 1

Each series fills its own field; a bucket may have any subset populated.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import pandas as pd
from loguru import logger

from spp.bucketing import HOURS_PER_DAY, round_half_up, to_market_time
from spp.records import PredictionRecord, PriceRecord, records_to_frame


@dataclass
class ChartPoint:
    """One hour of the actual-vs-predicted chart."""

    hour: int                                   # 0..23 local
    actual_realtime: Optional[float] = None
    actual_day_ahead: Optional[float] = None
    predicted_day_ahead: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "hour":                self.hour,
            "actual_realtime":     self.actual_realtime,
            "actual_day_ahead":    self.actual_day_ahead,
            "predicted_day_ahead": self.predicted_day_ahead,
        }


def _local_hours(df: pd.DataFrame) -> list[int]:
    return [to_market_time(ts).hour for ts in df["timestamp"]]


def compose_hourly(
    realtime: Sequence[PriceRecord],
    day_ahead: Sequence[PriceRecord],
    predictions: Sequence[PredictionRecord],
) -> list[ChartPoint]:
    """
    Build the 24-point chart frame for a single settlement point.

    Callers filter the three inputs to the charted settlement point.
    """
    points = [ChartPoint(hour=h) for h in range(HOURS_PER_DAY)]

    rt_df = records_to_frame(realtime)
    if not rt_df.empty:
        rt_df["hour"] = _local_hours(rt_df)
        hourly_mean = rt_df.groupby("hour")["price"].mean()
        for hour, avg in hourly_mean.items():
            points[int(hour)].actual_realtime = round_half_up(float(avg))

    # already hourly; a repeated hour keeps the last record
    for record in day_ahead:
        hour = to_market_time(record.timestamp).hour
        points[hour].actual_day_ahead = round_half_up(record.price)

    for pred in predictions:
        index = pred.hour_ending - 1
        if 0 <= index < HOURS_PER_DAY:
            points[index].predicted_day_ahead = round_half_up(pred.predicted_price)
        else:
            logger.debug("Ignoring prediction with hour_ending={}.", pred.hour_ending)

    logger.debug(
        "Composed chart: RT={}h DA={}h PRED={}h",
        sum(p.actual_realtime is not None for p in points),
        sum(p.actual_day_ahead is not None for p in points),
        sum(p.predicted_day_ahead is not None for p in points),
    )
    return points
