"""
SPP Display - Grid Pivoter

Turns a flat record list into the dense display table:

  * one row per canonical slot of the granularity, in chronological order
  * one price entry per requested settlement point in every row
  * ``None`` where no record maps to (slot, point); never 0.0

Collisions on the same (slot, point) resolve last-write-wins in input order,
so callers pass merged, time-sorted records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

import pandas as pd
from loguru import logger

from spp.bucketing import Granularity, all_slots, bucket
from spp.records import PriceRecord, records_to_frame


@dataclass
class PivotedRow:
    """One display slot with a price (or ``None``) for every settlement point."""

    slot: str
    prices: dict[str, Optional[float]]
    oper_day: Optional[str] = None
    predictions: Optional[dict[str, Optional[float]]] = field(default=None)

    def to_dict(self) -> dict:
        out = {
            "oper_day": self.oper_day,
            "interval": self.slot,
            "prices":   dict(self.prices),
        }
        if self.predictions is not None:
            out["predictions"] = dict(self.predictions)
        return out


def _cell(value) -> Optional[float]:
    return None if pd.isna(value) else float(value)


def pivot(
    records: Sequence[PriceRecord],
    granularity: Granularity,
    settlement_points: Sequence[str],
    oper_day: Optional[str] = None,
) -> list[PivotedRow]:
    """
    Build the dense slot x settlement-point grid.

    Parameters
    ----------
    records:
        Price records, ideally already merged and sorted by timestamp.
    granularity:
        ``FIVE_MINUTE`` (288 interval-ending rows) or ``HOURLY``
        (24 hour-ending rows).
    settlement_points:
        Columns of the grid, in display order. Records for other points
        are ignored.
    oper_day:
        Operating-day label copied onto every row.
    """
    slots = all_slots(granularity)
    points = list(dict.fromkeys(settlement_points))

    df = records_to_frame(records)
    if df.empty:
        table = pd.DataFrame(index=slots, columns=points, dtype=float)
    else:
        df["slot"] = [bucket(ts, granularity) for ts in df["timestamp"]]
        df = df.drop_duplicates(subset=["slot", "settlement_point"], keep="last")
        table = (
            df.pivot(index="slot", columns="settlement_point", values="price")
            .reindex(index=slots, columns=points)
        )

    rows = [
        PivotedRow(
            slot=slot,
            prices={point: _cell(table.at[slot, point]) for point in points},
            oper_day=oper_day,
        )
        for slot in slots
    ]

    filled = int(table.notna().to_numpy().sum())
    logger.debug(
        "Pivoted {} records into {} rows x {} points ({} cells filled).",
        len(records), len(rows), len(points), filled,
    )
    return rows
