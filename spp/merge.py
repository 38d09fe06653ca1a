"""
SPP Display - Multi-Source Merger

One logical feed can be backed by several series. For real-time prices:

  rtm_lmp_api       settled values, published ~6h late, long retention
  rtm_lmp_realtime  provisional values, ~5 min late, short retention

Streams are passed authoritative first, provisional last. For every
(timestamp, settlement_point) key the last stream that covers it wins, so
recent instants show the freshest estimate while older instants keep the
settled value once the provisional series has aged out.
"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

import pandas as pd
from loguru import logger

from spp.records import PriceRecord, records_to_frame

MERGE_KEY = ["timestamp", "settlement_point"]


def _as_datetime(value) -> datetime:
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    return value


def merge_sources(*streams: Sequence[PriceRecord]) -> list[PriceRecord]:
    """
    Combine record streams for the same feed into one record per key.

    Parameters
    ----------
    *streams:
        Record sequences in precedence order, lowest first. A later stream
        overwrites an earlier one on the same (timestamp, settlement_point).

    Returns
    -------
    list[PriceRecord]
        Sorted by timestamp, then settlement point.
    """
    frames = [records_to_frame(stream) for stream in streams if len(stream)]
    if not frames:
        return []

    combined = pd.concat(frames, ignore_index=True)
    merged = (
        combined.drop_duplicates(subset=MERGE_KEY, keep="last")
        .sort_values(MERGE_KEY, kind="mergesort")
    )

    overwritten = len(combined) - len(merged)
    logger.debug(
        "Merged {} streams: {} rows in, {} rows out ({} overwritten).",
        len(frames), len(combined), len(merged), overwritten,
    )

    return [
        PriceRecord(
            timestamp=_as_datetime(row.timestamp),
            settlement_point=row.settlement_point,
            price=float(row.price),
        )
        for row in merged.itertuples(index=False)
    ]
