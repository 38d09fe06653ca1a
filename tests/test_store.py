from __future__ import annotations

import pytest

from spp.errors import InvalidSettlementPoint, SourceUnavailable
from spp.records import Fetched, Unavailable
from spp.store import fetch_realtime
from tests.helpers import TRADING_DAY, lmp_row, local_ts


def test_fetch_queries_half_open_trading_day(make_store) -> None:
    store, api = make_store({"dam_lmp": []})

    store.fetch(TRADING_DAY, ["LZ_WEST", "HB_HOUSTON"], "dam_lmp")

    flux = api.queries[0]
    assert "range(start: 2025-03-15T06:00:00Z, stop: 2025-03-16T06:00:00Z)" in flux
    assert 'r._measurement == "dam_lmp"' in flux
    assert 'set: ["LZ_WEST", "HB_HOUSTON"]' in flux
    assert 'r._field == "lmp"' in flux


def test_fetch_parses_and_sorts_rows(make_store) -> None:
    rows = [
        lmp_row("LZ_WEST", local_ts(2), 21.5),
        lmp_row("LZ_WEST", local_ts(1), 20.0),
        {"_time": local_ts(3), "settlement_point": "LZ_WEST", "lmp": None},
    ]
    store, _ = make_store({"dam_lmp": rows})

    records = store.fetch(TRADING_DAY, ["LZ_WEST"], "dam_lmp")

    assert [(r.timestamp, r.price) for r in records] == [(local_ts(1), 20.0), (local_ts(2), 21.5)]


def test_fetch_failure_raises_source_unavailable(make_store) -> None:
    store, _ = make_store(failing=["dam_lmp"])

    with pytest.raises(SourceUnavailable) as info:
        store.fetch(TRADING_DAY, ["LZ_WEST"], "dam_lmp")

    assert info.value.source == "dam_lmp"
    assert isinstance(info.value.__cause__, ConnectionError)


def test_fetch_rejects_unsafe_point_names(make_store) -> None:
    store, api = make_store()

    with pytest.raises(InvalidSettlementPoint) as info:
        store.fetch(TRADING_DAY, ['LZ_WEST"]) |> drop()'], "dam_lmp")
    assert info.value.points == ['LZ_WEST"]) |> drop()']
    assert api.queries == []


def test_fetch_predictions_rejects_unsafe_point_names(make_store) -> None:
    store, api = make_store({"dam_prediction": []})

    with pytest.raises(InvalidSettlementPoint):
        store.fetch_predictions(TRADING_DAY, ["LZ_WEST", "lz-west"])
    assert api.queries == []


def test_fetch_without_points_skips_query(make_store) -> None:
    store, api = make_store()
    assert store.fetch(TRADING_DAY, [], "dam_lmp") == []
    assert api.queries == []


def test_fetch_predictions(make_store) -> None:
    rows = [
        {"_time": local_ts(0), "settlement_point": "LZ_WEST", "hour_ending": 1, "predicted_price": 19.5},
        {"_time": local_ts(1), "settlement_point": "LZ_WEST", "hour_ending": 2.0, "predicted_price": 21},
    ]
    store, api = make_store({"dam_prediction": rows})

    outcome = store.fetch_predictions(TRADING_DAY, ["LZ_WEST"])

    assert isinstance(outcome, Fetched)
    assert [(p.hour_ending, p.predicted_price) for p in outcome.value] == [(1, 19.5), (2, 21.0)]
    assert 'r._field == "predicted_price" or r._field == "hour_ending"' in api.queries[0]


def test_fetch_predictions_failure_degrades(make_store) -> None:
    store, _ = make_store(failing=["dam_prediction"])

    outcome = store.fetch_predictions(TRADING_DAY, ["LZ_WEST"])

    assert isinstance(outcome, Unavailable)
    assert outcome.source == "dam_prediction"


@pytest.mark.asyncio
async def test_fetch_realtime_overlays_provisional(make_store) -> None:
    store, _ = make_store(
        {
            "rtm_lmp_api": [
                lmp_row("LZ_WEST", local_ts(2, 5), 7.0),
                lmp_row("LZ_WEST", local_ts(8, 5), 10.0),
            ],
            "rtm_lmp_realtime": [lmp_row("LZ_WEST", local_ts(8, 5), 12.0)],
        }
    )

    records = await fetch_realtime(store, TRADING_DAY, ["LZ_WEST"])

    assert [r.price for r in records] == [7.0, 12.0]


@pytest.mark.asyncio
async def test_fetch_realtime_fails_when_a_backing_series_fails(make_store) -> None:
    store, _ = make_store({"rtm_lmp_api": []}, failing=["rtm_lmp_realtime"])

    with pytest.raises(SourceUnavailable):
        await fetch_realtime(store, TRADING_DAY, ["LZ_WEST"])
