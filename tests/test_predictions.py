from __future__ import annotations

from datetime import date

import httpx
import pytest

from spp.errors import MalformedUpstreamPayload
from spp.predictions import PredictionServiceClient, parse_predictions
from spp.records import Fetched, Unavailable

DAY = date(2025, 3, 16)


def _client(handler) -> PredictionServiceClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PredictionServiceClient(http, base_url="http://predictor:8001/", feed="dam/next-day")


def _ok(request: httpx.Request) -> httpx.Response:
    point = request.url.params["settlement_point"]
    base = 30.0 if point == "LZ_WEST" else 40.0
    return httpx.Response(
        200,
        json={
            "status": "ok",
            "settlement_point": point,
            "predictions": [
                {"hour_ending": "01:00", "predicted_price": base},
                {"hour_ending": "24:00", "predicted_price": base + 5},
            ],
        },
    )


def test_parse_predictions() -> None:
    body = {"predictions": [{"hour_ending": "13:00", "predicted_price": 41}]}
    assert parse_predictions(body) == {"13:00": 41.0}


@pytest.mark.parametrize(
    "body",
    [
        [],
        {"predictions": None},
        {"predictions": ["13:00"]},
    ],
)
def test_parse_predictions_rejects_malformed(body) -> None:
    with pytest.raises(MalformedUpstreamPayload):
        parse_predictions(body)


def test_parse_predictions_skips_unusable_entries() -> None:
    body = {
        "predictions": [
            {"hour_ending": "00:00", "predicted_price": 1.0},
            {"hour_ending": "25:00", "predicted_price": 2.0},
            {"hour_ending": "13:00", "predicted_price": "n/a"},
            {"hour_ending": "14:00"},
            {"hour_ending": "15:00", "predicted_price": True},
            {"hour_ending": "16:00", "predicted_price": 44.5},
        ]
    }
    assert parse_predictions(body) == {"16:00": 44.5}


@pytest.mark.asyncio
async def test_one_null_hour_keeps_the_rest_of_the_day() -> None:
    entries = [
        {"hour_ending": f"{h:02d}:00", "predicted_price": 30.0 + h} for h in range(1, 25)
    ]
    entries[11]["predicted_price"] = None

    outcome = await _client(lambda r: httpx.Response(200, json={"predictions": entries})).fetch(
        "LZ_WEST", DAY
    )

    assert isinstance(outcome, Fetched)
    assert len(outcome.value) == 23
    assert "12:00" not in outcome.value
    assert outcome.value["01:00"] == 31.0
    assert outcome.value["24:00"] == 54.0


@pytest.mark.asyncio
async def test_fetch_builds_request_and_parses() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _ok(request)

    outcome = await _client(handler).fetch("LZ_WEST", DAY)

    assert outcome == Fetched({"01:00": 30.0, "24:00": 35.0})
    assert seen[0].url.path == "/predictions/dam/next-day"
    assert seen[0].url.params["target_date"] == "2025-03-16"


@pytest.mark.asyncio
async def test_non_success_status_is_unavailable() -> None:
    outcome = await _client(lambda r: httpx.Response(503)).fetch("LZ_WEST", DAY)
    assert outcome == Unavailable("prediction-service", "HTTP 503")


@pytest.mark.asyncio
async def test_invalid_json_is_unavailable() -> None:
    outcome = await _client(lambda r: httpx.Response(200, text="<html>")).fetch("LZ_WEST", DAY)
    assert isinstance(outcome, Unavailable)


@pytest.mark.asyncio
async def test_malformed_body_is_unavailable() -> None:
    outcome = await _client(lambda r: httpx.Response(200, json={"data": []})).fetch("LZ_WEST", DAY)
    assert isinstance(outcome, Unavailable)
    assert "predictions" in outcome.reason


@pytest.mark.asyncio
async def test_timeout_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    outcome = await _client(handler).fetch("LZ_WEST", DAY)
    assert outcome == Unavailable("prediction-service", "timeout")


@pytest.mark.asyncio
async def test_fetch_many_isolates_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["settlement_point"] == "HB_HOUSTON":
            raise httpx.ConnectError("refused", request=request)
        return _ok(request)

    outcomes = await _client(handler).fetch_many(["LZ_WEST", "HB_HOUSTON", "HB_NORTH"], DAY)

    assert list(outcomes) == ["LZ_WEST", "HB_HOUSTON", "HB_NORTH"]
    assert outcomes["LZ_WEST"] == Fetched({"01:00": 30.0, "24:00": 35.0})
    assert isinstance(outcomes["HB_HOUSTON"], Unavailable)
    assert outcomes["HB_NORTH"] == Fetched({"01:00": 40.0, "24:00": 45.0})
