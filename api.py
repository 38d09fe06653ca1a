"""
SPP Display - FastAPI Server
Serves ERCOT settlement point price grids and the LZ_WEST price chart from the
InfluxDB price series and the DAM prediction service.

Run:  uvicorn api:app --reload --port 8000
Docs: http://localhost:8000/docs
"""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from datetime import date as dt_date
from datetime import datetime, timezone
from typing import Optional

import httpx
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from spp.bucketing import market_today, market_tomorrow
from spp.displays import build_chart, build_dam_display, build_rtm_display
from spp.errors import InvalidSettlementPoint, SourceUnavailable
from spp.predictions import PredictionServiceClient
from spp.settings import (
    CHART_SETTLEMENT_POINT,
    LOG_LEVEL,
    PREDICTION_TIMEOUT_SECONDS,
    SETTLEMENT_POINTS,
    InfluxSettings,
)
from spp.store import PriceStore

logger.remove()
logger.add(sys.stderr, level=LOG_LEVEL)

# ---------------------------------------------------------------------------
# Application state: store handle and shared httpx client, built at startup
# ---------------------------------------------------------------------------

_store: Optional[PriceStore] = None
_predictor: Optional[PredictionServiceClient] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Construct the store handle and prediction client once per process."""
    global _store, _predictor
    _store = PriceStore.from_settings(InfluxSettings.from_env())
    http_client = httpx.AsyncClient(timeout=PREDICTION_TIMEOUT_SECONDS)
    _predictor = PredictionServiceClient(http_client)
    logger.info("Store and prediction client initialised.")
    yield
    await http_client.aclose()
    _store.close()
    logger.info("Store and prediction client closed.")


app = FastAPI(
    title="SPP Display API",
    description=(
        "ERCOT real-time and day-ahead settlement point prices on a fixed "
        "daily grid, with day-ahead predictions."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Response models  (camelCase on the wire, null for absent prices)
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GridRow(_CamelModel):
    oper_day: str
    interval: str                              # slot, "HH:MM"
    prices:   dict[str, Optional[float]]


class DamGridRow(GridRow):
    predictions: dict[str, Optional[float]]


class RtmGridResponse(_CamelModel):
    date:              str
    settlement_points: list[str]
    data:              list[GridRow]
    last_updated:      str


class DamGridResponse(_CamelModel):
    date:              str
    settlement_points: list[str]
    data:              list[DamGridRow]
    last_updated:      str


class ChartHour(_CamelModel):
    hour:                int                   # 0..23 local
    actual_realtime:     Optional[float]
    actual_day_ahead:    Optional[float]
    predicted_day_ahead: Optional[float]


class ChartResponse(_CamelModel):
    date:             str
    settlement_point: str
    data:             list[ChartHour]
    last_updated:     str


class HealthResponse(BaseModel):
    status:       str
    timestamp:    str
    store_ready:  bool


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _parse_date(value: Optional[str], default: dt_date) -> dt_date:
    if not value:
        return default
    try:
        return dt_date.fromisoformat(value)
    except ValueError as exc:
        raise HTTPException(
            status_code=422,
            detail=f"Invalid date format '{value}'. Use 'YYYY-MM-DD'.",
        ) from exc


def _require_store() -> PriceStore:
    if _store is None:
        raise HTTPException(status_code=503, detail="Price store not initialised.")
    return _store


_DATE_QUERY_DESC = "Trading day in market-local time, ISO format 'YYYY-MM-DD'."

# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse, tags=["Meta"])
async def health():
    """Service health and whether the store handle is ready."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(tz=timezone.utc).isoformat(),
        store_ready=_store is not None,
    )


@app.get("/api/rtm-spp", response_model=RtmGridResponse, tags=["SPP"])
async def get_rtm_spp(
    date: Optional[str] = Query(default=None, description=_DATE_QUERY_DESC + " Defaults to today."),
):
    """
    Real-Time Market SPP grid: 288 interval-ending rows (00:05 .. 24:00),
    one price per settlement point, null where no price has been published.
    """
    day = _parse_date(date, market_today())
    logger.info("GET /api/rtm-spp | date={}", day)
    try:
        display = await build_rtm_display(_require_store(), day, SETTLEMENT_POINTS)
    except SourceUnavailable as exc:
        logger.error("Error fetching RTM SPP data: {}", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch RTM SPP data") from exc
    return display.to_dict()


@app.get("/api/dam-spp", response_model=DamGridResponse, tags=["SPP"])
async def get_dam_spp(
    date: Optional[str] = Query(default=None, description=_DATE_QUERY_DESC + " Defaults to tomorrow."),
):
    """
    Day-Ahead Market SPP grid: 24 hour-ending rows (01:00 .. 24:00) with the
    prediction service's forecast for each settlement point alongside.
    """
    day = _parse_date(date, market_tomorrow())
    logger.info("GET /api/dam-spp | date={}", day)
    try:
        display = await build_dam_display(_require_store(), _predictor, day, SETTLEMENT_POINTS)
    except SourceUnavailable as exc:
        logger.error("Error fetching DAM SPP data: {}", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch DAM SPP data") from exc
    return display.to_dict()


@app.get("/api/chart-data", response_model=ChartResponse, tags=["Chart"])
async def get_chart_data(
    date: Optional[str] = Query(default=None, description=_DATE_QUERY_DESC + " Defaults to today."),
    settlement_point: str = Query(
        default=CHART_SETTLEMENT_POINT,
        description="Settlement point to chart, e.g. 'LZ_WEST'.",
    ),
):
    """
    Hourly chart frame (hour 0..23): averaged real-time price, day-ahead
    price and predicted day-ahead price.
    """
    day = _parse_date(date, market_today())
    point = settlement_point.upper()
    logger.info("GET /api/chart-data | date={} | point={}", day, point)
    try:
        display = await build_chart(_require_store(), day, point)
    except InvalidSettlementPoint as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except SourceUnavailable as exc:
        logger.error("Error fetching chart data: {}", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch chart data") from exc
    return display.to_dict()
