"""
SPP Display - prediction service client

  GET {base}/predictions/{feed}?settlement_point=P&target_date=YYYY-MM-DD
  -> {"predictions": [{"hour_ending": "HH:00", "predicted_price": 41.2}, ...]}

Predictions are enrichment only. A timeout, transport error, non-2xx status
or unusable body yields ``Unavailable`` for that settlement point and never
affects the other points or the request. Calls are not retried.
"""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Any, Sequence

import httpx
from loguru import logger

from spp.bucketing import all_hour_slots
from spp.errors import MalformedUpstreamPayload
from spp.records import Fetched, FetchOutcome, Unavailable
from spp.settings import PREDICTION_FEED, PREDICTION_SERVICE_URL, PREDICTION_TIMEOUT_SECONDS

SOURCE = "prediction-service"

_HOUR_SLOTS = frozenset(all_hour_slots())


def parse_predictions(body: Any) -> dict[str, float]:
    """
    Map hour-ending slot -> predicted price from a service response body.

    Entries with an unknown slot or a non-numeric price are skipped; the
    rest of the payload is kept.

    Raises
    ------
    MalformedUpstreamPayload
        If the body is not an object, has no 'predictions' list, or an
        entry is not an object.
    """
    if not isinstance(body, dict) or not isinstance(body.get("predictions"), list):
        raise MalformedUpstreamPayload(SOURCE, "missing 'predictions' list")

    out: dict[str, float] = {}
    for entry in body["predictions"]:
        if not isinstance(entry, dict):
            raise MalformedUpstreamPayload(SOURCE, f"prediction entry is {type(entry).__name__}")
        slot = entry.get("hour_ending")
        price = entry.get("predicted_price")
        if slot not in _HOUR_SLOTS:
            logger.debug("Skipping prediction with hour_ending={!r}.", slot)
            continue
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            logger.debug("Skipping prediction for {} with price={!r}.", slot, price)
            continue
        out[slot] = float(price)
    return out


class PredictionServiceClient:
    """
    Async client for the external DAM prediction service.

    Parameters
    ----------
    http_client:
        Shared ``httpx.AsyncClient``; owned by the caller.
    base_url:
        Service root, e.g. ``http://localhost:8001``.
    feed:
        Path segment after ``/predictions/``.
    timeout:
        Per-call timeout in seconds.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str = PREDICTION_SERVICE_URL,
        feed: str = PREDICTION_FEED,
        timeout: float = PREDICTION_TIMEOUT_SECONDS,
    ) -> None:
        self._http = http_client
        self._url = f"{base_url.rstrip('/')}/predictions/{feed}"
        self._timeout = timeout

    async def fetch(self, point: str, day: date) -> FetchOutcome[dict[str, float]]:
        """Predicted prices for one settlement point, keyed by hour-ending slot."""
        params = {"settlement_point": point, "target_date": day.isoformat()}
        try:
            resp = await self._http.get(self._url, params=params, timeout=self._timeout)
            resp.raise_for_status()
            predictions = parse_predictions(resp.json())
        except httpx.TimeoutException as exc:
            logger.warning("Predictions for {} timed out: {}", point, exc)
            return Unavailable(SOURCE, "timeout")
        except httpx.HTTPStatusError as exc:
            logger.warning("Predictions for {}: service returned {}.", point, exc.response.status_code)
            return Unavailable(SOURCE, f"HTTP {exc.response.status_code}")
        except httpx.HTTPError as exc:
            logger.warning("Predictions for {} failed: {}", point, exc)
            return Unavailable(SOURCE, str(exc))
        except ValueError as exc:
            logger.warning("Predictions for {}: body is not JSON: {}", point, exc)
            return Unavailable(SOURCE, "invalid JSON")
        except MalformedUpstreamPayload as exc:
            logger.warning("Predictions for {}: {}", point, exc)
            return Unavailable(SOURCE, exc.reason)

        logger.debug("Predictions for {} on {}: {} hours.", point, day, len(predictions))
        return Fetched(predictions)

    async def fetch_many(
        self, points: Sequence[str], day: date
    ) -> dict[str, FetchOutcome[dict[str, float]]]:
        """Fetch every point concurrently; each outcome is independent."""
        outcomes = await asyncio.gather(*(self.fetch(p, day) for p in points))
        return dict(zip(points, outcomes))
