"""
SPP Display - configuration

Values come from the process environment (a local ``.env`` file is honoured).
Store settings are resolved once, at process startup; a missing value raises
``ConfigurationMissing`` there instead of at the first query.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta, timezone
from typing import Mapping, Optional

from dotenv import load_dotenv

from spp.errors import ConfigurationMissing

load_dotenv()

# ---------------------------------------------------------------------------
# Market constants
# ---------------------------------------------------------------------------

# Central Standard Time all year round; DST is not applied.
MARKET_UTC_OFFSET = timedelta(hours=-6)
MARKET_TIMEZONE = timezone(MARKET_UTC_OFFSET, "CST")

SETTLEMENT_POINTS: list[str] = [
    "HB_BUSAVG", "HB_HOUSTON", "HB_HUBAVG", "HB_NORTH", "HB_PAN",
    "HB_SOUTH", "HB_WEST", "LZ_AEN", "LZ_CPS", "LZ_HOUSTON",
    "LZ_LCRA", "LZ_NORTH", "LZ_RAYBN", "LZ_SOUTH", "LZ_WEST",
]
CHART_SETTLEMENT_POINT = "LZ_WEST"

# Backing series (InfluxDB measurements)
RTM_API_SERIES      = "rtm_lmp_api"        # settled feed, ~6h behind
RTM_REALTIME_SERIES = "rtm_lmp_realtime"   # provisional feed, ~5 min behind
DAM_SERIES          = "dam_lmp"
DAM_PREDICTION_SERIES = "dam_prediction"

PRICE_FIELD = "lmp"

# ---------------------------------------------------------------------------
# Process settings
# ---------------------------------------------------------------------------

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

PREDICTION_SERVICE_URL = os.getenv("PREDICTION_SERVICE_URL", "http://localhost:8001")
PREDICTION_FEED = os.getenv("PREDICTION_FEED", "dam/next-day")
PREDICTION_TIMEOUT_SECONDS = float(os.getenv("PREDICTION_TIMEOUT_SECONDS", "5.0"))

_INFLUX_VARS = ("INFLUXDB_URL", "INFLUXDB_TOKEN", "INFLUXDB_ORG", "INFLUXDB_BUCKET")


@dataclass(frozen=True)
class InfluxSettings:
    """Connection parameters for the time-series store."""

    url: str
    token: str
    org: str
    bucket: str

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "InfluxSettings":
        env = os.environ if environ is None else environ
        missing = [name for name in _INFLUX_VARS if not env.get(name)]
        if missing:
            raise ConfigurationMissing(missing)
        return cls(
            url=env["INFLUXDB_URL"],
            token=env["INFLUXDB_TOKEN"],
            org=env["INFLUXDB_ORG"],
            bucket=env["INFLUXDB_BUCKET"],
        )
