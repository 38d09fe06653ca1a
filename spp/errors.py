"""
SPP Display - error taxonomy

  ConfigurationMissing      required store settings are absent (fatal, startup)
  InvalidSettlementPoint    a settlement point identifier is not [A-Z0-9_]+
  SourceUnavailable         a backing series query failed
  MalformedUpstreamPayload  the prediction service answered with unusable data

Primary price series propagate ``SourceUnavailable`` to the request; the
prediction enrichment converts both upstream errors into ``Unavailable``.
"""

from __future__ import annotations


class SPPError(Exception):
    """Base class for every error raised by the ``spp`` package."""


class ConfigurationMissing(SPPError):
    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            "Missing InfluxDB configuration. Set " + ", ".join(self.missing) + "."
        )


class InvalidSettlementPoint(SPPError, ValueError):
    def __init__(self, points: list[str]) -> None:
        self.points = list(points)
        super().__init__(f"Invalid settlement point identifier(s): {self.points}")


class SourceUnavailable(SPPError):
    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"{source} unavailable: {reason}")


class MalformedUpstreamPayload(SPPError):
    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"{source} returned a malformed payload: {reason}")
