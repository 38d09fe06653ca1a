from __future__ import annotations

import pytest

from spp.errors import ConfigurationMissing
from spp.settings import InfluxSettings


def test_from_env_reads_all_values() -> None:
    env = {
        "INFLUXDB_URL": "http://influx:8086",
        "INFLUXDB_TOKEN": "secret",
        "INFLUXDB_ORG": "ercot",
        "INFLUXDB_BUCKET": "prices",
    }
    settings = InfluxSettings.from_env(env)
    assert settings == InfluxSettings("http://influx:8086", "secret", "ercot", "prices")


def test_from_env_names_every_missing_variable() -> None:
    with pytest.raises(ConfigurationMissing) as info:
        InfluxSettings.from_env({"INFLUXDB_URL": "http://influx:8086", "INFLUXDB_ORG": ""})

    assert info.value.missing == ["INFLUXDB_TOKEN", "INFLUXDB_ORG", "INFLUXDB_BUCKET"]
    assert "INFLUXDB_TOKEN" in str(info.value)
