from __future__ import annotations

import pytest

from spp.store import PriceStore
from tests.helpers import FakeQueryApi


@pytest.fixture()
def make_store():
    def _make(series=None, failing=()):
        api = FakeQueryApi(series, failing)
        return PriceStore(api, "ercot"), api

    return _make
