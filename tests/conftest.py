from __future__ import annotations

import pytest

from factories import CATALOG, FakeApi, MutableClock, at
from genie_client.client import GenieClient
from genie_client.config import Settings
from genie_client.kvdb import KeyValueStore
from genie_client.resort import Resort
from genie_client.tracker import BookingTracker


@pytest.fixture
def resort() -> Resort:
    return Resort.from_dict(CATALOG)


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock(at(10))


@pytest.fixture
def store(tmp_path) -> KeyValueStore:
    return KeyValueStore(tmp_path / "kvdb.json")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(resort="WDW", swid="{SWID-1}", data_dir=tmp_path)


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def make_client(settings, resort, api, clock, store):
    def factory(**kwargs) -> GenieClient:
        tracker = kwargs.pop("tracker", None) or BookingTracker(store, clock)
        return GenieClient(settings, resort, api=api, clock=clock, tracker=tracker, **kwargs)

    return factory
