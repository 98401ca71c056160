"""Shared fixtures for the station agent tests."""

import json
import socket
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from http_client import HttpClient
from measurement import Measurement, StationData

TESTDATA = Path(__file__).parent / "testdata"

TOKEN_ID = "0123456789abcdef0123456789abcdef01234567"


def load_esp_data(name: str):
    with open(TESTDATA / name) as f:
        return json.load(f)


def make_data(uptime: float = 3600.0, token_id: str = TOKEN_ID, **values) -> StationData:
    values.setdefault("timestamp", 1700000000)
    return StationData(version="esp-test", token_id=token_id, uptime=uptime,
                       last_measurement=Measurement(**values))


@pytest.fixture
def http():
    return MagicMock(spec=HttpClient)


@pytest.fixture
def station_data() -> StationData:
    return make_data(temperature=21.3, humidity=45.0, pressure=1015.1, pm25=8.2, pm10=15.7)


class FakeClock:
    def __init__(self, now: float = 1700000000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def busy_port():
    """A local TCP port held by another listening socket."""
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    s.listen(1)
    yield s.getsockname()[1]
    s.close()
