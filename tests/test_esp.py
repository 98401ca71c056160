import pytest

import esp
from measurement import Measurement

from conftest import load_esp_data, make_data


@pytest.mark.parametrize("name", ["esp-mega-20190301.json", "esp-mega-20190903.json"])
def test_parse_measurement(name):
    data = load_esp_data(name)

    m = esp.parse_measurement(data, 1700000000)

    assert m == Measurement(timestamp=1700000000, temperature=25.0, humidity=33.5,
                            pressure=1015.1, pm25=1.8, pm10=14.5)


def test_parse_measurement_ignores_disabled_tasks():
    m = esp.parse_measurement(load_esp_data("esp-disabled-sds.json"), 1)

    assert m.humidity == 71.0
    assert m.pm25 is None and m.pm10 is None


def test_parse_measurement_without_sensors():
    assert esp.parse_measurement({"System": {"Uptime": 1}}, 5) == Measurement(timestamp=5)


@pytest.mark.parametrize("name", ["esp-mega-20190301.json", "esp-mega-20190903.json"])
def test_parse_mac_address(name):
    assert esp.parse_mac_address(load_esp_data(name)) == "12:34:56:78:90:AB"


def test_parse_uptime():
    assert esp.parse_uptime(load_esp_data("esp-mega-20190301.json")) == 1442 * 60


def test_encode_station_data_is_readable_back():
    data = make_data(uptime=7260.0, temperature=19.5, humidity=40.0, pressure=990.25, pm25=3.1, pm10=6.2)

    encoded = esp.encode_station_data(data)

    assert encoded["System"]["Uptime"] == 121
    assert encoded["System"]["Git Build"] == "esp-test"
    assert esp.parse_measurement(encoded, 1700000000) == data.last_measurement


def test_encode_station_data_omits_missing_sensor():
    encoded = esp.encode_station_data(make_data(temperature=19.5))

    assert [s["TaskName"] for s in encoded["Sensors"]] == ["BME280"]
    assert [v["Name"] for v in encoded["Sensors"][0]["TaskValues"]] == ["Temperature"]
