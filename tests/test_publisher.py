import json

import pytest
import requests

from publisher import HttpPublisher

from conftest import make_data


def test_response_before_first_publish():
    assert HttpPublisher(0).response("/json") == (503, b"")


def test_response_unknown_path():
    p = HttpPublisher(0)
    p.publish(make_data(pm25=1.0))
    assert p.response("/")[0] == 404


def test_response_after_publish():
    p = HttpPublisher(0)
    p.publish(make_data(pm25=1.0))
    p.publish(make_data(uptime=600, pm25=2.0, pm10=3.0))

    status, body = p.response("/json?pretty")

    assert status == 200
    data = json.loads(body)
    assert data["System"]["Uptime"] == 10
    assert [v["Value"] for v in data["Sensors"][0]["TaskValues"]] == [2.0, 3.0]


@pytest.fixture
def running_publisher():
    p = HttpPublisher(0, host="127.0.0.1")
    p.start()
    yield p
    p.stop()


def test_http_server(running_publisher):
    url = f"http://127.0.0.1:{running_publisher.port}/json"

    assert requests.get(url, timeout=5).status_code == 503

    running_publisher.publish(make_data(temperature=18.0, humidity=55.0))
    r = requests.get(url, timeout=5)

    assert r.status_code == 200
    assert r.headers["Content-Type"] == "application/json"
    assert r.json()["Sensors"][0]["TaskName"] == "BME280"


def test_start_on_busy_port_is_not_fatal(busy_port, caplog):
    p = HttpPublisher(busy_port, host="127.0.0.1")

    p.start()

    assert "can't start sensor data HTTP publisher" in caplog.text
    # publishing and stopping still work without a server
    p.publish(make_data(pm25=1.0))
    assert p.response("/json")[0] == 200
    p.stop()
