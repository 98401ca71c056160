# feeder.py
import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import requests

from config import (
    AIRCMS_API_URL, FEEDER_AIRCMS, FEEDER_ALL, FEEDER_LUFTDATEN, FEEDER_OPENAIR, LUFTDATEN_API_URL,
    MAX_FEEDER_ERROR_LOG_LENGTH, SENSOR_DATA_POST_INTERVAL_SECONDS,
)
from http_client import HttpClient, HttpError
from measurement import Measurement, StationData, feeder_payload
from utils import round_value, sha1, truncate_string

logger = logging.getLogger(__name__)

# OpenAir API result status
STATUS_OK = 0


class Feeder:
    """Relays station data to one remote service. Never raises on delivery errors."""

    def feed(self, data: StationData):
        raise NotImplementedError


class OpenAirFeeder(Feeder):
    """
    OpenAir project server (https://github.com/openairtech/api).

    Measurements are buffered and re-sent in full on every tick until the
    server accepts them; ones older than ``keep_duration`` are dropped.
    """

    def __init__(self, api_url: str, keep_duration: float, http: HttpClient,
                 clock: Callable[[], float] = time.time):
        self.api_url = api_url
        self.keep_duration = keep_duration
        self.http = http
        self.clock = clock
        self.measurements: List[Measurement] = []

    def _purge_expired(self):
        now = self.clock()
        while self.measurements:
            ts = self.measurements[0].timestamp
            # stop on first unexpired measurement
            if ts is not None and now - ts < self.keep_duration:
                break
            self.measurements.pop(0)

    def feed(self, data: StationData):
        self._purge_expired()
        self.measurements.append(data.last_measurement)

        payload = feeder_payload(data.token_id, data.version, self.measurements)
        n = len(self.measurements)
        logger.debug("[OpenAir] posting %d measurement(s) to %s", n, self.api_url)

        try:
            result = self.http.post_json(self.api_url, payload)
        except (requests.RequestException, HttpError, ValueError) as e:
            logger.error("[OpenAir] data posting failed: %s",
                         truncate_string(str(e), MAX_FEEDER_ERROR_LOG_LENGTH))
            return

        status = result.get("status") if isinstance(result, dict) else None
        if status != STATUS_OK:
            message = result.get("message", "") if isinstance(result, dict) else result
            logger.error("[OpenAir] data posting error: %s: %s", status, message)
            return

        logger.debug("[OpenAir] successfully posted %d measurement(s) to %s", n, self.api_url)
        self.measurements = []


def sensor_data(version: str, values: Sequence[Tuple[str, Optional[float]]]) -> Dict[str, Any]:
    return {
        "software_version": version,
        "sensordatavalues": [{"value_type": t, "value": v} for t, v in values if v is not None],
    }


def _pressure_pa(hpa: Optional[float]) -> Optional[float]:
    if hpa is None:
        return None
    return round(100 * round(hpa, 2), 2)


class LuftdatenFeeder(Feeder):
    """
    Luftdaten (Sensor.community) push API, one post per sensor pin:
    https://github.com/opendata-stuttgart/meta/wiki/APIs
    """

    PIN_SDS011 = 1
    PIN_BME280 = 11

    def __init__(self, http: HttpClient, api_url: str = LUFTDATEN_API_URL,
                 post_interval: float = SENSOR_DATA_POST_INTERVAL_SECONDS,
                 clock: Callable[[], float] = time.time):
        self.api_url = api_url
        self.post_interval = post_interval
        self.http = http
        self.clock = clock
        self.last_post_time: Optional[float] = None

    def feed(self, data: StationData):
        num_sensor_id = data.token_id[:12]
        sensor_id = f"raspi-{num_sensor_id}"

        now = self.clock()
        if self.last_post_time is not None and now - self.last_post_time < self.post_interval:
            logger.debug("[Luftdaten] %s: skip sensor data posting", sensor_id)
            return

        # interval is enforced whatever the outcome
        self.last_post_time = now

        m = data.last_measurement
        pm_data = sensor_data(data.version, [
            ("P1", round_value(m.pm10, 1)),
            ("P2", round_value(m.pm25, 1)),
        ])
        err = self._post(sensor_id, self.PIN_SDS011, pm_data)
        if isinstance(err, HttpError) and err.status_code == 403:
            logger.info("[Luftdaten] please register your station "
                        "at https://devices.sensor.community/sensors/register "
                        "(Sensor ID: %s, Sensor Board: raspi, Sensor Types: SDS011/BME280)",
                        num_sensor_id)
            return

        env_data = sensor_data(data.version, [
            ("temperature", round_value(m.temperature, 1)),
            ("humidity", round_value(m.humidity, 1)),
            ("pressure", _pressure_pa(m.pressure)),
        ])
        self._post(sensor_id, self.PIN_BME280, env_data)

    def _post(self, sensor_id: str, pin: int, payload: Dict[str, Any]) -> Optional[Exception]:
        """Posts one sensor pin data, returns the logged error if posting failed."""
        if not payload["sensordatavalues"]:
            logger.debug("[Luftdaten] %s: no sensor [%d] values to post", sensor_id, pin)
            return None

        logger.debug("[Luftdaten] %s: posting sensor [%d] data to %s", sensor_id, pin, self.api_url)
        headers = {"X-Sensor": sensor_id, "X-Pin": pin}
        try:
            self.http.post_json(self.api_url, payload, headers=headers)
        except (requests.RequestException, HttpError, ValueError) as e:
            logger.error("[Luftdaten] %s: sensor [%d] data posting failed: %s", sensor_id, pin,
                         truncate_string(str(e), MAX_FEEDER_ERROR_LOG_LENGTH))
            return e
        logger.debug("[Luftdaten] %s: successfully posted sensor [%d] data", sensor_id, pin)
        return None


def aircms_login(token_id: str) -> str:
    return str(int(token_id[12:20], 16))


def aircms_key(token_id: str) -> str:
    return ":".join(token_id[i:i + 2] for i in range(0, 12, 2)).upper()


def aircms_signature(body: str, key: str) -> str:
    return sha1(sha1(key) + sha1(body + key))


class AirCmsFeeder(Feeder):
    """AirCMS server (https://github.com/zakarlyukin/aircms/blob/master/docs/index.rst)."""

    def __init__(self, http: HttpClient, api_url: str = AIRCMS_API_URL,
                 post_interval: float = SENSOR_DATA_POST_INTERVAL_SECONDS,
                 clock: Callable[[], float] = time.time):
        self.api_url = api_url
        self.post_interval = post_interval
        self.http = http
        self.clock = clock
        self.last_post_time: Optional[float] = None

    def body(self, data: StationData, login: str) -> str:
        m = data.last_measurement
        record = sensor_data(data.version, [
            ("SDS_P1", round_value(m.pm10, 1)),
            ("SDS_P2", round_value(m.pm25, 1)),
            ("BME280_temperature", round_value(m.temperature, 1)),
            ("BME280_humidity", round_value(m.humidity, 1)),
            ("BME280_pressure", _pressure_pa(m.pressure)),
        ])
        ts = m.timestamp if m.timestamp is not None else int(self.clock())
        return f"L={login}&t={ts}&airrohr={json.dumps(record, separators=(',', ':'))}"

    def feed(self, data: StationData):
        try:
            login = aircms_login(data.token_id)
        except ValueError as e:
            logger.error("[AirCMS] can't get login from token %s: %s", data.token_id, e)
            return

        now = self.clock()
        if self.last_post_time is not None and now - self.last_post_time < self.post_interval:
            logger.debug("[AirCMS] %s: skip sensor data posting", login)
            return

        key = aircms_key(data.token_id)
        body = self.body(data, login)
        logger.debug("[AirCMS] %s: data to post: %s", login, body)

        url = f"{self.api_url}?h={aircms_signature(body, key)}"
        logger.debug("[AirCMS] %s: posting sensor data to %s, token: %s", login, self.api_url, key)

        try:
            r = self.http.post_data(url, body, headers={"Content-Type": "application/x-www-form-urlencoded"})
        except (requests.RequestException, HttpError) as e:
            logger.error("[AirCMS] %s: sensor data posting failed: %s", login,
                         truncate_string(str(e), MAX_FEEDER_ERROR_LOG_LENGTH))
            if isinstance(e, HttpError) and e.status_code == 403:
                logger.info("[AirCMS] please register your station at https://aircms.online/#/adddevice "
                            "(ID: %s, MAC: %s)", login, key)
            return

        # unlike Luftdaten, a failed post is retried on the next tick
        self.last_post_time = now
        logger.debug("[AirCMS] %s: successfully posted sensor data, response: %s", login, r)


def select_feeders(feeders: Dict[str, Feeder], enabled: Sequence[str],
                   disabled: Sequence[str]) -> List[Tuple[str, Feeder]]:
    """Feeders run unless disabled (by name or 'all') and not re-enabled."""
    out = []
    for name, feeder in feeders.items():
        is_disabled = FEEDER_ALL in disabled or name in disabled
        is_enabled = FEEDER_ALL in enabled or name in enabled
        if is_disabled and not is_enabled:
            continue
        out.append((name, feeder))
    return out


def build_feeders(openair_api_url: str, keep_duration: float, http: HttpClient) -> Dict[str, Feeder]:
    return {
        FEEDER_OPENAIR: OpenAirFeeder(openair_api_url, keep_duration, http),
        FEEDER_LUFTDATEN: LuftdatenFeeder(http),
        FEEDER_AIRCMS: AirCmsFeeder(http),
    }
