# station.py
import enum
import logging
import threading
import time
from typing import Optional, Tuple

import requests

import esp
from config import HEATER_COMMAND_TIMEOUT_SECONDS, SDS_BAUD_RATE, SDS_READ_RETRY_DELAY_SECONDS
from http_client import HttpClient, HttpError
from measurement import Measurement, StationData
from pm_sensor import SDS011, PmSensorError
from utils import CommandError, execute, sha1, wireless_interface_mac_address

logger = logging.getLogger(__name__)


class StationError(Exception):
    pass


class HeaterState(enum.Enum):
    OFF = 0
    ON = 1


def station_token_id(mac_address: str) -> str:
    return sha1(mac_address.upper())


class Station:
    """Source of station data, optionally able to switch the PM sensor heater."""

    def __init__(self, version: str):
        self.version = version
        self.heater_state = HeaterState.OFF

    def start(self):
        pass

    def stop(self):
        pass

    def turn_heater(self, state: HeaterState) -> bool:
        raise NotImplementedError

    def get_data(self) -> StationData:
        raise NotImplementedError


class EspStation(Station):
    """ESPEasy board polled over HTTP."""

    def __init__(self, version: str, host: str, port: int, heater_pin: int,
                 http: HttpClient, token_id: Optional[str] = None):
        super().__init__(version)
        self.host = host
        self.port = port
        self.heater_pin = heater_pin
        self.token_id = token_id
        self.http = http
        self._last_uptime: Optional[float] = None

    @property
    def base_url(self):
        return f"http://{self.host}:{self.port}"

    def start(self):
        logger.info("started ESP station %s", self.base_url)

    def stop(self):
        logger.info("stopped ESP station")

    def turn_heater(self, state: HeaterState) -> bool:
        url = f"{self.base_url}/control?cmd=GPIO,{self.heater_pin},{state.value}"
        try:
            self.http.get_json(url)
        except (requests.RequestException, HttpError, ValueError) as e:
            logger.error("can't set heater pin %d state %d: %s", self.heater_pin, state.value, e)
            return False

        self.heater_state = state
        logger.debug("heater turned %s", state.name.lower())
        return True

    def get_data(self) -> StationData:
        url = f"{self.base_url}/json"
        logger.debug("getting sensor data from ESP station %s", url)

        try:
            data = self.http.get_json(url)
            m = esp.parse_measurement(data, int(time.time()))
            uptime = esp.parse_uptime(data)
        except (requests.RequestException, HttpError, ValueError, KeyError, TypeError) as e:
            raise StationError(f"sensor data request failed: {e}") from e

        token_id = self.token_id
        if not token_id:
            mac = esp.parse_mac_address(data)
            if not mac:
                raise StationError("ESP station did not report its MAC address")
            token_id = station_token_id(mac)
        logger.debug("token ID: %s", token_id)

        if self._last_uptime is not None and uptime < self._last_uptime:
            # physical heater pin state is unknown after reboot
            logger.warning("ESP station reboot detected")
            self.heater_state = HeaterState.OFF
        self._last_uptime = uptime

        return StationData(version=self.version, token_id=token_id, uptime=uptime, last_measurement=m)


class PmCache:
    """Last SDS011 values shared between the reader thread and the scheduler."""

    def __init__(self):
        self._lock = threading.Lock()
        self._values: Tuple[Optional[float], Optional[float]] = (None, None)

    def set(self, pm25: float, pm10: float):
        with self._lock:
            self._values = (pm25, pm10)

    def get(self) -> Tuple[Optional[float], Optional[float]]:
        with self._lock:
            return self._values


class RpiStation(Station):
    """Raspberry Pi with BME280 on I2C and SDS011 on a serial port."""

    def __init__(self, version: str, bme_address: int, sds_port: str, sds_interval: int,
                 heater_pin: int, token_id: Optional[str] = None):
        super().__init__(version)
        if not token_id:
            mac = wireless_interface_mac_address()
            if not mac:
                raise StationError("can't determine RPi station MAC address")
            logger.debug("MAC address: %s", mac)
            token_id = station_token_id(mac)
        logger.debug("token ID: %s", token_id)

        self.token_id = token_id
        self.bme_address = bme_address
        self.sds_port = sds_port
        self.sds_interval = sds_interval
        self.heater_pin = heater_pin

        self._start_time = time.monotonic()
        self._i2c = None
        self.bme280 = None
        self.sds011: Optional[SDS011] = None
        self.pm = PmCache()
        self._stopping = threading.Event()
        self._reader: Optional[threading.Thread] = None

    def start(self):
        logger.info("starting RPi station...")
        try:
            self._init_bme_sensor()
        except Exception as e:
            self._close_sensors()
            raise StationError(f"BME280 sensor init error: {e}") from e

        try:
            # frames arrive once per working period
            timeout = self.sds_interval * 60 + 10
            self.sds011 = SDS011.open(self.sds_port, SDS_BAUD_RATE, timeout)
            self.sds011.flush()
            self.sds011.set_working_period(self.sds_interval)
        except Exception as e:
            self._close_sensors()
            raise StationError(f"SDS011 sensor init error: {e}") from e

        self._stopping.clear()
        self._reader = threading.Thread(target=self._read_sds_sensor, name="sds011-reader", daemon=True)
        self._reader.start()

    def _init_bme_sensor(self):
        import board
        from adafruit_bme280 import basic as adafruit_bme280

        self._i2c = board.I2C()
        # raises if no chip with BME280 ID answers at the address
        self.bme280 = adafruit_bme280.Adafruit_BME280_I2C(self._i2c, address=self.bme_address)

    def _read_sds_sensor(self):
        sds = self.sds011
        while not self._stopping.is_set():
            try:
                pm25, pm10 = sds.read()
            except (PmSensorError, OSError) as e:
                if self._stopping.is_set():
                    break
                logger.error("can't read SDS011 sensor: %s", e)
                self._stopping.wait(SDS_READ_RETRY_DELAY_SECONDS)
                try:
                    sds.flush()
                except OSError as fe:
                    logger.debug("can't flush SDS011 serial port: %s", fe)
                continue
            self.pm.set(pm25, pm10)
            logger.debug("read SDS011 sensor values, PM2.5: %s, PM10: %s", pm25, pm10)

    def stop(self):
        logger.info("stopping RPi station...")
        self._stopping.set()
        # closing the port unblocks the reader thread
        self._close_sensors()
        if self._reader is not None:
            self._reader.join(timeout=SDS_READ_RETRY_DELAY_SECONDS + 1)
            self._reader = None

    def _close_sensors(self):
        if self.sds011 is not None:
            self.sds011.close()
            self.sds011 = None
        if self._i2c is not None:
            self._i2c.deinit()
            self._i2c = None

    def turn_heater(self, state: HeaterState) -> bool:
        try:
            execute(f"gpio -1 mode {self.heater_pin} out", HEATER_COMMAND_TIMEOUT_SECONDS)
        except CommandError as e:
            logger.error("can't set heater pin %d output mode: %s", self.heater_pin, e)
            return False

        try:
            execute(f"gpio -1 write {self.heater_pin} {state.value}", HEATER_COMMAND_TIMEOUT_SECONDS)
        except CommandError as e:
            logger.error("can't set heater pin %d state %d: %s", self.heater_pin, state.value, e)
            return False

        self.heater_state = state
        logger.debug("heater turned %s", state.name.lower())
        return True

    def get_data(self) -> StationData:
        timestamp = int(time.time())
        try:
            temperature = self.bme280.temperature
            humidity = self.bme280.relative_humidity
            pressure = self.bme280.pressure  # hPa
        except (OSError, RuntimeError, ValueError) as e:
            raise StationError(f"BME280 sensor read error: {e}") from e

        pm25, pm10 = self.pm.get()

        m = Measurement(timestamp=timestamp, temperature=temperature, humidity=humidity,
                        pressure=pressure, pm25=pm25, pm10=pm10)
        return StationData(version=self.version, token_id=self.token_id,
                           uptime=time.monotonic() - self._start_time, last_measurement=m)
