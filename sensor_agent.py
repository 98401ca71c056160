#sensor_agent.py
import logging
import platform
import signal
import sys
import threading
import time
from typing import Callable, List, Optional, Sequence

from config import (
    STATION_MODE_ESP, SYSTEM_EPOCH, Settings, get_settings,
)
from correction import correct_pm
from feeder import Feeder, build_feeders, select_feeders
from heater import HeaterController
from http_client import HttpClient
from measurement import StationData, format_value
from publisher import HttpPublisher, Publisher
from station import EspStation, RpiStation, Station, StationError

__version__ = "0.3.0"

logger = logging.getLogger(__name__)


class SensorAgent:
    def __init__(self, station: Station, feeders: Sequence[Feeder], publishers: Sequence[Publisher],
                 update_interval: float, settle_time: float, disable_pm_correction: bool = False,
                 enable_heater: bool = False, heater_turn_on_humidity: int = 60,
                 clock: Callable[[], float] = time.time):
        self.station = station
        self.feeders = list(feeders)
        self.publishers = list(publishers)
        self.update_interval = update_interval
        self.settle_time = settle_time
        self.disable_pm_correction = disable_pm_correction
        self.heater: Optional[HeaterController] = None
        if enable_heater:
            self.heater = HeaterController(station, heater_turn_on_humidity)
        self.clock = clock

    def adjust(self, data: StationData) -> StationData:
        """Heater control or humidity correction of PM values, never both."""
        m = data.last_measurement
        if self.heater is not None and m.humidity is not None:
            self.heater.step(m.humidity)
        elif not self.disable_pm_correction:
            m = correct_pm(m)
        if m is data.last_measurement:
            return data
        return StationData(version=data.version, token_id=data.token_id,
                           uptime=data.uptime, last_measurement=m)

    def tick(self) -> bool:
        """One acquisition cycle, returns True if data was fed."""
        try:
            data = self.station.get_data()
        except StationError as e:
            logger.error("station data request failed: %s", e)
            return False

        data = self.adjust(data)
        m = data.last_measurement
        logger.debug("temperature: %s, humidity: %s, pressure: %s, pm2.5: %s, pm10: %s",
                     format_value(m.temperature), format_value(m.humidity), format_value(m.pressure),
                     format_value(m.pm25), format_value(m.pm10))

        if self.clock() < SYSTEM_EPOCH:
            logger.info("ignoring station data since station system time probably is not in sync")
            return False

        if data.uptime < self.settle_time:
            logger.info("ignoring station data since station uptime (%ds) is shorter "
                        "than data settle time (%ds)", data.uptime, self.settle_time)
            return False

        for feeder in self.feeders:
            try:
                feeder.feed(data)
            except Exception:
                logger.exception("%s failed", type(feeder).__name__)

        for publisher in self.publishers:
            try:
                publisher.publish(data)
            except Exception:
                logger.exception("%s failed", type(publisher).__name__)

        return True

    def run(self, stop_event: threading.Event):
        started: List[Callable[[], None]] = []
        try:
            for publisher in self.publishers:
                publisher.start()
                started.append(publisher.stop)

            try:
                self.station.start()
            except StationError as e:
                logger.error("can't start station: %s", e)
                return
            started.append(self.station.stop)

            # heater is off at startup and at exit
            if self.heater is not None:
                self.heater.force_off()
                started.append(self.heater.force_off)

            delay = 0.0
            while not stop_event.wait(delay):
                delay = self.update_interval
                self.tick()
        finally:
            for stop in reversed(started):
                stop()


def build_version(mode: str) -> str:
    return f"{mode}-{__version__}-{platform.machine()}_{sys.platform}"


def build_station(settings: Settings, version: str, http: HttpClient) -> Station:
    if settings.station_mode == STATION_MODE_ESP:
        return EspStation(version, settings.esp_host, settings.esp_port, settings.esp_heater_pin,
                          http, token_id=settings.station_token_id)
    return RpiStation(version, settings.rpi_bme_address, settings.rpi_serial_port,
                      settings.rpi_sds_interval, settings.rpi_heater_pin,
                      token_id=settings.station_token_id)


def main():
    try:
        settings = get_settings()
    except ValueError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error("invalid configuration: %s", e)
        return 1

    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    version = build_version(settings.station_mode)
    logger.info("initializing station %s", version)

    http = HttpClient(timeout=settings.http_timeout)

    feeders = select_feeders(build_feeders(settings.openair_api_url, settings.keep_duration, http),
                             settings.enabled_feeders, settings.disabled_feeders)
    logger.debug("enabled feeders: [%s]", ", ".join(name for name, _ in feeders))

    publishers = []
    if settings.http_publisher_port > 0:
        publishers.append(HttpPublisher(settings.http_publisher_port))

    try:
        station = build_station(settings, version, http)
    except StationError as e:
        logger.error("can't initialize %s station: %s", settings.station_mode, e)
        return 1

    agent = SensorAgent(station, [f for _, f in feeders], publishers,
                        settings.update_interval, settings.settle_time,
                        disable_pm_correction=settings.disable_pm_correction,
                        enable_heater=settings.enable_heater,
                        heater_turn_on_humidity=settings.heater_turn_on_humidity)

    stop_event = threading.Event()

    def _on_signal(signum, frame):
        logger.info("received %s signal", signal.Signals(signum).name)
        stop_event.set()

    for sig in (signal.SIGHUP, signal.SIGINT, signal.SIGTERM, signal.SIGQUIT):
        signal.signal(sig, _on_signal)

    try:
        agent.run(stop_event)
    finally:
        http.close()
    logger.info("exiting...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
