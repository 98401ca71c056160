# heater.py
import logging

from config import HEATER_DISABLE_HUMIDITY_HYSTERESIS
from station import HeaterState, Station

logger = logging.getLogger(__name__)


class HeaterController:
    """
    PM sensor heater switched by humidity with a dead band:
    ON at humidity >= threshold, OFF at humidity <= threshold - hysteresis.
    """

    def __init__(self, station: Station, turn_on_humidity: int,
                 hysteresis: int = HEATER_DISABLE_HUMIDITY_HYSTERESIS):
        self.station = station
        self.turn_on_humidity = turn_on_humidity
        self.hysteresis = hysteresis

    @property
    def state(self) -> HeaterState:
        return self.station.heater_state

    def step(self, humidity: float) -> HeaterState:
        h = int(humidity)
        if self.station.heater_state == HeaterState.OFF:
            if h >= self.turn_on_humidity:
                logger.info("turning heater ON (humidity: %d%%)", h)
                self.station.turn_heater(HeaterState.ON)
        elif h <= self.turn_on_humidity - self.hysteresis:
            logger.info("turning heater OFF (humidity: %d%%)", h)
            self.station.turn_heater(HeaterState.OFF)
        return self.station.heater_state

    def force_off(self):
        self.station.turn_heater(HeaterState.OFF)
