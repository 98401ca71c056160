from heater import HeaterController
from station import HeaterState, Station


class FakeStation(Station):
    def __init__(self, fail=False):
        super().__init__("test")
        self.fail = fail
        self.calls = []

    def turn_heater(self, state):
        self.calls.append(state)
        if self.fail:
            return False
        self.heater_state = state
        return True


def test_hysteresis_sequence():
    station = FakeStation()
    heater = HeaterController(station, turn_on_humidity=60)

    states = [heater.step(h) for h in [50, 61, 64, 55, 54]]

    assert states == [HeaterState.OFF, HeaterState.ON, HeaterState.ON, HeaterState.OFF, HeaterState.OFF]
    assert station.calls == [HeaterState.ON, HeaterState.OFF]


def test_dead_band_keeps_state():
    station = FakeStation()
    heater = HeaterController(station, turn_on_humidity=60)

    heater.step(59.9)
    assert station.calls == []

    heater.step(60)
    for h in (59, 58, 57, 56, 56.9):
        heater.step(h)
    assert station.calls == [HeaterState.ON]
    assert heater.state == HeaterState.ON


def test_actuation_failure_keeps_last_known_state():
    station = FakeStation(fail=True)
    heater = HeaterController(station, turn_on_humidity=60)

    assert heater.step(70) == HeaterState.OFF
    # re-evaluated on next tick against the unchanged state
    assert heater.step(70) == HeaterState.OFF
    assert station.calls == [HeaterState.ON, HeaterState.ON]


def test_force_off():
    station = FakeStation()
    station.heater_state = HeaterState.ON
    HeaterController(station, turn_on_humidity=60).force_off()
    assert station.heater_state == HeaterState.OFF
