# correction.py
"""
Correction of optical PM sensor readings by relative humidity.

Water droplets make particles look bigger to the sensor, so at high humidity
the raw values are overestimated:

    corrected = pm / (1 + a * (humidity / 100) ^ b)
"""
import dataclasses

from measurement import Measurement

PM25_COEFFICIENTS = (0.48756, 8.60068)
PM10_COEFFICIENTS = (0.81559, 5.83411)


def corrected_pm(pm: float, humidity: float, a: float, b: float) -> float:
    return pm / (1.0 + a * (humidity / 100.0) ** b)


def correct_pm(m: Measurement) -> Measurement:
    """Returns a copy of the measurement with PM values corrected by humidity."""
    if m.humidity is None:
        return m

    changes = {}
    if m.pm25 is not None:
        changes["pm25"] = round(corrected_pm(m.pm25, m.humidity, *PM25_COEFFICIENTS), 1)
    if m.pm10 is not None:
        changes["pm10"] = round(corrected_pm(m.pm10, m.humidity, *PM10_COEFFICIENTS), 1)

    return dataclasses.replace(m, **changes)
