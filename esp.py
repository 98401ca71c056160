# esp.py
"""
ESPEasy firmware JSON status (``http://<board>/json``).

Only the parts used by the station are read: ``System.Uptime`` (minutes),
``WiFi`` MAC address and enabled sensor tasks with their named values.
The same shape is served back by the HTTP publisher.
"""
from typing import Any, Dict, List, Optional

from measurement import Measurement, StationData

TASK_BME280 = "BME280"
TASK_SDS011 = "SDS011"

# (task name, value name) -> Measurement field
_TASK_VALUE_FIELDS = {
    (TASK_BME280, "Temperature"): "temperature",
    (TASK_BME280, "Humidity"): "humidity",
    (TASK_BME280, "Pressure"): "pressure",
    (TASK_SDS011, "PM2.5"): "pm25",
    (TASK_SDS011, "PM10"): "pm10",
}


def _is_enabled(v: Any) -> bool:
    # ESPEasy encodes booleans as strings
    if isinstance(v, str):
        return v.strip().lower() == "true"
    return bool(v)


def _object(v: Any, what: str) -> Dict[str, Any]:
    if not isinstance(v, dict):
        raise ValueError(f"{what} is not a JSON object: {v!r:.40}")
    return v


def parse_measurement(data: Dict[str, Any], timestamp: int) -> Measurement:
    values = {}
    for sensor in _object(data, "station data").get("Sensors") or []:
        sensor = _object(sensor, "sensor task")
        if not _is_enabled(sensor.get("TaskEnabled")):
            continue
        task_name = sensor.get("TaskName")
        for tv in sensor.get("TaskValues") or []:
            tv = _object(tv, "task value")
            field_name = _TASK_VALUE_FIELDS.get((task_name, tv.get("Name")))
            if field_name is not None and tv.get("Value") is not None:
                values[field_name] = float(tv["Value"])
    return Measurement(timestamp=timestamp, **values)


def parse_uptime(data: Dict[str, Any]) -> float:
    """Board uptime in seconds."""
    return int(_object(data, "station data")["System"]["Uptime"]) * 60.0


def parse_mac_address(data: Dict[str, Any]) -> Optional[str]:
    # older firmware (mega-20190301) reports "MAC address", newer "STA MAC"
    wifi = data.get("WiFi")
    if not isinstance(wifi, dict):
        return None
    return wifi.get("MAC address") or wifi.get("STA MAC") or None


def _task(number: int, name: str, values: List[tuple]) -> Dict[str, Any]:
    return {
        "TaskValues": [
            {"ValueNumber": i, "Name": n, "NrDecimals": decimals, "Value": v}
            for i, (n, v, decimals) in enumerate(values, start=1)
        ],
        "DataAcquisition": [],
        "TaskInterval": 60,
        "Type": name,
        "TaskName": name,
        "TaskEnabled": "true",
        "TaskNumber": number,
    }


def encode_station_data(data: StationData) -> Dict[str, Any]:
    m = data.last_measurement
    env_values = [(n, getattr(m, f), 2) for n, f in (
        ("Temperature", "temperature"), ("Humidity", "humidity"), ("Pressure", "pressure"))
        if getattr(m, f) is not None]
    pm_values = [(n, getattr(m, f), 1) for n, f in (("PM2.5", "pm25"), ("PM10", "pm10"))
                 if getattr(m, f) is not None]

    sensors = []
    if env_values:
        sensors.append(_task(1, TASK_BME280, env_values))
    if pm_values:
        sensors.append(_task(2, TASK_SDS011, pm_values))

    return {
        "System": {
            "Git Build": data.version,
            "Uptime": int(data.uptime // 60),
        },
        "WiFi": {},
        "Sensors": sensors,
        "TTL": 60000,
    }
