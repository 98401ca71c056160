# measurement.py
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

# OpenAir API field names
_WIRE_FIELDS = (
    ("timestamp", "ts"),
    ("temperature", "t"),
    ("humidity", "h"),
    ("pressure", "p"),
    ("pm25", "pm25"),
    ("pm10", "pm10"),
    ("aqi", "aqi"),
)


@dataclass(frozen=True)
class Measurement:
    """Single station reading, any value may be missing."""
    timestamp: Optional[int] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    pressure: Optional[float] = None
    pm25: Optional[float] = None
    pm10: Optional[float] = None
    aqi: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {}
        for attr, key in _WIRE_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                out[key] = value
        return out


@dataclass(frozen=True)
class StationData:
    version: str
    token_id: str
    uptime: float  # seconds
    last_measurement: Measurement


def feeder_payload(token_id: str, version: str, measurements: List[Measurement]) -> Dict[str, Any]:
    return {
        "token_id": token_id,
        "version": version,
        "measurements": [m.to_dict() for m in measurements],
    }


def format_value(value: Optional[float]) -> str:
    if value is None:
        return ""
    return f"{value:.1f}"
