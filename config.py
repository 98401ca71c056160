# config.py
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv


# System epoch (2019-01-01 GMT) as unix time, earlier clocks are not in sync
SYSTEM_EPOCH = 1546300800

# Heater disabling humidity hysteresis (percents)
HEATER_DISABLE_HUMIDITY_HYSTERESIS = 5

# Heater control command timeout on RPi station
HEATER_COMMAND_TIMEOUT_SECONDS = 5

# Luftdaten / AirCMS accept one post per this interval
SENSOR_DATA_POST_INTERVAL_SECONDS = 3 * 60

LUFTDATEN_API_URL = "https://api.luftdaten.info/v1/push-sensor-data/"
AIRCMS_API_URL = "http://doiot.ru/php/sensors.php"

# Max feeder error length to log without truncating
MAX_FEEDER_ERROR_LOG_LENGTH = 255

# SDS011 reader back-off after a read error
SDS_READ_RETRY_DELAY_SECONDS = 3
SDS_BAUD_RATE = 9600

STATION_MODE_ESP = "esp"
STATION_MODE_RPI = "rpi"
STATION_MODES = (STATION_MODE_ESP, STATION_MODE_RPI)

FEEDER_ALL = "all"
FEEDER_OPENAIR = "openair"
FEEDER_LUFTDATEN = "luftdaten"
FEEDER_AIRCMS = "aircms"
FEEDER_NAMES = (FEEDER_ALL, FEEDER_OPENAIR, FEEDER_LUFTDATEN, FEEDER_AIRCMS)

TOKEN_ID_PATTERN = re.compile(r"^[0-9a-f]{40}$")


@dataclass(frozen=True)
class Settings:
    station_mode: str

    esp_host: str
    esp_port: int
    esp_heater_pin: int

    rpi_bme_address: int
    rpi_serial_port: str
    rpi_sds_interval: int
    rpi_heater_pin: int

    openair_api_url: str

    update_interval: float
    keep_duration: float
    settle_time: float
    http_timeout: float

    disable_pm_correction: bool
    enable_heater: bool
    heater_turn_on_humidity: int

    station_token_id: Optional[str]

    enabled_feeders: Tuple[str, ...]
    disabled_feeders: Tuple[str, ...]

    http_publisher_port: int

    debug: bool


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"invalid {name}={raw!r}")


def _env_list(name: str) -> Tuple[str, ...]:
    raw = os.getenv(name, "")
    items = tuple(i.strip().lower() for i in raw.split(",") if i.strip())
    for item in items:
        if item not in FEEDER_NAMES:
            raise ValueError(f"invalid feeder name in {name}: {item!r} "
                             f"(expected one of: {', '.join(FEEDER_NAMES)})")
    return items


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("AGENT_ENV_FILE", ".env")
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    station_mode = os.getenv("STATION_MODE", STATION_MODE_ESP).strip().lower()
    if station_mode not in STATION_MODES:
        raise ValueError(f"invalid station mode: {station_mode}")

    token_id = os.getenv("STATION_TOKEN_ID", "").strip() or None
    if token_id is not None and not TOKEN_ID_PATTERN.match(token_id):
        raise ValueError(f"invalid station token ID: {token_id!r} (must be valid SHA1 sum)")

    return Settings(
        station_mode=station_mode,
        esp_host=os.getenv("ESP_HOST", "OpenAir.local"),
        esp_port=int(os.getenv("ESP_PORT", "80")),
        esp_heater_pin=int(os.getenv("ESP_HEATER_PIN", "14")),
        rpi_bme_address=int(os.getenv("RPI_BME_ADDRESS", "0x76"), 0),
        rpi_serial_port=os.getenv("RPI_SERIAL_PORT", "/dev/ttyAMA0"),
        rpi_sds_interval=int(os.getenv("RPI_SDS_INTERVAL", "3")),
        rpi_heater_pin=int(os.getenv("RPI_HEATER_PIN", "7")),
        openair_api_url=os.getenv("OPENAIR_API_URL", "https://api.openair.city/v1/feeder"),
        update_interval=float(os.getenv("UPDATE_INTERVAL_SECONDS", "60")),
        keep_duration=float(os.getenv("KEEP_DURATION_SECONDS", str(6 * 3600))),
        settle_time=float(os.getenv("SETTLE_TIME_SECONDS", str(5 * 60))),
        http_timeout=float(os.getenv("HTTP_TIMEOUT_SECONDS", "15")),
        disable_pm_correction=_env_bool("DISABLE_PM_CORRECTION"),
        enable_heater=_env_bool("ENABLE_HEATER"),
        heater_turn_on_humidity=int(os.getenv("HEATER_TURN_ON_HUMIDITY", "60")),
        station_token_id=token_id,
        enabled_feeders=_env_list("ENABLED_FEEDERS"),
        disabled_feeders=_env_list("DISABLED_FEEDERS"),
        http_publisher_port=int(os.getenv("HTTP_PUBLISHER_PORT", "0")),
        debug=_env_bool("DEBUG"),
    )
