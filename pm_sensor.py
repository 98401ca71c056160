# pm_sensor.py
"""
Nova Fitness SDS011 particulate sensor over a serial port.

Data frame (10 bytes):  AA C0 PM25_L PM25_H PM10_L PM10_H ID1 ID2 CS AB
Command frame (19 bytes): AA B4 D1..D13 ID1 ID2 CS AB
CS is the low byte of the sum of the payload bytes.
"""
import logging
from typing import Tuple

import serial

logger = logging.getLogger(__name__)

HEAD = 0xAA
TAIL = 0xAB
CMD_ID = 0xB4
DATA_ID = 0xC0
CMD_WORKING_PERIOD = 0x08


class PmSensorError(Exception):
    pass


def checksum(payload: bytes) -> int:
    return sum(payload) & 0xFF


def working_period_command(minutes: int) -> bytes:
    if not 0 <= minutes <= 30:
        raise ValueError(f"SDS011 working period must be 0..30 minutes, got {minutes}")
    payload = bytes([CMD_WORKING_PERIOD, 0x01, minutes]) + bytes(10) + b"\xff\xff"
    return bytes([HEAD, CMD_ID]) + payload + bytes([checksum(payload), TAIL])


def decode_frame(frame: bytes) -> Tuple[float, float]:
    """Returns (PM2.5, PM10) in ug/m3 from a 10-byte data frame."""
    if len(frame) != 10:
        raise PmSensorError(f"invalid frame length: {len(frame)}")
    if frame[0] != HEAD or frame[1] != DATA_ID or frame[9] != TAIL:
        raise PmSensorError(f"invalid frame: {frame.hex()}")
    if checksum(frame[2:8]) != frame[8]:
        raise PmSensorError(f"frame checksum mismatch: {frame.hex()}")
    pm25 = int.from_bytes(frame[2:4], "little") / 10.0
    pm10 = int.from_bytes(frame[4:6], "little") / 10.0
    return pm25, pm10


class SDS011:
    def __init__(self, port: serial.Serial):
        self.port = port

    @classmethod
    def open(cls, port_name: str, baudrate: int, timeout: float) -> "SDS011":
        return cls(serial.Serial(port=port_name, baudrate=baudrate, timeout=timeout,
                                 bytesize=serial.EIGHTBITS, parity=serial.PARITY_NONE,
                                 stopbits=serial.STOPBITS_ONE))

    def set_working_period(self, minutes: int):
        self.port.write(working_period_command(minutes))
        self.port.flush()

    def read(self) -> Tuple[float, float]:
        """Blocks until the next data frame, skipping command replies."""
        while True:
            b = self.port.read(1)
            if not b:
                raise PmSensorError("timeout waiting for data frame")
            if b[0] != HEAD:
                continue
            rest = self.port.read(9)
            if len(rest) != 9:
                raise PmSensorError("timeout reading data frame")
            if rest[0] != DATA_ID:
                logger.debug("skipping SDS011 frame: %s", (b + rest).hex())
                continue
            return decode_frame(b + rest)

    def flush(self):
        self.port.reset_input_buffer()

    def close(self):
        self.port.close()
