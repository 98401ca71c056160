import io

import pytest

from pm_sensor import SDS011, PmSensorError, decode_frame, working_period_command

# PM2.5 = 1.8, PM10 = 14.5, sensor ID 0x0201
DATA_FRAME = bytes.fromhex("aac012009100 0102a6ab".replace(" ", ""))
# reply to "set working period = 3"
PERIOD_REPLY = bytes.fromhex("aac508010300 01020fab".replace(" ", ""))


class FakePort(io.BytesIO):
    def __init__(self, data=b""):
        super().__init__(data)
        self.written = b""
        self.reset_count = 0

    def write(self, b):
        self.written += b
        return len(b)

    def reset_input_buffer(self):
        self.reset_count += 1


def test_decode_frame():
    assert decode_frame(DATA_FRAME) == (1.8, 14.5)


@pytest.mark.parametrize("frame", [
    DATA_FRAME[:-1],
    DATA_FRAME[:8] + b"\x00" + DATA_FRAME[9:],
    DATA_FRAME[:9] + b"\x00",
])
def test_decode_frame_rejects_corrupt_frames(frame):
    with pytest.raises(PmSensorError):
        decode_frame(frame)


def test_read_skips_noise_and_command_replies():
    sensor = SDS011(FakePort(b"\x00\x13" + PERIOD_REPLY + DATA_FRAME))
    assert sensor.read() == (1.8, 14.5)


def test_read_timeout():
    with pytest.raises(PmSensorError):
        SDS011(FakePort(b"")).read()
    with pytest.raises(PmSensorError):
        SDS011(FakePort(DATA_FRAME[:5])).read()


def test_working_period_command():
    cmd = working_period_command(3)
    assert len(cmd) == 19
    assert cmd[:5] == bytes([0xAA, 0xB4, 0x08, 0x01, 0x03])
    assert cmd[15:17] == b"\xff\xff"
    assert cmd[17] == (0x08 + 0x01 + 0x03 + 0xFF + 0xFF) & 0xFF
    assert cmd[18] == 0xAB

    with pytest.raises(ValueError):
        working_period_command(31)


def test_set_working_period_and_flush():
    port = FakePort()
    sensor = SDS011(port)

    sensor.set_working_period(3)
    sensor.flush()

    assert port.written == working_period_command(3)
    assert port.reset_count == 1
