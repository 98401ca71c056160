# utils.py
import hashlib
import logging
import shlex
import subprocess
from typing import Optional

import psutil

logger = logging.getLogger(__name__)


class CommandError(Exception):
    pass


def sha1(s: str) -> str:
    return hashlib.sha1(s.encode("utf-8")).hexdigest()


def round_value(value: Optional[float], places: int) -> Optional[float]:
    if value is None:
        return None
    return round(value, places)


def truncate_string(s: str, length: int) -> str:
    if len(s) > length:
        return s[:length] + "…"
    return s


def execute(command: str, timeout: float):
    """Runs a command without shell, raises CommandError on failure or timeout."""
    try:
        result = subprocess.run(shlex.split(command), capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise CommandError(f"timeout ({timeout}s): {command!r}") from e
    except OSError as e:
        raise CommandError(f"can't run {command!r}: {e}") from e

    for line in result.stdout.splitlines():
        logger.debug("STDOUT: %s", line)
    for line in result.stderr.splitlines():
        logger.debug("STDERR: %s", line)

    if result.returncode != 0:
        raise CommandError(f"{command!r} exited with code {result.returncode}")


def wireless_interface_mac_address() -> Optional[str]:
    """MAC address of the first wireless ('wl*') interface, None if there is none."""
    interfaces = psutil.net_if_addrs()
    for name in sorted(interfaces):
        if not name.startswith("wl"):
            continue
        for addr in interfaces[name]:
            if addr.family == psutil.AF_LINK:
                return addr.address
    return None
