"""Host telemetry sources backed by psutil."""

import logging
import os
import platform
import socket
import subprocess
import sys
import time
from typing import Protocol

import psutil

from resmon.models import (
    BatteryReading,
    BatteryState,
    DiskCounters,
    MemoryReading,
    NetCounters,
    SystemInfo,
    TemperatureReading,
)

logger = logging.getLogger(__name__)

DISK_PATH = os.path.abspath(os.sep)
IOREG_TIMEOUT = 2.0


class DataSources(Protocol):
    """
    Everything the sampler reads from the host.

    Implementations may raise on any call; the sampler substitutes a
    sentinel for the failed field.
    """

    def cpu_percent(self) -> float: ...

    def memory(self) -> MemoryReading: ...

    def disk_percent(self) -> float: ...

    def disk_counters(self) -> DiskCounters | None: ...

    def net_counters(self) -> NetCounters | None: ...

    def temperatures(self) -> list[TemperatureReading]: ...

    def battery(self) -> BatteryReading | None: ...

    def boot_time(self) -> float: ...


class PsutilSources:
    """DataSources implementation using psutil, with an ioreg fallback on macOS."""

    def __init__(self, disk_path: str = DISK_PATH) -> None:
        self._disk_path = disk_path
        # First call always returns 0.0; prime it so the first tick is meaningful
        psutil.cpu_percent(interval=None)

    def cpu_percent(self) -> float:
        return psutil.cpu_percent(interval=None)

    def memory(self) -> MemoryReading:
        mem = psutil.virtual_memory()
        return MemoryReading(
            percent=mem.percent,
            total=mem.total,
            available=mem.available,
            cached=getattr(mem, "cached", 0),  # Linux/BSD only
        )

    def disk_percent(self) -> float:
        return psutil.disk_usage(self._disk_path).percent

    def disk_counters(self) -> DiskCounters | None:
        io = psutil.disk_io_counters()
        if io is None:
            return None
        return DiskCounters(
            read_bytes=io.read_bytes,
            write_bytes=io.write_bytes,
            read_count=io.read_count,
            write_count=io.write_count,
        )

    def net_counters(self) -> NetCounters | None:
        io = psutil.net_io_counters()
        if io is None:
            return None
        return NetCounters(
            bytes_sent=io.bytes_sent,
            bytes_recv=io.bytes_recv,
            packets_sent=io.packets_sent,
            packets_recv=io.packets_recv,
        )

    def temperatures(self) -> list[TemperatureReading]:
        sensors = getattr(psutil, "sensors_temperatures", None)
        if sensors is None:
            if sys.platform == "darwin":
                return read_ioreg_temperatures()
            return []
        return flatten_temperatures(sensors())

    def battery(self) -> BatteryReading | None:
        sensors = getattr(psutil, "sensors_battery", None)
        if sensors is None:
            return None
        return battery_from_psutil(sensors())

    def boot_time(self) -> float:
        return psutil.boot_time()


def flatten_temperatures(sensors: dict) -> list[TemperatureReading]:
    """
    Flatten psutil's {chip: [shwtemp, ...]} mapping into a list.

    The sensor key is "<chip>_<label>" lower-cased, or just the chip name
    when the entry has no label.
    """
    readings: list[TemperatureReading] = []
    for chip, entries in sensors.items():
        for entry in entries:
            key = f"{chip}_{entry.label}" if entry.label else chip
            readings.append(TemperatureReading(key.lower(), float(entry.current)))
    return readings


def battery_from_psutil(battery) -> BatteryReading | None:
    """Map a psutil ``sbattery`` tuple to a BatteryReading."""
    if battery is None:
        return None
    percent = float(battery.percent)
    if battery.power_plugged is None:
        state = BatteryState.UNKNOWN
    elif battery.power_plugged:
        state = BatteryState.FULL if percent >= 100.0 else BatteryState.CHARGING
    else:
        state = BatteryState.DISCHARGING
    # psutil only reports a percentage, so full charge is normalised to 100
    return BatteryReading(current=percent, full=100.0, state=state)


def parse_ioreg_temperature(output: str) -> float | None:
    """
    Extract a temperature from ``ioreg -r -k Temperature`` output.

    Values are in centi-degrees; only readings between 1000 and 20000 that
    convert to 0..200 degrees are accepted. "Temperature" keys take
    precedence per line, "VirtualTemperature" is the fallback.
    """
    for raw in output.splitlines():
        line = raw.strip()
        if "=" not in line:
            continue
        for key in ('"Temperature"', '"VirtualTemperature"'):
            if key not in line:
                continue
            value_str = line.split("=", 1)[1].strip().rstrip(";").strip()
            try:
                value = float(value_str)
            except ValueError:
                continue
            if 1000 < value < 20000:
                temp = value / 100.0
                if 0 < temp < 200:
                    return temp
    return None


def read_ioreg_temperatures() -> list[TemperatureReading]:
    """Read the IO Registry temperature on macOS."""
    try:
        result = subprocess.run(
            ["ioreg", "-r", "-k", "Temperature"],
            capture_output=True,
            text=True,
            timeout=IOREG_TIMEOUT,
        )
    except (FileNotFoundError, subprocess.SubprocessError, OSError):
        logger.debug("ioreg unavailable", exc_info=True)
        return []
    if result.returncode != 0:
        return []
    temp = parse_ioreg_temperature(result.stdout)
    if temp is None:
        return []
    return [TemperatureReading("ioreg_temperature", temp)]


def get_local_ip() -> str:
    """Return the first IPv4 address of an up, non-loopback interface."""
    try:
        stats = psutil.net_if_stats()
        addrs = psutil.net_if_addrs()
    except (OSError, psutil.Error):
        return "N/A"
    for name, iface_addrs in addrs.items():
        iface = stats.get(name)
        if iface is None or not iface.isup:
            continue
        for addr in iface_addrs:
            if addr.family != socket.AF_INET:
                continue
            if addr.address.startswith("127."):
                continue
            return addr.address
    return "N/A"


def _os_name() -> str:
    if sys.platform.startswith("linux"):
        try:
            release = platform.freedesktop_os_release()
            return release.get("PRETTY_NAME") or release.get("NAME", "Linux")
        except OSError:
            return "Linux"
    if sys.platform == "darwin":
        return f"macOS {platform.mac_ver()[0]}".strip()
    return f"{platform.system()} {platform.version()}".strip()


def _cpu_model() -> str:
    try:
        with open("/proc/cpuinfo", encoding="utf-8") as f:
            for line in f:
                if line.lower().startswith("model name"):
                    return line.split(":", 1)[1].strip()
    except OSError:
        pass  # Not Linux
    return platform.processor() or "Unknown"


def collect_system_info() -> SystemInfo:
    """Gather the static host description for the system info box."""
    try:
        uptime_minutes = int((time.time() - psutil.boot_time()) // 60)
    except (OSError, psutil.Error):
        uptime_minutes = 0
    return SystemInfo(
        os_name=_os_name(),
        hostname=socket.gethostname(),
        kernel=platform.release(),
        cpu_model=_cpu_model(),
        cpu_cores=psutil.cpu_count(logical=True) or 0,
        local_ip=get_local_ip(),
        uptime_minutes=uptime_minutes,
    )
