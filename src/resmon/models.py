"""Data models for resmon."""

from dataclasses import dataclass
from enum import Enum


class BatteryState(Enum):
    """Power state reported for the primary battery."""

    CHARGING = "Charging"
    DISCHARGING = "Discharging"
    FULL = "Full"
    UNKNOWN = "Unknown"
    NOT_PRESENT = "N/A"


class Metric(Enum):
    """Metrics that keep a rolling history for sparklines."""

    CPU = "cpu"
    MEMORY = "memory"
    DISK = "disk"
    NET_SENT = "net_sent"
    NET_RECV = "net_recv"
    DISK_READ = "disk_read"
    DISK_WRITE = "disk_write"


@dataclass(slots=True, frozen=True)
class TemperatureReading:
    """A single temperature sensor reading."""

    sensor_key: str  # lower-cased "<chip>_<label>"
    temperature: float  # Celsius


@dataclass(slots=True, frozen=True)
class BatteryReading:
    """Raw battery charge as reported by the platform."""

    current: float
    full: float
    state: BatteryState


@dataclass(slots=True, frozen=True)
class MemoryReading:
    """Virtual memory usage."""

    percent: float
    total: int  # Bytes
    available: int
    cached: int


@dataclass(slots=True, frozen=True)
class DiskCounters:
    """Cumulative disk I/O totals since boot."""

    read_bytes: int
    write_bytes: int
    read_count: int
    write_count: int


@dataclass(slots=True, frozen=True)
class NetCounters:
    """Cumulative network I/O totals since boot."""

    bytes_sent: int
    bytes_recv: int
    packets_sent: int
    packets_recv: int


@dataclass(slots=True, frozen=True)
class GpuReading:
    """Best-effort GPU reading. Every field but the name may be missing."""

    name: str
    temperature: float | None = None
    utilization: float | None = None
    memory_used: float | None = None  # MiB
    memory_total: float | None = None  # MiB


@dataclass(slots=True, frozen=True)
class Uptime:
    """System uptime broken down for display."""

    days: int
    hours: int
    minutes: int


@dataclass(slots=True, frozen=True)
class SystemInfo:
    """Static host description shown once at startup."""

    os_name: str
    hostname: str
    kernel: str
    cpu_model: str
    cpu_cores: int
    local_ip: str
    uptime_minutes: int


@dataclass(slots=True, frozen=True)
class Snapshot:
    """
    Immutable telemetry sample produced once per sampling tick.

    Throughput fields are derived from cumulative counters and are in MB/s.
    ``cpu_temperature`` is None when no sensor is available, which is not
    the same as a reading of 0.
    """

    cpu_percent: float
    memory_percent: float
    memory_total: int
    memory_available: int
    memory_cached: int
    disk_percent: float
    disk_read_mbps: float
    disk_write_mbps: float
    disk_read_count: int
    disk_write_count: int
    net_sent_mbps: float
    net_recv_mbps: float
    net_packets_sent: int
    net_packets_recv: int
    cpu_temperature: float | None
    battery_percent: float
    battery_state: BatteryState
    uptime: Uptime
    gpus: tuple[GpuReading, ...] = ()
    battery_present: bool = False
    counter_resets: tuple[str, ...] = ()
