"""Telemetry sampling engine for resmon."""

import logging
import threading
import time
from collections.abc import Callable, Sequence
from queue import Full, Queue
from typing import TypeVar

from resmon.gpu import (
    GpuProbe,
    default_discrete_probes,
    default_utilization_probes,
    discover_gpus,
)
from resmon.models import (
    BatteryReading,
    BatteryState,
    GpuReading,
    MemoryReading,
    Snapshot,
    TemperatureReading,
    Uptime,
)
from resmon.sources import DataSources, PsutilSources

logger = logging.getLogger(__name__)

SAMPLE_INTERVAL = 1.0
BYTES_PER_MB = 1_048_576

# A sensor is a CPU sensor if its key contains any of these
CPU_SENSOR_KEYWORDS = (
    "package id 0",  # Intel coretemp
    "cpu",
    "tctl",  # AMD k10temp
    "core",
    "die",
    "thermal",  # macOS / ARM thermal zones
    "acpi",
    "temp",
)

T = TypeVar("T")


class CancellationToken:
    """
    Single-shot cancellation signal shared by the sampler and the UI.

    ``cancel()`` may be called any number of times; only the first call
    performs the transition and returns True.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            return True

    def wait(self, timeout: float | None = None) -> bool:
        """Block up to ``timeout`` seconds; return True if cancelled."""
        return self._event.wait(timeout)


def compute_rate(previous: int, current: int, interval: float = SAMPLE_INTERVAL) -> float:
    """Throughput in MB/s between two cumulative byte counts."""
    return (current - previous) / interval / BYTES_PER_MB


class CounterState:
    """
    Previous cumulative I/O totals, owned by the sampler thread.

    Every counter starts at zero, so the first rate reported for a counter
    is its whole cumulative total converted to MB/s.
    """

    def __init__(self, interval: float = SAMPLE_INTERVAL) -> None:
        self._interval = interval
        self._previous: dict[str, int] = {}
        self._resets: list[str] = []

    def previous(self, name: str) -> int:
        return self._previous.get(name, 0)

    def advance(self, name: str, current: int) -> float:
        """Return the rate for ``name`` and store ``current`` as the new baseline."""
        previous = self._previous.get(name, 0)
        self._previous[name] = current
        if current < previous:
            # Counter went backwards (wrap, reset, device removed)
            logger.info("Counter %s reset from %d to %d", name, previous, current)
            self._resets.append(name)
            return 0.0
        return compute_rate(previous, current, self._interval)

    def take_resets(self) -> tuple[str, ...]:
        resets = tuple(self._resets)
        self._resets.clear()
        return resets


def select_cpu_temperature(readings: Sequence[TemperatureReading]) -> float | None:
    """
    Pick the CPU temperature from all sensor readings.

    Sensors are scanned in the order reported; the first whose lower-cased
    key contains any CPU keyword wins. With no match the first sensor is
    used; with no sensors at all the temperature is unavailable (None,
    never 0).
    """
    if not readings:
        return None
    for reading in readings:
        key = reading.sensor_key.lower()
        if any(keyword in key for keyword in CPU_SENSOR_KEYWORDS):
            return reading.temperature
    return readings[0].temperature


def battery_status(reading: BatteryReading | None) -> tuple[float, BatteryState]:
    """Charge percentage and state; an absent battery reports (0.0, NOT_PRESENT)."""
    if reading is None:
        return 0.0, BatteryState.NOT_PRESENT
    if reading.full <= 0:
        return 0.0, reading.state
    return (reading.current / reading.full) * 100.0, reading.state


def decompose_uptime(seconds: float) -> Uptime:
    """Split an uptime in seconds into whole days, hours and minutes."""
    total = max(0, int(seconds))
    return Uptime(
        days=total // 86400,
        hours=(total % 86400) // 3600,
        minutes=(total % 3600) // 60,
    )


class Sampler:
    """
    Samples host telemetry once per interval and hands Snapshots to a queue.

    Runs in a separate daemon thread. The queue should be bounded (maxsize=1)
    so the sampler waits for the consumer instead of piling up snapshots.
    Every data-source call is guarded: a failure substitutes a sentinel
    value and the tick still emits a complete Snapshot. The loop only ends
    when the cancellation token is cancelled.
    """

    def __init__(
        self,
        snapshot_queue: Queue[Snapshot],
        token: CancellationToken,
        sources: DataSources | None = None,
        discrete_probes: Sequence[GpuProbe] | None = None,
        utilization_probes: Sequence[GpuProbe] | None = None,
        interval: float = SAMPLE_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the Sampler.

        Args:
            snapshot_queue: Queue the snapshots are put on.
            token: Cancellation signal; the loop exits once it is cancelled.
            sources: Host data sources. Defaults to psutil.
            discrete_probes: GPU probes that may add a GPU entry.
            utilization_probes: GPU probes that enrich existing entries.
            interval: Seconds between ticks. Rates assume exactly this interval.
            clock: Wall clock used for uptime.
        """
        self._queue = snapshot_queue
        self._token = token
        self._sources = sources if sources is not None else PsutilSources()
        self._discrete_probes = (
            tuple(discrete_probes) if discrete_probes is not None
            else default_discrete_probes()
        )
        self._utilization_probes = (
            tuple(utilization_probes) if utilization_probes is not None
            else default_utilization_probes()
        )
        self._interval = interval
        self._clock = clock
        self._counters = CounterState(interval)
        self._thread: threading.Thread | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        """Check if the sampler thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the sampling thread."""
        if self.is_running or self._token.is_cancelled:
            return

        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name="Sampler",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Cancel the token and wait for the sampling thread to finish.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._token.cancel()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        """Main loop: wait one interval or until cancelled, then emit."""
        self._log_sensors()
        while not self._token.wait(self._interval):
            snapshot = self.sample()
            if not self._emit(snapshot):
                break
        logger.debug("Sampler stopped")

    def _emit(self, snapshot: Snapshot) -> bool:
        """Put the snapshot on the queue, giving up if cancelled meanwhile."""
        while not self._token.is_cancelled:
            try:
                self._queue.put(snapshot, timeout=0.1)
                return True
            except Full:
                continue
        return False

    def _log_sensors(self) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        readings = self._guard("temperatures", self._sources.temperatures, [])
        logger.debug("Found %d temperature sensors", len(readings))
        for reading in readings:
            logger.debug("  %s: %.1f C", reading.sensor_key, reading.temperature)

    def _guard(self, name: str, func: Callable[[], T], default: T) -> T:
        try:
            return func()
        except Exception:
            logger.debug("Data source %s failed", name, exc_info=True)
            return default

    def sample(self) -> Snapshot:
        """Collect one complete Snapshot and advance the counter state."""
        cpu = self._guard("cpu", self._sources.cpu_percent, 0.0)
        mem = self._guard(
            "memory", self._sources.memory, MemoryReading(0.0, 0, 0, 0)
        )
        disk_percent = self._guard("disk", self._sources.disk_percent, 0.0)

        disk_read = disk_write = 0.0
        disk_read_count = disk_write_count = 0
        disk_io = self._guard("disk_io", self._sources.disk_counters, None)
        if disk_io is not None:
            disk_read = self._counters.advance("disk_read", disk_io.read_bytes)
            disk_write = self._counters.advance("disk_write", disk_io.write_bytes)
            disk_read_count = disk_io.read_count
            disk_write_count = disk_io.write_count

        net_sent = net_recv = 0.0
        packets_sent = packets_recv = 0
        net_io = self._guard("net_io", self._sources.net_counters, None)
        if net_io is not None:
            net_sent = self._counters.advance("net_sent", net_io.bytes_sent)
            net_recv = self._counters.advance("net_recv", net_io.bytes_recv)
            packets_sent = net_io.packets_sent
            packets_recv = net_io.packets_recv

        temperatures = self._guard("temperatures", self._sources.temperatures, [])
        battery = self._guard("battery", self._sources.battery, None)
        battery_percent, battery_state = battery_status(battery)

        boot_time = self._guard("boot_time", self._sources.boot_time, None)
        uptime_seconds = self._clock() - boot_time if boot_time else 0.0

        gpus: list[GpuReading] = self._guard(
            "gpu",
            lambda: discover_gpus(
                temperatures, self._discrete_probes, self._utilization_probes
            ),
            [],
        )

        return Snapshot(
            cpu_percent=cpu,
            memory_percent=mem.percent,
            memory_total=mem.total,
            memory_available=mem.available,
            memory_cached=mem.cached,
            disk_percent=disk_percent,
            disk_read_mbps=disk_read,
            disk_write_mbps=disk_write,
            disk_read_count=disk_read_count,
            disk_write_count=disk_write_count,
            net_sent_mbps=net_sent,
            net_recv_mbps=net_recv,
            net_packets_sent=packets_sent,
            net_packets_recv=packets_recv,
            cpu_temperature=select_cpu_temperature(temperatures),
            battery_percent=battery_percent,
            battery_state=battery_state,
            battery_present=battery is not None,
            uptime=decompose_uptime(uptime_seconds),
            gpus=tuple(gpus),
            counter_resets=self._counters.take_resets(),
        )
