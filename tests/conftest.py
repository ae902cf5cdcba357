"""Shared fakes for resmon tests."""

import pytest

from resmon.gpu import GpuProbe
from resmon.models import (
    BatteryReading,
    DiskCounters,
    GpuReading,
    MemoryReading,
    NetCounters,
    TemperatureReading,
)


class FakeSources:
    """DataSources double returning canned readings; attributes may be changed between ticks."""

    def __init__(self) -> None:
        self.cpu = 25.0
        self.mem = MemoryReading(
            percent=50.0,
            total=16 * 1024**3,
            available=8 * 1024**3,
            cached=2 * 1024**3,
        )
        self.disk = 70.0
        self.disk_io: DiskCounters | None = DiskCounters(
            read_bytes=1_048_576, write_bytes=2 * 1_048_576, read_count=10, write_count=20
        )
        self.net_io: NetCounters | None = NetCounters(
            bytes_sent=3 * 1_048_576, bytes_recv=4 * 1_048_576, packets_sent=30, packets_recv=40
        )
        self.temps: list[TemperatureReading] = [
            TemperatureReading("coretemp_package id 0", 45.0),
        ]
        self.bat: BatteryReading | None = None
        self.boot = 1000.0

    def cpu_percent(self) -> float:
        return self.cpu

    def memory(self) -> MemoryReading:
        return self.mem

    def disk_percent(self) -> float:
        return self.disk

    def disk_counters(self) -> DiskCounters | None:
        return self.disk_io

    def net_counters(self) -> NetCounters | None:
        return self.net_io

    def temperatures(self) -> list[TemperatureReading]:
        return self.temps

    def battery(self) -> BatteryReading | None:
        return self.bat

    def boot_time(self) -> float:
        return self.boot


class FailingSources:
    """DataSources double where every query raises."""

    def _fail(self):
        raise OSError("sensor unavailable")

    cpu_percent = memory = disk_percent = disk_counters = net_counters = _fail
    temperatures = battery = boot_time = _fail


class FakeProbe(GpuProbe):
    """GpuProbe double that returns a canned reading and counts calls."""

    def __init__(
        self,
        reading: GpuReading | None,
        vendor: str = "nvidia",
        keywords: tuple[str, ...] = ("nvidia",),
    ) -> None:
        self.vendor = vendor
        self.keywords = keywords
        self._reading = reading
        self.calls = 0

    def read(self) -> GpuReading | None:
        self.calls += 1
        return self._reading


@pytest.fixture
def fake_sources() -> FakeSources:
    return FakeSources()


@pytest.fixture
def failing_sources() -> FailingSources:
    return FailingSources()


@pytest.fixture
def make_probe():
    return FakeProbe
