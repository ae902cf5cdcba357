"""GPU discovery from temperature sensors and vendor probes."""

import glob
import logging
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import replace

from resmon.models import GpuReading, TemperatureReading

logger = logging.getLogger(__name__)

# Sensor name fragments that indicate a GPU temperature sensor
GPU_SENSOR_KEYWORDS = ("gpu", "radeon", "nouveau", "nvidia")

NVIDIA_SMI_TIMEOUT = 2.0
DRM_BUSY_GLOB = "/sys/class/drm/card*/device/gpu_busy_percent"


class GpuProbe(ABC):
    """
    Capability interface for a vendor or platform specific GPU query.

    ``keywords`` decide which discovered GPU entries belong to this vendor.
    ``read()`` returns None whenever the query fails or has nothing to say.
    """

    vendor: str = ""
    keywords: tuple[str, ...] = ()

    def matches(self, name: str) -> bool:
        lowered = name.lower()
        return any(keyword in lowered for keyword in self.keywords)

    @abstractmethod
    def read(self) -> GpuReading | None:
        """Query the GPU once."""


class NvidiaSmiProbe(GpuProbe):
    """Reads utilization, temperature and memory of the first GPU via nvidia-smi."""

    vendor = "nvidia"
    keywords = ("nvidia", "nouveau")

    QUERY = "name,utilization.gpu,temperature.gpu,memory.used,memory.total"

    def read(self) -> GpuReading | None:
        try:
            result = subprocess.run(
                [
                    "nvidia-smi",
                    f"--query-gpu={self.QUERY}",
                    "--format=csv,noheader,nounits",
                ],
                capture_output=True,
                text=True,
                timeout=NVIDIA_SMI_TIMEOUT,
            )
        except (FileNotFoundError, subprocess.SubprocessError, OSError):
            return None
        if result.returncode != 0:
            return None
        return parse_nvidia_smi(result.stdout)


def _optional_float(value: str) -> float | None:
    try:
        return float(value)
    except ValueError:
        return None  # "[N/A]" or "[Not Supported]"


def parse_nvidia_smi(output: str) -> GpuReading | None:
    """Parse the first line of nvidia-smi csv output (noheader, nounits)."""
    lines = [line for line in output.strip().splitlines() if line.strip()]
    if not lines:
        return None
    parts = [p.strip() for p in lines[0].split(",")]
    if len(parts) < 5:
        return None
    return GpuReading(
        name=parts[0] or "NVIDIA GPU",
        utilization=_optional_float(parts[1]),
        temperature=_optional_float(parts[2]),
        memory_used=_optional_float(parts[3]),
        memory_total=_optional_float(parts[4]),
    )


class AmdSysfsProbe(GpuProbe):
    """Reads AMD GPU utilization from the amdgpu sysfs interface (Linux)."""

    vendor = "amd"
    keywords = ("amd", "radeon")

    def __init__(self, pattern: str = DRM_BUSY_GLOB) -> None:
        self._pattern = pattern

    def read(self) -> GpuReading | None:
        for path in sorted(glob.glob(self._pattern)):
            try:
                with open(path, encoding="utf-8") as f:
                    busy = float(f.read().strip())
            except (OSError, ValueError):
                continue
            return GpuReading(name="amdgpu", utilization=busy)
        return None


def default_discrete_probes() -> tuple[GpuProbe, ...]:
    return (NvidiaSmiProbe(),)


def default_utilization_probes() -> tuple[GpuProbe, ...]:
    return (AmdSysfsProbe(),)


def _has_reading(reading: GpuReading) -> bool:
    return bool(reading.utilization) or bool(reading.temperature)


def discover_gpus(
    temperatures: Sequence[TemperatureReading],
    discrete_probes: Sequence[GpuProbe] = (),
    utilization_probes: Sequence[GpuProbe] = (),
) -> list[GpuReading]:
    """
    Build the GPU list from several independent best-effort passes.

    1. Every temperature sensor whose name looks like a GPU becomes an entry
       carrying only a temperature.
    2. Each discrete probe runs only when no entry already belongs to its
       vendor; its reading is appended if it reports a non-zero value.
    3. Each utilization probe enriches entries of its vendor that have no
       utilization yet. The probe is queried at most once per pass.
    """
    gpus = [
        GpuReading(name=t.sensor_key, temperature=t.temperature)
        for t in temperatures
        if any(keyword in t.sensor_key.lower() for keyword in GPU_SENSOR_KEYWORDS)
    ]

    for probe in discrete_probes:
        if any(probe.matches(gpu.name) for gpu in gpus):
            continue
        reading = probe.read()
        if reading is not None and _has_reading(reading):
            gpus.append(reading)

    for probe in utilization_probes:
        targets = [
            i for i, gpu in enumerate(gpus)
            if probe.matches(gpu.name) and gpu.utilization is None
        ]
        if not targets:
            continue
        reading = probe.read()
        if reading is None or reading.utilization is None:
            logger.debug("%s probe returned no utilization", probe.vendor)
            continue
        for i in targets:
            gpus[i] = replace(gpus[i], utilization=reading.utilization)

    return gpus
