"""Tests for GPU discovery and vendor probes."""

import subprocess
from unittest.mock import MagicMock, patch

from resmon.gpu import AmdSysfsProbe, NvidiaSmiProbe, discover_gpus, parse_nvidia_smi
from resmon.models import GpuReading, TemperatureReading


def amd_probe(make_probe, utilization=40.0):
    return make_probe(
        GpuReading(name="amdgpu", utilization=utilization),
        vendor="amd",
        keywords=("amd", "radeon"),
    )


class TestDiscoverGpus:
    """Tests for the additive discovery passes."""

    def test_no_sensors_no_probes(self):
        assert discover_gpus([]) == []

    def test_sensor_pass_creates_temperature_only_entries(self):
        temps = [
            TemperatureReading("coretemp_package id 0", 45.0),
            TemperatureReading("amdgpu_edge", 60.0),
            TemperatureReading("nouveau", 52.0),
        ]

        gpus = discover_gpus(temps)

        assert gpus == [
            GpuReading(name="amdgpu_edge", temperature=60.0),
            GpuReading(name="nouveau", temperature=52.0),
        ]

    def test_discrete_probe_appends_nonzero_reading(self, make_probe):
        probe = make_probe(GpuReading(name="NVIDIA A100", utilization=0.0, temperature=35.0))

        gpus = discover_gpus([], discrete_probes=(probe,))

        assert [g.name for g in gpus] == ["NVIDIA A100"]

    def test_discrete_probe_zero_reading_is_dropped(self, make_probe):
        probe = make_probe(GpuReading(name="NVIDIA A100", utilization=0.0, temperature=0.0))
        assert discover_gpus([], discrete_probes=(probe,)) == []

    def test_discrete_probe_failure_is_dropped(self, make_probe):
        probe = make_probe(None)
        assert discover_gpus([], discrete_probes=(probe,)) == []
        assert probe.calls == 1

    def test_discrete_probe_skipped_when_vendor_already_found(self, make_probe):
        probe = make_probe(GpuReading(name="NVIDIA A100", utilization=50.0))
        temps = [TemperatureReading("nvidia_gpu", 55.0)]

        gpus = discover_gpus(temps, discrete_probes=(probe,))

        assert probe.calls == 0
        assert [g.name for g in gpus] == ["nvidia_gpu"]

    def test_utilization_probe_enriches_matching_entries(self, make_probe):
        probe = amd_probe(make_probe)
        temps = [
            TemperatureReading("amdgpu_edge", 60.0),
            TemperatureReading("amdgpu_junction", 70.0),
        ]

        gpus = discover_gpus(temps, utilization_probes=(probe,))

        assert [g.utilization for g in gpus] == [40.0, 40.0]
        assert [g.temperature for g in gpus] == [60.0, 70.0]
        assert probe.calls == 1

    def test_utilization_probe_not_called_without_targets(self, make_probe):
        probe = amd_probe(make_probe)

        assert discover_gpus([TemperatureReading("nouveau", 50.0)], utilization_probes=(probe,))
        assert probe.calls == 0

    def test_utilization_probe_failure_leaves_entries(self, make_probe):
        probe = make_probe(None, vendor="amd", keywords=("amd",))

        gpus = discover_gpus(
            [TemperatureReading("amdgpu_edge", 60.0)], utilization_probes=(probe,)
        )

        assert gpus == [GpuReading(name="amdgpu_edge", temperature=60.0)]


class TestNvidiaSmi:
    """Tests for the nvidia-smi probe."""

    def test_parse_output(self):
        reading = parse_nvidia_smi("NVIDIA GeForce RTX 3080, 17, 48, 1024, 10240\n")

        assert reading == GpuReading(
            name="NVIDIA GeForce RTX 3080",
            utilization=17.0,
            temperature=48.0,
            memory_used=1024.0,
            memory_total=10240.0,
        )

    def test_parse_not_supported_fields(self):
        reading = parse_nvidia_smi("Tesla T4, [N/A], 40, [Not Supported], 15360")

        assert reading is not None
        assert reading.utilization is None
        assert reading.memory_used is None
        assert reading.temperature == 40.0

    def test_parse_takes_first_gpu(self):
        reading = parse_nvidia_smi("GPU A, 1, 2, 3, 4\nGPU B, 5, 6, 7, 8\n")
        assert reading is not None and reading.name == "GPU A"

    def test_parse_garbage(self):
        assert parse_nvidia_smi("") is None
        assert parse_nvidia_smi("oops") is None

    def test_read_missing_binary(self):
        with patch("resmon.gpu.subprocess.run", side_effect=FileNotFoundError):
            assert NvidiaSmiProbe().read() is None

    def test_read_timeout(self):
        error = subprocess.TimeoutExpired(cmd="nvidia-smi", timeout=2)
        with patch("resmon.gpu.subprocess.run", side_effect=error):
            assert NvidiaSmiProbe().read() is None

    def test_read_nonzero_exit(self):
        result = MagicMock(returncode=9, stdout="")
        with patch("resmon.gpu.subprocess.run", return_value=result):
            assert NvidiaSmiProbe().read() is None

    def test_read_success(self):
        result = MagicMock(returncode=0, stdout="NVIDIA T1000, 5, 41, 100, 4096\n")
        with patch("resmon.gpu.subprocess.run", return_value=result):
            reading = NvidiaSmiProbe().read()

        assert reading is not None
        assert reading.utilization == 5.0

    def test_matches_vendor(self):
        probe = NvidiaSmiProbe()
        assert probe.matches("NVIDIA GeForce")
        assert probe.matches("nouveau")
        assert not probe.matches("amdgpu_edge")


class TestAmdSysfs:
    """Tests for the amdgpu sysfs probe."""

    def test_reads_busy_percent(self, tmp_path):
        card = tmp_path / "card0" / "device"
        card.mkdir(parents=True)
        (card / "gpu_busy_percent").write_text("37\n")

        probe = AmdSysfsProbe(pattern=str(tmp_path / "card*" / "device" / "gpu_busy_percent"))

        assert probe.read() == GpuReading(name="amdgpu", utilization=37.0)

    def test_no_cards(self, tmp_path):
        probe = AmdSysfsProbe(pattern=str(tmp_path / "card*" / "device" / "gpu_busy_percent"))
        assert probe.read() is None

    def test_skips_unreadable_card(self, tmp_path):
        for name, content in (("card0", "garbage"), ("card1", "12")):
            device = tmp_path / name / "device"
            device.mkdir(parents=True)
            (device / "gpu_busy_percent").write_text(content)

        probe = AmdSysfsProbe(pattern=str(tmp_path / "card*" / "device" / "gpu_busy_percent"))

        assert probe.read() == GpuReading(name="amdgpu", utilization=12.0)
