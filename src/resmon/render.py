"""Text formatting helpers: gauges, sparklines and readouts."""

from collections.abc import Iterable

from rich.markup import escape

from resmon.models import BatteryState, GpuReading, SystemInfo, Uptime

GLYPHS = "▁▂▃▄▅▆▇█"
BAR_WIDTH = 20
LABEL_WIDTH = 8

MASCOT_FRAMES: tuple[tuple[str, ...], ...] = (
    (
        "[cyan]    .----------.[/cyan]",
        "[cyan]   (  [white]o[/white]      [white]o[/white]  )[/cyan]",
        "[cyan]   |     ..     |[/cyan]",
        "[cyan]   |   '----'   |[/cyan]",
        "[cyan]    '----------'[/cyan]",
        "[yellow]      ~~~~~~~~[/yellow]",
        "[cyan]     _|  ||  |_[/cyan]",
    ),
    (
        "[cyan]    .----------.[/cyan]",
        "[cyan]   (    [white]o[/white]  [white]o[/white]    )[/cyan]",
        "[cyan]   |     ..     |[/cyan]",
        "[cyan]   |   '----'   |[/cyan]",
        "[cyan]    '----------'[/cyan]",
        "[yellow]     ~~~~~~~~~~[/yellow]",
        "[cyan]    _|   ||   |_[/cyan]",
    ),
)


def glyph_index(normalized: float) -> int:
    """Map a 0-100 value onto one of the eight sparkline glyphs."""
    index = int((normalized / 100.0) * (len(GLYPHS) - 1))
    return max(0, min(index, len(GLYPHS) - 1))


def render_sparkline(values: Iterable[float]) -> str:
    """One glyph per normalized value, oldest first."""
    return "".join(GLYPHS[glyph_index(v)] for v in values)


def render_bar(label: str, value: float, width: int = BAR_WIDTH) -> str:
    """
    Fixed-width gauge, e.g. ``CPU      [████      ] 40.0%``.

    The bar is clamped to ``width`` cells even if the value leaves 0-100;
    the numeric readout shows the value as given.
    """
    return f"{label:<{LABEL_WIDTH}} {gauge_readout(value, width)}"


def gauge_readout(value: float, width: int = BAR_WIDTH) -> str:
    """The bracketed bar and percentage of a gauge, without its label."""
    filled = int((value / 100.0) * width)
    filled = max(0, min(filled, width))
    bar = "█" * filled + " " * (width - filled)
    return f"[{bar}] {value:.1f}%"


def format_rate(mbps: float) -> str:
    return f"{mbps:.2f} MB/s"


def format_temperature(celsius: float | None) -> str:
    """Temperature readout; None means no sensor and shows as N/A."""
    if celsius is None:
        return "N/A"
    return f"{celsius:.0f}°C"


def format_battery(percent: float, state: BatteryState, present: bool = True) -> str:
    if not present:
        return BatteryState.NOT_PRESENT.value
    return f"{percent:.2f}% ({state.value})"


def format_uptime(uptime: Uptime) -> str:
    if uptime.days > 0:
        return f"{uptime.days}d {uptime.hours}h {uptime.minutes}m"
    return f"{uptime.hours}h {uptime.minutes}m"


def format_bytes(size: float) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:.1f}{unit}" if unit != "B" else f"{int(size)}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_gpu(gpu: GpuReading) -> str:
    """One line per GPU; fields the hardware did not report show N/A."""
    util = "N/A" if gpu.utilization is None else f"{gpu.utilization:.0f}%"
    if gpu.memory_used is not None and gpu.memory_total is not None:
        mem = f"{gpu.memory_used:.0f}/{gpu.memory_total:.0f} MiB"
    else:
        mem = "N/A"
    return (
        f"{gpu.name}: util {util}, temp {format_temperature(gpu.temperature)}, "
        f"mem {mem}"
    )


def format_system_info(info: SystemInfo) -> str:
    """Markup for the static system info box."""
    rows = [
        ("OS", info.os_name),
        ("Host", info.hostname),
        ("Kernel", info.kernel),
        ("Uptime", f"{info.uptime_minutes} mins"),
        ("CPU", f"{info.cpu_model} ({info.cpu_cores} cores)"),
        ("Local IP", info.local_ip),
    ]
    return "\n".join(f"[yellow]{name}:[/yellow] {escape(value)}" for name, value in rows)
