"""Turns snapshots into dashboard text blocks."""

from collections.abc import Callable
from dataclasses import dataclass

from rich.markup import escape

from resmon.history import HistoryStore
from resmon.models import Metric, Snapshot
from resmon.render import (
    BAR_WIDTH,
    LABEL_WIDTH,
    format_battery,
    format_bytes,
    format_gpu,
    format_rate,
    format_temperature,
    format_uptime,
    gauge_readout,
    render_sparkline,
)

SEPARATOR = "[cyan]--------------------------------[/cyan]"

METRIC_VALUES: dict[Metric, Callable[[Snapshot], float]] = {
    Metric.CPU: lambda s: s.cpu_percent,
    Metric.MEMORY: lambda s: s.memory_percent,
    Metric.DISK: lambda s: s.disk_percent,
    Metric.NET_SENT: lambda s: s.net_sent_mbps,
    Metric.NET_RECV: lambda s: s.net_recv_mbps,
    Metric.DISK_READ: lambda s: s.disk_read_mbps,
    Metric.DISK_WRITE: lambda s: s.disk_write_mbps,
}


@dataclass(slots=True, frozen=True)
class DisplayBlocks:
    """Rendered Textual markup for the two metric boxes."""

    usage: str
    activity: str


def _section(title: str) -> list[str]:
    return [SEPARATOR, f"[yellow]{title}[/yellow]", SEPARATOR]


class Presenter:
    """
    Formats each snapshot against the rolling history.

    The history is updated before anything is rendered, so every sparkline
    ends with the point from the snapshot being presented.
    """

    def __init__(self, history: HistoryStore, bar_width: int = BAR_WIDTH) -> None:
        self._history = history
        self._bar_width = bar_width

    def present(self, snapshot: Snapshot) -> DisplayBlocks:
        self._record(snapshot)
        sparks = {
            metric: render_sparkline(self._history.normalize(metric))
            for metric in self._history.metrics
        }
        return DisplayBlocks(
            usage=self._usage_block(snapshot, sparks),
            activity=self._activity_block(snapshot, sparks),
        )

    def _record(self, snapshot: Snapshot) -> None:
        for metric in self._history.metrics:
            self._history.append(metric, METRIC_VALUES[metric](snapshot))

    def _gauge(self, label: str, value: float) -> str:
        readout = escape(gauge_readout(value, self._bar_width))
        return f"[yellow]{label:<{LABEL_WIDTH}}[/yellow] {readout}"

    def _usage_block(self, snapshot: Snapshot, sparks: dict[Metric, str]) -> str:
        lines = [
            self._gauge("CPU", snapshot.cpu_percent),
            f"[green]{sparks.get(Metric.CPU, '')}[/green]",
            self._gauge("Memory", snapshot.memory_percent),
            f"[green]{sparks.get(Metric.MEMORY, '')}[/green]",
            (
                f"[dim]Total {format_bytes(snapshot.memory_total)}  "
                f"Available {format_bytes(snapshot.memory_available)}  "
                f"Cached {format_bytes(snapshot.memory_cached)}[/dim]"
            ),
            self._gauge("Disk", snapshot.disk_percent),
            f"[green]{sparks.get(Metric.DISK, '')}[/green]",
        ]
        if snapshot.gpus:
            lines.append("")
            lines.extend(_section("GPU"))
            lines.extend(escape(format_gpu(gpu)) for gpu in snapshot.gpus)
        return "\n".join(lines)

    def _activity_block(self, snapshot: Snapshot, sparks: dict[Metric, str]) -> str:
        lines = _section("Network Stats")
        lines += [
            (
                f"[green]Sent:[/green] {format_rate(snapshot.net_sent_mbps)} "
                f"[dim]({snapshot.net_packets_sent} pkts)[/dim]"
            ),
            f"[green]{sparks.get(Metric.NET_SENT, '')}[/green]",
            (
                f"[blue]Recv:[/blue] {format_rate(snapshot.net_recv_mbps)} "
                f"[dim]({snapshot.net_packets_recv} pkts)[/dim]"
            ),
            f"[blue]{sparks.get(Metric.NET_RECV, '')}[/blue]",
            "",
        ]
        lines += _section("Disk I/O")
        lines += [
            (
                f"[green]Read:[/green] {format_rate(snapshot.disk_read_mbps)} "
                f"[dim]({snapshot.disk_read_count} ops)[/dim]"
            ),
            f"[green]{sparks.get(Metric.DISK_READ, '')}[/green]",
            (
                f"[blue]Write:[/blue] {format_rate(snapshot.disk_write_mbps)} "
                f"[dim]({snapshot.disk_write_count} ops)[/dim]"
            ),
            f"[blue]{sparks.get(Metric.DISK_WRITE, '')}[/blue]",
            "",
        ]
        lines += _section("System Stats")
        battery = format_battery(
            snapshot.battery_percent, snapshot.battery_state, snapshot.battery_present
        )
        lines += [
            f"[yellow]CPU Temp:[/yellow] {format_temperature(snapshot.cpu_temperature)}",
            f"[yellow]Battery:[/yellow] {battery}",
            f"[yellow]Uptime:[/yellow] {format_uptime(snapshot.uptime)}",
        ]
        if snapshot.counter_resets:
            lines.append(
                f"[dim]Counter reset: {', '.join(snapshot.counter_resets)}[/dim]"
            )
        return "\n".join(lines)
