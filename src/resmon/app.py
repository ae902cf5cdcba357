"""resmon - Main Textual application."""

import logging
from collections.abc import Sequence
from queue import Empty, Queue

from textual import work
from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.logging import TextualHandler
from textual.widgets import Static
from textual.worker import get_current_worker

from resmon.gpu import GpuProbe
from resmon.history import HistoryStore
from resmon.models import Snapshot, SystemInfo
from resmon.monitor import SAMPLE_INTERVAL, CancellationToken, Sampler
from resmon.presenter import DisplayBlocks, Presenter
from resmon.render import MASCOT_FRAMES, format_system_info
from resmon.sources import DataSources, collect_system_info

logger = logging.getLogger(__name__)

ANIMATION_INTERVAL = 0.5
QUEUE_POLL = 0.25

BOX_TITLES = {
    "#sysinfo": "System Info",
    "#usage": "Usage",
    "#activity": "Activity",
}


class MascotBox(Static):
    """Decorative animated art; runs on its own timer, unrelated to telemetry."""

    DEFAULT_CSS = """
    MascotBox {
        height: 9;
        border: round $primary;
        content-align: center middle;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize MascotBox."""
        super().__init__(*args, **kwargs)
        self._frame = 0

    @property
    def frame(self) -> int:
        return self._frame

    def on_mount(self) -> None:
        self.border_title = "resmon"
        self.update(self._render_frame())
        self.set_interval(ANIMATION_INTERVAL, self.advance)

    def advance(self) -> None:
        """Show the next animation frame."""
        self._frame = (self._frame + 1) % len(MASCOT_FRAMES)
        self.update(self._render_frame())

    def _render_frame(self) -> str:
        return "\n".join(MASCOT_FRAMES[self._frame])


class ResmonApp(App):
    """Main resmon application."""

    TITLE = "resmon"
    SUB_TITLE = "Resource Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #sysinfo {
        height: 8;
        border: round $primary;
    }

    #metrics {
        height: 1fr;
    }

    #usage, #activity {
        width: 1fr;
        height: 1fr;
        border: round $primary;
        padding: 0 1;
    }

    #footer {
        height: 1;
    }
    """

    BINDINGS = [
        ("q,Q", "quit", "Quit"),
    ]

    def __init__(
        self,
        sources: DataSources | None = None,
        discrete_probes: Sequence[GpuProbe] | None = None,
        utilization_probes: Sequence[GpuProbe] | None = None,
        interval: float = SAMPLE_INTERVAL,
    ) -> None:
        """Initialize the ResmonApp and wire the sampler to the presenter."""
        super().__init__()
        self._token = CancellationToken()
        self._snapshot_queue: Queue[Snapshot] = Queue(maxsize=1)
        self._history = HistoryStore()
        self._presenter = Presenter(self._history)
        self._sampler = Sampler(
            self._snapshot_queue,
            self._token,
            sources=sources,
            discrete_probes=discrete_probes,
            utilization_probes=utilization_probes,
            interval=interval,
        )
        self._last_blocks: DisplayBlocks | None = None

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def history(self) -> HistoryStore:
        return self._history

    @property
    def last_blocks(self) -> DisplayBlocks | None:
        return self._last_blocks

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield MascotBox(id="mascot")
        yield Static("Loading system info...", id="sysinfo")
        yield Horizontal(
            Static("Waiting for first sample...", id="usage"),
            Static("", id="activity"),
            id="metrics",
        )
        yield Static("[yellow]Press Q to quit.[/yellow]", id="footer")

    def on_mount(self) -> None:
        """Start sampling and the background consumers once mounted."""
        for selector, title in BOX_TITLES.items():
            self.query_one(selector, Static).border_title = title
        self._sampler.start()
        self._consume_snapshots()
        self._load_system_info()

    def on_unmount(self) -> None:
        self._token.cancel()
        self._sampler.stop(timeout=1.0)

    @work(thread=True, exclusive=True, group="snapshots")
    def _consume_snapshots(self) -> None:
        """Block on the snapshot queue and push each formatted pass to the UI."""
        worker = get_current_worker()
        while not (self._token.is_cancelled or worker.is_cancelled):
            try:
                snapshot = self._snapshot_queue.get(timeout=QUEUE_POLL)
            except Empty:
                continue
            blocks = self._presenter.present(snapshot)
            if self._token.is_cancelled:
                break
            try:
                self.call_from_thread(self._show_blocks, blocks)
            except RuntimeError:
                break  # App no longer running

    @work(thread=True, group="sysinfo")
    def _load_system_info(self) -> None:
        try:
            info = collect_system_info()
        except Exception:
            logger.warning("Could not collect system info", exc_info=True)
            return
        try:
            self.call_from_thread(self._show_system_info, info)
        except RuntimeError:
            pass  # App exited before the info arrived

    def _show_blocks(self, blocks: DisplayBlocks) -> None:
        self._last_blocks = blocks
        self.query_one("#usage", Static).update(blocks.usage)
        self.query_one("#activity", Static).update(blocks.activity)

    def _show_system_info(self, info: SystemInfo) -> None:
        self.query_one("#sysinfo", Static).update(format_system_info(info))

    def action_quit(self) -> None:
        """Cancel sampling exactly once, then exit."""
        if self._token.cancel():
            logger.info("Quit requested, stopping sampler")
        self._sampler.stop(timeout=1.0)
        self.exit()


def main() -> None:
    """Entry point for resmon application."""
    logging.basicConfig(level=logging.INFO, handlers=[TextualHandler()])
    app = ResmonApp()
    app.run()


if __name__ == "__main__":
    main()
