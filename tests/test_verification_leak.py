"""Verification Test: Resource Leak Check.

The telemetry pipeline runs for the life of the process, so nothing it
owns may grow without bound: history windows stay capped, the handoff
queue holds at most one snapshot, and stopping releases the thread.
"""

import gc
import threading
import time
from queue import Empty, Queue

import psutil

from resmon.history import HistoryStore
from resmon.models import Metric, Snapshot
from resmon.monitor import CancellationToken, Sampler
from resmon.presenter import Presenter

from conftest import FakeSources


def get_current_memory_mb() -> float:
    """Get current process memory usage in MB."""
    process = psutil.Process()
    return process.memory_info().rss / (1024 * 1024)


class TestResourceLeakCheck:
    """Leak verification suite tests."""

    def test_pipeline_stays_bounded(self):
        """Run sampler and presenter together for a few seconds."""
        gc.collect()

        queue: Queue[Snapshot] = Queue(maxsize=1)
        history = HistoryStore()
        presenter = Presenter(history)
        sampler = Sampler(
            queue,
            CancellationToken(),
            sources=FakeSources(),
            discrete_probes=(),
            utilization_probes=(),
            interval=0.01,
        )

        initial_memory = get_current_memory_mb()
        sampler.start()

        try:
            processed = 0
            start_time = time.time()
            while time.time() - start_time < 3.0:
                try:
                    snapshot = queue.get(timeout=1.0)
                except Empty:
                    continue
                presenter.present(snapshot)
                processed += 1
                assert queue.qsize() <= 1

            assert processed > history.capacity, "Should have filled the history windows"
        finally:
            sampler.stop()

        for metric in Metric:
            assert len(history.values(metric)) == history.capacity

        gc.collect()
        memory_delta = get_current_memory_mb() - initial_memory
        assert memory_delta < 5.0, f"Memory increased by {memory_delta:.2f}MB"

    def test_repeated_start_stop_releases_threads(self):
        """Starting and stopping many samplers leaves no threads behind."""
        baseline = threading.active_count()

        for _ in range(20):
            sampler = Sampler(
                Queue(maxsize=1),
                CancellationToken(),
                sources=FakeSources(),
                discrete_probes=(),
                utilization_probes=(),
                interval=0.01,
            )
            sampler.start()
            time.sleep(0.02)
            sampler.stop()

        time.sleep(0.1)
        assert threading.active_count() <= baseline
