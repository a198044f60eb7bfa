"""
Tests for fleet_datafeed.worker module.

Tests DataFeedWorker cycles, stop requests and failure handling.
"""

import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from unittest.mock import Mock

from fleet_datafeed.config import ExportConfig
from fleet_datafeed.exporter import CsvExporter
from fleet_datafeed.models import ResultBundle
from fleet_datafeed.worker import WORKER_THREAD_NAME, DataFeedWorker

JOIN_TIMEOUT_SECONDS: float = 5.0


class StubLoader:
    """FeedLoader returning a fixed bundle, or raising if configured to."""

    def __init__(
        self,
        bundle: ResultBundle | None = None,
        error: Exception | None = None,
        signal_after: int = 1,
    ) -> None:
        self.bundle: ResultBundle = bundle or ResultBundle()
        self.error: Exception | None = error
        self.load_count: int = 0
        self.signal_after: int = signal_after
        self.closed: bool = False
        self.loaded: threading.Event = threading.Event()

    def load(self) -> ResultBundle:
        self.load_count += 1
        if self.load_count >= self.signal_after:
            self.loaded.set()
        if self.error is not None:
            raise self.error
        return self.bundle

    def close(self) -> None:
        self.closed = True


class TestDataFeedWorker:
    """Test DataFeedWorker run loop."""

    def test_single_cycle_then_shutdown(
        self,
        export_config: ExportConfig,
        fixed_clock: Callable[[], datetime],
        sample_bundle: ResultBundle,
    ) -> None:
        """Should export the in-flight cycle and stop before the next one."""
        loader = StubLoader(sample_bundle)
        worker = DataFeedWorker(loader, CsvExporter(export_config, fixed_clock), 60.0)

        worker.start()
        assert worker.wait_for_processing(JOIN_TIMEOUT_SECONDS)
        worker.shutdown()
        worker.join(JOIN_TIMEOUT_SECONDS)

        assert not worker.is_alive()
        assert worker.failure is None
        assert worker.cycles_completed == 1
        assert loader.closed is True
        written: list[Path] = list(Path(export_config.output_path).iterdir())
        assert len(written) == 4  # noqa: PLR2004

    def test_runs_multiple_cycles_until_stopped(self) -> None:
        """Should keep cycling with a zero interval until shutdown()."""
        loader = StubLoader(signal_after=3)
        exporter = Mock(spec=CsvExporter)
        worker = DataFeedWorker(loader, exporter, 0.0)

        worker.start()
        assert loader.loaded.wait(JOIN_TIMEOUT_SECONDS)
        worker.shutdown()
        worker.join(JOIN_TIMEOUT_SECONDS)

        assert not worker.is_alive()
        assert worker.cycles_completed >= 3  # noqa: PLR2004
        assert exporter.export.call_count == worker.cycles_completed

    def test_shutdown_before_start_runs_no_cycle(self) -> None:
        """Should exit immediately without processing when stopped early."""
        loader = StubLoader()
        worker = DataFeedWorker(loader, Mock(spec=CsvExporter), 0.0)

        worker.shutdown()
        worker.start()
        worker.join(JOIN_TIMEOUT_SECONDS)

        assert worker.is_processing() is False
        assert loader.load_count == 0
        assert loader.closed is True

    def test_shutdown_is_idempotent(self) -> None:
        """Should accept repeated shutdown() calls."""
        worker = DataFeedWorker(StubLoader(), Mock(spec=CsvExporter), 0.0)

        worker.shutdown()
        worker.shutdown()

        assert worker.stop_requested is True

    def test_load_error_ends_run(self) -> None:
        """Should record the failure and close the loader."""
        error = RuntimeError('feed unavailable')
        loader = StubLoader(error=error)
        worker = DataFeedWorker(loader, Mock(spec=CsvExporter), 0.0)

        worker.start()
        worker.join(JOIN_TIMEOUT_SECONDS)

        assert not worker.is_alive()
        assert worker.failure is error
        assert worker.cycles_completed == 0
        assert worker.is_processing() is True
        assert loader.closed is True

    def test_export_io_error_ends_run(self) -> None:
        """Should treat export I/O errors as fatal to the worker."""
        exporter = Mock(spec=CsvExporter)
        exporter.export.side_effect = OSError('disk full')
        worker = DataFeedWorker(StubLoader(), exporter, 0.0)

        worker.start()
        worker.join(JOIN_TIMEOUT_SECONDS)

        assert isinstance(worker.failure, OSError)

    def test_thread_name(self) -> None:
        """Should name the worker thread for log output."""
        worker = DataFeedWorker(StubLoader(), Mock(spec=CsvExporter), 0.0)

        assert worker.name == WORKER_THREAD_NAME
