# fleet_datafeed/worker.py
"""
Acquisition worker thread.

DataFeedWorker repeatedly loads a ResultBundle from a FeedLoader and hands it
to the CsvExporter. It exposes a thread-safe processing flag that the
lifecycle coordinator watches, and a stop request that is honoured between
cycles: the cycle in flight always finishes, so a report file is never cut
off halfway.

Failure Semantics:
------------------
Any exception raised inside a cycle (transport error after retries, I/O
error from the export engine, unexpected bug) is logged with its traceback,
stored in `failure`, and ends the run. The coordinator surfaces it as
WorkerFailedError from join().
"""

import logging
import threading
from typing import Final

from fleet_datafeed.exporter import CsvExporter
from fleet_datafeed.models import ResultBundle
from fleet_datafeed.operations import FeedLoader

__all__: list[str] = ['WORKER_THREAD_NAME', 'DataFeedWorker', 'WorkerFailedError']

logger: logging.Logger = logging.getLogger(__name__)

WORKER_THREAD_NAME: Final[str] = 'datafeed-worker'


class WorkerFailedError(RuntimeError):
    """
    Raised when the acquisition worker ended abnormally.

    Attributes:
        cause: The exception that ended the worker's run.
    """

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f'Acquisition worker failed: {cause!r}')
        self.cause: BaseException = cause


class DataFeedWorker(threading.Thread):
    """
    Thread running load/export cycles until stopped.

    Example:
        >>> worker = DataFeedWorker(loader, CsvExporter(config.export), 30.0)
        >>> worker.start()
        >>> worker.shutdown()
        >>> worker.join()
    """

    def __init__(
        self,
        loader: FeedLoader,
        exporter: CsvExporter,
        feed_interval_seconds: float,
    ) -> None:
        super().__init__(name=WORKER_THREAD_NAME)
        self._loader: FeedLoader = loader
        self._exporter: CsvExporter = exporter
        self._feed_interval_seconds: float = feed_interval_seconds

        self._processing: threading.Event = threading.Event()
        self._stop_requested: threading.Event = threading.Event()

        self.failure: BaseException | None = None
        self.cycles_completed: int = 0

    def is_processing(self) -> bool:
        """Whether the first cycle has started."""
        return self._processing.is_set()

    def wait_for_processing(self, timeout: float | None = None) -> bool:
        """Block until the first cycle has started or the timeout elapses."""
        return self._processing.wait(timeout)

    @property
    def stop_requested(self) -> bool:
        """Whether shutdown() has been called."""
        return self._stop_requested.is_set()

    def shutdown(self) -> None:
        """
        Ask the worker to stop after the cycle in flight.

        Idempotent and callable from any thread. Does not wait; use join().
        """
        if not self._stop_requested.is_set():
            logger.info('Stop requested for %s', self.name)
        self._stop_requested.set()

    def run(self) -> None:
        logger.info(
            'Worker started (interval=%.1fs)', self._feed_interval_seconds
        )

        try:
            while not self._stop_requested.is_set():
                self._processing.set()
                self._run_cycle()

                # Sleeps until the next cycle or wakes early on shutdown()
                if self._stop_requested.wait(self._feed_interval_seconds):
                    break

        except Exception as error:  # noqa: BLE001
            self.failure = error
            logger.exception(
                'Worker stopped after %d completed cycles due to an error',
                self.cycles_completed,
            )

        finally:
            self._close_loader()

        if self.failure is None:
            logger.info('Worker finished after %d cycles', self.cycles_completed)

    def _run_cycle(self) -> None:
        bundle: ResultBundle = self._loader.load()
        self._exporter.export(bundle)
        self.cycles_completed += 1

        logger.debug(
            'Cycle %d complete (%d records)', self.cycles_completed, bundle.record_count
        )

    def _close_loader(self) -> None:
        try:
            self._loader.close()
        except Exception:  # noqa: BLE001
            logger.exception('Failed to close feed loader')
