# fleet_datafeed/lifecycle.py
"""
Lifecycle coordination for the acquisition worker.

LifecycleCoordinator owns exactly one worker thread. It starts it, either
lets it run until a signal arrives (continuous mode) or stops it once the
first cycle has begun (one-shot mode), and guarantees that the stop sequence
(worker.shutdown() then worker.join()) runs exactly once no matter how many
threads ask for it.

States:
-------
    IDLE -> STARTING -> PROCESSING -> SHUTTING_DOWN -> STOPPED
    IDLE | STARTING -> FAILED      (worker could not be built or started)

Threads:
--------
- main: calls run() and owns the coordinator as a context manager.
- datafeed-worker: the supervised worker.
- shutdown-signal: spawned by the SIGINT/SIGTERM handler. It performs the
  shutdown and then waits for the main thread to leave the `with` block, so
  the interpreter never exits while the main path is still unwinding.

Signal handlers run on the main thread between bytecodes, possibly while the
main thread is itself inside shutdown() or join(). The handler therefore only
spawns the shutdown-signal thread and returns; it never blocks.

Usage:
------
    with LifecycleCoordinator(build_worker) as coordinator:
        coordinator.run(continuous=config.feed.continuous)
"""

import logging
import signal
import threading
from collections.abc import Callable
from enum import Enum
from types import FrameType, TracebackType
from typing import Any, Final, Protocol, Self

from fleet_datafeed.worker import WorkerFailedError

__all__: list[str] = [
    'SHUTDOWN_THREAD_NAME',
    'LifecycleCoordinator',
    'LifecycleError',
    'LifecycleState',
    'SupervisedWorker',
    'WorkerFactory',
]

logger: logging.Logger = logging.getLogger(__name__)

SHUTDOWN_THREAD_NAME: Final[str] = 'shutdown-signal'

# How often wait_until_processing() re-checks that the worker is still alive.
DEFAULT_POLL_INTERVAL_SECONDS: Final[float] = 0.1

HANDLED_SIGNALS: Final[tuple[signal.Signals, ...]] = (
    signal.SIGINT,
    signal.SIGTERM,
)


class LifecycleState(str, Enum):
    """Coordinator lifecycle state."""

    IDLE = 'idle'
    STARTING = 'starting'
    PROCESSING = 'processing'
    SHUTTING_DOWN = 'shutting_down'
    STOPPED = 'stopped'
    FAILED = 'failed'


class LifecycleError(RuntimeError):
    """Raised when an operation is not valid in the current state."""


class SupervisedWorker(Protocol):
    """The worker surface the coordinator relies on (see DataFeedWorker)."""

    failure: BaseException | None

    def start(self) -> None: ...

    def is_alive(self) -> bool: ...

    def is_processing(self) -> bool: ...

    def wait_for_processing(self, timeout: float | None = None) -> bool: ...

    def shutdown(self) -> None: ...

    def join(self, timeout: float | None = None) -> None: ...


WorkerFactory = Callable[[], SupervisedWorker]


class LifecycleCoordinator:
    """
    Starts, supervises and stops one acquisition worker.

    Thread Safety:
        shutdown() may be called concurrently from any number of threads.
        The first caller performs the stop sequence, the others block until
        it has completed. All callers return normally.
    """

    def __init__(
        self,
        worker_factory: WorkerFactory,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        """
        Initialize the coordinator. Nothing is started yet.

        Args:
            worker_factory: Builds the worker when start() is called. Errors
                raised here (bad configuration, unwritable output directory)
                move the coordinator to FAILED.
            poll_interval: Default liveness re-check interval for
                wait_until_processing().
        """
        self._worker_factory: WorkerFactory = worker_factory
        self._poll_interval: float = poll_interval
        self._worker: SupervisedWorker | None = None
        self._state: LifecycleState = LifecycleState.IDLE

        self._lock: threading.Lock = threading.Lock()
        self._shutdown_started: bool = False
        self._stopped: threading.Event = threading.Event()
        self._main_unwound: threading.Event = threading.Event()

        self._previous_handlers: dict[signal.Signals, Any] = {}
        self._signal_thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def state(self) -> LifecycleState:
        """Current lifecycle state."""
        return self._state

    @property
    def worker(self) -> SupervisedWorker | None:
        """The supervised worker, once started."""
        return self._worker

    @property
    def is_stopped(self) -> bool:
        """Whether the stop sequence has completed."""
        return self._stopped.is_set()

    def _set_state(self, new_state: LifecycleState) -> None:
        if new_state is not self._state:
            logger.debug('Lifecycle %s -> %s', self._state.value, new_state.value)
            self._state = new_state

    # -------------------------------------------------------------------------
    # Lifecycle operations
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """
        Build and start the worker.

        Raises:
            LifecycleError: If the coordinator was already started or stopped.
            Exception: Whatever the worker factory raises; the coordinator
                moves to FAILED first.
        """
        with self._lock:
            if self._shutdown_started:
                raise LifecycleError('Cannot start: shutdown already requested')
            if self._state is not LifecycleState.IDLE:
                raise LifecycleError(f'Cannot start from state {self._state.value}')

            self._set_state(LifecycleState.STARTING)
            try:
                worker: SupervisedWorker = self._worker_factory()
                worker.start()
            except Exception:
                self._set_state(LifecycleState.FAILED)
                logger.exception('Failed to start acquisition worker')
                raise

            self._worker = worker

        logger.info('Acquisition worker started')

    def is_processing(self) -> bool:
        """Whether the worker has begun its first cycle."""
        worker: SupervisedWorker | None = self._worker
        if worker is None or not worker.is_processing():
            return False

        with self._lock:
            if self._state is LifecycleState.STARTING:
                self._set_state(LifecycleState.PROCESSING)
        return True

    def wait_until_processing(self, poll_interval: float | None = None) -> bool:
        """
        Block until the worker has begun processing.

        Args:
            poll_interval: Seconds between liveness checks of the worker.
                Defaults to the coordinator's poll interval.

        Returns:
            True once processing has started, False if the worker exited
            without ever starting to process.

        Raises:
            LifecycleError: If start() has not been called.
        """
        worker: SupervisedWorker | None = self._worker
        if worker is None:
            raise LifecycleError('Worker has not been started')

        interval: float = poll_interval if poll_interval is not None else self._poll_interval

        while not worker.wait_for_processing(interval):
            if not worker.is_alive():
                # One last look: it may have set the flag right before exiting
                return self.is_processing()

        return self.is_processing()

    def shutdown(self) -> None:
        """
        Stop the worker exactly once.

        The first caller runs worker.shutdown() and worker.join(); concurrent
        and later callers wait until that has finished. Never raises because
        of repeated calls.
        """
        with self._lock:
            first_caller: bool = not self._shutdown_started
            self._shutdown_started = True
            worker: SupervisedWorker | None = self._worker
            if first_caller and worker is not None:
                self._set_state(LifecycleState.SHUTTING_DOWN)

        if not first_caller:
            self._stopped.wait()
            return

        try:
            if worker is not None:
                logger.info('Shutting down acquisition worker')
                worker.shutdown()
                worker.join()
        finally:
            with self._lock:
                if self._state is not LifecycleState.FAILED:
                    self._set_state(LifecycleState.STOPPED)
            self._stopped.set()

        logger.info('Acquisition worker stopped')

    def join(self) -> None:
        """
        Wait, without timeout, for the worker to finish.

        Raises:
            WorkerFailedError: If the worker ended because a cycle raised.
        """
        worker: SupervisedWorker | None = self._worker
        if worker is None:
            return

        worker.join()

        if worker.failure is not None:
            raise WorkerFailedError(worker.failure) from worker.failure

    def run(self, continuous: bool) -> None:
        """
        Run the worker to completion.

        In continuous mode the worker runs until a signal (or a failure) ends
        it. In one-shot mode the coordinator waits for the first cycle to
        begin, then requests shutdown, so exactly one cycle is exported.

        Raises:
            WorkerFailedError: If the worker ended abnormally.
        """
        self.start()

        if not self.wait_until_processing():
            logger.warning('Worker exited before processing started')
        elif continuous:
            logger.info('Running continuously, press Ctrl+C to stop')

        if not continuous:
            self.shutdown()

        try:
            self.join()
        finally:
            self.shutdown()

    # -------------------------------------------------------------------------
    # Signal handling
    # -------------------------------------------------------------------------

    def install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to shutdown(). Main thread only."""
        if threading.current_thread() is not threading.main_thread():
            logger.debug('Not on the main thread, signal handlers not installed')
            return

        for handled_signal in HANDLED_SIGNALS:
            self._previous_handlers[handled_signal] = signal.signal(
                handled_signal, self._handle_signal
            )

    def restore_signal_handlers(self) -> None:
        """Put back the handlers that were active before installation."""
        for handled_signal, previous_handler in self._previous_handlers.items():
            signal.signal(handled_signal, previous_handler)
        self._previous_handlers.clear()

    def _handle_signal(self, signum: int, frame: FrameType | None) -> None:
        signal_name: str = signal.Signals(signum).name

        if self._signal_thread is not None:
            logger.info('Received %s, shutdown already in progress', signal_name)
            return

        logger.info('Received %s, shutting down', signal_name)
        self._signal_thread = threading.Thread(
            target=self._shutdown_from_signal,
            args=(signal_name,),
            name=SHUTDOWN_THREAD_NAME,
        )
        self._signal_thread.start()

    def _shutdown_from_signal(self, signal_name: str) -> None:
        try:
            self.shutdown()
        except Exception:  # noqa: BLE001
            logger.exception('Shutdown triggered by %s failed', signal_name)

        # Keep this thread alive until the main thread has left its `with` block
        self._main_unwound.wait()

    # -------------------------------------------------------------------------
    # Context Manager Protocol
    # -------------------------------------------------------------------------

    def __enter__(self) -> Self:
        """Install signal handlers and return self."""
        self.install_signal_handlers()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Shut down the worker, restore handlers and release the signal thread."""
        try:
            self.shutdown()
        finally:
            self.restore_signal_handlers()
            self._main_unwound.set()
