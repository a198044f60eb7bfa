# fleet_datafeed/cli.py
"""
Command line entry point.

    fleet-datafeed --config datafeed.yaml --continuous
    python -m fleet_datafeed --server my.geotab.com --database fleet \\
        --user me@example.com --password secret --output-path reports

Values given on the command line override the YAML file. Exit codes:
0 on success, 1 when the worker ended abnormally, 2 on configuration errors.
"""

import argparse
import logging
import sys
from collections.abc import Callable, Sequence
from typing import Any, Final

from fleet_datafeed.client import GeotabClient
from fleet_datafeed.common import setup_logger
from fleet_datafeed.config import ConfigurationError, DataFeedConfig, load_config
from fleet_datafeed.exporter import CsvExporter
from fleet_datafeed.lifecycle import LifecycleCoordinator, LifecycleError
from fleet_datafeed.operations import DataFeedLoader
from fleet_datafeed.worker import DataFeedWorker, WorkerFailedError

__all__: list[str] = ['build_worker_factory', 'main', 'parse_args']

logger: logging.Logger = logging.getLogger(__name__)

EXIT_SUCCESS: Final[int] = 0
EXIT_FAILURE: Final[int] = 1
EXIT_CONFIG_ERROR: Final[int] = 2


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog='fleet-datafeed',
        description='Export telematics feed records (GPS, status, faults, trips) to CSV.',
    )
    p.add_argument('--config', help='Path to YAML config file.')

    server = p.add_argument_group('server')
    server.add_argument('--server', help='Server host name (default: my.geotab.com).')
    server.add_argument('--database', help='Database name.')
    server.add_argument('--user', help='User name.')
    server.add_argument('--password', help='Password.')

    feed = p.add_argument_group('feed')
    feed.add_argument('--gps-token', help='Starting version of the GPS feed.')
    feed.add_argument('--status-token', help='Starting version of the status data feed.')
    feed.add_argument('--fault-token', help='Starting version of the fault data feed.')
    feed.add_argument('--trip-token', help='Starting version of the trip feed.')
    feed.add_argument(
        '--continuous',
        action='store_true',
        default=None,
        help='Keep polling until interrupted instead of exporting one cycle.',
    )
    feed.add_argument('--interval', type=float, help='Seconds between feed cycles.')

    p.add_argument('--output-path', help='Directory for CSV reports (default: .).')
    p.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Console log level.',
    )
    return p.parse_args(argv)


def overrides_from_args(args: argparse.Namespace) -> dict[str, dict[str, Any]]:
    """Map parsed flags onto configuration sections (unset flags are None)."""
    return {
        'server': {
            'server': args.server,
            'database': args.database,
            'user': args.user,
            'password': args.password,
        },
        'feed': {
            'gps_token': args.gps_token,
            'status_token': args.status_token,
            'fault_token': args.fault_token,
            'trip_token': args.trip_token,
            'continuous': args.continuous,
            'feed_interval_seconds': args.interval,
        },
        'export': {'output_path': args.output_path},
        'logging': {'console_level': args.log_level},
    }


def build_worker_factory(config: DataFeedConfig) -> Callable[[], DataFeedWorker]:
    """Return a factory building a fully wired worker from the configuration."""

    def build_worker() -> DataFeedWorker:
        exporter = CsvExporter(config.export)
        client = GeotabClient(config.server)
        loader = DataFeedLoader(client, config.feed)
        return DataFeedWorker(loader, exporter, config.feed.feed_interval_seconds)

    return build_worker


def _wait_for_enter() -> None:
    if not sys.stdin.isatty():
        return
    print('Press Enter to exit...', file=sys.stderr)
    try:
        input()
    except EOFError:
        pass


def run(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, run the data feed and return the exit code."""
    args = parse_args(argv)

    # Console logging is needed before the config (which may fail) is loaded
    setup_logger(logging_level=logging.getLevelName(args.log_level or 'INFO'))

    try:
        config: DataFeedConfig = load_config(args.config, overrides_from_args(args))
    except ConfigurationError as error:
        logger.error('Configuration error: %s', error)
        return EXIT_CONFIG_ERROR

    setup_logger(config=config.logging)

    try:
        with LifecycleCoordinator(build_worker_factory(config)) as coordinator:
            coordinator.run(continuous=config.feed.continuous)
    except LifecycleError as error:
        # Cancelled by a signal before the worker was started
        logger.info('Data feed cancelled: %s', error)
        return EXIT_SUCCESS
    except WorkerFailedError as error:
        logger.error('Data feed stopped abnormally: %s', error.cause)
        return EXIT_FAILURE
    except Exception:
        logger.exception('Unexpected exception')
        return EXIT_FAILURE

    logger.info('Data feed finished')
    return EXIT_SUCCESS


def main() -> None:
    exit_code: int = run()
    _wait_for_enter()
    sys.exit(exit_code)


if __name__ == '__main__':
    main()
