# fleet_datafeed/__init__.py
"""
Fleet Data Feed - incremental telematics feed to CSV exporter.

The package polls a telematics server's data feed for four record kinds and
appends them to per-kind CSV report files:

1. **Acquisition**: GeotabClient (JSON-RPC over HTTPS with retries),
   EntityCache (id reference resolution) and DataFeedLoader (per-kind feed
   versions) produce one ResultBundle per cycle.

2. **Export**: Row transformers normalize each record kind; CsvExporter
   writes `<prefix>-YYYY-MM-DD-HH-mm-ss.csv` files, one per kind.

3. **Lifecycle**: DataFeedWorker runs load/export cycles on its own thread;
   LifecycleCoordinator starts it, stops it exactly once (signals
   included) and reports abnormal termination.

Quick Start:
    >>> from fleet_datafeed.config import load_config
    >>> from fleet_datafeed.cli import build_worker_factory
    >>> from fleet_datafeed import LifecycleCoordinator
    >>>
    >>> config = load_config('config/datafeed.yaml')
    >>> with LifecycleCoordinator(build_worker_factory(config)) as coordinator:
    ...     coordinator.run(continuous=config.feed.continuous)

Export Only:
    >>> from fleet_datafeed import CsvExporter
    >>> CsvExporter(config.export).export(bundle)
"""

__version__ = '0.1.0'

from fleet_datafeed.client import (
    APIError,
    AuthenticationError,
    GeotabClient,
    RateLimitError,
    TransientAPIError,
)
from fleet_datafeed.config import ConfigurationError, DataFeedConfig, load_config
from fleet_datafeed.exporter import CsvExporter
from fleet_datafeed.lifecycle import LifecycleCoordinator, LifecycleState
from fleet_datafeed.models import ResultBundle
from fleet_datafeed.operations import DataFeedLoader, EntityCache
from fleet_datafeed.schema import EXPORT_TABLES, RecordKind
from fleet_datafeed.worker import DataFeedWorker, WorkerFailedError

__all__: list[str] = [
    'EXPORT_TABLES',
    'APIError',
    'AuthenticationError',
    'ConfigurationError',
    'CsvExporter',
    'DataFeedConfig',
    'DataFeedLoader',
    'DataFeedWorker',
    'EntityCache',
    'GeotabClient',
    'LifecycleCoordinator',
    'LifecycleState',
    'RateLimitError',
    'RecordKind',
    'ResultBundle',
    'TransientAPIError',
    'WorkerFailedError',
    'load_config',
]
