# fleet_datafeed/common/__init__.py

from fleet_datafeed.common.csv_io import CsvFileHandler
from fleet_datafeed.common.logger import setup_logger
from fleet_datafeed.common.truststore_context import build_truststore_ssl_context

__all__: list[str] = [
    'CsvFileHandler',
    'build_truststore_ssl_context',
    'setup_logger',
]
