"""
Configuration Package for the Fleet Data Feed Exporter.

Exposes the main configuration models and the loader function.
"""

from fleet_datafeed.config.config_models import (
    ConfigurationError,
    DataFeedConfig,
    ExportConfig,
    FeedConfig,
    LoggingConfig,
    ServerConfig,
    build_config,
)
from fleet_datafeed.config.loader import load_config, merge_overrides, read_config_file

__all__: list[str] = [
    'ConfigurationError',
    'DataFeedConfig',
    'ExportConfig',
    'FeedConfig',
    'LoggingConfig',
    'ServerConfig',
    'build_config',
    'load_config',
    'merge_overrides',
    'read_config_file',
]
