# fleet_datafeed/config/loader.py
"""
Configuration Loading Logic.

This module handles the physical retrieval, parsing, and initial validation of
the application configuration. It serves as the bridge between raw YAML files
on the disk and the strictly typed Pydantic models in `config_models.py`.

Responsibilities:
    1.  File I/O: Safely locating and reading the configuration file.
    2.  Parsing: Converting YAML text into Python dictionaries.
    3.  Merging: Applying command-line overrides on top of the file contents.
    4.  Validation: Building the `DataFeedConfig` model to enforce types.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from fleet_datafeed.config.config_models import (
    ConfigurationError,
    DataFeedConfig,
    build_config,
)

logger: logging.Logger = logging.getLogger(__name__)


def read_config_file(config_path: Path | str) -> dict[str, Any]:
    """Read a YAML configuration file into a dictionary.

    Args:
        config_path: Path to the YAML file.

    Returns:
        Parsed mapping. An empty file yields an empty dictionary.

    Raises:
        ConfigurationError: If the file is missing, malformed, or its top
            level is not a mapping.
    """
    config_path = Path(config_path)

    logger.info('Loading data feed configuration from: %s', config_path)

    if not config_path.exists():
        error_message: str = f'Configuration file not found: {config_path}'
        logger.error(error_message)
        raise ConfigurationError(error_message)

    try:
        with Path.open(config_path, encoding='utf-8') as config_file:
            raw_config_data: Any = yaml.safe_load(config_file)
    except yaml.YAMLError as error:
        error_message = f'Failed to parse YAML configuration: {error}'
        logger.error(error_message)
        raise ConfigurationError(error_message) from error

    if raw_config_data is None:
        return {}

    if not isinstance(raw_config_data, dict):
        error_message = (
            f'Configuration root must be a mapping, got {type(raw_config_data).__name__}'
        )
        logger.error(error_message)
        raise ConfigurationError(error_message)

    return raw_config_data


def merge_overrides(
    base: Mapping[str, Any],
    overrides: Mapping[str, Mapping[str, Any]],
) -> dict[str, Any]:
    """Overlay section-level overrides onto a raw configuration mapping.

    Override values of None are skipped so that unset CLI flags never mask
    values from the file.

    Example:
        >>> merge_overrides({'feed': {'continuous': False}}, {'feed': {'continuous': True}})
        {'feed': {'continuous': True}}
    """
    merged: dict[str, Any] = {
        section: dict(values) if isinstance(values, Mapping) else values
        for section, values in base.items()
    }

    for section, values in overrides.items():
        present: dict[str, Any] = {
            key: value for key, value in values.items() if value is not None
        }
        if not present:
            continue
        target: Any = merged.setdefault(section, {})
        if not isinstance(target, dict):
            raise ConfigurationError(f'Configuration section {section!r} must be a mapping')
        target.update(present)

    return merged


def load_config(
    config_path: Path | str | None = None,
    overrides: Mapping[str, Mapping[str, Any]] | None = None,
) -> DataFeedConfig:
    """Load, merge and validate the data feed configuration.

    Args:
        config_path: Optional path to a YAML configuration file. When None,
            the configuration is built from overrides alone.
        overrides: Section-level values (typically from the command line)
            that take precedence over the file.

    Returns:
        Validated DataFeedConfig instance ready for use.

    Raises:
        ConfigurationError: If the file cannot be read or the merged
            configuration fails validation.

    Example:
        >>> config = load_config('config/datafeed.yaml', {'feed': {'continuous': True}})
        >>> config.feed.continuous
        True
    """
    raw_config: dict[str, Any] = (
        read_config_file(config_path) if config_path is not None else {}
    )

    if overrides:
        raw_config = merge_overrides(raw_config, overrides)

    try:
        validated_config: DataFeedConfig = build_config(raw_config)
    except ConfigurationError as error:
        logger.error('%s', error)
        raise

    logger.info('Configuration loaded and validated successfully')
    return validated_config
