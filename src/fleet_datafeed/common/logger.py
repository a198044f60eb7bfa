# fleet_datafeed/common/logger.py
"""
Logging setup for the data feed process.

Three threads write log output: main (configuration and lifecycle),
datafeed-worker (feed cycles and exports) and shutdown-signal (Ctrl+C and
SIGTERM handling). Every record carries its thread name so interleaved
lines can be told apart.

The CLI calls setup_logger() twice: once with a bare level so configuration
errors are visible, then again with the validated LoggingConfig, which may
also add a log file.
"""

import logging
import sys
from pathlib import Path

from fleet_datafeed.config import LoggingConfig

__all__: list[str] = ['LOG_FORMAT', 'PACKAGE_LOGGER_NAME', 'setup_logger']

PACKAGE_LOGGER_NAME: str = 'fleet_datafeed'

LOG_FORMAT: str = '%(asctime)s - %(levelname)-8s - [%(threadName)s] [%(name)s] - %(message)s'
LOG_DATE_FORMAT: str = '%Y-%m-%d %H:%M:%S'


def _console_handler(level: int, formatter: logging.Formatter) -> logging.Handler:
    handler: logging.Handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.setLevel(level)
    return handler


def _file_handler(
    log_file_path: Path, level: int, formatter: logging.Formatter
) -> logging.Handler:
    log_file_path.parent.mkdir(parents=True, exist_ok=True)
    handler: logging.Handler = logging.FileHandler(
        filename=str(log_file_path), mode='a', encoding='utf-8'
    )
    handler.setFormatter(formatter)
    handler.setLevel(level)
    return handler


def setup_logger(
    logging_level: int | None = None,
    config: LoggingConfig | None = None,
) -> logging.Logger:
    """
    Configure the 'fleet_datafeed' logger for the worker, signal and main threads.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        logging_level: Console level used when no config is given
            (default logging.INFO).
        config: Validated logging section. Its console_level wins over
            logging_level, and a file handler is added when file_path is set.

    Returns:
        The package logger. Module loggers from logging.getLogger(__name__)
        propagate to it.

    Example:
        >>> setup_logger(logging_level=logging.DEBUG)
        >>> setup_logger(config=load_config('datafeed.yaml').logging)
    """
    package_logger: logging.Logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    package_logger.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_level: int = (
        config.get_console_level_int() if config else (logging_level or logging.INFO)
    )
    package_logger.addHandler(_console_handler(console_level, formatter))

    levels: list[int] = [console_level]
    file_level: int | None = config.get_file_level_int() if config else None

    if config and config.file_path and file_level:
        package_logger.addHandler(_file_handler(config.file_path, file_level, formatter))
        levels.append(file_level)

        if console_level <= logging.INFO:
            print(f'Logging to file: {config.file_path}', file=sys.stderr)

    # Most verbose handler decides, or its records never reach it
    package_logger.setLevel(min(levels))

    return package_logger
