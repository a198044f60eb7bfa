# fleet_datafeed/common/csv_io.py
"""
CSV report file output for the fleet_datafeed package.

This module handles the low-level details of writing report files, keeping
file naming and append mechanics away from the record transformation logic.

Design Philosophy:
------------------
- Config injected at initialization defines the output directory.
- The output directory is created at construction, so permission problems
  surface before the first cycle rather than in the middle of one.
- emit() raises on errors (filesystem issues require explicit handling).
- Every emit() opens the file in append mode, writes, and closes it again.
  No handle is kept between cycles, so an interrupted process never leaves
  a file open and each cycle's output is complete once emit() returns.

File Naming:
------------
    <prefix>-YYYY-MM-DD-HH-mm-ss.csv   (UTC, second precision)

Two emits for the same prefix within the same second resolve to the same
file. The second one finds the file present, skips the header and appends
its rows below the first block.

Thread Safety:
--------------
This class is NOT thread-safe. The exporter is driven by a single worker
thread; concurrent writers to one file are not supported.

Usage:
------
    from fleet_datafeed.config import ExportConfig
    from fleet_datafeed.common.csv_io import CsvFileHandler

    handler = CsvFileHandler(ExportConfig(output_path='reports'))
    path = handler.emit('Gps_Data', GPS_DATA_HEADER, rows)
"""

import logging
import os
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path

from fleet_datafeed.config import ExportConfig
from fleet_datafeed.schema import CSV_DELIMITER

__all__: list[str] = ['REPORT_TIMESTAMP_FORMAT', 'CsvFileHandler']

logger: logging.Logger = logging.getLogger(__name__)

REPORT_TIMESTAMP_FORMAT: str = '%Y-%m-%d-%H-%M-%S'

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class CsvFileHandler:
    """
    Writes timestamped CSV report files into one output directory.

    Attributes:
        output_dir: The configured output directory (read-only property).
    """

    def __init__(
        self,
        export_config: ExportConfig,
        clock: Clock | None = None,
    ) -> None:
        """
        Initialize the handler and create the output directory.

        Args:
            export_config: Export configuration holding the output directory.
            clock: Source of the current time used in file names. Defaults
                to the UTC wall clock; tests inject a fixed clock.

        Raises:
            OSError: If the output directory cannot be created.
            PermissionError: If the directory exists but cannot be written to.
        """
        self._export_config: ExportConfig = export_config
        self._clock: Clock = clock or _utc_now

        try:
            self._export_config.output_path.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.exception(
                'Failed to initialize output path %r',
                str(self._export_config.output_path),
            )
            raise

        logger.info(
            'Initialized CsvFileHandler: output_dir=%r',
            str(self.output_dir),
        )

    @property
    def output_dir(self) -> Path:
        """The configured output directory, made absolute."""
        return self._export_config.output_path.resolve()

    def report_path(self, file_prefix: str) -> Path:
        """
        Resolve the report file path for a prefix at the current second.

        Args:
            file_prefix: Record kind prefix such as 'Gps_Data'.

        Returns:
            Absolute path of '<prefix>-<UTC timestamp>.csv' in the output dir.
        """
        now: datetime = self._clock()
        if now.tzinfo is not None:
            now = now.astimezone(UTC)
        file_name: str = f'{file_prefix}-{now.strftime(REPORT_TIMESTAMP_FORMAT)}.csv'
        return self.output_dir / file_name

    def emit(
        self,
        file_prefix: str,
        header: Sequence[str],
        rows: Sequence[Sequence[str]],
    ) -> Path:
        """
        Append rows to the current report file for a prefix.

        The header is written only when the file does not exist yet. Every
        row goes on its own line, preceded by the platform line separator,
        with its fields joined by the delimiter. Fields must already be
        escaped.

        Args:
            file_prefix: Record kind prefix such as 'Gps_Data'.
            header: Column names for a newly created file.
            rows: Escaped field lists, one per record. May be empty.

        Returns:
            Absolute path of the file written.

        Raises:
            OSError: File system errors (permissions, disk full, etc).

        Side Effects:
            Creates or appends to the report file. Logs at DEBUG level on
            success, ERROR level with traceback on failure before re-raising.
        """
        report_path: Path = self.report_path(file_prefix)
        write_header: bool = not report_path.exists()

        try:
            # newline='' so os.linesep is written verbatim on every platform
            with report_path.open('a', encoding='utf-8', newline='') as report_file:
                if write_header:
                    report_file.write(CSV_DELIMITER.join(header))

                for row in rows:
                    report_file.write(os.linesep)
                    report_file.write(CSV_DELIMITER.join(row))

        except OSError:
            logger.exception(
                'Failed to write %d rows to %r',
                len(rows),
                str(report_path),
            )
            raise

        logger.debug(
            'Wrote %d rows to %r (header=%s)',
            len(rows),
            str(report_path),
            write_header,
        )
        return report_path
