# fleet_datafeed/exporter.py
"""
CSV exporter for acquisition result bundles.

Connects the row transformers to the file handler: every call to export()
writes one report file per record kind, in the order of EXPORT_TABLES.

Failure Semantics:
------------------
An I/O error while writing one kind is logged and propagated. Kinds that
come later in the same cycle are not written; files already written for
earlier kinds are complete and untouched, since every kind has its own file.
"""

import logging
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from fleet_datafeed.common import CsvFileHandler
from fleet_datafeed.common.csv_io import Clock
from fleet_datafeed.config import ExportConfig
from fleet_datafeed.models import ResultBundle
from fleet_datafeed.schema import EXPORT_TABLES, ExportTable, RecordKind
from fleet_datafeed.transform import (
    transform_fault_data,
    transform_log_records,
    transform_status_data,
    transform_trips,
)

__all__: list[str] = ['CsvExporter']

logger: logging.Logger = logging.getLogger(__name__)

Transformer = Callable[[Any], list[list[str]]]

TRANSFORMERS: dict[RecordKind, Transformer] = {
    RecordKind.GPS: transform_log_records,
    RecordKind.STATUS: transform_status_data,
    RecordKind.FAULT: transform_fault_data,
    RecordKind.TRIP: transform_trips,
}


def _records_for(bundle: ResultBundle, record_kind: RecordKind) -> Sequence[Any]:
    match record_kind:
        case RecordKind.GPS:
            return bundle.gps_records
        case RecordKind.STATUS:
            return bundle.status_data
        case RecordKind.FAULT:
            return bundle.fault_data
        case RecordKind.TRIP:
            return bundle.trips


class CsvExporter:
    """
    Exports result bundles to per-kind CSV report files.

    Example:
        >>> exporter = CsvExporter(ExportConfig(output_path='reports'))
        >>> paths = exporter.export(bundle)
        >>> paths[RecordKind.GPS].name
        'Gps_Data-2024-01-31-08-15-00.csv'
    """

    def __init__(
        self,
        export_config: ExportConfig,
        clock: Clock | None = None,
    ) -> None:
        """
        Initialize the exporter.

        Args:
            export_config: Export configuration (output directory).
            clock: Optional clock for report file names (tests).

        Raises:
            OSError: If the output directory cannot be created.
        """
        self._file_handler: CsvFileHandler = CsvFileHandler(export_config, clock)

    @property
    def output_dir(self) -> Path:
        """Directory receiving the reports."""
        return self._file_handler.output_dir

    def export(self, bundle: ResultBundle) -> dict[RecordKind, Path]:
        """
        Write every record kind of a bundle to its report file.

        Args:
            bundle: Records produced by one acquisition cycle.

        Returns:
            Mapping of record kind to the file written for it.

        Raises:
            OSError: If a report file cannot be written. Remaining kinds of
                the bundle are skipped.
        """
        written: dict[RecordKind, Path] = {}

        for record_kind, table in EXPORT_TABLES.items():
            written[record_kind] = self._export_kind(bundle, record_kind, table)

        return written

    def _export_kind(
        self,
        bundle: ResultBundle,
        record_kind: RecordKind,
        table: ExportTable,
    ) -> Path:
        logger.debug('Exporting %s to csv ...', table.label)

        rows: list[list[str]] = TRANSFORMERS[record_kind](
            _records_for(bundle, record_kind)
        )
        csv_file: Path = self._file_handler.emit(table.file_prefix, table.header, rows)

        logger.info('%s exported to %s (%d rows)', table.label, csv_file, len(rows))
        return csv_file
