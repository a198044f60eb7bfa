# fleet_datafeed/transform.py
"""
Row transformers: feed records to CSV field lists.

Each transformer takes the records of one kind and returns one list of
already-escaped text fields per record, in the column order of the matching
header in `fleet_datafeed.schema`. The export engine joins those fields with
the delimiter without further processing.

Field Rules:
------------
- Absent values (None) become empty text. Nothing here raises for a missing
  attribute, so one incomplete record never aborts a report.
- Free text (names, VINs) first has every delimiter replaced by a space, for
  consumers that split lines naively. Every field, text or not, is then
  escaped the CSV way: wrapped in double quotes, with embedded quotes
  doubled, when it contains a delimiter, a quote or a line break.
- All timestamps share one format: 2024-01-31T08:15:00.250Z (UTC).
- Variant families are resolved with `match` on the concrete model class.
"""

import csv
import io
import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from enum import Enum

from fleet_datafeed.models import (
    DataDiagnostic,
    Device,
    Diagnostic,
    Driver,
    FailureMode,
    FaultData,
    GoDevice,
    LogRecord,
    NamedEntity,
    NoFailureMode,
    StatusData,
    Trip,
    User,
)
from fleet_datafeed.schema import CSV_DELIMITER, DRIVER_KEY_SEPARATOR

__all__: list[str] = [
    'NO_FAILURE_MODE_SOURCE',
    'device_vin',
    'driver_keys',
    'entity_name',
    'escape_csv',
    'failure_mode_source',
    'format_datetime',
    'format_value',
    'sanitize_text',
    'transform_fault_data',
    'transform_log_records',
    'transform_status_data',
    'transform_trips',
]

logger: logging.Logger = logging.getLogger(__name__)

CsvRow = list[str]

# Rendered in the failure mode source column for the no-failure sentinel.
NO_FAILURE_MODE_SOURCE: str = 'None'

# Stripped from the single-field rows escape_csv renders.
_LINE_TERMINATOR: str = '\r\n'


# =============================================================================
# Field Helpers
# =============================================================================


def escape_csv(value: str) -> str:
    """
    Escape one field for CSV output.

    Uses the csv module's minimal quoting: the field is quote-wrapped, with
    embedded quotes doubled, only when it holds a delimiter, a quote or a
    line break.

    Example:
        >>> escape_csv('Truck 1')
        'Truck 1'
        >>> escape_csv('say "hi", now')
        '"say ""hi"", now"'
    """
    if not value:
        # csv quotes a lone empty field to tell it from a blank line
        return value

    buffer = io.StringIO()
    writer = csv.writer(
        buffer,
        delimiter=CSV_DELIMITER,
        quoting=csv.QUOTE_MINIMAL,
        lineterminator=_LINE_TERMINATOR,
    )
    writer.writerow([value])
    return buffer.getvalue().removesuffix(_LINE_TERMINATOR)


def sanitize_text(value: str | None) -> str:
    """Replace delimiters in free text with spaces; None becomes ''."""
    if value is None:
        return ''
    return value.replace(CSV_DELIMITER, ' ')


def format_datetime(value: datetime | None) -> str:
    """
    Render a timestamp in the canonical report format.

    Naive datetimes are taken to be UTC already; aware ones are converted.

    Example:
        >>> format_datetime(datetime(2024, 1, 31, 8, 15, 0, 250000, tzinfo=UTC))
        '2024-01-31T08:15:00.250Z'
    """
    if value is None:
        return ''
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    else:
        value = value.astimezone(UTC)
    return f'{value:%Y-%m-%dT%H:%M:%S}.{value.microsecond // 1000:03d}Z'


def format_value(value: float | int | bool | Enum | None) -> str:
    """Render a scalar: '' for None, true/false for flags, enum values as-is."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def entity_name(entity: NamedEntity | None) -> str:
    """Display name: the type tag of a system entity, otherwise its name."""
    match entity:
        case None:
            return ''
        case NamedEntity(system_type=str() as system_type):
            return sanitize_text(system_type)
        case NamedEntity(name=name):
            return sanitize_text(name)


def device_vin(device: Device) -> str:
    """VIN of a GoDevice; '' for devices that cannot report one."""
    match device:
        case GoDevice(vehicle_identification_number=vin):
            return sanitize_text(vin)
        case Device():
            return ''


def failure_mode_source(failure_mode: FailureMode | None) -> str:
    """Source name of a failure mode, or the 'None' literal for the sentinel."""
    match failure_mode:
        case NoFailureMode():
            return NO_FAILURE_MODE_SOURCE
        case FailureMode(source=source):
            return entity_name(source)
        case None:
            return ''


def driver_keys(driver: User | None) -> str:
    """Serial numbers of a driver's keys joined with '~'."""
    match driver:
        case Driver(keys=keys) if keys:
            return DRIVER_KEY_SEPARATOR.join(key.serial_number or '' for key in keys)
        case _:
            return ''


def _unit_name(diagnostic: Diagnostic | None) -> str:
    match diagnostic:
        case DataDiagnostic(unit_of_measure=unit):
            return entity_name(unit)
        case _:
            return ''


def _escape_row(fields: Iterable[str]) -> CsvRow:
    return [escape_csv(field) for field in fields]


def _device_columns(device: Device) -> tuple[str, str, str]:
    """Vehicle Name, Vehicle Serial Number and VIN columns."""
    return (
        sanitize_text(device.name),
        device.serial_number or '',
        device_vin(device),
    )


# =============================================================================
# Transformers
# =============================================================================


def transform_log_records(log_records: Sequence[LogRecord] | None) -> list[CsvRow]:
    """Position reports to rows matching GPS_DATA_HEADER."""
    if not log_records:
        return []

    return [
        _escape_row(
            (
                *_device_columns(record.device),
                format_datetime(record.date_time),
                format_value(record.longitude),
                format_value(record.latitude),
                format_value(record.speed),
            )
        )
        for record in log_records
    ]


def transform_status_data(status_data: Sequence[StatusData] | None) -> list[CsvRow]:
    """
    Status readings to rows matching STATUS_DATA_HEADER.

    Units are only filled for measured-data diagnostics.
    """
    if not status_data:
        return []

    rows: list[CsvRow] = []
    for record in status_data:
        diagnostic: Diagnostic | None = record.diagnostic
        rows.append(
            _escape_row(
                (
                    *_device_columns(record.device),
                    format_datetime(record.date_time),
                    entity_name(diagnostic),
                    format_value(diagnostic.code) if diagnostic else '',
                    entity_name(diagnostic.source) if diagnostic else '',
                    format_value(record.data),
                    _unit_name(diagnostic),
                )
            )
        )
    return rows


def transform_fault_data(fault_data: Sequence[FaultData] | None) -> list[CsvRow]:
    """Fault events to rows matching FAULT_DATA_HEADER."""
    if not fault_data:
        return []

    rows: list[CsvRow] = []
    for record in fault_data:
        failure_mode: FailureMode | None = record.failure_mode
        rows.append(
            _escape_row(
                (
                    *_device_columns(record.device),
                    format_datetime(record.date_time),
                    entity_name(record.diagnostic),
                    entity_name(failure_mode),
                    format_value(failure_mode.code) if failure_mode else '',
                    failure_mode_source(failure_mode),
                    entity_name(record.controller),
                    format_value(record.count),
                    format_value(record.fault_state),
                    format_value(record.malfunction_lamp),
                    format_value(record.red_stop_lamp),
                    format_value(record.amber_warning_lamp),
                    format_value(record.protect_warning_lamp),
                    format_datetime(record.dismiss_date_time),
                    sanitize_text(record.dismiss_user.name)
                    if record.dismiss_user
                    else '',
                )
            )
        )
    return rows


def transform_trips(trips: Sequence[Trip] | None) -> list[CsvRow]:
    """Trip summaries to rows matching TRIP_HEADER."""
    if not trips:
        return []

    return [
        _escape_row(
            (
                *_device_columns(trip.device),
                entity_name(trip.driver),
                driver_keys(trip.driver),
                format_datetime(trip.start),
                format_datetime(trip.stop),
                format_value(trip.distance),
            )
        )
        for trip in trips
    ]
