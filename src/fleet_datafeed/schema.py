# fleet_datafeed/schema.py
"""
CSV report definitions for the four feed record kinds.

This module provides the canonical file prefixes and header rows. The header
text is part of the external contract: downstream tools locate columns by
these exact names, so changes here are breaking changes.

Design Rationale:
-----------------
Keeping every header next to its prefix in one immutable table prevents the
transformers, the exporter and the tests from drifting apart. The column
order of each header is the column order each transformer must produce.
"""

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Final, NamedTuple

__all__: list[str] = [
    'CSV_DELIMITER',
    'DRIVER_KEY_SEPARATOR',
    'EXPORT_TABLES',
    'FAULT_DATA_HEADER',
    'GPS_DATA_HEADER',
    'STATUS_DATA_HEADER',
    'TRIP_HEADER',
    'ExportTable',
    'RecordKind',
]

# =============================================================================
# Dialect Constants
# =============================================================================

CSV_DELIMITER: Final[str] = ','

# Joins multiple key serial numbers inside one column. Must not be the delimiter.
DRIVER_KEY_SEPARATOR: Final[str] = '~'


# =============================================================================
# Headers
# =============================================================================

GPS_DATA_HEADER: Final[tuple[str, ...]] = (
    'Vehicle Name',
    'Vehicle Serial Number',
    'VIN',
    'Date',
    'Longitude',
    'Latitude',
    'Speed',
)

STATUS_DATA_HEADER: Final[tuple[str, ...]] = (
    'Vehicle Name',
    'Vehicle Serial Number',
    'VIN',
    'Date',
    'Diagnostic Name',
    'Diagnostic Code',
    'Source Name',
    'Value',
    'Units',
)

FAULT_DATA_HEADER: Final[tuple[str, ...]] = (
    'Vehicle Name',
    'Vehicle Serial Number',
    'VIN',
    'Date',
    'Diagnostic Name',
    'Failure Mode Name',
    'Failure Mode Code',
    'Failure Mode Source',
    'Controller Name',
    'Count',
    'Active',
    'Malfunction Lamp',
    'Red Stop Lamp',
    'Amber Warning Lamp',
    'Protect Lamp',
    'Dismiss Date',
    'Dismiss User',
)

TRIP_HEADER: Final[tuple[str, ...]] = (
    'Vehicle Name',
    'Vehicle Serial Number',
    'Vin',
    'Driver Name',
    'Driver Keys',
    'Trip Start Time',
    'Trip End Time',
    'Trip Distance',
)


# =============================================================================
# Export Tables
# =============================================================================


class RecordKind(str, Enum):
    """The four record kinds carried by a ResultBundle."""

    GPS = 'gps'
    STATUS = 'status'
    FAULT = 'fault'
    TRIP = 'trip'


class ExportTable(NamedTuple):
    """File prefix and header for one record kind."""

    file_prefix: str
    header: tuple[str, ...]
    label: str  # Remote type name, used in log messages


# Ordered: this is also the order in which a cycle is exported.
EXPORT_TABLES: Final[Mapping[RecordKind, ExportTable]] = MappingProxyType(
    {
        RecordKind.GPS: ExportTable('Gps_Data', GPS_DATA_HEADER, 'LogRecords'),
        RecordKind.STATUS: ExportTable('Status_Data', STATUS_DATA_HEADER, 'StatusData'),
        RecordKind.FAULT: ExportTable('Fault_Data', FAULT_DATA_HEADER, 'FaultData'),
        RecordKind.TRIP: ExportTable('Trips', TRIP_HEADER, 'Trips'),
    }
)
