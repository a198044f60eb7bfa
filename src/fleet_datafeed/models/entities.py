# fleet_datafeed/models/entities.py
"""
Pydantic domain models for telemetry feed records.

The remote API returns camelCase JSON (mapped to snake_case via an alias
generator). Entities are frozen once constructed: the acquisition worker
builds them per cycle and the exporter only reads them.

Variant Families:
-----------------
Several entity kinds come in closed sets of variants. Each family is a small
class hierarchy and consumers branch with `match` on the concrete class:

- Device: plain `Device`, or `GoDevice` which carries a VIN.
- Diagnostic: event `Diagnostic`, or measured `DataDiagnostic` with a unit.
- FailureMode: resolved `FailureMode`, or the `NoFailureMode` sentinel.
- User: plain `User`, or `Driver` which owns identification keys.

System Entities:
----------------
Built-in server objects (e.g. 'UnknownDriverId', 'ControllerNoneId') have no
user-assigned name. They carry a `system_type` tag instead, and that tag is
their display name.
"""
# pyright: reportUnknownVariableType=false

import logging
from datetime import datetime
from enum import Enum
from typing import Final

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

logger: logging.Logger = logging.getLogger(__name__)

__all__: list[str] = [
    'NO_FAILURE_MODE',
    'DataDiagnostic',
    'Device',
    'Diagnostic',
    'Driver',
    'Entity',
    'FailureMode',
    'FaultData',
    'FaultState',
    'FeedModelBase',
    'GoDevice',
    'Key',
    'LogRecord',
    'NamedEntity',
    'NoFailureMode',
    'ResultBundle',
    'StatusData',
    'Trip',
    'User',
    'system_type_for_id',
]


# =============================================================================
# Base Configuration
# =============================================================================


class FeedModelBase(BaseModel):
    """
    Base class for all feed models.

    Configuration:
        - alias_generator=to_camel: Accept the API's camelCase keys.
        - populate_by_name=True: Allow both alias and field name.
        - extra='ignore': Silently ignore unknown fields from the API.
        - frozen=True: Records are read-only after construction.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='ignore',
        frozen=True,
    )


def system_type_for_id(entity_id: str | None) -> str | None:
    """
    Return the system type tag for a built-in entity id, or None.

    Built-in ids are PascalCase words ending in 'Id' ('NoFailureModeId',
    'UnknownDriverId'); ids of user-created entities are short lowercase
    tokens ('b1', 'a4F2'). The tag is the id without its 'Id' suffix.

    Example:
        >>> system_type_for_id('ControllerNoneId')
        'ControllerNone'
        >>> system_type_for_id('b12') is None
        True
    """
    if not entity_id or len(entity_id) <= 2:  # noqa: PLR2004
        return None
    if entity_id[0].isupper() and entity_id.endswith('Id'):
        return entity_id[:-2]
    return None


# =============================================================================
# Shared Entities
# =============================================================================


class Entity(FeedModelBase):
    """Anything the server identifies by id."""

    id: str | None = None


class NamedEntity(Entity):
    """
    Entity with a display name.

    Attributes:
        name: User-assigned name. None for system entities.
        system_type: Type tag of a built-in entity, None for user entities.
    """

    name: str | None = None
    system_type: str | None = None

    @property
    def is_system_entity(self) -> bool:
        """Whether this is a built-in entity named by its type."""
        return self.system_type is not None


class Key(Entity):
    """Driver identification key (e.g. an NFC fob)."""

    serial_number: str | None = None


# =============================================================================
# Device Family
# =============================================================================


class Device(Entity):
    """Telematics device without vehicle identification."""

    name: str | None = None
    serial_number: str | None = None


class GoDevice(Device):
    """Vehicle-installed device that reports a VIN."""

    vehicle_identification_number: str | None = None


# =============================================================================
# Diagnostic Family
# =============================================================================


class Diagnostic(NamedEntity):
    """
    Event (boolean) diagnostic.

    Attributes:
        code: Diagnostic code as reported by the source.
        source: Origin of the code (OBD, J1939, manufacturer...).
    """

    code: int | None = None
    source: NamedEntity | None = None


class DataDiagnostic(Diagnostic):
    """Measured-data diagnostic whose values carry a unit of measure."""

    unit_of_measure: NamedEntity | None = None


# =============================================================================
# Failure Mode Family
# =============================================================================


class FailureMode(NamedEntity):
    """Resolved failure mode of a fault."""

    code: int | None = None
    source: NamedEntity | None = None


class NoFailureMode(FailureMode):
    """Sentinel meaning 'no failure'. Use the NO_FAILURE_MODE singleton."""

    id: str | None = 'NoFailureModeId'
    system_type: str | None = 'NoFailureMode'


NO_FAILURE_MODE: Final[NoFailureMode] = NoFailureMode()


# =============================================================================
# User Family
# =============================================================================


class User(NamedEntity):
    """Account of a person (e.g. the user who dismissed a fault)."""


class Driver(User):
    """User flagged as a driver, with its ordered identification keys."""

    keys: tuple[Key, ...] = Field(default_factory=tuple)


# =============================================================================
# Enumerations
# =============================================================================


class FaultState(str, Enum):
    """Lifecycle state of a fault record."""

    NONE = 'None'
    PENDING = 'Pending'
    ACTIVE = 'Active'
    CLEARED = 'Cleared'
    INACTIVE = 'Inactive'


# =============================================================================
# Feed Records
# =============================================================================


class LogRecord(FeedModelBase):
    """
    Position report.

    Attributes:
        device: Reporting device (always present).
        date_time: When the position was recorded (UTC).
        longitude: Decimal degrees, WGS84.
        latitude: Decimal degrees, WGS84.
        speed: Speed in km/h.
    """

    id: str | None = None
    device: Device
    date_time: datetime | None = None
    longitude: float | None = None
    latitude: float | None = None
    speed: float | None = None


class StatusData(FeedModelBase):
    """Sensor reading of a diagnostic at a point in time."""

    id: str | None = None
    device: Device
    date_time: datetime | None = None
    diagnostic: Diagnostic | None = None
    data: float | None = None


class FaultData(FeedModelBase):
    """
    Fault or diagnostic event raised by a device.

    Attributes:
        device: Reporting device (always present).
        date_time: When the fault was recorded.
        diagnostic: Diagnostic that triggered the fault.
        failure_mode: Failure mode, NO_FAILURE_MODE when none applies.
        controller: Vehicle controller (ECU) reporting the fault.
        count: Number of occurrences.
        fault_state: Lifecycle state of the fault.
        malfunction_lamp: Malfunction indicator lamp state.
        red_stop_lamp: Red stop lamp state.
        amber_warning_lamp: Amber warning lamp state.
        protect_warning_lamp: Protect lamp state.
        dismiss_date_time: When the fault was dismissed, if ever.
        dismiss_user: User who dismissed the fault, if any.
    """

    id: str | None = None
    device: Device
    date_time: datetime | None = None
    diagnostic: Diagnostic | None = None
    failure_mode: FailureMode | None = None
    controller: NamedEntity | None = None
    count: int | None = None
    fault_state: FaultState | None = None
    malfunction_lamp: bool | None = None
    red_stop_lamp: bool | None = None
    amber_warning_lamp: bool | None = None
    protect_warning_lamp: bool | None = None
    dismiss_date_time: datetime | None = None
    dismiss_user: User | None = None


class Trip(FeedModelBase):
    """
    Trip summary between two stops.

    Open trips have no stop time; trips synthesized from partial data may
    lack a start time. An unknown driver is either None or a system User.
    """

    id: str | None = None
    device: Device
    driver: User | None = None
    start: datetime | None = None
    stop: datetime | None = None
    distance: float | None = None


# =============================================================================
# Result Bundle
# =============================================================================


class ResultBundle(FeedModelBase):
    """
    Snapshot of the four record kinds produced by one acquisition cycle.

    Attributes:
        gps_records: Position reports.
        status_data: Status readings.
        fault_data: Fault events.
        trips: Trip summaries.
    """

    gps_records: list[LogRecord] = Field(default_factory=list)
    status_data: list[StatusData] = Field(default_factory=list)
    fault_data: list[FaultData] = Field(default_factory=list)
    trips: list[Trip] = Field(default_factory=list)

    @property
    def record_count(self) -> int:
        """Total records across all kinds."""
        return (
            len(self.gps_records)
            + len(self.status_data)
            + len(self.fault_data)
            + len(self.trips)
        )

    @property
    def is_empty(self) -> bool:
        """Whether the cycle produced no records at all."""
        return self.record_count == 0
