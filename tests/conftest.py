"""
Shared pytest fixtures for fleet_datafeed tests.

This module provides reusable fixtures for common test scenarios across
all test modules. Fixtures are automatically discovered by pytest.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from unittest.mock import Mock

import httpx
import pytest

from fleet_datafeed.config import (
    DataFeedConfig,
    ExportConfig,
    FeedConfig,
    LoggingConfig,
    ServerConfig,
)
from fleet_datafeed.models import (
    NO_FAILURE_MODE,
    DataDiagnostic,
    Device,
    Diagnostic,
    Driver,
    FailureMode,
    FaultData,
    FaultState,
    GoDevice,
    Key,
    LogRecord,
    NamedEntity,
    ResultBundle,
    StatusData,
    Trip,
    User,
)

# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Directory receiving CSV reports (not created yet)."""
    return tmp_path / 'reports'


@pytest.fixture
def export_config(output_dir: Path) -> ExportConfig:
    """Export configuration pointing at the temporary output directory."""
    return ExportConfig(output_path=output_dir)


@pytest.fixture
def server_config() -> ServerConfig:
    """Server configuration with test credentials."""
    return ServerConfig(
        server='my.geotab.com',
        database='fleet_db',
        user='feed@example.com',
        password='secret',  # pyright: ignore[reportArgumentType]
        request_timeout=(5, 10),
        verify_ssl=True,
        use_truststore=False,
    )


@pytest.fixture
def feed_config() -> FeedConfig:
    """One-shot feed configuration without starting versions."""
    return FeedConfig(continuous=False, feed_interval_seconds=0.0, results_limit=1000)


@pytest.fixture
def data_feed_config(
    server_config: ServerConfig,
    feed_config: FeedConfig,
    export_config: ExportConfig,
) -> DataFeedConfig:
    """Complete configuration assembled from the section fixtures."""
    return DataFeedConfig(
        server=server_config,
        feed=feed_config,
        export=export_config,
        logging=LoggingConfig(),
    )


# =============================================================================
# Clock Fixtures
# =============================================================================


@pytest.fixture
def report_time() -> datetime:
    """Fixed wall clock time used for report file names."""
    return datetime(2024, 1, 31, 8, 15, 0, tzinfo=UTC)


@pytest.fixture
def fixed_clock(report_time: datetime) -> Callable[[], datetime]:
    """Clock that always returns report_time."""
    return lambda: report_time


@pytest.fixture
def sample_timestamp() -> datetime:
    """Record timestamp with millisecond precision."""
    return datetime(2024, 1, 31, 8, 0, 0, 250000, tzinfo=UTC)


# =============================================================================
# Entity Fixtures
# =============================================================================


@pytest.fixture
def plain_device() -> Device:
    """Device without vehicle identification."""
    return Device(id='b1', name='Truck1', serial_number='S1')


@pytest.fixture
def go_device() -> GoDevice:
    """Vehicle device reporting a VIN."""
    return GoDevice(
        id='b2',
        name='Truck 2',
        serial_number='G9ABC',
        vehicle_identification_number='1FTFW1ET5DFC10312',
    )


@pytest.fixture
def data_diagnostic() -> DataDiagnostic:
    """Measured diagnostic with a unit of measure."""
    return DataDiagnostic(
        id='DiagnosticEngineSpeedId',
        name='Engine speed',
        code=190,
        source=NamedEntity(id='SourceJ1939Id', system_type='SourceJ1939'),
        unit_of_measure=NamedEntity(
            id='UnitOfMeasureRevolutionsPerMinuteId',
            system_type='UnitOfMeasureRevolutionsPerMinute',
        ),
    )


@pytest.fixture
def event_diagnostic() -> Diagnostic:
    """Boolean event diagnostic."""
    return Diagnostic(
        id='a7',
        name='Ignition',
        code=10,
        source=NamedEntity(id='s1', name='Telematics device'),
    )


@pytest.fixture
def failure_mode() -> FailureMode:
    """Resolved failure mode."""
    return FailureMode(
        id='fm1',
        name='Voltage below normal',
        code=4,
        source=NamedEntity(id='SourceJ1939Id', system_type='SourceJ1939'),
    )


@pytest.fixture
def driver() -> Driver:
    """Driver with two identification keys."""
    return Driver(
        id='u1',
        name='Jane Doe',
        keys=(Key(id='k1', serial_number='K-001'), Key(id='k2', serial_number='K-002')),
    )


# =============================================================================
# Record Fixtures
# =============================================================================


@pytest.fixture
def truck1_log_record(plain_device: Device, sample_timestamp: datetime) -> LogRecord:
    """Position report of a plain device with no latitude."""
    return LogRecord(
        id='lr1',
        device=plain_device,
        date_time=sample_timestamp,
        longitude=10.0,
        latitude=None,
        speed=5.0,
    )


@pytest.fixture
def status_record(
    go_device: GoDevice, data_diagnostic: DataDiagnostic, sample_timestamp: datetime
) -> StatusData:
    """Engine speed reading."""
    return StatusData(
        id='sd1',
        device=go_device,
        date_time=sample_timestamp,
        diagnostic=data_diagnostic,
        data=1450.0,
    )


@pytest.fixture
def fault_record(
    go_device: GoDevice,
    event_diagnostic: Diagnostic,
    failure_mode: FailureMode,
    sample_timestamp: datetime,
) -> FaultData:
    """Active fault with a resolved failure mode, never dismissed."""
    return FaultData(
        id='fd1',
        device=go_device,
        date_time=sample_timestamp,
        diagnostic=event_diagnostic,
        failure_mode=failure_mode,
        controller=NamedEntity(id='ControllerNoneId', system_type='ControllerNone'),
        count=3,
        fault_state=FaultState.ACTIVE,
        malfunction_lamp=True,
        red_stop_lamp=False,
        amber_warning_lamp=None,
        protect_warning_lamp=False,
    )


@pytest.fixture
def dismissed_fault_record(
    plain_device: Device, event_diagnostic: Diagnostic, sample_timestamp: datetime
) -> FaultData:
    """Fault without failure, dismissed by a user."""
    return FaultData(
        id='fd2',
        device=plain_device,
        date_time=sample_timestamp,
        diagnostic=event_diagnostic,
        failure_mode=NO_FAILURE_MODE,
        fault_state=FaultState.CLEARED,
        dismiss_date_time=sample_timestamp,
        dismiss_user=User(id='u9', name='Fleet, Manager'),
    )


@pytest.fixture
def trip_record(go_device: GoDevice, driver: Driver, sample_timestamp: datetime) -> Trip:
    """Closed trip with a known driver."""
    return Trip(
        id='t1',
        device=go_device,
        driver=driver,
        start=sample_timestamp,
        stop=datetime(2024, 1, 31, 9, 30, 0, tzinfo=UTC),
        distance=42.5,
    )


@pytest.fixture
def sample_bundle(
    truck1_log_record: LogRecord,
    status_record: StatusData,
    fault_record: FaultData,
    trip_record: Trip,
) -> ResultBundle:
    """Bundle with one record of every kind."""
    return ResultBundle(
        gps_records=[truck1_log_record],
        status_data=[status_record],
        fault_data=[fault_record],
        trips=[trip_record],
    )


# =============================================================================
# HTTP Fixtures
# =============================================================================


@pytest.fixture
def make_rpc_response() -> Callable[..., Mock]:
    """Factory building mocked httpx responses for JSON-RPC bodies."""

    def _make(
        body: Any = None,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
        text: str = '',
    ) -> Mock:
        response = Mock(spec=httpx.Response)
        response.status_code = status_code
        response.is_success = 200 <= status_code < 300  # noqa: PLR2004
        response.headers = headers or {}
        response.text = text
        response.json.return_value = body
        return response

    return _make


@pytest.fixture
def login_body() -> dict[str, Any]:
    """Successful Authenticate response staying on the same server."""
    return {
        'result': {
            'credentials': {
                'database': 'fleet_db',
                'userName': 'feed@example.com',
                'sessionId': 'session-1',
            },
            'path': 'ThisServer',
        }
    }
