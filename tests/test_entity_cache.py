"""
Tests for fleet_datafeed.operations.entity_cache module.

Tests reference extraction, variant selection, system entities and caching.
"""

from typing import Any

import pytest

from fleet_datafeed.models import (
    NO_FAILURE_MODE,
    DataDiagnostic,
    Device,
    Diagnostic,
    Driver,
    GoDevice,
    NamedEntity,
    User,
)
from fleet_datafeed.operations import EntityCache, reference_id
from fleet_datafeed.operations.entity_cache import is_placeholder_id


class FakeEntityClient:
    """In-memory stand-in for GeotabClient.get."""

    def __init__(self, entities: dict[str, dict[str, dict[str, Any]]]) -> None:
        self.entities: dict[str, dict[str, dict[str, Any]]] = entities
        self.calls: list[tuple[str, dict[str, Any] | None]] = []

    def get(
        self,
        type_name: str,
        search: dict[str, Any] | None = None,
        results_limit: int | None = None,
    ) -> list[dict[str, Any]]:
        self.calls.append((type_name, search))
        entity_id: str = (search or {}).get('id', '')
        entity: dict[str, Any] | None = self.entities.get(type_name, {}).get(entity_id)
        return [entity] if entity is not None else []


@pytest.fixture
def fake_client() -> FakeEntityClient:
    """Server with one entity of every kind."""
    return FakeEntityClient(
        {
            'Device': {
                'b1': {'id': 'b1', 'name': 'Truck1', 'serialNumber': 'S1'},
                'b2': {
                    'id': 'b2',
                    'name': 'Truck 2',
                    'serialNumber': 'G9ABC',
                    'vehicleIdentificationNumber': '1FTFW1ET5DFC10312',
                },
            },
            'Diagnostic': {
                'd1': {
                    'id': 'd1',
                    'name': 'Engine speed',
                    'code': 190,
                    'source': {'id': 'SourceJ1939Id'},
                    'unitOfMeasure': {'id': 'UnitOfMeasureRevolutionsPerMinuteId'},
                },
                'd2': {'id': 'd2', 'name': 'Ignition', 'code': 10, 'source': 's1'},
            },
            'Source': {'s1': {'id': 's1', 'name': 'Telematics device'}},
            'User': {
                'u1': {
                    'id': 'u1',
                    'name': 'Jane Doe',
                    'isDriver': True,
                    'keys': [{'id': 'k1', 'serialNumber': 'K-001'}],
                },
                'u2': {'id': 'u2', 'name': 'Office', 'isDriver': False},
            },
            'FailureMode': {
                'fm1': {'id': 'fm1', 'name': 'Low voltage', 'code': 4, 'source': 's1'},
            },
        }
    )


class TestReferenceId:
    """Test reference id extraction."""

    @pytest.mark.parametrize(
        ('reference', 'expected'),
        [
            ('b1', 'b1'),
            ({'id': 'b1'}, 'b1'),
            ({'id': 'b1', 'name': 'Truck1'}, 'b1'),
            (None, None),
            ('', None),
            ({'name': 'no id'}, None),
        ],
    )
    def test_reference_id(self, reference: Any, expected: str | None) -> None:
        """Should accept bare ids and id mappings."""
        assert reference_id(reference) == expected


class TestEntityCacheVariants:
    """Test variant selection from raw entities."""

    def test_device_variants(self, fake_client: FakeEntityClient) -> None:
        """Should build GoDevice only when a VIN field is present."""
        cache = EntityCache(fake_client)

        plain: Device | None = cache.device({'id': 'b1'})
        go: Device | None = cache.device('b2')

        assert type(plain) is Device
        assert isinstance(go, GoDevice)
        assert go.vehicle_identification_number == '1FTFW1ET5DFC10312'

    def test_diagnostic_variants_resolve_nested_references(
        self, fake_client: FakeEntityClient
    ) -> None:
        """Should build DataDiagnostic with unit and resolve sources."""
        cache = EntityCache(fake_client)

        measured: Diagnostic | None = cache.diagnostic({'id': 'd1'})
        event: Diagnostic | None = cache.diagnostic({'id': 'd2'})

        assert isinstance(measured, DataDiagnostic)
        assert measured.unit_of_measure == NamedEntity(
            id='UnitOfMeasureRevolutionsPerMinuteId',
            system_type='UnitOfMeasureRevolutionsPerMinute',
        )
        assert measured.source is not None
        assert measured.source.system_type == 'SourceJ1939'
        assert type(event) is Diagnostic
        assert event.source == NamedEntity(id='s1', name='Telematics device')

    def test_user_variants(self, fake_client: FakeEntityClient) -> None:
        """Should build Driver with keys only for drivers."""
        cache = EntityCache(fake_client)

        driver: User | None = cache.user('u1')
        office: User | None = cache.user('u2')

        assert isinstance(driver, Driver)
        assert [key.serial_number for key in driver.keys] == ['K-001']
        assert type(office) is User

    def test_failure_mode_resolves_source(self, fake_client: FakeEntityClient) -> None:
        """Should resolve the failure mode source."""
        failure_mode = EntityCache(fake_client).failure_mode({'id': 'fm1'})

        assert failure_mode is not None
        assert failure_mode.source is not None
        assert failure_mode.source.name == 'Telematics device'


class TestEntityCacheSystemEntities:
    """Test local resolution of built-in ids."""

    def test_no_failure_mode_is_sentinel(self, fake_client: FakeEntityClient) -> None:
        """Should return the NO_FAILURE_MODE singleton."""
        cache = EntityCache(fake_client)

        assert cache.failure_mode('NoFailureModeId') is NO_FAILURE_MODE
        assert cache.failure_mode({'id': 'NoFailureModeId'}) is NO_FAILURE_MODE
        assert fake_client.calls == []

    def test_system_user_and_controller(self, fake_client: FakeEntityClient) -> None:
        """Should build system entities without a remote call."""
        cache = EntityCache(fake_client)

        unknown_driver: User | None = cache.user({'id': 'UnknownDriverId', 'isDriver': True})
        controller: NamedEntity | None = cache.controller('ControllerNoneId')

        assert unknown_driver is not None
        assert unknown_driver.system_type == 'UnknownDriver'
        assert controller is not None
        assert controller.system_type == 'ControllerNone'
        assert fake_client.calls == []

    def test_built_in_diagnostic_is_fetched(self) -> None:
        """Should fetch built-in diagnostics so code, source and unit survive."""
        client = FakeEntityClient(
            {
                'Diagnostic': {
                    'DiagnosticOdometerId': {
                        'id': 'DiagnosticOdometerId',
                        'code': 245,
                        'source': {'id': 'SourceJ1939Id'},
                        'unitOfMeasure': {'id': 'UnitOfMeasureMetersId'},
                    },
                },
                'UnitOfMeasure': {
                    'UnitOfMeasureMetersId': {'id': 'UnitOfMeasureMetersId'},
                },
            }
        )
        cache = EntityCache(client)

        odometer: Diagnostic | None = cache.diagnostic({'id': 'DiagnosticOdometerId'})

        assert isinstance(odometer, DataDiagnostic)
        assert odometer.system_type == 'DiagnosticOdometer'
        assert odometer.code == 245  # noqa: PLR2004
        assert odometer.source == NamedEntity(id='SourceJ1939Id', system_type='SourceJ1939')
        assert odometer.unit_of_measure == NamedEntity(
            id='UnitOfMeasureMetersId', system_type='UnitOfMeasureMeters'
        )
        assert client.calls == [
            ('Diagnostic', {'id': 'DiagnosticOdometerId'}),
            ('UnitOfMeasure', {'id': 'UnitOfMeasureMetersId'}),
        ]

    @pytest.mark.parametrize(
        ('entity_id', 'expected'),
        [
            ('SourceObdId', True),
            ('UnknownDriverId', True),
            ('NoDeviceId', True),
            ('DiagnosticOdometerId', False),
            ('UnitOfMeasureMetersId', False),
            ('b1', False),
        ],
    )
    def test_is_placeholder_id(self, entity_id: str, expected: bool) -> None:
        """Should only treat data-less built-in ids as local."""
        assert is_placeholder_id(entity_id) is expected

    def test_absent_reference(self, fake_client: FakeEntityClient) -> None:
        """Should return None for absent references."""
        cache = EntityCache(fake_client)

        assert cache.device(None) is None
        assert cache.user(None) is None


class TestEntityCacheCaching:
    """Test caching behaviour."""

    def test_each_id_fetched_once(self, fake_client: FakeEntityClient) -> None:
        """Should serve repeated references from the cache."""
        cache = EntityCache(fake_client)

        first: Device | None = cache.device('b1')
        second: Device | None = cache.device({'id': 'b1'})

        assert first is second
        assert fake_client.calls == [('Device', {'id': 'b1'})]
        assert cache.remote_lookups == 1

    def test_unknown_id_falls_back_to_reference(self, fake_client: FakeEntityClient) -> None:
        """Should build an entity from the reference when the server has none."""
        cache = EntityCache(fake_client)

        device: Device | None = cache.device({'id': 'b99', 'name': 'Ghost'})

        assert device == Device(id='b99', name='Ghost')

    def test_clear_forces_refetch(self, fake_client: FakeEntityClient) -> None:
        """Should refetch entities after clear()."""
        cache = EntityCache(fake_client)
        cache.device('b1')

        cache.clear()
        cache.device('b1')

        assert cache.size == 1
        assert len(fake_client.calls) == 2  # noqa: PLR2004
