# fleet_datafeed/operations/entity_cache.py
"""
Reference resolution for feed records.

Feed records reference their device, diagnostic, controller, failure mode and
users by id only ({'id': 'b1'}). EntityCache turns those references into full
entity models, fetching each unknown id once with a Get call and keeping the
result for the lifetime of the worker.

Placeholder ids ('UnknownDriverId', 'ControllerNoneId', 'SourceObdId', ...) are
resolved locally into system entities without contacting the server.
'NoFailureModeId' always resolves to the NO_FAILURE_MODE sentinel. Other
built-in ids ('DiagnosticOdometerId') are fetched like any other id, since
the server holds their code, source and unit, and are tagged with their
system type afterwards.
"""

import logging
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

from fleet_datafeed.models import (
    NO_FAILURE_MODE,
    DataDiagnostic,
    Device,
    Diagnostic,
    Driver,
    FailureMode,
    GoDevice,
    Key,
    NamedEntity,
    User,
    system_type_for_id,
)

__all__: list[str] = ['EntityCache', 'EntityGetter', 'is_placeholder_id', 'reference_id']

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar('T')
N = TypeVar('N', bound=NamedEntity)

# Keys whose presence in a raw entity selects the richer variant.
GO_DEVICE_MARKER: str = 'vehicleIdentificationNumber'
DATA_DIAGNOSTIC_MARKER: str = 'unitOfMeasure'

# Built-in ids with no server-side data behind them.
PLACEHOLDER_IDS: frozenset[str] = frozenset(
    {
        'NoDeviceId',
        'NoFailureModeId',
        'UnknownDriverId',
        'NoDriverId',
        'ControllerNoneId',
    }
)
SOURCE_ID_PREFIX: str = 'Source'


class EntityGetter(Protocol):
    """The part of GeotabClient the cache depends on."""

    def get(
        self,
        type_name: str,
        search: dict[str, Any] | None = None,
        results_limit: int | None = None,
    ) -> list[dict[str, Any]]: ...


def reference_id(reference: Any) -> str | None:
    """
    Extract the id from a reference.

    Accepts a bare id string, a mapping with an 'id' key, or None.

    Example:
        >>> reference_id({'id': 'b1'})
        'b1'
        >>> reference_id('UnknownDriverId')
        'UnknownDriverId'
    """
    match reference:
        case str() if reference:
            return reference
        case {'id': str() as entity_id} if entity_id:
            return entity_id
        case _:
            return None


def is_placeholder_id(entity_id: str) -> bool:
    """
    Whether a built-in id can be resolved without asking the server.

    Example:
        >>> is_placeholder_id('SourceObdId')
        True
        >>> is_placeholder_id('DiagnosticOdometerId')
        False
    """
    if system_type_for_id(entity_id) is None:
        return False
    return entity_id in PLACEHOLDER_IDS or entity_id.startswith(SOURCE_ID_PREFIX)


class EntityCache:
    """
    Id to entity cache shared by all record kinds of one worker.

    Not thread-safe; owned by the acquisition worker thread.
    """

    def __init__(self, client: EntityGetter) -> None:
        self._client: EntityGetter = client
        self._entities: dict[tuple[str, str], Any] = {}
        self._remote_lookups: int = 0

    @property
    def size(self) -> int:
        """Number of cached entities."""
        return len(self._entities)

    @property
    def remote_lookups(self) -> int:
        """Number of Get calls issued so far."""
        return self._remote_lookups

    def clear(self) -> None:
        """Drop all cached entities (they are refetched on next use)."""
        self._entities.clear()

    # -------------------------------------------------------------------------
    # Public resolvers
    # -------------------------------------------------------------------------

    def device(self, reference: Any) -> Device | None:
        """Resolve a device reference to Device or GoDevice."""
        return self._resolve('Device', reference, _build_device, _system_device)

    def diagnostic(self, reference: Any) -> Diagnostic | None:
        """Resolve a diagnostic reference to Diagnostic or DataDiagnostic."""
        return self._resolve(
            'Diagnostic', reference, self._build_diagnostic, _system_named(Diagnostic)
        )

    def controller(self, reference: Any) -> NamedEntity | None:
        """Resolve a controller (ECU) reference."""
        return self._resolve(
            'Controller', reference, _build_named, _system_named(NamedEntity)
        )

    def failure_mode(self, reference: Any) -> FailureMode | None:
        """Resolve a failure mode reference; 'NoFailureModeId' is the sentinel."""
        if reference_id(reference) == NO_FAILURE_MODE.id:
            return NO_FAILURE_MODE
        return self._resolve(
            'FailureMode',
            reference,
            self._build_failure_mode,
            _system_named(FailureMode),
        )

    def user(self, reference: Any) -> User | None:
        """Resolve a user reference to User or Driver."""
        return self._resolve('User', reference, _build_user, _system_named(User))

    def source(self, reference: Any) -> NamedEntity | None:
        """Resolve a diagnostic source reference."""
        return self._resolve('Source', reference, _build_named, _system_named(NamedEntity))

    def unit_of_measure(self, reference: Any) -> NamedEntity | None:
        """Resolve a unit of measure reference."""
        return self._resolve(
            'UnitOfMeasure', reference, _build_named, _system_named(NamedEntity)
        )

    # -------------------------------------------------------------------------
    # Resolution machinery
    # -------------------------------------------------------------------------

    def _resolve(
        self,
        type_name: str,
        reference: Any,
        build: Callable[[dict[str, Any]], T],
        build_system: Callable[[str, str], T],
    ) -> T | None:
        entity_id: str | None = reference_id(reference)
        if entity_id is None:
            return None

        cache_key: tuple[str, str] = (type_name, entity_id)
        if cache_key in self._entities:
            return self._entities[cache_key]

        system_type: str | None = system_type_for_id(entity_id)
        if system_type is not None and is_placeholder_id(entity_id):
            entity: T = build_system(entity_id, system_type)
        else:
            raw: dict[str, Any] = self._fetch(type_name, entity_id, reference)
            if system_type is not None:
                raw = raw | {'systemType': system_type}
            entity = build(raw)

        self._entities[cache_key] = entity
        return entity

    def _fetch(self, type_name: str, entity_id: str, reference: Any) -> dict[str, Any]:
        """
        Fetch one entity by id.

        Falls back to the reference itself (which may already carry some
        fields) when the server does not know the id, so one dangling
        reference never aborts a cycle.
        """
        self._remote_lookups += 1
        results: list[dict[str, Any]] = self._client.get(
            type_name, search={'id': entity_id}
        )

        if not results:
            logger.warning('%s %r not found on server', type_name, entity_id)
            return dict(reference) if isinstance(reference, dict) else {'id': entity_id}

        logger.debug('Cached %s %r', type_name, entity_id)
        return results[0]

    def _build_diagnostic(self, raw: dict[str, Any]) -> Diagnostic:
        fields: dict[str, Any] = raw | {'source': self.source(raw.get('source'))}
        if DATA_DIAGNOSTIC_MARKER in raw:
            fields[DATA_DIAGNOSTIC_MARKER] = self.unit_of_measure(
                raw.get(DATA_DIAGNOSTIC_MARKER)
            )
            return DataDiagnostic.model_validate(fields)
        return Diagnostic.model_validate(fields)

    def _build_failure_mode(self, raw: dict[str, Any]) -> FailureMode:
        return FailureMode.model_validate(
            raw | {'source': self.source(raw.get('source'))}
        )


# =============================================================================
# Builders
# =============================================================================


def _build_device(raw: dict[str, Any]) -> Device:
    if GO_DEVICE_MARKER in raw:
        return GoDevice.model_validate(raw)
    return Device.model_validate(raw)


def _system_device(entity_id: str, system_type: str) -> Device:
    # Devices have no system_type field; the tag doubles as the name.
    return Device(id=entity_id, name=system_type)


def _build_named(raw: dict[str, Any]) -> NamedEntity:
    return NamedEntity.model_validate(raw)


def _build_user(raw: dict[str, Any]) -> User:
    if raw.get('isDriver'):
        keys: tuple[Key, ...] = tuple(
            Key.model_validate(key) for key in raw.get('keys') or () if isinstance(key, dict)
        )
        return Driver.model_validate(raw | {'keys': keys})
    return User.model_validate(raw)


def _system_named(model: type[N]) -> Callable[[str, str], N]:
    def build(entity_id: str, system_type: str) -> N:
        return model(id=entity_id, system_type=system_type)

    return build
