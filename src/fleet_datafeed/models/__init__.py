# fleet_datafeed/models/__init__.py

from fleet_datafeed.models.entities import (
    NO_FAILURE_MODE,
    DataDiagnostic,
    Device,
    Diagnostic,
    Driver,
    Entity,
    FailureMode,
    FaultData,
    FaultState,
    GoDevice,
    Key,
    LogRecord,
    NamedEntity,
    NoFailureMode,
    ResultBundle,
    StatusData,
    Trip,
    User,
    system_type_for_id,
)
from fleet_datafeed.models.rpc import (
    FeedPage,
    LoginResult,
    RateLimitInfo,
    RpcError,
    RpcRequest,
    SessionCredentials,
)

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
    'FeedPage',
    'GoDevice',
    'Key',
    'LogRecord',
    'LoginResult',
    'NamedEntity',
    'NoFailureMode',
    'RateLimitInfo',
    'ResultBundle',
    'RpcError',
    'RpcRequest',
    'SessionCredentials',
    'StatusData',
    'Trip',
    'User',
    'system_type_for_id',
]
