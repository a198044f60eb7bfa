# fleet_datafeed/config/config_models.py
"""
Configuration management for the fleet data feed exporter.

This module provides Pydantic models for the configuration that controls
where telemetry is pulled from, how often the feed is polled, where CSV
reports are written, and how the application logs.

Design Decisions:
-----------------
- All models use `extra='forbid'` to catch typos and invalid fields in YAML
  configuration files early, preventing silent misconfiguration.

- No logging occurs within this module because the logging configuration itself
  is defined here. Logging must be configured by the caller after loading config.

- SecretStr is used for the password to prevent accidental exposure in logs,
  repr(), or error messages. The actual value must be accessed via
  `.get_secret_value()`.

- Validation errors are converted into ConfigurationError by build_config()
  so the CLI can report a single user-facing message and stop before any
  acquisition starts.

Usage:
------
    from fleet_datafeed.config.config_models import build_config

    config = build_config({
        'server': {'database': 'fleet', 'user': 'me', 'password': 'secret'},
        'export': {'output_path': 'reports'},
    })
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)

# =============================================================================
# Public API
# =============================================================================

__all__: list[str] = [
    'ConfigurationError',
    'DataFeedConfig',
    'ExportConfig',
    'FeedConfig',
    'LogLevelName',
    'LoggingConfig',
    'ServerConfig',
    'build_config',
]

# =============================================================================
# Type Aliases
# =============================================================================

# Valid logging level names recognized by Python's logging module.
# Using Literal rather than an Enum because these map directly to stdlib names.
LogLevelName = Literal['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

# Numeric equivalents of log level names for validation purposes.
LOG_LEVEL_VALUES: frozenset[int] = frozenset({10, 20, 30, 40, 50})

# Mapping from level name to numeric value, avoiding import of logging module
# in the model layer to maintain separation of concerns.
LOG_LEVEL_NAME_TO_INT: dict[LogLevelName, int] = {
    'DEBUG': 10,
    'INFO': 20,
    'WARNING': 30,
    'ERROR': 40,
    'CRITICAL': 50,
}

# Largest page the remote feed will return for a single GetFeed call.
MAX_FEED_RESULTS_LIMIT: int = 50_000


class ConfigurationError(ValueError):
    """
    Raised when the application configuration is missing or invalid.

    The message is meant to be shown to the user as-is; the CLI logs it at
    ERROR level without a traceback.
    """


# =============================================================================
# Server Configuration
# =============================================================================


class ServerConfig(BaseModel):
    """Connection settings for the remote telematics server.

    SSL/TLS Handling:
        Corporate proxy environments often perform TLS interception, which
        breaks standard certificate verification. The verify_ssl field
        supports three modes:
          - True: Standard verification (default, use in production)
          - False: Disabled verification (insecure, use only when necessary)
          - Path string: Custom CA bundle path (preferred for proxy environments)
        use_truststore=True builds the SSLContext from the operating system
        certificate store instead.

    Attributes:
        server: Host name of the federation server (no scheme). The server
            returned by authentication may redirect subsequent calls.
        database: Database (company) name to authenticate against.
        user: User name (usually an e-mail address).
        password: Password, masked in logs and repr.
        request_timeout: [connect, read] timeout in seconds.
        verify_ssl: SSL certificate verification mode.
        use_truststore: Use the system trust store for TLS verification.
    """

    model_config = ConfigDict(extra='forbid')

    server: str = Field(
        default='my.geotab.com',
        description='Server host name, e.g. my.geotab.com',
    )
    database: str = Field(description='Database name to authenticate against')
    user: str = Field(description='User name used for authentication')
    password: SecretStr = Field(
        description='Password (masked in logs and repr)',
    )
    request_timeout: tuple[int, int] = Field(
        default=(30, 120),
        description='[connect_timeout, read_timeout] in seconds; both must be positive',
    )
    verify_ssl: bool | str = Field(
        default=True,
        description='False to disable SSL, True for system CA, or path to CA bundle',
    )
    use_truststore: bool = Field(
        default=False,
        description='Use truststore library for system CA certificates',
    )

    @field_validator('server')
    @classmethod
    def normalize_server(cls, server: str) -> str:
        """Strip scheme and trailing slashes from the server host name.

        Args:
            server: Host name as typed by the user.

        Returns:
            Bare host name, e.g. 'my.geotab.com'.

        Raises:
            ValueError: If the server is empty.
        """
        host: str = server.strip()
        for scheme in ('https://', 'http://'):
            if host.lower().startswith(scheme):
                host = host[len(scheme) :]
        host = host.rstrip('/')

        if not host:
            raise ValueError('server cannot be empty')
        return host

    @field_validator('database', 'user')
    @classmethod
    def validate_not_blank(cls, value: str) -> str:
        """Reject empty or whitespace-only identity fields."""
        if not value.strip():
            raise ValueError('value cannot be empty or whitespace-only')
        return value.strip()

    @field_validator('password')
    @classmethod
    def validate_password_not_empty(cls, password: SecretStr) -> SecretStr:
        """Ensure the password is not empty."""
        if not password.get_secret_value():
            raise ValueError('password cannot be empty')
        return password

    @field_validator('request_timeout')
    @classmethod
    def validate_timeout_values_positive(
        cls, timeout: tuple[int, int]
    ) -> tuple[int, int]:
        """Ensure both timeout values are positive integers.

        Args:
            timeout: Tuple of [connect_timeout, read_timeout] in seconds.

        Returns:
            The validated timeout tuple.

        Raises:
            ValueError: If either timeout value is non-positive.
        """
        connect_timeout, read_timeout = timeout

        if connect_timeout <= 0:
            raise ValueError(
                f'connect_timeout must be positive, got: {connect_timeout}'
            )
        if read_timeout <= 0:
            raise ValueError(f'read_timeout must be positive, got: {read_timeout}')

        return timeout

    @field_validator('verify_ssl')
    @classmethod
    def validate_ssl_configuration(cls, verify_ssl: bool | str) -> bool | str:
        """Validate that a custom CA bundle path points at an existing file.

        Raises:
            ValueError: If string path does not exist or is not a file.
        """
        if isinstance(verify_ssl, str):
            cert_path = Path(verify_ssl)

            if not cert_path.exists():
                raise ValueError(f'SSL certificate bundle file not found: {verify_ssl}')
            if not cert_path.is_file():
                raise ValueError(
                    f'SSL certificate path must be a file, not directory: {verify_ssl}'
                )

        return verify_ssl


# =============================================================================
# Feed Configuration
# =============================================================================


class FeedConfig(BaseModel):
    """Polling behaviour of the acquisition worker.

    Feed Versions:
        The remote feed is incremental: every GetFeed call returns a version
        token, and the next call asks for everything after it. The four
        *_token fields seed those versions so a run can resume where a
        previous one stopped. When a token is None the feed starts at the
        current time.

    Attributes:
        continuous: Keep polling until stopped by a signal. When False the
            run is one-shot: a single cycle is exported, then the worker is
            shut down.
        feed_interval_seconds: Pause between two cycles in continuous mode.
        results_limit: Maximum records requested per record kind per cycle.
        gps_token: Starting version for position records.
        status_token: Starting version for status data.
        fault_token: Starting version for fault data.
        trip_token: Starting version for trips.
    """

    model_config = ConfigDict(extra='forbid')

    continuous: bool = Field(
        default=False,
        description='Poll until stopped instead of exporting a single cycle',
    )
    feed_interval_seconds: float = Field(
        default=30.0,
        ge=0.0,
        le=3600.0,
        description='Delay between feed cycles in seconds (0-3600)',
    )
    results_limit: int = Field(
        default=MAX_FEED_RESULTS_LIMIT,
        ge=1,
        le=MAX_FEED_RESULTS_LIMIT,
        description='Maximum records per record kind per GetFeed call',
    )
    gps_token: str | None = Field(default=None, description='LogRecord feed version')
    status_token: str | None = Field(default=None, description='StatusData feed version')
    fault_token: str | None = Field(default=None, description='FaultData feed version')
    trip_token: str | None = Field(default=None, description='Trip feed version')

    @field_validator('gps_token', 'status_token', 'fault_token', 'trip_token')
    @classmethod
    def blank_token_is_none(cls, token: str | None) -> str | None:
        """Treat blank tokens as 'start from now'."""
        if token is None or not token.strip():
            return None
        return token.strip()


# =============================================================================
# Export Configuration
# =============================================================================


class ExportConfig(BaseModel):
    """Where CSV reports are written.

    Attributes:
        output_path: Directory receiving the per-kind CSV files. Empty or
            missing values default to the current working directory. The
            directory is created by the export engine if it does not exist.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    output_path: Path = Field(
        default=Path('.'),
        description='Directory for CSV output (default: current directory)',
    )

    @field_validator('output_path', mode='before')
    @classmethod
    def default_empty_output_path(cls, path_value: str | Path | None) -> Path:
        """Map None and blank strings to the current directory."""
        if path_value is None or not str(path_value).strip():
            return Path('.')
        return Path(str(path_value).strip())


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Configuration for application logging output.

    Supports dual-destination logging: console (always enabled) and optional
    file output. The file_level defaults to DEBUG when a file_path is given.

    Attributes:
        file_path: Path to log file. None disables file logging.
            Extension .log is appended automatically if missing.
        console_level: Minimum log level for console output.
        file_level: Minimum log level for file output.
    """

    model_config = ConfigDict(extra='forbid')

    file_path: Path | None = Field(
        default=None,
        description='Log file path (.log extension auto-added). None disables file logging.',
    )
    console_level: LogLevelName | int = Field(
        default='INFO',
        description="Console log level: 'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL', or int",
    )
    file_level: LogLevelName | int | None = Field(
        default=None,
        description='File log level. None disables file logging.',
    )

    @field_validator('file_path', mode='before')
    @classmethod
    def normalize_log_file_path(cls, path_value: str | Path | None) -> Path | None:
        """Normalize path and ensure .log extension."""
        if path_value is None:
            return None

        path_string: str = str(path_value)

        if not path_string.lower().endswith('.log'):
            path_string = f'{path_string}.log'

        return Path(path_string)

    @field_validator('console_level', 'file_level', mode='after')
    @classmethod
    def validate_numeric_log_level(
        cls, level_value: LogLevelName | int | None
    ) -> LogLevelName | int | None:
        """Validate numeric log levels are standard Python logging values.

        Raises:
            ValueError: If numeric level is not a standard logging value.
        """
        if level_value is None or isinstance(level_value, str):
            return level_value

        if level_value not in LOG_LEVEL_VALUES:
            raise ValueError(
                f'Numeric log level must be one of {sorted(LOG_LEVEL_VALUES)}, '
                f'got: {level_value}'
            )

        return level_value

    @model_validator(mode='after')
    def ensure_file_logging_configuration_consistency(self) -> Self:
        """Ensure file_path and file_level are consistently configured.

        Raises:
            ValueError: If file_level is set but file_path is missing.
        """
        has_file_path: bool = self.file_path is not None
        has_file_level: bool = self.file_level is not None

        if has_file_path and not has_file_level:
            self.file_level = 'DEBUG'

        if has_file_level and not has_file_path:
            raise ValueError(
                'file_level is specified but file_path is missing. '
                'Provide file_path to enable file logging, or remove file_level.'
            )

        return self

    def get_console_level_int(self) -> int:
        """Convert console_level to numeric value for logging module."""
        if isinstance(self.console_level, int):
            return self.console_level
        return LOG_LEVEL_NAME_TO_INT[self.console_level]

    def get_file_level_int(self) -> int | None:
        """Convert file_level to numeric value, or None if file logging is off."""
        if self.file_level is None:
            return None
        if isinstance(self.file_level, int):
            return self.file_level
        return LOG_LEVEL_NAME_TO_INT[self.file_level]


# =============================================================================
# Root Configuration
# =============================================================================


class DataFeedConfig(BaseModel):
    """Root configuration model for the data feed exporter.

    Attributes:
        server: Remote server connection and credentials.
        feed: Polling behaviour and starting feed versions.
        export: CSV output location.
        logging: Console and file logging.
    """

    model_config = ConfigDict(extra='forbid')

    server: ServerConfig = Field(description='Remote server connection settings')
    feed: FeedConfig = Field(
        default_factory=FeedConfig,
        description='Feed polling settings',
    )
    export: ExportConfig = Field(
        default_factory=ExportConfig,
        description='CSV export settings',
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description='Application logging configuration',
    )


def _describe_validation_error(error: ValidationError) -> str:
    """Flatten a pydantic ValidationError into one readable line per field."""
    problems: list[str] = []
    for detail in error.errors():
        location: str = '.'.join(str(part) for part in detail['loc'])
        problems.append(f'{location}: {detail["msg"]}')
    return '; '.join(problems)


def build_config(raw_config: Mapping[str, Any] | None) -> DataFeedConfig:
    """
    Validate a raw configuration mapping.

    Args:
        raw_config: Parsed YAML and/or CLI values. None is treated as an
            empty mapping, which fails because server credentials are required.

    Returns:
        Validated DataFeedConfig.

    Raises:
        ConfigurationError: If any section is missing or invalid.
    """
    try:
        return DataFeedConfig.model_validate(dict(raw_config or {}))
    except ValidationError as error:
        raise ConfigurationError(
            f'Invalid configuration: {_describe_validation_error(error)}'
        ) from error
