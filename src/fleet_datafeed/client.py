# fleet_datafeed/client.py
"""
JSON-RPC client for the telematics server.

The client authenticates once, keeps the issued session credentials and
injects them into every subsequent call. When the server reports the session
as invalid (expired, server restarted) the client authenticates again and
repeats the call once.

Retry Behavior:
---------------
The client automatically retries requests on transient failures:
- Rate limits (429): Respects Retry-After header, falls back to exponential backoff
- Server errors (5xx): Exponential backoff
- Timeouts: Exponential backoff
- Connection errors: Exponential backoff

Non-retryable errors (4xx except 429, JSON-RPC error objects) fail immediately.

SSL/TLS Handling:
-----------------
Supports the verification modes of ServerConfig:
- Standard verification (verify_ssl=True)
- Disabled verification (verify_ssl=False) for development
- Custom CA bundle (verify_ssl='/path/to/cert.pem')
- Truststore integration (use_truststore=True) for the OS certificate store
"""

import logging
from ssl import SSLContext
from types import TracebackType
from typing import Any, Final, Self, cast

import httpx
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
)

from fleet_datafeed.common import build_truststore_ssl_context
from fleet_datafeed.config import ServerConfig
from fleet_datafeed.models import (
    FeedPage,
    LoginResult,
    RateLimitInfo,
    RpcError,
    RpcRequest,
    SessionCredentials,
)

__all__: list[str] = [
    'APIError',
    'AuthenticationError',
    'GeotabClient',
    'RateLimitError',
    'TransientAPIError',
]

logger: logging.Logger = logging.getLogger(__name__)

# HTTP status codes
HTTP_STATUS_RATE_LIMITED: Final[int] = 429
HTTP_STATUS_SERVER_ERROR_MIN: Final[int] = 500
HTTP_STATUS_SERVER_ERROR_MAX: Final[int] = 599

# Retry configuration
MAX_RETRY_ATTEMPTS: Final[int] = 5
RETRY_BACKOFF_MULTIPLIER: Final[float] = 1.0
RETRY_BACKOFF_MAX_SECONDS: Final[float] = 60.0

# Server exception names that mean the session must be re-established
INVALID_SESSION_ERRORS: Final[frozenset[str]] = frozenset(
    {'InvalidUserException', 'DbUnavailableException'}
)


# =============================================================================
# Exception Hierarchy
# =============================================================================


class APIError(Exception):
    """
    Base exception for API errors.

    Attributes:
        status_code: HTTP status code if available, None for connection errors.
        response_body: Raw response body for debugging, None if unavailable.
        rpc_error: Parsed JSON-RPC error object, if the server returned one.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        rpc_error: RpcError | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code: int | None = status_code
        self.response_body: str | None = response_body
        self.rpc_error: RpcError | None = rpc_error


class AuthenticationError(APIError):
    """Raised when the server rejects the configured credentials."""


class TransientAPIError(APIError):
    """
    Raised for transient errors that should be retried.

    This includes timeouts, connection errors, and server errors (5xx).
    The retry decorator catches this exception type for automatic retry.
    """


class RateLimitError(TransientAPIError):
    """
    Raised when API rate limit is exceeded (HTTP 429).

    Attributes:
        rate_limit_info: Parsed rate limit headers including retry_after_seconds.
    """

    def __init__(self, rate_limit_info: RateLimitInfo) -> None:
        super().__init__(
            f'Rate limit exceeded, retry after {rate_limit_info.retry_after_seconds}s',
            status_code=HTTP_STATUS_RATE_LIMITED,
        )
        self.rate_limit_info: RateLimitInfo = rate_limit_info


# =============================================================================
# Custom Wait Strategy for Rate Limits
# =============================================================================


def _wait_for_rate_limit_or_exponential(retry_state: RetryCallState) -> float:
    """
    Custom wait strategy that respects Retry-After header for rate limits.

    Returns:
        Number of seconds to wait before next retry attempt.
    """
    exception: BaseException | None = (
        retry_state.outcome.exception() if retry_state.outcome else None
    )

    if isinstance(exception, RateLimitError):
        # Small buffer to avoid hitting the limit again immediately
        return exception.rate_limit_info.retry_after_seconds + 0.5

    attempt_number: int = retry_state.attempt_number
    exponential_wait: float = RETRY_BACKOFF_MULTIPLIER * (2 ** (attempt_number - 1))
    return min(exponential_wait, RETRY_BACKOFF_MAX_SECONDS)


# =============================================================================
# JSON-RPC Client
# =============================================================================


class GeotabClient:
    """
    JSON-RPC client bound to one database and user.

    Thread Safety:
        Designed for use from the single acquisition worker thread.

    Example:
        >>> with GeotabClient(config.server) as client:
        ...     page = client.get_feed('LogRecord', from_version=None, results_limit=1000)
        ...     print(page.item_count, page.to_version)
    """

    def __init__(self, server_config: ServerConfig) -> None:
        """
        Initialize the client. No network call is made until first use.

        Args:
            server_config: Server host, credentials, timeouts and SSL mode.

        Raises:
            RuntimeError: If use_truststore is set but truststore is missing.
        """
        self._server_config: ServerConfig = server_config
        self._server: str = server_config.server
        self._session: SessionCredentials | None = None

        ssl_verify: SSLContext | bool | str = self._build_ssl_context()

        connect_timeout: int
        read_timeout: int
        connect_timeout, read_timeout = server_config.request_timeout
        default_timeout = httpx.Timeout(
            connect=connect_timeout,
            read=read_timeout,
            write=connect_timeout,
            pool=connect_timeout,
        )

        self._http_client: httpx.Client = httpx.Client(
            timeout=default_timeout,
            verify=ssl_verify,
        )

        logger.info(
            'Initialized GeotabClient: server=%r, database=%r, user=%r',
            self._server,
            server_config.database,
            server_config.user,
        )

    def _build_ssl_context(self) -> SSLContext | bool | str:
        if self._server_config.use_truststore:
            logger.debug('Building SSLContext from truststore (system CA store)')
            return build_truststore_ssl_context()

        logger.debug(
            'Using SSL verification setting: %r', self._server_config.verify_ssl
        )
        return self._server_config.verify_ssl

    @property
    def server(self) -> str:
        """Server currently receiving calls (may change after authentication)."""
        return self._server

    @property
    def is_authenticated(self) -> bool:
        """Whether a session has been established."""
        return self._session is not None

    @property
    def api_url(self) -> str:
        """JSON-RPC endpoint of the current server."""
        return f'https://{self._server}/apiv1'

    # -------------------------------------------------------------------------
    # Context Manager Protocol
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """
        Close HTTP client and release connection pool resources.

        Safe to call multiple times.
        """
        self._http_client.close()
        logger.debug('GeotabClient closed')

    def __enter__(self) -> Self:
        """Enter context manager, returning self."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit context manager, closing the HTTP client."""
        self.close()

    # -------------------------------------------------------------------------
    # API Methods
    # -------------------------------------------------------------------------

    def authenticate(self) -> SessionCredentials:
        """
        Authenticate with the configured user and store the session.

        Follows the server redirect in the login result so later calls go
        to the server hosting the database.

        Returns:
            The new session credentials.

        Raises:
            AuthenticationError: If the credentials are rejected.
            APIError: For other non-retryable failures.
        """
        request = RpcRequest(
            method='Authenticate',
            params={
                'database': self._server_config.database,
                'userName': self._server_config.user,
                'password': self._server_config.password.get_secret_value(),
            },
        )

        try:
            result: Any = self._execute(request.to_body())
        except APIError as error:
            if error.rpc_error is not None:
                raise AuthenticationError(
                    f'Authentication failed for {self._server_config.user!r} '
                    f'on {self._server_config.database!r}: {error.rpc_error.message}',
                    rpc_error=error.rpc_error,
                ) from error
            raise

        login_result: LoginResult = LoginResult.model_validate(result)
        self._session = login_result.credentials

        redirect: str | None = login_result.redirect_server
        if redirect is not None and redirect != self._server:
            logger.info('Database is hosted on %r, redirecting calls', redirect)
            self._server = redirect

        logger.info(
            'Authenticated %r on database %r',
            self._session.user_name,
            self._session.database,
        )
        return self._session

    def call(self, method: str, **params: Any) -> Any:
        """
        Call an API method with the current session.

        Authenticates on first use. If the server reports the session as
        invalid, re-authenticates and repeats the call once.

        Args:
            method: API method name.
            **params: Method parameters; None values are omitted.

        Returns:
            The 'result' member of the response.

        Raises:
            APIError: For non-retryable failures.
            TransientAPIError: After exhausting retries.
        """
        request = RpcRequest(method=method, params=params)

        if self._session is None:
            self.authenticate()

        try:
            return self._execute(request.to_body(self._session_params()))
        except APIError as error:
            if error.rpc_error is None or not any(
                error.rpc_error.has_error(name) for name in INVALID_SESSION_ERRORS
            ):
                raise

        logger.warning('Session rejected by server, re-authenticating')
        self.authenticate()
        return self._execute(request.to_body(self._session_params()))

    def get(
        self,
        type_name: str,
        search: dict[str, Any] | None = None,
        results_limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch entities of one type.

        Args:
            type_name: Entity type, e.g. 'Device' or 'Diagnostic'.
            search: Optional search object, e.g. {'id': 'b1'}.
            results_limit: Optional cap on returned entities.

        Returns:
            Raw entity dictionaries.
        """
        result: Any = self.call(
            'Get',
            typeName=type_name,
            search=search,
            resultsLimit=results_limit,
        )
        if not isinstance(result, list):
            raise APIError(
                f'Expected a list from Get {type_name}, got {type(result).__name__}'
            )
        return cast(list[dict[str, Any]], result)

    def get_feed(
        self,
        type_name: str,
        from_version: str | None,
        results_limit: int,
        search: dict[str, Any] | None = None,
    ) -> FeedPage:
        """
        Fetch the next page of an incremental feed.

        Args:
            type_name: Feed type, e.g. 'LogRecord'.
            from_version: Version returned by the previous call, or None.
            results_limit: Maximum records to return.
            search: Optional search object (used when from_version is None).

        Returns:
            FeedPage with the raw records and the next version.
        """
        result: Any = self.call(
            'GetFeed',
            typeName=type_name,
            fromVersion=from_version,
            resultsLimit=results_limit,
            search=search,
        )
        page: FeedPage = FeedPage.model_validate(result)

        logger.debug(
            'GetFeed %s: %d records (fromVersion=%s, toVersion=%s)',
            type_name,
            page.item_count,
            from_version,
            page.to_version,
        )
        return page

    def _session_params(self) -> dict[str, str]:
        if self._session is None:
            raise AuthenticationError('No session established')
        return self._session.to_params()

    # -------------------------------------------------------------------------
    # HTTP Execution Layer
    # -------------------------------------------------------------------------

    @retry(
        retry=retry_if_exception_type(TransientAPIError),
        wait=_wait_for_rate_limit_or_exponential,
        stop=stop_after_attempt(MAX_RETRY_ATTEMPTS),
        reraise=True,
    )
    def _execute(self, body: dict[str, Any]) -> Any:
        """
        POST a JSON-RPC body with retry on transient failures.

        Returns:
            The 'result' member of the response.
        """
        response: httpx.Response = self._send_http_request(body)
        return self._handle_response(response)

    def _send_http_request(self, body: dict[str, Any]) -> httpx.Response:
        """
        Send the HTTP request, converting transport errors to TransientAPIError.

        Raises:
            TransientAPIError: On timeout or connection errors (retryable).
        """
        try:
            return self._http_client.post(self.api_url, json=body)
        except httpx.TimeoutException as error:
            logger.warning('Request timeout (will retry): %s', body.get('method'))
            raise TransientAPIError(f'Request timeout: {error}') from error
        except httpx.RequestError as error:
            logger.warning(
                'Connection error (will retry): %s - %s', self.api_url, error
            )
            raise TransientAPIError(f'Connection error: {error}') from error

    def _handle_response(self, response: httpx.Response) -> Any:
        """
        Handle HTTP response, raising appropriate exceptions for errors.

        Raises:
            RateLimitError: On HTTP 429 (retryable).
            TransientAPIError: On 5xx server errors (retryable).
            APIError: On 4xx, malformed bodies, or JSON-RPC error objects.
        """
        status_code: int = response.status_code

        if status_code == HTTP_STATUS_RATE_LIMITED:
            rate_limit_info: RateLimitInfo = RateLimitInfo.from_response_headers(
                dict(response.headers)
            )
            logger.warning(
                'Rate limited (will retry after %.1fs)',
                rate_limit_info.retry_after_seconds,
            )
            raise RateLimitError(rate_limit_info)

        if HTTP_STATUS_SERVER_ERROR_MIN <= status_code <= HTTP_STATUS_SERVER_ERROR_MAX:
            logger.warning(
                'Server error %d (will retry): %s',
                status_code,
                response.text[:200],
            )
            raise TransientAPIError(
                message=f'Server error: HTTP {status_code}',
                status_code=status_code,
                response_body=response.text,
            )

        if not response.is_success:
            logger.error(
                'Client error %d (not retryable): %s',
                status_code,
                response.text[:500],
            )
            raise APIError(
                message=f'Client error: HTTP {status_code}',
                status_code=status_code,
                response_body=response.text,
            )

        try:
            json_body: Any = response.json()
        except ValueError as parse_error:
            raise APIError(
                message=f'Invalid JSON in response: {parse_error}',
                status_code=status_code,
                response_body=response.text[:500],
            ) from parse_error

        if not isinstance(json_body, dict):
            raise APIError(
                message=(
                    f'Expected JSON object in response, got {type(json_body).__name__}'
                ),
                status_code=status_code,
                response_body=response.text[:500],
            )

        envelope: dict[str, Any] = cast(dict[str, Any], json_body)

        error_payload: Any = envelope.get('error')
        if isinstance(error_payload, dict):
            rpc_error: RpcError = RpcError.from_payload(
                cast(dict[str, Any], error_payload)
            )
            logger.debug('Server returned error %r: %s', rpc_error.name, rpc_error.message)
            raise APIError(
                message=f'{rpc_error.name}: {rpc_error.message}',
                status_code=status_code,
                rpc_error=rpc_error,
            )

        if 'result' not in envelope:
            raise APIError(
                message='Response has neither result nor error',
                status_code=status_code,
                response_body=response.text[:500],
            )

        return envelope['result']
