# fleet_datafeed/models/rpc.py
"""
Request and response models for the JSON-RPC telematics API.

Every API call is a POST of {"method": ..., "params": {...}} to the server's
/apiv1 endpoint. Successful responses wrap the payload in {"result": ...};
failures come back as {"error": {"name": ..., "message": ..., "errors": [...]}}.
These models define the contract between the client (which executes calls)
and the feed loader (which interprets results).
"""

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr
from pydantic.alias_generators import to_camel

logger: logging.Logger = logging.getLogger(__name__)

__all__: list[str] = [
    'FeedPage',
    'LoginResult',
    'RateLimitInfo',
    'RpcError',
    'RpcRequest',
    'SessionCredentials',
]


class RpcRequest(BaseModel):
    """
    A single JSON-RPC call.

    Attributes:
        method: Remote method name ('Authenticate', 'Get', 'GetFeed').
        params: Method parameters. Session credentials are injected by the
            client, never stored here by callers.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    method: str
    params: dict[str, Any] = Field(default_factory=dict)

    def to_body(self, credentials: dict[str, Any] | None = None) -> dict[str, Any]:
        """Build the request body, optionally adding session credentials."""
        params: dict[str, Any] = {
            key: value for key, value in self.params.items() if value is not None
        }
        if credentials is not None:
            params['credentials'] = credentials
        return {'method': self.method, 'params': params}


class SessionCredentials(BaseModel):
    """Session issued by Authenticate; replaces the password on later calls."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='ignore',
        frozen=True,
    )

    database: str
    user_name: str
    session_id: SecretStr

    def to_params(self) -> dict[str, str]:
        """Serialize for the 'credentials' request parameter."""
        return {
            'database': self.database,
            'userName': self.user_name,
            'sessionId': self.session_id.get_secret_value(),
        }


class LoginResult(BaseModel):
    """
    Result of Authenticate.

    Attributes:
        credentials: Session credentials for subsequent calls.
        path: Server that hosts the database, or 'ThisServer'.
    """

    model_config = ConfigDict(extra='ignore', frozen=True)

    credentials: SessionCredentials
    path: str = 'ThisServer'

    @property
    def redirect_server(self) -> str | None:
        """Server to use for further calls, or None to stay on the current one."""
        if not self.path or self.path == 'ThisServer':
            return None
        return self.path


class RpcError(BaseModel):
    """
    Error object returned in place of a result.

    Attributes:
        name: Top-level error name (usually 'JSONRPCError').
        message: Human-readable description.
        error_names: Names of the nested server exceptions,
            e.g. ['InvalidUserException'].
    """

    model_config = ConfigDict(extra='ignore', frozen=True)

    name: str = ''
    message: str = ''
    error_names: list[str] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> 'RpcError':
        """Parse the 'error' member of a response body."""
        nested: list[Any] = payload.get('errors') or []
        return cls(
            name=str(payload.get('name', '')),
            message=str(payload.get('message', '')),
            error_names=[
                str(item.get('name', '')) for item in nested if isinstance(item, dict)
            ],
        )

    def has_error(self, error_name: str) -> bool:
        """Whether the server reported the named exception."""
        return error_name == self.name or error_name in self.error_names


class FeedPage(BaseModel):
    """
    One GetFeed response.

    Attributes:
        data: Raw records (still referencing devices etc. by id).
        to_version: Version to pass as fromVersion on the next call.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='ignore',
        frozen=True,
    )

    data: list[dict[str, Any]] = Field(default_factory=list)
    to_version: str | None = None

    @property
    def item_count(self) -> int:
        """Number of records in this page."""
        return len(self.data)


class RateLimitInfo(BaseModel):
    """
    Rate limit metadata extracted from HTTP response headers.

    Attributes:
        retry_after_seconds: Seconds to wait before retrying.
        remaining: Requests remaining in current window.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    retry_after_seconds: float = 1.0
    remaining: int | None = None

    @classmethod
    def from_response_headers(cls, headers: dict[str, str]) -> 'RateLimitInfo':
        """
        Extract rate limit information from HTTP response headers.

        Returns:
            RateLimitInfo with parsed values, defaults to 1 second retry
            if Retry-After header is missing or not numeric.
        """
        normalized_headers: dict[str, str] = {
            key.lower(): value for key, value in headers.items()
        }

        retry_after_raw: str = normalized_headers.get('retry-after', '1')
        remaining_raw: str | None = normalized_headers.get('x-rate-limit-remaining')

        try:
            retry_after: float = float(retry_after_raw)
        except ValueError:
            retry_after = 1.0

        return cls(
            retry_after_seconds=retry_after,
            remaining=int(remaining_raw) if remaining_raw is not None else None,
        )
