"""Core transport abstractions.

Defines the foundation every API4 call goes through:
- AuthStrategy / ApiKeyAuth: the auth header
- RequestPolicy: Timeouts, retries, default headers
- TransportError hierarchy: Typed exceptions for failed calls
- Transport Protocol: "POST a path with a params body, get parsed JSON back"

Everything here is offline-testable; the httpx wiring lives in http_client.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

# =============================================================================
# Authentication
# =============================================================================


class AuthStrategy(Protocol):
    """Anything that can supply the auth header(s) for a request."""

    def get_headers(self) -> Dict[str, str]: ...


@dataclass
class ApiKeyAuth:
    """Token auth for the AuthX extension.

    CiviCRM expects ``X-Civi-Auth: Bearer <token>``; the header name and
    prefix stay configurable for sites behind a proxy that rewrites them.
    An empty prefix sends the bare token.
    """

    api_key: str = ""
    header_name: str = "X-Civi-Auth"
    header_prefix: str = "Bearer"

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def get_headers(self) -> Dict[str, str]:
        if not self.api_key:
            return {}
        return {self.header_name: f"{self.header_prefix} {self.api_key}".strip()}


# =============================================================================
# Request Policy
# =============================================================================


@dataclass
class RequestPolicy:
    """Timeouts and retries for every API4 call.

    Retries are off by default: every failure surfaces to the caller.
    """

    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    total_timeout: float = 60.0

    max_retries: int = 0
    retry_delay: float = 1.0
    retry_backoff: float = 2.0
    retry_on_status: List[int] = field(default_factory=lambda: [429, 502, 503, 504])

    user_agent: str = "civibridge/1.0"
    default_headers: Dict[str, str] = field(default_factory=dict)


# =============================================================================
# Transport Error Hierarchy
# =============================================================================


class TransportError(Exception):
    """Base exception for failed API calls.

    ``details`` is free-form context; the orchestrator adds the pipeline
    step, entity and record ID to it before re-raising.
    """

    def __init__(self, message: str, connector_name: str = "", details: Optional[Dict[str, Any]] = None):
        self.connector_name = connector_name
        self.details = details or {}
        super().__init__(message)


class ConnectionError(TransportError):
    """Failed to connect to the service."""

    pass


class TimeoutError(TransportError):
    """Request timed out."""

    def __init__(
        self,
        message: str = "Request timed out",
        connector_name: str = "",
        timeout_seconds: Optional[float] = None,
    ):
        super().__init__(message, connector_name, {"timeout_seconds": timeout_seconds})
        self.timeout_seconds = timeout_seconds


class AuthenticationError(TransportError):
    """Authentication failed (invalid or missing API token)."""

    pass


class AuthorizationError(TransportError):
    """Authenticated but not permitted."""

    pass


class RateLimitError(TransportError):
    """Rate limit exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        connector_name: str = "",
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, connector_name, {"retry_after": retry_after})
        self.retry_after = retry_after


class ResourceNotFoundError(TransportError):
    """Endpoint or entity not found."""

    pass


class ServiceUnavailableError(TransportError):
    """Remote server error (5xx)."""

    pass


class MalformedResponseError(TransportError):
    """Response body was not a JSON object."""

    pass


class RemoteApiError(TransportError):
    """The remote answered 2xx but flagged the call as failed (``is_error``)."""

    def __init__(
        self,
        message: str,
        connector_name: str = "",
        error_code: Optional[Any] = None,
        response: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, connector_name, {"error_code": error_code})
        self.error_code = error_code
        self.response = response or {}


# =============================================================================
# Transport Protocol
# =============================================================================


@runtime_checkable
class Transport(Protocol):
    """Protocol for anything that can issue one API4 call.

    ``Api4Transport`` talks HTTP; ``FakeTransport`` answers from a script.
    """

    def request(self, method: str, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Issue one call and return the parsed JSON body.

        Raises:
            TransportError: On any transport-level failure
        """
        ...
