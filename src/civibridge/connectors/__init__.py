"""Transport layer for the CiviCRM API v4.

Key components:
- ApiKeyAuth: The X-Civi-Auth token header
- RequestPolicy: Timeouts and retries
- TransportError hierarchy: Typed exceptions for failed calls
- HTTPClient: httpx wrapper with policy enforcement
- Api4Transport: Form-encoded ``params`` POSTs to ``/civicrm/ajax/api4``
- FakeTransport: Scripted transport without network calls
"""

from .api4 import API4_PREFIX, Api4Transport, api4_path, call, encode_params, split_api4_path
from .base import (
    ApiKeyAuth,
    AuthenticationError,
    AuthorizationError,
    AuthStrategy,
    ConnectionError,
    MalformedResponseError,
    RateLimitError,
    RemoteApiError,
    RequestPolicy,
    ResourceNotFoundError,
    ServiceUnavailableError,
    TimeoutError,
    Transport,
    TransportError,
)
from .fake import FakeResponse, FakeTransport, RecordedCall
from .http_client import HTTPClient, HTTPResponse

__all__ = [
    # Auth
    "AuthStrategy",
    "ApiKeyAuth",
    # Policy
    "RequestPolicy",
    # Errors
    "TransportError",
    "ConnectionError",
    "TimeoutError",
    "AuthenticationError",
    "AuthorizationError",
    "RateLimitError",
    "ResourceNotFoundError",
    "ServiceUnavailableError",
    "MalformedResponseError",
    "RemoteApiError",
    # Transports
    "Transport",
    "HTTPClient",
    "HTTPResponse",
    "Api4Transport",
    "API4_PREFIX",
    "api4_path",
    "split_api4_path",
    "encode_params",
    "call",
    "FakeTransport",
    "FakeResponse",
    "RecordedCall",
]
