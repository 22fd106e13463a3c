"""httpx client for form-encoded CiviCRM requests.

HTTPClient applies a RequestPolicy to every call:
- connect/read timeouts
- retries with exponential backoff for the statuses the policy lists
  (none unless ``max_retries`` is raised)
- non-2xx responses and network failures raised as TransportError subclasses

Tests patch ``httpx.Client`` or bypass HTTP entirely with FakeTransport.
"""

import json
import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional, Type

import httpx

from .base import (
    AuthenticationError,
    AuthorizationError,
    AuthStrategy,
    ConnectionError,
    RateLimitError,
    RequestPolicy,
    ResourceNotFoundError,
    ServiceUnavailableError,
    TimeoutError,
    TransportError,
)

logger = logging.getLogger(__name__)

# Status -> (error class, message prefix)
_STATUS_ERRORS: Dict[int, tuple[Type[TransportError], str]] = {
    401: (AuthenticationError, "Authentication failed"),
    403: (AuthorizationError, "Permission denied"),
    404: (ResourceNotFoundError, "Resource not found"),
}


def retry_after_seconds(value: Optional[str]) -> Optional[float]:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP-date).

    Unparsable values give None. Dates in the past give 0.
    """
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        return max(seconds, 0.0) if math.isfinite(seconds) else None
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


@dataclass
class HTTPResponse:
    """Status, headers and raw body of one completed request."""

    status_code: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        """Decode the body. Raises ValueError if it is not JSON."""
        return json.loads(self.body)

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class HTTPClient:
    """Posts form data to one CiviCRM site."""

    connector_name = "civicrm"

    def __init__(
        self,
        auth: Optional[AuthStrategy] = None,
        policy: Optional[RequestPolicy] = None,
        base_url: str = "",
    ):
        """Initialize the client.

        Args:
            auth: Supplies the auth header (``X-Civi-Auth`` by default)
            policy: Timeouts and retry behaviour
            base_url: Site root, e.g. ``https://crm.example.org``
        """
        self.auth = auth
        self.policy = policy or RequestPolicy()
        self.base_url = base_url.rstrip("/")

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Policy defaults, then auth, then per-call headers."""
        merged = {"User-Agent": self.policy.user_agent, **self.policy.default_headers}
        if self.auth:
            merged.update(self.auth.get_headers())
        merged.update(extra or {})
        return merged

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self.policy.connect_timeout,
            read=self.policy.read_timeout,
            write=self.policy.read_timeout,
            pool=self.policy.total_timeout,
        )

    def _backoff(self, attempt: int) -> None:
        time.sleep(self.policy.retry_delay * (self.policy.retry_backoff ** attempt))

    def error_for(self, response: HTTPResponse) -> TransportError:
        """Translate a non-2xx response into a TransportError."""
        status = response.status_code
        body = response.text()
        name = self.connector_name

        if status in _STATUS_ERRORS:
            error_class, prefix = _STATUS_ERRORS[status]
            return error_class(f"{prefix}: {body}", connector_name=name)
        if status == 429:
            retry_after = response.headers.get("Retry-After") or response.headers.get("retry-after")
            return RateLimitError(
                f"Rate limit exceeded: {body}",
                connector_name=name,
                retry_after=retry_after_seconds(retry_after),
            )
        error_class = ServiceUnavailableError if status >= 500 else TransportError
        label = "Service error" if status >= 500 else "HTTP error"
        return error_class(f"{label} ({status}): {body}", connector_name=name, details={"status_code": status})

    def _send(self, method: str, url: str, headers: Dict[str, str], data: Optional[Dict[str, Any]]) -> HTTPResponse:
        started = time.monotonic()
        with httpx.Client(timeout=self._timeout()) as client:
            response = client.request(method=method, url=url, data=data, headers=headers)
        return HTTPResponse(
            status_code=response.status_code,
            body=response.content,
            headers=dict(response.headers),
            elapsed_seconds=time.monotonic() - started,
        )

    def request(
        self,
        method: str,
        path: str,
        *,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> HTTPResponse:
        """Send one request, retrying only as far as the policy allows.

        Raises:
            TimeoutError: The request timed out on every attempt
            ConnectionError: The site could not be reached
            TransportError: Any other failure, including non-2xx statuses
        """
        url = self.url_for(path)
        request_headers = self.headers(headers)
        attempts = self.policy.max_retries + 1

        for attempt in range(attempts):
            retries_left = attempt < attempts - 1
            try:
                response = self._send(method, url, request_headers, data)
            except httpx.TimeoutException:
                error: TransportError = TimeoutError(
                    f"Request timed out after {self.policy.read_timeout}s",
                    connector_name=self.connector_name,
                    timeout_seconds=self.policy.read_timeout,
                )
            except httpx.ConnectError as e:
                error = ConnectionError(f"Failed to connect to {url}: {e}", connector_name=self.connector_name)
            except httpx.HTTPError as e:
                error = TransportError(f"HTTP error: {e}", connector_name=self.connector_name)
            else:
                if response.ok:
                    return response
                error = self.error_for(response)
                if response.status_code not in self.policy.retry_on_status:
                    retries_left = False

            if not retries_left:
                logger.warning(f"{method} {path} failed: {error}")
                raise error
            logger.warning(f"{method} {path} failed ({error}), retry {attempt + 1}/{self.policy.max_retries}")
            self._backoff(attempt)

        raise TransportError("Request failed after all retries", connector_name=self.connector_name)
