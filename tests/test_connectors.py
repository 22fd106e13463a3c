"""Tests for the transport layer.

Tests cover:
- Auth strategies and request policy defaults
- Error hierarchy
- HTTPClient status mapping, network failures and retries
- Api4Transport wire format
- FakeTransport scripting
"""

import json
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from unittest.mock import MagicMock, patch

import httpx
import pytest

from civibridge.connectors import (
    API4_PREFIX,
    ApiKeyAuth,
    Api4Transport,
    AuthenticationError,
    AuthorizationError,
    ConnectionError,
    FakeResponse,
    FakeTransport,
    HTTPClient,
    MalformedResponseError,
    RateLimitError,
    RequestPolicy,
    ResourceNotFoundError,
    ServiceUnavailableError,
    TimeoutError,
    Transport,
    TransportError,
    api4_path,
    call,
    encode_params,
    split_api4_path,
)
from civibridge.connectors.http_client import retry_after_seconds


def mock_response(status_code=200, content=b'{"values": []}', headers=None):
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    response.headers = headers or {}
    return response


@pytest.fixture
def mock_client():
    """Patch httpx.Client and yield the client used inside the with-block."""
    with patch("civibridge.connectors.http_client.httpx.Client") as mock_client_class:
        client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = client
        client.request.return_value = mock_response()
        yield client


# =============================================================================
# Auth and policy
# =============================================================================


class TestAuth:
    """Tests for authentication strategies."""

    def test_api_key_bearer(self):
        """The default header is X-Civi-Auth with a Bearer prefix."""
        auth = ApiKeyAuth(api_key="secret")
        assert auth.is_configured() is True
        assert auth.get_headers() == {"X-Civi-Auth": "Bearer secret"}

    def test_api_key_custom_header(self):
        """Header name and prefix are configurable."""
        auth = ApiKeyAuth(api_key="secret", header_name="Authorization")
        assert auth.get_headers() == {"Authorization": "Bearer secret"}

        raw = ApiKeyAuth(api_key="secret", header_prefix="")
        assert raw.get_headers() == {"X-Civi-Auth": "secret"}

    def test_api_key_missing(self):
        """Without a key no header is sent."""
        auth = ApiKeyAuth()
        assert auth.is_configured() is False
        assert auth.get_headers() == {}


class TestRequestPolicy:
    """Tests for RequestPolicy."""

    def test_defaults(self):
        """No retries unless asked for."""
        policy = RequestPolicy()
        assert policy.max_retries == 0
        assert policy.connect_timeout == 10.0
        assert policy.read_timeout == 30.0
        assert 503 in policy.retry_on_status


class TestErrors:
    """Tests for the TransportError hierarchy."""

    def test_hierarchy(self):
        """Every specific error is a TransportError."""
        for error_class in (
            ConnectionError,
            TimeoutError,
            AuthenticationError,
            AuthorizationError,
            RateLimitError,
            ResourceNotFoundError,
            ServiceUnavailableError,
            MalformedResponseError,
        ):
            assert issubclass(error_class, TransportError)

    def test_details_default(self):
        """details starts as an empty dict."""
        error = TransportError("boom", connector_name="civicrm")
        assert error.details == {}
        assert error.connector_name == "civicrm"
        assert str(error) == "boom"

    def test_rate_limit_retry_after(self):
        """RateLimitError keeps retry_after."""
        error = RateLimitError(retry_after=30.0)
        assert error.retry_after == 30.0
        assert error.details["retry_after"] == 30.0


# =============================================================================
# HTTP client
# =============================================================================


class TestHTTPClient:
    """Tests for HTTPClient with httpx mocked."""

    def test_builds_url_and_headers(self, mock_client):
        """Paths are joined to the base URL and auth headers attached."""
        client = HTTPClient(auth=ApiKeyAuth(api_key="tok"), base_url="https://crm.example.org/")

        response = client.request("POST", "/civicrm/ajax/api4/Contact/get", data={"params": "{}"})

        assert response.ok
        kwargs = mock_client.request.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["url"] == "https://crm.example.org/civicrm/ajax/api4/Contact/get"
        assert kwargs["data"] == {"params": "{}"}
        assert kwargs["headers"]["X-Civi-Auth"] == "Bearer tok"
        assert kwargs["headers"]["User-Agent"] == "civibridge/1.0"

    def test_json_body(self, mock_client):
        """HTTPResponse.json() parses the body."""
        mock_client.request.return_value = mock_response(content=b'{"values": [{"id": 1}]}')
        response = HTTPClient(base_url="https://crm.example.org").request("POST", "/x")
        assert response.json() == {"values": [{"id": 1}]}

    @pytest.mark.parametrize(
        "status,error_class",
        [
            (401, AuthenticationError),
            (403, AuthorizationError),
            (404, ResourceNotFoundError),
            (429, RateLimitError),
            (500, ServiceUnavailableError),
            (503, ServiceUnavailableError),
        ],
    )
    def test_status_mapping(self, mock_client, status, error_class):
        """Non-2xx statuses map to typed errors."""
        mock_client.request.return_value = mock_response(status_code=status, content=b"nope")

        with pytest.raises(error_class) as exc_info:
            HTTPClient(base_url="https://crm.example.org").request("POST", "/x")

        assert exc_info.value.connector_name == "civicrm"

    def test_other_status(self, mock_client):
        """Unmapped statuses are plain TransportErrors with the code."""
        mock_client.request.return_value = mock_response(status_code=418, content=b"teapot")

        with pytest.raises(TransportError) as exc_info:
            HTTPClient(base_url="https://crm.example.org").request("POST", "/x")

        assert exc_info.value.details["status_code"] == 418
        assert "teapot" in str(exc_info.value)

    def test_retry_after_header(self, mock_client):
        """429 responses carry Retry-After."""
        mock_client.request.return_value = mock_response(
            status_code=429, content=b"slow down", headers={"Retry-After": "12"}
        )

        with pytest.raises(RateLimitError) as exc_info:
            HTTPClient(base_url="https://crm.example.org").request("POST", "/x")

        assert exc_info.value.retry_after == 12.0

    def test_retry_after_http_date(self, mock_client):
        """An HTTP-date Retry-After becomes seconds from now."""
        mock_client.request.return_value = mock_response(
            status_code=429, content=b"slow down", headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}
        )

        with pytest.raises(RateLimitError) as exc_info:
            HTTPClient(base_url="https://crm.example.org").request("POST", "/x")

        assert exc_info.value.retry_after == 0.0

    def test_retry_after_unparsable(self, mock_client):
        """An unreadable Retry-After still raises RateLimitError."""
        mock_client.request.return_value = mock_response(
            status_code=429, content=b"slow down", headers={"Retry-After": "soon"}
        )

        with pytest.raises(RateLimitError) as exc_info:
            HTTPClient(base_url="https://crm.example.org").request("POST", "/x")

        assert exc_info.value.retry_after is None

    def test_retry_after_seconds(self):
        """retry_after_seconds() reads both header forms."""
        future = format_datetime(datetime.now(timezone.utc) + timedelta(seconds=120), usegmt=True)

        assert retry_after_seconds("7") == 7.0
        assert 60 < retry_after_seconds(future) <= 120
        assert retry_after_seconds("nan") is None
        assert retry_after_seconds("") is None

    def test_timeout(self, mock_client):
        """httpx timeouts become TimeoutError."""
        mock_client.request.side_effect = httpx.ReadTimeout("slow")

        with pytest.raises(TimeoutError):
            HTTPClient(base_url="https://crm.example.org").request("POST", "/x")

    def test_connect_error(self, mock_client):
        """Connection failures become ConnectionError."""
        mock_client.request.side_effect = httpx.ConnectError("refused")

        with pytest.raises(ConnectionError) as exc_info:
            HTTPClient(base_url="https://crm.example.org").request("POST", "/x")

        assert "https://crm.example.org/x" in str(exc_info.value)

    def test_no_retry_by_default(self, mock_client):
        """A 503 fails immediately with the default policy."""
        mock_client.request.return_value = mock_response(status_code=503, content=b"busy")

        with pytest.raises(ServiceUnavailableError):
            HTTPClient(base_url="https://crm.example.org").request("POST", "/x")

        assert mock_client.request.call_count == 1

    def test_retry_when_enabled(self, mock_client):
        """Retryable statuses are retried when the policy allows."""
        mock_client.request.side_effect = [
            mock_response(status_code=503, content=b"busy"),
            mock_response(content=b'{"values": []}'),
        ]
        policy = RequestPolicy(max_retries=2, retry_delay=0)

        response = HTTPClient(policy=policy, base_url="https://crm.example.org").request("POST", "/x")

        assert response.status_code == 200
        assert mock_client.request.call_count == 2

    def test_retries_exhausted(self, mock_client):
        """Network errors surface once retries run out."""
        mock_client.request.side_effect = httpx.ConnectError("refused")
        policy = RequestPolicy(max_retries=1, retry_delay=0)

        with pytest.raises(ConnectionError):
            HTTPClient(policy=policy, base_url="https://crm.example.org").request("POST", "/x")

        assert mock_client.request.call_count == 2


# =============================================================================
# API4 wire format
# =============================================================================


class TestApi4Paths:
    """Tests for API4 path helpers."""

    def test_api4_path(self):
        """Paths follow /civicrm/ajax/api4/<Entity>/<Action>."""
        assert api4_path("Contact", "get") == f"{API4_PREFIX}/Contact/get"

    def test_split(self):
        """split_api4_path() reverses api4_path()."""
        assert split_api4_path("/civicrm/ajax/api4/Email/create") == ("Email", "create")
        assert split_api4_path("ping") == ("", "ping")


class TestEncodeParams:
    """Tests for encode_params()."""

    def test_single_params_field(self):
        """The body is one form field holding JSON."""
        encoded = encode_params({"where": [["id", "=", 1]], "limit": 1})
        assert list(encoded) == ["params"]
        assert json.loads(encoded["params"]) == {"where": [["id", "=", 1]], "limit": 1}

    def test_wrapped_params_unwrapped(self):
        """A body already wrapped in params is not double-wrapped."""
        encoded = encode_params({"params": {"limit": 5}})
        assert json.loads(encoded["params"]) == {"limit": 5}

    def test_empty(self):
        """An empty body encodes as an empty object."""
        assert encode_params({}) == {"params": "{}"}


class TestApi4Transport:
    """Tests for Api4Transport over a mocked httpx."""

    def _transport(self):
        return Api4Transport(HTTPClient(auth=ApiKeyAuth(api_key="tok"), base_url="https://crm.example.org"))

    def test_request(self, mock_client):
        """A call posts form-encoded params and returns parsed JSON."""
        mock_client.request.return_value = mock_response(content=b'{"values": [{"id": 3}], "count": 1}')

        result = call(self._transport(), "Contact", "get", {"limit": 1})

        assert result == {"values": [{"id": 3}], "count": 1}
        kwargs = mock_client.request.call_args.kwargs
        assert kwargs["url"] == "https://crm.example.org/civicrm/ajax/api4/Contact/get"
        assert kwargs["data"] == {"params": '{"limit": 1}'}
        assert kwargs["headers"]["X-Civi-Auth"] == "Bearer tok"

    def test_is_transport(self):
        """Api4Transport satisfies the Transport protocol."""
        assert isinstance(self._transport(), Transport)

    def test_invalid_json(self, mock_client):
        """Non-JSON bodies raise MalformedResponseError."""
        mock_client.request.return_value = mock_response(content=b"<html>Login</html>")

        with pytest.raises(MalformedResponseError):
            call(self._transport(), "Contact", "get", {})

    def test_non_object_json(self, mock_client):
        """JSON that is not an object raises MalformedResponseError."""
        mock_client.request.return_value = mock_response(content=b"[1, 2]")

        with pytest.raises(MalformedResponseError):
            call(self._transport(), "Contact", "get", {})

    def test_http_error_passes_through(self, mock_client):
        """HTTP errors are raised unchanged."""
        mock_client.request.return_value = mock_response(status_code=401, content=b"denied")

        with pytest.raises(AuthenticationError):
            call(self._transport(), "Contact", "get", {})


class TestCall:
    """Tests for the call() helper."""

    def test_tags_errors_with_entity_and_action(self):
        """Errors leave call() knowing which call failed."""
        fake = FakeTransport()
        fake.set_error("Email/create", ServiceUnavailableError("down"))

        with pytest.raises(ServiceUnavailableError) as exc_info:
            call(fake, "Email", "create", {"values": {}})

        assert exc_info.value.details == {"entity": "Email", "action": "create"}


# =============================================================================
# Fake transport
# =============================================================================


class TestFakeTransport:
    """Tests for FakeTransport."""

    def test_is_transport(self):
        """FakeTransport satisfies the Transport protocol."""
        assert isinstance(FakeTransport(), Transport)

    def test_default_response(self):
        """Unscripted calls return an empty values list."""
        assert call(FakeTransport(), "Contact", "get", {}) == {"values": []}

    def test_records_calls(self):
        """Every call is recorded with entity, action and params."""
        fake = FakeTransport()
        call(fake, "Contact", "get", {"limit": 1})
        call(fake, "Email", "create", {"values": {"email": "a@example.org"}})

        assert fake.call_keys() == ["Contact/get", "Email/create"]
        recorded = fake.calls[1]
        assert recorded.method == "POST"
        assert recorded.path == "/civicrm/ajax/api4/Email/create"
        assert recorded.params == {"values": {"email": "a@example.org"}}
        assert fake.call_count() == 2
        assert fake.call_count("Contact/get") == 1

    def test_queue_last_repeats(self):
        """Queued responses are consumed in order; the last one repeats."""
        fake = FakeTransport()
        fake.queue_responses("Contact/get", {"values": [1]}, {"values": [2]})

        results = [call(fake, "Contact", "get", {}) for _ in range(3)]

        assert results == [{"values": [1]}, {"values": [2]}, {"values": [2]}]

    def test_fake_response_error(self):
        """FakeResponse errors are raised."""
        fake = FakeTransport()
        fake.queue_responses("Contact/get", FakeResponse(error=AuthenticationError("no")), {"values": []})

        with pytest.raises(AuthenticationError):
            call(fake, "Contact", "get", {})
        assert call(fake, "Contact", "get", {}) == {"values": []}

    def test_handler(self):
        """A handler computes responses from the recorded call."""
        fake = FakeTransport(handler=lambda c: {"values": [{"offset": c.params.get("offset")}]})
        assert call(fake, "Contact", "get", {"offset": 500}) == {"values": [{"offset": 500}]}

    def test_clear_calls(self):
        """clear_calls() resets the call log."""
        fake = FakeTransport()
        call(fake, "Contact", "get", {})
        fake.clear_calls()
        assert fake.calls == []
        assert not fake.was_called("Contact/get")
