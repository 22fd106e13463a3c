"""CiviCRM API v4 transport.

Every API4 call is a POST to ``<base_url>/civicrm/ajax/api4/<Entity>/<Action>``
with a form-encoded body holding one field, ``params``, whose value is the
JSON-serialized parameter object. The response is a JSON object carrying
``values`` and (on failure) ``is_error``/``error_message``.
"""

import json
import logging
from typing import Any, Dict

from .base import MalformedResponseError, TransportError
from .http_client import HTTPClient

logger = logging.getLogger(__name__)

API4_PREFIX = "/civicrm/ajax/api4"


def api4_path(entity: str, action: str) -> str:
    """Build the endpoint path for an entity/action pair."""
    return f"{API4_PREFIX}/{entity}/{action}"


def split_api4_path(path: str) -> tuple[str, str]:
    """Split an endpoint path back into ``(entity, action)``.

    Paths that do not end in ``<Entity>/<Action>`` return ``("", path)``.
    """
    parts = [p for p in path.split("/") if p]
    if len(parts) < 2:
        return "", path
    return parts[-2], parts[-1]


def encode_params(body: Dict[str, Any]) -> Dict[str, str]:
    """Form-encode an API4 parameter object.

    A body already wrapped as ``{"params": {...}}`` is unwrapped first.
    """
    payload = body["params"] if "params" in body else body
    return {"params": json.dumps(payload)}


class Api4Transport:
    """Transport adapter: one authenticated POST per logical API4 call."""

    def __init__(self, client: HTTPClient):
        self.client = client

    def request(self, method: str, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST ``body`` to ``path`` and return the parsed JSON object.

        Raises:
            TransportError: Non-2xx status, network failure or a body that is
                not a JSON object
        """
        response = self.client.request(method, path, data=encode_params(body))
        logger.debug(f"{method} {path} -> {response.status_code} in {response.elapsed_seconds:.3f}s")

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Response from {path} is not valid JSON: {e}",
                connector_name=self.client.connector_name,
            ) from e

        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"Response from {path} is not a JSON object",
                connector_name=self.client.connector_name,
            )
        return data


def call(transport: Any, entity: str, action: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """Issue ``Entity.action`` through any Transport implementation."""
    path = api4_path(entity, action)
    try:
        return transport.request("POST", path, params)
    except TransportError as e:
        e.details.setdefault("entity", entity)
        e.details.setdefault("action", action)
        raise
