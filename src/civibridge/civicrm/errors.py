"""Domain errors raised while shaping or sequencing API4 requests.

Transport failures are TransportError (civibridge.connectors); everything
here is raised before or between calls and derives from CiviBridgeError.
"""

from typing import Any, Dict, Optional


class CiviBridgeError(Exception):
    """Base exception for connector-side errors."""

    pass


class InvalidFilterError(CiviBridgeError):
    """The getMany ``where`` JSON is malformed or not a list."""

    def __init__(self, raw: str, reason: str = ""):
        self.raw = raw
        message = "Invalid JSON in whereJson"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InvalidDateError(CiviBridgeError):
    """A date value could not be normalized to ``YYYY-MM-DD``."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid birth_date: {value}")


class CreateFailedError(CiviBridgeError):
    """A create call returned no usable ID."""

    def __init__(self, entity: str, response: Optional[Dict[str, Any]] = None):
        self.entity = entity
        self.response = response or {}
        super().__init__(f"Failed to create {entity.lower()}.")


class InvalidParamsError(CiviBridgeError):
    """The custom API call params are not a JSON object."""

    def __init__(self, raw: str, reason: str = ""):
        self.raw = raw
        message = 'Invalid JSON in "Params (JSON)"'
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class UnsupportedOperationError(CiviBridgeError):
    """Resource/operation combination the connector does not offer."""

    def __init__(self, resource: str, operation: str):
        self.resource = resource
        self.operation = operation
        super().__init__(f"Unsupported operation '{operation}' for resource '{resource}'")
