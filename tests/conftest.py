"""Test configuration and fixtures."""

from typing import Any, Dict, List

import pytest

from civibridge.civicrm.locations import LocationTypeResolver
from civibridge.civicrm.orchestrator import RequestOrchestrator
from civibridge.connectors import FakeTransport

LOCATION_TYPE_ROWS: List[Dict[str, Any]] = [
    {"name": "Home", "label": "Home"},
    {"name": "Work", "label": "Work"},
    {"name": "Main", "label": "Main Office"},
    {"name": "Billing", "label": "Billing"},
    {"name": "Other", "label": "Other"},
]


@pytest.fixture
def transport() -> FakeTransport:
    """FakeTransport that knows the standard location types."""
    fake = FakeTransport()
    fake.set_response("OptionValue/get", {"values": LOCATION_TYPE_ROWS})
    return fake


@pytest.fixture
def orchestrator(transport: FakeTransport) -> RequestOrchestrator:
    """Orchestrator wired to the fake transport."""
    return RequestOrchestrator(transport, resolver=LocationTypeResolver(transport))
