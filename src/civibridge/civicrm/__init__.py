"""CiviCRM API v4 connector.

This module provides:
- Value coercion and date normalization for user-typed field values
- Location-type resolution (cached per resolver)
- Field routing into core / Email / Phone / Address payloads
- The request orchestrator sequencing get, getMany, create, update,
  delete and the raw custom API call
"""

from civibridge.civicrm.coercion import coerce_value
from civibridge.civicrm.dates import normalize_date
from civibridge.civicrm.errors import (
    CiviBridgeError,
    CreateFailedError,
    InvalidDateError,
    InvalidFilterError,
    InvalidParamsError,
    UnsupportedOperationError,
)
from civibridge.civicrm.factory import build_orchestrator, build_transport
from civibridge.civicrm.fields import FieldKey, FieldRoot, RoutedFields, parse_field_key, route_fields
from civibridge.civicrm.locations import LocationTypeResolver, normalize_location_key
from civibridge.civicrm.models import (
    CiviCredentials,
    ContactType,
    CustomCallParams,
    FieldPair,
    Operation,
    RecordParams,
    Resource,
)
from civibridge.civicrm.orchestrator import RequestOrchestrator, WriteStep

__all__ = [
    "coerce_value",
    "normalize_date",
    "CiviBridgeError",
    "CreateFailedError",
    "InvalidDateError",
    "InvalidFilterError",
    "InvalidParamsError",
    "UnsupportedOperationError",
    "build_orchestrator",
    "build_transport",
    "FieldKey",
    "FieldRoot",
    "RoutedFields",
    "parse_field_key",
    "route_fields",
    "LocationTypeResolver",
    "normalize_location_key",
    "CiviCredentials",
    "ContactType",
    "CustomCallParams",
    "FieldPair",
    "Operation",
    "RecordParams",
    "Resource",
    "RequestOrchestrator",
    "WriteStep",
]
