"""Field routing: flat ``(key, value)`` pairs to API4 payload buffers.

Field keys follow a small grammar::

    email | email.<sub>                      -> Email row
    phone | phone.<sub>                      -> Phone row
    address.<sub>                            -> Address row
    <Location>.email[.<sub>]                 -> Email row at that location
    <Location>.phone[.<sub>]                 -> Phone row at that location
    <Location>.address.<sub>                 -> Address row at that location
    gender | gender_id                       -> core gender_id
    birth_date | birth                       -> core birth_date (normalized)
    anything else                            -> core attribute as written

``parse_field_key`` turns a key into a FieldKey; ``route_fields`` coerces
each value and dispatches on ``FieldKey.root``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from civibridge.civicrm.coercion import coerce_value, is_empty
from civibridge.civicrm.dates import normalize_date
from civibridge.civicrm.locations import normalize_location_key
from civibridge.civicrm.models import FieldPair


class FieldRoot(str, Enum):
    """Where a field's value ends up."""

    EMAIL = "email"
    PHONE = "phone"
    ADDRESS = "address"
    GENDER = "gender"
    BIRTH_DATE = "birth_date"
    CORE = "core"


SUB_ENTITY_ROOTS = (FieldRoot.EMAIL, FieldRoot.PHONE, FieldRoot.ADDRESS)

# Attribute a bare ``email``/``phone`` key writes to. Address has none.
_BARE_ATTRIBUTE = {FieldRoot.EMAIL: "email", FieldRoot.PHONE: "phone", FieldRoot.ADDRESS: None}


@dataclass(frozen=True)
class FieldKey:
    """Parsed field key.

    ``attribute`` is the target attribute name; None means the key names a
    sub-entity without an attribute (``Home.address``) and its value is
    dropped.
    """

    root: FieldRoot
    attribute: Optional[str]
    location_prefix: Optional[str] = None


def _sub_entity_key(root: FieldRoot, rest: str, location_prefix: Optional[str] = None) -> FieldKey:
    return FieldKey(root, rest or _BARE_ATTRIBUTE[root], location_prefix)


def parse_field_key(key: str, sub_entities: bool = True) -> Optional[FieldKey]:
    """Parse a user-written field key. Returns None for blank keys.

    With ``sub_entities=False`` (resources other than Contact) only the
    gender/birth aliases are recognized and every other key is a core
    attribute.
    """
    key = (key or "").strip()
    if not key:
        return None

    if sub_entities:
        for root in (FieldRoot.EMAIL, FieldRoot.PHONE):
            if key == root.value:
                return FieldKey(root, root.value)
        for root in SUB_ENTITY_ROOTS:
            prefix = f"{root.value}."
            if key.startswith(prefix):
                return _sub_entity_key(root, key[len(prefix):])

        segments = key.split(".")
        if len(segments) >= 2 and segments[1] in ("email", "phone", "address"):
            root = FieldRoot(segments[1])
            return _sub_entity_key(root, ".".join(segments[2:]), location_prefix=segments[0])

    if key in ("gender", "gender_id"):
        return FieldKey(FieldRoot.GENDER, "gender_id")
    if key in ("birth_date", "birth"):
        return FieldKey(FieldRoot.BIRTH_DATE, "birth_date")
    return FieldKey(FieldRoot.CORE, key)


@dataclass
class RoutedFields:
    """Payload buffers for one record."""

    core_values: Dict[str, Any] = field(default_factory=dict)
    email_data: Dict[str, Any] = field(default_factory=dict)
    phone_data: Dict[str, Any] = field(default_factory=dict)
    address_data: Dict[str, Any] = field(default_factory=dict)
    email_location_name: str = "Work"
    phone_location_name: str = "Work"
    address_location_name: str = "Home"

    def buffer_for(self, root: FieldRoot) -> Dict[str, Any]:
        if root is FieldRoot.EMAIL:
            return self.email_data
        if root is FieldRoot.PHONE:
            return self.phone_data
        if root is FieldRoot.ADDRESS:
            return self.address_data
        return self.core_values

    def set_location(self, root: FieldRoot, name: str) -> None:
        setattr(self, f"{root.value}_location_name", name)

    def location_for(self, root: FieldRoot) -> str:
        return getattr(self, f"{root.value}_location_name")


def route_fields(
    pairs: Iterable[FieldPair],
    location_map: Optional[Dict[str, str]] = None,
    *,
    email_location: str = "Work",
    phone_location: str = "Work",
    address_location: str = "Home",
    sub_entities: bool = True,
) -> RoutedFields:
    """Partition field pairs into core and Email/Phone/Address buffers.

    Every value goes through coerce_value; values that coerce to empty are
    dropped. A location prefix found in ``location_map`` switches the
    location type used for that sub-entity, even when its value is empty.

    Raises:
        InvalidDateError: If a birth date value cannot be normalized
    """
    location_map = location_map or {}
    routed = RoutedFields(
        email_location_name=email_location,
        phone_location_name=phone_location,
        address_location_name=address_location,
    )

    for pair in pairs:
        parsed = parse_field_key(pair.field_name, sub_entities=sub_entities)
        if parsed is None:
            continue

        if parsed.location_prefix is not None:
            mapped = location_map.get(normalize_location_key(parsed.location_prefix))
            if mapped:
                routed.set_location(parsed.root, mapped)

        value = coerce_value(pair.field_value)
        if is_empty(value) or parsed.attribute is None:
            continue

        if parsed.root is FieldRoot.BIRTH_DATE:
            value = normalize_date(str(value))

        routed.buffer_for(parsed.root)[parsed.attribute] = value

    return routed
