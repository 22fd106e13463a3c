"""API4 parameter shapes used by the orchestrator."""

from typing import Any, Dict, List, Optional

CONTACT_SELECT: List[str] = [
    "id",
    "display_name",
    "first_name",
    "last_name",
    "organization_name",
    "legal_name",
    "contact_type",
    "gender_id",
    "gender_id:name",
    "birth_date",
]

GENERIC_SELECT: List[str] = ["id", "name", "title", "subject", "display_name"]


def by_id(entity_id: Any) -> List[List[Any]]:
    return [["id", "=", entity_id]]


def contact_chain() -> Dict[str, List[Any]]:
    """Chain fetching the contact's Email, Phone and Address rows."""
    return {
        "emails": ["Email", "get", {"where": [["contact_id", "=", "$id"]]}],
        "phones": ["Phone", "get", {"where": [["contact_id", "=", "$id"]]}],
        "addresses": ["Address", "get", {"where": [["contact_id", "=", "$id"]]}],
    }


def read_shape(is_contact: bool) -> Dict[str, Any]:
    """``select`` (and ``chain`` for Contact) for reads."""
    if is_contact:
        return {"select": list(CONTACT_SELECT), "chain": contact_chain()}
    return {"select": list(GENERIC_SELECT)}


def get_params(entity_id: Any, is_contact: bool) -> Dict[str, Any]:
    return {"where": by_id(entity_id), "limit": 1, **read_shape(is_contact)}


def list_params(where: List[Any], is_contact: bool, limit: int, offset: Optional[int] = None) -> Dict[str, Any]:
    params: Dict[str, Any] = {"where": where, **read_shape(is_contact), "limit": limit}
    if offset is not None:
        params["offset"] = offset
    return params


def primary_rows_where(contact_id: Any) -> List[List[Any]]:
    return [["contact_id", "=", contact_id], ["is_primary", "=", True]]


def location_lookup_params(contact_id: Any, location_name: str) -> Dict[str, Any]:
    """Find the contact's row at one location type."""
    return {
        "where": [
            ["contact_id", "=", contact_id],
            ["location_type_id:name", "=", location_name],
        ],
        "limit": 1,
        "select": ["id"],
    }


def first_row(response: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """First row of ``values`` or an empty dict."""
    values = (response or {}).get("values") or []
    if isinstance(values, dict):
        # API4 keyed results (e.g. indexBy) come back as an object
        values = list(values.values())
    return values[0] if values else {}


def rows(response: Optional[Dict[str, Any]]) -> List[Any]:
    values = (response or {}).get("values") or []
    if isinstance(values, dict):
        return list(values.values())
    return list(values)
