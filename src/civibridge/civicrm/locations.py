"""Location-type lookup with a lazily populated cache.

CiviCRM location types (Home, Work, Billing, ...) live in the
``location_type`` option group. Users address them by name or label in
field keys such as ``Home.email`` or ``Main Office.phone``; both are
normalized (lower-cased, alphanumerics only) and mapped to the canonical
``name`` the API expects in ``location_type_id:name``.
"""

import logging
import re
from typing import Any, Dict, Optional

from civibridge.connectors import call

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

LOCATION_TYPE_QUERY: Dict[str, Any] = {
    "where": [["option_group_id:name", "=", "location_type"]],
    "select": ["name", "label"],
    "limit": 0,
}


def normalize_location_key(value: Optional[str]) -> str:
    """Lower-case ``value`` and strip everything outside ``[a-z0-9]``."""
    return _NON_ALNUM.sub("", str(value or "").lower())


def build_location_map(rows: Any) -> Dict[str, str]:
    """Map normalized name and label tokens to the canonical name."""
    mapping: Dict[str, str] = {}
    for row in rows or []:
        name = row.get("name") or ""
        label = row.get("label") or ""
        for token in (normalize_location_key(name), normalize_location_key(label)):
            if token:
                mapping[token] = name
    return mapping


class LocationTypeResolver:
    """Owns the location-type map for the lifetime of the process.

    The map is fetched on first use and reused afterwards. Concurrent first
    calls may each fetch; the result is identical so no lock is taken. A
    failed fetch leaves the cache empty so the next call retries.
    """

    def __init__(self, transport: Any):
        self.transport = transport
        self._cache: Optional[Dict[str, str]] = None

    @property
    def is_populated(self) -> bool:
        return self._cache is not None

    def resolve_location_map(self) -> Dict[str, str]:
        """Return the cached map, fetching it once if needed."""
        if self._cache is not None:
            return self._cache

        response = call(self.transport, "OptionValue", "get", dict(LOCATION_TYPE_QUERY))
        mapping = build_location_map(response.get("values"))
        self._cache = mapping
        logger.info(f"Cached {len(mapping)} location type keys")
        return mapping

    def invalidate(self) -> None:
        """Drop the cached map; the next resolve fetches again."""
        logger.debug("Location type cache invalidated")
        self._cache = None

    def refresh(self) -> Dict[str, str]:
        """Fetch the map again unconditionally."""
        self.invalidate()
        return self.resolve_location_map()
