"""Date normalization to ISO ``YYYY-MM-DD``.

Recognized inputs, tried in order:
- ``YYYY-MM-DD`` (already canonical)
- ``DD/MM/YYYY``
- ``DD-MM-YYYY``
- ``YYYY/MM/DD``
- ``YYYY.MM.DD``

An extended ISO timestamp (``YYYY-MM-DDTHH:MM[:SS[.ffffff]][offset]``) is
validated and returned unchanged. Anything else is rejected.
"""

import re
from datetime import date, datetime

from civibridge.civicrm.errors import InvalidDateError

_ISO = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")
_DMY_SLASH = re.compile(r"^([0-9]{2})/([0-9]{2})/([0-9]{4})$")
_DMY_DASH = re.compile(r"^([0-9]{2})-([0-9]{2})-([0-9]{4})$")
_YMD_SLASH = re.compile(r"^[0-9]{4}/[0-9]{2}/[0-9]{2}$")
_YMD_DOT = re.compile(r"^[0-9]{4}\.[0-9]{2}\.[0-9]{2}$")
_TIMESTAMP = re.compile(
    r"^[0-9]{4}-[0-9]{2}-[0-9]{2}[T ][0-9]{2}:[0-9]{2}(:[0-9]{2}(\.([0-9]{3}|[0-9]{6}))?)?(Z|[+-][0-9]{2}:[0-9]{2})?$"
)


def _rewrite(value: str) -> str:
    if _ISO.fullmatch(value):
        return value
    m = _DMY_SLASH.fullmatch(value) or _DMY_DASH.fullmatch(value)
    if m:
        day, month, year = m.groups()
        return f"{year}-{month}-{day}"
    if _YMD_SLASH.fullmatch(value):
        return value.replace("/", "-")
    if _YMD_DOT.fullmatch(value):
        return value.replace(".", "-")
    return value


def _is_valid(value: str) -> bool:
    if _ISO.fullmatch(value):
        try:
            date.fromisoformat(value)
        except ValueError:
            return False
        return True
    if not _TIMESTAMP.fullmatch(value):
        return False
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


def normalize_date(value: str) -> str:
    """Rewrite ``value`` as ``YYYY-MM-DD`` where the format is recognized.

    Raises:
        InvalidDateError: If the (rewritten) value is not a real date
    """
    if not value:
        return value
    rewritten = _rewrite(value.strip())
    if not _is_valid(rewritten):
        raise InvalidDateError(value)
    return rewritten
