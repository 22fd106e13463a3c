"""Free-text field value coercion."""

import json
import re
from typing import Any

_NUMBER_RE = re.compile(r"^-?[0-9]+(\.[0-9]+)?$")


def coerce_value(raw: Any) -> Any:
    """Turn a user-typed field value into a typed value.

    Blank input gives ``""``; ``"true"``/``"false"`` give booleans; integer
    and decimal strings give ``int``/``float``; JSON objects and arrays are
    returned parsed (JSON ``null`` gives None). Anything else comes back as
    the original, untrimmed value.
    """
    text = "" if raw is None else str(raw).strip()
    if text == "":
        return ""
    if text == "true":
        return True
    if text == "false":
        return False
    if _NUMBER_RE.fullmatch(text):
        return float(text) if "." in text else int(text)
    try:
        parsed = json.loads(text)
    except ValueError:
        return raw
    if parsed is None or isinstance(parsed, (dict, list)):
        return parsed
    return raw


def is_empty(value: Any) -> bool:
    """True for coerced values that mean "field not provided"."""
    return value is None or value == ""
