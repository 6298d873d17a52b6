# api/assets/sanitize.py
"""
Value checks applied to tabular input before anything is written.
"""
import re
from datetime import datetime

from core.asset_types import is_ok_name
from core.errors import BadRequestError

# Accepted input layouts for date attributes, tried in order
DATE_FORMATS = (
    "%d-%m-%Y",
    "%Y-%m-%d",
    "%d-%b-%y",
    "%d.%m.%Y",
    "%d %m %Y",
    "%m/%d/%Y",
)
CANONICAL_DATE_FORMAT = "%Y-%m-%d"

DATE_KEYTAGS = frozenset(
    {"installation_date", "maintenance_date", "maintenance_due", "end_warranty_date"}
)
NUMERIC_KEYTAGS = frozenset(
    {"location_u_pos", "runtime", "max_power", "max_current", "weight", "phases.input", "phases.output"}
)

_NUMBER = re.compile(r"[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?")
_U_SIZE = re.compile(r"([0-9]{1,2})[uU]?")


def is_date(key: str) -> bool:
    return key in DATE_KEYTAGS or key.endswith("_date")


def is_numeric(key: str) -> bool:
    return key in NUMERIC_KEYTAGS


def check_element_identifier(param_name: str, value: str | None) -> str:
    """
    Validate an internal element name taken from a request.

    Raises:
        BadRequestError: If the value is empty or has prohibited characters
    """
    value = (value or "").strip()
    if not value:
        raise BadRequestError(f"Parameter '{param_name}' is required", key=param_name)
    if not is_ok_name(value):
        raise BadRequestError(
            f"Parameter '{param_name}' has bad value. Received '{value}'. "
            "Expected name without '_', '@', '%', ';' and '\"'",
            key=param_name,
        )
    return value


def sanitize_date(key: str, value: str) -> str:
    """Parse a date in any accepted layout; the first matching layout wins."""
    text = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).strftime(CANONICAL_DATE_FORMAT)
        except ValueError:
            continue
    raise BadRequestError(f"{key}: date format is not valid, received '{value}'", key=key)


def sanitize_value_double(key: str, value: str) -> str:
    """Accept a single numeric token; anything trailing it is an error."""
    text = value.strip()
    if not _NUMBER.fullmatch(text):
        raise BadRequestError(f"{key}: value should be a number, received '{value}'", key=key)
    return text


def check_u_size(value: str) -> str:
    """Validate a rack unit size such as ``2``, ``2U`` or ``42u``; return the digits."""
    match = _U_SIZE.fullmatch(value.strip())
    if match is None or int(match.group(1)) == 0:
        raise BadRequestError(f"u_size: value '{value}' is not a valid unit size", key="u_size")
    return match.group(1)


def sanitize_ext_value(key: str, value: str) -> str:
    """Apply the check that matches an attribute's keytag."""
    if key == "u_size":
        return check_u_size(value)
    if is_date(key):
        return sanitize_date(key, value)
    if is_numeric(key):
        return sanitize_value_double(key, value)
    return value
