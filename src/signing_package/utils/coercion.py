"""Coercion helpers for loosely-typed CRM record values.

CRM exports mix numbers, formatted currency strings ("$1,234.50"),
percentages ("5.25%") and blank strings. These helpers turn them into
floats for the disclosure math and into strings for template fields.
"""

import re
import unicodedata
from typing import Any, Mapping, Optional

CHECKED_PATTERN = re.compile(r"^(yes|true|1|x)$", re.IGNORECASE)


def normalize_value(value: Any) -> str:
    """Normalize a record value for writing into a template field."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    return str(value)


def is_checked(value: str) -> bool:
    """Whether a normalized value should tick a checkbox."""
    return bool(CHECKED_PATTERN.match(value.strip()))


def lookup(record: Mapping[str, Any], key: str) -> Any:
    """Resolve a record key by exact match, else by its last dotted segment.

    Returns None when neither form is present.
    """
    if key in record and record[key] is not None:
        return record[key]
    leaf = key.rsplit(".", 1)[-1] if "." in key else key
    if leaf in record:
        return record[leaf]
    return None


def parse_currency(value: Any) -> Optional[float]:
    """Parse a currency value, removing currency symbols.

    Returns None for blank or unparseable values.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)

    cleaned = str(value).strip()
    cleaned = re.sub(r"[$€£¥]", "", cleaned)
    cleaned = cleaned.replace(",", "")
    cleaned = cleaned.replace(" ", "")

    # Handle parentheses for negative (accounting format)
    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = "-" + cleaned[1:-1]

    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_percentage(value: Any) -> Optional[float]:
    """Parse a percentage value, keeping percent form ("5.25%" -> 5.25)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)

    cleaned = str(value).strip().replace("%", "").replace(" ", "")
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def first_number(record: Mapping[str, Any], *keys: str) -> Optional[float]:
    """Return the first key that parses to a number."""
    for key in keys:
        parsed = parse_currency(lookup(record, key))
        if parsed is not None:
            return parsed
    return None


def sanitize_name(value: Any) -> str:
    """Strip characters that are unsafe in output file names."""
    text = unicodedata.normalize("NFKD", str(value or ""))
    return re.sub(r"[^\w\- ]+", "", text).strip()
