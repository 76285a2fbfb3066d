"""PII-safe logging -- drop-in replacement for print().

CRM records carry borrower identifiers (SIN, date of birth, email). Any
record or dict handed to ``safe_log`` is deep-copied and redacted before
it is written to stdout (CloudWatch Logs when running in Lambda).

Usage:
    from signing_package.common.safe_log import safe_log
    safe_log("Building signing package", lender="TD", data=record)
"""

import copy
import json
import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Set

MAX_DATA_CHARS = 10240


def _redact_sin(value: str) -> str:
    digits = re.sub(r"[^0-9]", "", str(value))
    return f"***-***-{digits[-3:]}" if len(digits) >= 3 else "***-***-***"


def _redact_dob(value: str) -> str:
    match = re.search(r"(19|20)\d{2}", str(value))
    return f"****-**-** ({match.group()})" if match else "****-**-**"


def _redact_email(value: str) -> str:
    text = str(value)
    if "@" not in text:
        return "***REDACTED***"
    local, _, domain = text.partition("@")
    return f"{local[:1]}***@{domain}"


_REDACTORS = {
    "sin": _redact_sin,
    "dob": _redact_dob,
    "email": _redact_email,
}

# Record keys compared case-insensitively against these names
_PII_FIELDS = {
    "sin": "sin",
    "social_insurance_number": "sin",
    "sin_number": "sin",
    "date_of_birth": "dob",
    "dateofbirth": "dob",
    "dob": "dob",
    "birth_date": "dob",
    "email": "email",
    "secondary_email": "email",
    "contact_email_2": "email",
}


def _pii_type(key: Any) -> Optional[str]:
    if not isinstance(key, str):
        return None
    leaf = key.rsplit(".", 1)[-1].lower()
    return _PII_FIELDS.get(leaf)


def _redact_by_field_name(data: Any, visited: Optional[Set[int]] = None) -> Any:
    """Walk structure and redact known PII field names."""
    if visited is None:
        visited = set()
    obj_id = id(data)
    if obj_id in visited:
        return data
    visited.add(obj_id)

    if isinstance(data, dict):
        result = {}
        for k, v in data.items():
            pii_type = _pii_type(k)
            if pii_type and v not in (None, ""):
                result[k] = _REDACTORS[pii_type](v)
            else:
                result[k] = _redact_by_field_name(v, visited)
        return result
    elif isinstance(data, list):
        return [_redact_by_field_name(item, visited) for item in data]
    return data


def redact_pii(data: Any) -> Any:
    """Deep-copy data and redact all PII fields."""
    if data is None:
        return None
    try:
        redacted = copy.deepcopy(data)
    except Exception:
        return {"__redacted__": "deep copy failed"}
    return _redact_by_field_name(redacted)


class _SafeEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, (bytes, bytearray)):
            return f"<{len(obj)} bytes>"
        return str(obj)


def safe_log(message: str, *args, data: Any = None, **kwargs) -> None:
    """PII-safe logging function."""
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    parts = [f"[{timestamp}]", message]

    for arg in args:
        if isinstance(arg, (dict, list)):
            parts.append(json.dumps(redact_pii(arg), cls=_SafeEncoder))
        else:
            parts.append(str(arg))

    for k, v in kwargs.items():
        if isinstance(v, (dict, list)):
            parts.append(f"{k}={json.dumps(redact_pii(v), cls=_SafeEncoder)}")
        else:
            parts.append(f"{k}={v}")

    if data is not None:
        redacted_data = redact_pii(data)
        try:
            data_str = json.dumps(redacted_data, cls=_SafeEncoder)
            if len(data_str) > MAX_DATA_CHARS:
                data_str = data_str[:MAX_DATA_CHARS] + "... [TRUNCATED]"
            parts.append(data_str)
        except (TypeError, ValueError):
            parts.append(str(redacted_data)[:MAX_DATA_CHARS])

    print(" ".join(parts), flush=True)
