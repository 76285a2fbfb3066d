"""Utility modules for signing package assembly."""

from .coercion import (
    first_number,
    is_checked,
    lookup,
    normalize_value,
    parse_currency,
    parse_percentage,
    sanitize_name,
)

__all__ = [
    "first_number",
    "is_checked",
    "lookup",
    "normalize_value",
    "parse_currency",
    "parse_percentage",
    "sanitize_name",
]
