"""Lender name resolution.

Maps a free-text lender name from the CRM ("TD Canada Trust", "MCAP
Service Corp") to the short code used to pick lender-specific templates
(``TD_Gift_Letter.pdf``).
"""

import re

# Substring candidates, checked in order; the first match wins.
LENDER_CANDIDATES = (
    "td",
    "mcap",
    "cmls",
    "cwb",
    "firstnat",
    "haventree",
    "lendwise",
    "scotia",
    "strive",
    "bridgewater",
    "private",
)

# Display codes offered to the broker.
LENDER_OPTIONS = (
    "TD", "MCAP", "CMLS", "CWB", "FirstNat", "Haventree",
    "Lendwise", "Scotia", "Strive", "Bridgewater", "Private",
)

DEFAULT_LENDER_CODE = "TD"
PRIMARY_LENDER_CODE = "TD"


def resolve_lender_code(lender_name: str | None, default: str = DEFAULT_LENDER_CODE) -> str:
    """Resolve a lender name to its canonical upper-case code.

    Args:
        lender_name: Free-text lender name, possibly empty
        default: Code returned for an empty name

    Returns:
        The first matching candidate, else the sanitized first token of
        the name, else ``default``.
    """
    name = (lender_name or "").strip().lower()
    for candidate in LENDER_CANDIDATES:
        if candidate in name:
            return candidate.upper()
    if name:
        token = re.sub(r"[^0-9a-z]", "", name.split()[0])
        if token:
            return token.upper()
    return default


def lender_has_code(code: str | None, target: str) -> bool:
    """Whether a resolved lender code carries the target code."""
    return target.upper() in (code or "").upper()


def is_primary_lender(code: str | None) -> bool:
    """Whether the code belongs to the lender that requires the APA upload."""
    return lender_has_code(code, PRIMARY_LENDER_CODE)


def lender_file_name(code: str, suffix: str) -> str:
    """Build the lender-specific template name, e.g. ``TD_FCT_Auth.pdf``."""
    stem = f"{code}_{suffix}"
    return re.sub(r"\.pdf$", "", stem, flags=re.IGNORECASE) + ".pdf"
