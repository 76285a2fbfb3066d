"""Static schemas used by the disclosure calculator."""

from .fees import BORROWER_LEGAL_FEE, FEE_TABLE, FeeDefinition, get_fee

__all__ = [
    "BORROWER_LEGAL_FEE",
    "FEE_TABLE",
    "FeeDefinition",
    "get_fee",
]
