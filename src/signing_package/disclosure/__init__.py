"""Cost-of-borrowing and APR disclosure calculations."""

from .calculator import (
    Compounding,
    DisclosureInputs,
    DisclosureResult,
    PaymentFrequency,
    balance,
    calculate,
    compute_disclosure,
    payment,
    periodic_rate,
    periods_per_year,
    solve_periodic_apr,
)

__all__ = [
    "Compounding",
    "DisclosureInputs",
    "DisclosureResult",
    "PaymentFrequency",
    "balance",
    "calculate",
    "compute_disclosure",
    "payment",
    "periodic_rate",
    "periods_per_year",
    "solve_periodic_apr",
]
