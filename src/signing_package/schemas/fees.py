"""Fee definitions for the cost-of-borrowing disclosure.

Each fee category is tagged independently for:
- ``deduct``: whether it ticks the "deducted from proceeds" checkbox
- ``include_in_apr``: whether it counts toward the APR fee total

The borrower's own lawyer is retained by the borrower, not the lender, so
that fee is excluded from both by policy regardless of its tags.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class FeeDefinition:
    """A single fee category on the disclosure."""

    key: str  # Record key holding the fee amount
    name: str  # Display name
    deduct: bool = False
    include_in_apr: bool = True
    policy_excluded: bool = False

    @property
    def checkbox_field(self) -> str:
        return f"{self.key}_Deducted"

    @property
    def counts_toward_apr(self) -> bool:
        return self.include_in_apr and not self.policy_excluded

    @property
    def counts_toward_deduction(self) -> bool:
        return self.deduct and not self.policy_excluded


BORROWER_LEGAL_FEE = FeeDefinition(
    key="Legal_Fee_Borrower",
    name="Borrower's Lawyer Fee",
    deduct=False,
    include_in_apr=False,
    policy_excluded=True,
)

FEE_TABLE: tuple[FeeDefinition, ...] = (
    FeeDefinition(key="Broker_Fee", name="Broker Fee", deduct=True, include_in_apr=True),
    FeeDefinition(key="Lender_Fee", name="Lender Fee", deduct=True, include_in_apr=True),
    FeeDefinition(key="Application_Fee", name="Application / Admin Fee", deduct=True, include_in_apr=True),
    FeeDefinition(key="Appraisal_Fee", name="Appraisal Fee", deduct=False, include_in_apr=True),
    FeeDefinition(key="Inspection_Fee", name="Inspection Fee", deduct=False, include_in_apr=True),
    FeeDefinition(key="Legal_Fee_Lender", name="Lender's Legal Costs", deduct=True, include_in_apr=True),
    FeeDefinition(key="Title_Insurance_Fee", name="Title Insurance", deduct=True, include_in_apr=False),
    BORROWER_LEGAL_FEE,
)


def get_fee(key: str) -> FeeDefinition:
    """Get a fee definition by its record key.

    Raises:
        KeyError: If the key is not a known fee category
    """
    for fee in FEE_TABLE:
        if fee.key == key:
            return fee
    raise KeyError(f"Unknown fee: '{key}'. Available fees: {[f.key for f in FEE_TABLE]}")
