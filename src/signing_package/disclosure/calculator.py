"""Cost-of-borrowing disclosure calculator.

Pure functions from a CRM record to the derived figures printed on the
cost-of-borrowing (COB) disclosure: periodic payment, balance at the end of
the term, interest over the term, fees, total cost of borrowing and APR.

Rates follow the Canadian mortgage convention: the nominal contract rate is
compounded semi-annually unless the record says otherwise, and the
per-payment rate is derived from the effective annual rate.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from ..schemas.fees import FEE_TABLE, FeeDefinition
from ..utils.coercion import first_number, lookup, parse_percentage

# Record keys read by the calculator
PRINCIPAL_KEYS = ("Total_Mortgage_Amount_incl_Insurance", "Mortgage_Amount")
RATE_KEY = "Interest_Rate"
COMPOUNDING_KEY = "Compounding"
FREQUENCY_KEY = "Payment_Frequency"
TERM_MONTHS_KEY = "Term_Months"
TERM_YEARS_KEY = "Term_Years"
AMORTIZATION_MONTHS_KEY = "Amortization_Months"
AMORTIZATION_YEARS_KEY = "Amortization_Years"
PAYMENT_KEY = "Payment_Amount"

# APR solver
APR_TOLERANCE = 1e-7
APR_MAX_ITERATIONS = 60
APR_MAX_EXPANSIONS = 60
APR_MIN_BRACKET = 1e-4


class Compounding(str, Enum):
    """Compounding convention of the nominal contract rate."""
    SEMI_ANNUAL = "semi-annual"
    ANNUAL = "annual"

    @classmethod
    def parse(cls, value: Any) -> "Compounding":
        if isinstance(value, Compounding):
            return value
        text = _squash(value)
        if not text:
            return cls.SEMI_ANNUAL
        if text.startswith("semi"):
            return cls.SEMI_ANNUAL
        if text in ("annual", "annually", "yearly"):
            return cls.ANNUAL
        raise ValueError(f"Unsupported compounding: {value!r}")


class PaymentFrequency(str, Enum):
    """Payment frequencies offered on Canadian residential mortgages."""
    MONTHLY = "monthly"
    SEMI_MONTHLY = "semi-monthly"
    BI_WEEKLY = "bi-weekly"
    ACCELERATED_BI_WEEKLY = "accelerated-bi-weekly"
    WEEKLY = "weekly"

    @property
    def periods_per_year(self) -> int:
        return _PERIODS_PER_YEAR[self]

    @classmethod
    def parse(cls, value: Any) -> "PaymentFrequency":
        if isinstance(value, PaymentFrequency):
            return value
        text = _squash(value)
        if not text:
            return cls.MONTHLY
        for frequency in cls:
            if text == _squash(frequency.value):
                return frequency
        raise ValueError(f"Unsupported payment frequency: {value!r}")


_PERIODS_PER_YEAR = {
    PaymentFrequency.MONTHLY: 12,
    PaymentFrequency.SEMI_MONTHLY: 24,
    PaymentFrequency.BI_WEEKLY: 26,
    PaymentFrequency.ACCELERATED_BI_WEEKLY: 26,
    PaymentFrequency.WEEKLY: 52,
}


def _squash(value: Any) -> str:
    return "".join(ch for ch in str(value or "").lower() if ch.isalnum())


def periods_per_year(frequency: "PaymentFrequency | str") -> int:
    return PaymentFrequency.parse(frequency).periods_per_year


def effective_annual_rate(annual_rate_pct: float, compounding: "Compounding | str") -> float:
    """Convert a nominal percentage rate to an effective annual decimal rate."""
    nominal = annual_rate_pct / 100
    if Compounding.parse(compounding) == Compounding.SEMI_ANNUAL:
        return (1 + nominal / 2) ** 2 - 1
    return nominal


def periodic_rate(
    annual_rate_pct: float,
    compounding: "Compounding | str",
    frequency: "PaymentFrequency | str",
) -> float:
    """Per-payment rate equivalent to the effective annual rate."""
    effective = effective_annual_rate(annual_rate_pct, compounding)
    return (1 + effective) ** (1 / periods_per_year(frequency)) - 1


def months_to_periods(months: float, frequency: "PaymentFrequency | str") -> int:
    """Whole payment periods in a span of months, rounding halves up."""
    return math.floor(months / 12 * periods_per_year(frequency) + 0.5)


def annuity_payment(principal: float, rate: float, nper: int) -> float:
    """Level payment that amortizes ``principal`` over ``nper`` periods."""
    if nper <= 0:
        return 0.0
    if rate == 0:
        return principal / nper
    return principal * rate / (1 - (1 + rate) ** -nper)


def remaining_balance(principal: float, rate: float, payment_amount: float, periods: int) -> float:
    """Outstanding balance after ``periods`` payments, floored at zero."""
    if rate == 0:
        balance = principal - payment_amount * periods
    else:
        growth = (1 + rate) ** periods
        balance = principal * growth - payment_amount * (growth - 1) / rate
    return max(0.0, balance)


def payment(
    principal: float,
    annual_rate_pct: float,
    compounding: "Compounding | str",
    frequency: "PaymentFrequency | str",
    amortization_months: float,
) -> float:
    """Periodic payment for a fully amortizing mortgage."""
    rate = periodic_rate(annual_rate_pct, compounding, frequency)
    return annuity_payment(principal, rate, months_to_periods(amortization_months, frequency))


def balance(
    principal: float,
    annual_rate_pct: float,
    compounding: "Compounding | str",
    frequency: "PaymentFrequency | str",
    amortization_months: float,
    periods_elapsed: int,
    payment_amount: Optional[float] = None,
) -> float:
    """Outstanding balance after ``periods_elapsed`` payments.

    When ``payment_amount`` is omitted the amortizing payment is used.
    """
    rate = periodic_rate(annual_rate_pct, compounding, frequency)
    if payment_amount is None:
        payment_amount = annuity_payment(
            principal, rate, months_to_periods(amortization_months, frequency)
        )
    return remaining_balance(principal, rate, payment_amount, periods_elapsed)


def _present_value(payment_amount: float, periods: int, final_balance: float, rate: float) -> float:
    if rate == 0:
        return payment_amount * periods + final_balance
    discount = (1 + rate) ** -periods
    return payment_amount * (1 - discount) / rate + final_balance * discount


def solve_periodic_apr(
    net_advance: float,
    payment_amount: float,
    periods: int,
    final_balance: float,
    initial_guess: float = 0.0,
) -> float:
    """Find the per-period rate at which the cash flows are worth the net advance.

    Solves ``PV(payments) + PV(balance) - net_advance = 0`` by bisection. The
    present value decreases monotonically in the rate, so the upper bracket
    is doubled until the sign flips.

    Raises:
        ValueError: If no sign change is found within the bracket limit
    """

    def npv(rate: float) -> float:
        return _present_value(payment_amount, periods, final_balance, rate) - net_advance

    low = 0.0
    if npv(low) <= 0:
        return 0.0

    high = max(2 * initial_guess, APR_MIN_BRACKET)
    expansions = 0
    while npv(high) > 0:
        high *= 2
        expansions += 1
        if expansions > APR_MAX_EXPANSIONS:
            raise ValueError("APR solver could not bracket a root")

    for _ in range(APR_MAX_ITERATIONS):
        mid = (low + high) / 2
        residual = npv(mid)
        if abs(residual) < APR_TOLERANCE:
            return mid
        if residual > 0:
            low = mid
        else:
            high = mid
    return (low + high) / 2


def annualize_rate(rate: float, ppy: int, compounding: "Compounding | str") -> float:
    """Express a per-period rate as an annual percentage in the contract's compounding."""
    if Compounding.parse(compounding) == Compounding.SEMI_ANNUAL:
        return 2 * ((1 + rate) ** (ppy / 2) - 1) * 100
    return ((1 + rate) ** ppy - 1) * 100


def apply_apr_guard_rails(apr: float, contract_rate: float, total_fees: float) -> float:
    """APR never reports below the contract rate, and exceeds it whenever fees exist."""
    apr = max(apr, contract_rate)
    if total_fees > 0 and round(apr, 2) <= round(contract_rate, 2):
        apr = round(contract_rate, 2) + 0.01
    return apr


@dataclass
class DisclosureInputs:
    """Loan terms read from the CRM record."""

    principal: float
    annual_rate: float  # percent, e.g. 5.25
    compounding: Compounding = Compounding.SEMI_ANNUAL
    frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    term_months: float = 0.0
    amortization_months: float = 0.0
    payment: Optional[float] = None
    fees: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "DisclosureInputs":
        term_months = first_number(record, TERM_MONTHS_KEY)
        if term_months is None:
            term_years = first_number(record, TERM_YEARS_KEY)
            term_months = term_years * 12 if term_years is not None else 0.0

        amortization_months = first_number(record, AMORTIZATION_MONTHS_KEY)
        if amortization_months is None:
            amortization_years = first_number(record, AMORTIZATION_YEARS_KEY)
            amortization_months = amortization_years * 12 if amortization_years is not None else 0.0

        supplied_payment = first_number(record, PAYMENT_KEY)

        return cls(
            principal=first_number(record, *PRINCIPAL_KEYS) or 0.0,
            annual_rate=parse_percentage(lookup(record, RATE_KEY)) or 0.0,
            compounding=Compounding.parse(lookup(record, COMPOUNDING_KEY)),
            frequency=PaymentFrequency.parse(lookup(record, FREQUENCY_KEY)),
            term_months=term_months,
            amortization_months=amortization_months,
            payment=supplied_payment if supplied_payment and supplied_payment > 0 else None,
            fees={fee.key: first_number(record, fee.key) or 0.0 for fee in FEE_TABLE},
        )


@dataclass
class DisclosureResult:
    """Derived COB figures for one record."""

    inputs: DisclosureInputs
    periods_per_year: int
    periodic_rate: float
    amortization_periods: int
    term_periods: int
    payment: float
    balance_at_term: float
    interest_to_term: float
    total_fees: float
    total_cost_of_borrowing: float
    apr: float
    fee_checkboxes: dict[str, bool] = field(default_factory=dict)

    def to_fields(self) -> dict[str, Any]:
        """Named fields merged into the record before filling the disclosure."""
        fields: dict[str, Any] = {
            "COB_Payment_Amount": _money(self.payment),
            "COB_Payment_Frequency": self.inputs.frequency.value,
            "COB_Periods_To_Term": self.term_periods,
            "COB_Balance_At_Term": _money(self.balance_at_term),
            "COB_Interest_To_Term": _money(self.interest_to_term),
            "COB_Total_Fees": _money(self.total_fees),
            "COB_Total_Cost_Of_Borrowing": _money(self.total_cost_of_borrowing),
            "COB_APR": f"{self.apr:.2f}",
        }
        fields.update(self.fee_checkboxes)
        return fields

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "principal": self.inputs.principal,
            "contractRate": self.inputs.annual_rate,
            "compounding": self.inputs.compounding.value,
            "frequency": self.inputs.frequency.value,
            "periodicRate": self.periodic_rate,
            "amortizationPeriods": self.amortization_periods,
            "termPeriods": self.term_periods,
            "payment": round(self.payment, 2),
            "balanceAtTerm": round(self.balance_at_term, 2),
            "interestToTerm": round(self.interest_to_term, 2),
            "totalFees": round(self.total_fees, 2),
            "totalCostOfBorrowing": round(self.total_cost_of_borrowing, 2),
            "apr": round(self.apr, 2),
            "feeCheckboxes": dict(self.fee_checkboxes),
        }


def _money(value: float) -> str:
    return f"{value:,.2f}"


def _fee_checkbox(fee: FeeDefinition, amount: float) -> bool:
    return amount > 0 and fee.counts_toward_deduction


def calculate(inputs: DisclosureInputs) -> DisclosureResult:
    """Compute the disclosure figures for a set of loan terms."""
    ppy = inputs.frequency.periods_per_year
    rate = periodic_rate(inputs.annual_rate, inputs.compounding, inputs.frequency)
    nper = months_to_periods(inputs.amortization_months, inputs.frequency)
    k = months_to_periods(inputs.term_months, inputs.frequency)
    principal = inputs.principal

    payment_amount = (
        inputs.payment if inputs.payment is not None else annuity_payment(principal, rate, nper)
    )
    balance_at_term = remaining_balance(principal, rate, payment_amount, k)
    interest_to_term = max(0.0, payment_amount * k - max(0.0, principal - balance_at_term))

    total_fees = 0.0
    checkboxes: dict[str, bool] = {}
    for fee in FEE_TABLE:
        amount = inputs.fees.get(fee.key, 0.0)
        if fee.counts_toward_apr and amount > 0:
            total_fees += amount
        checkboxes[fee.checkbox_field] = _fee_checkbox(fee, amount)

    net_advance = principal - total_fees
    if k > 0 and net_advance > 0:
        rho = solve_periodic_apr(net_advance, payment_amount, k, balance_at_term, rate)
        raw_apr = annualize_rate(rho, ppy, inputs.compounding)
    else:
        raw_apr = inputs.annual_rate

    return DisclosureResult(
        inputs=inputs,
        periods_per_year=ppy,
        periodic_rate=rate,
        amortization_periods=nper,
        term_periods=k,
        payment=payment_amount,
        balance_at_term=balance_at_term,
        interest_to_term=interest_to_term,
        total_fees=total_fees,
        total_cost_of_borrowing=interest_to_term + total_fees,
        apr=apply_apr_guard_rails(raw_apr, inputs.annual_rate, total_fees),
        fee_checkboxes=checkboxes,
    )


def compute_disclosure(record: Mapping[str, Any]) -> DisclosureResult:
    """Compute the disclosure figures straight from a CRM record."""
    return calculate(DisclosureInputs.from_record(record))
