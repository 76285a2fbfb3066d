"""Tests for the cost-of-borrowing disclosure calculator."""

import re

import pytest

from signing_package.disclosure import (
    Compounding,
    DisclosureInputs,
    PaymentFrequency,
    balance,
    calculate,
    compute_disclosure,
    payment,
    periodic_rate,
    periods_per_year,
    solve_periodic_apr,
)
from signing_package.disclosure.calculator import (
    annualize_rate,
    apply_apr_guard_rails,
    months_to_periods,
)
from signing_package.schemas.fees import FEE_TABLE, get_fee

MONEY_PATTERN = re.compile(r"^\d{1,3}(,\d{3})*\.\d{2}$")


@pytest.fixture
def base_record():
    """300k at 5% semi-annual, monthly, 25-year amortization, 5-year term."""
    return {
        "Total_Mortgage_Amount_incl_Insurance": "$300,000.00",
        "Interest_Rate": "5%",
        "Compounding": "Semi-Annual",
        "Payment_Frequency": "Monthly",
        "Amortization_Years": 25,
        "Term_Years": 5,
    }


class TestRates:
    """Tests for rate conversions."""

    @pytest.mark.parametrize(
        "frequency,expected",
        [
            ("monthly", 12),
            ("Semi-Monthly", 24),
            ("bi-weekly", 26),
            ("Accelerated Bi-Weekly", 26),
            ("weekly", 52),
        ],
    )
    def test_periods_per_year(self, frequency, expected):
        assert periods_per_year(frequency) == expected

    def test_semi_annual_periodic_rate(self):
        # six monthly periods compound to one half-year at R/2
        rate = periodic_rate(5.0, Compounding.SEMI_ANNUAL, PaymentFrequency.MONTHLY)
        assert (1 + rate) ** 6 == pytest.approx(1.025, rel=1e-12)

    def test_annual_periodic_rate(self):
        rate = periodic_rate(5.0, Compounding.ANNUAL, PaymentFrequency.MONTHLY)
        assert (1 + rate) ** 12 == pytest.approx(1.05, rel=1e-12)

    def test_months_to_periods_rounds(self):
        assert months_to_periods(300, "monthly") == 300
        assert months_to_periods(60, "bi-weekly") == 130
        assert months_to_periods(0, "weekly") == 0

    def test_unknown_compounding(self):
        with pytest.raises(ValueError, match="compounding"):
            Compounding.parse("quarterly")

    def test_unknown_frequency(self):
        with pytest.raises(ValueError, match="frequency"):
            PaymentFrequency.parse("fortnightly-ish")


class TestPaymentAndBalance:
    """Tests for payment and balance formulas."""

    def test_semi_annual_scenario(self):
        # Semi-annual formula result, not the quoted 1734.51 (DESIGN.md open question 1)
        assert payment(300000, 5.0, "semi-annual", "monthly", 300) == pytest.approx(1744.81, abs=0.05)

    def test_annual_scenario(self):
        assert payment(300000, 5.0, "annual", "monthly", 300) == pytest.approx(1734.42, abs=0.05)

    def test_zero_rate_payment(self):
        assert payment(120000, 0.0, "semi-annual", "monthly", 120) == pytest.approx(1000.0)

    def test_zero_rate_balance(self):
        assert balance(120000, 0.0, "semi-annual", "monthly", 120, 24) == pytest.approx(96000.0)

    def test_zero_rate_balance_floors_at_zero(self):
        assert balance(120000, 0.0, "annual", "monthly", 120, 200, payment_amount=1000.0) == 0.0

    def test_balance_at_start_is_principal(self):
        assert balance(300000, 5.0, "semi-annual", "monthly", 300, 0) == pytest.approx(300000.0)

    def test_balance_at_maturity_is_zero(self):
        assert balance(300000, 5.0, "semi-annual", "monthly", 300, 300) == pytest.approx(0.0, abs=1e-6)

    def test_zero_amortization_payment(self):
        assert payment(300000, 5.0, "semi-annual", "monthly", 0) == 0.0


class TestAprSolver:
    """Tests for the APR root finder and annualization."""

    def test_recovers_contract_rate_without_fees(self):
        rate = periodic_rate(5.0, "semi-annual", "monthly")
        amount = payment(300000, 5.0, "semi-annual", "monthly", 300)
        final = balance(300000, 5.0, "semi-annual", "monthly", 300, 60)

        solved = solve_periodic_apr(300000, amount, 60, final, rate)

        assert solved == pytest.approx(rate, rel=1e-6)

    def test_fees_raise_rate(self):
        rate = periodic_rate(5.0, "semi-annual", "monthly")
        amount = payment(300000, 5.0, "semi-annual", "monthly", 300)
        final = balance(300000, 5.0, "semi-annual", "monthly", 300, 60)

        solved = solve_periodic_apr(300000 - 2000, amount, 60, final, rate)

        assert solved > rate

    def test_non_positive_npv_at_zero(self):
        assert solve_periodic_apr(10000, 100, 10, 0) == 0.0

    def test_annualize_semi_annual(self):
        rate = periodic_rate(5.0, "semi-annual", "monthly")
        assert annualize_rate(rate, 12, "semi-annual") == pytest.approx(5.0, abs=1e-9)

    def test_annualize_annual(self):
        rate = periodic_rate(5.0, "annual", "monthly")
        assert annualize_rate(rate, 12, "annual") == pytest.approx(5.0, abs=1e-9)

    def test_guard_rails_floor_at_contract_rate(self):
        assert apply_apr_guard_rails(4.9, 5.0, 0) == 5.0

    def test_guard_rails_bump_with_fees(self):
        assert apply_apr_guard_rails(5.001, 5.0, 100) == pytest.approx(5.01)

    def test_guard_rails_leave_higher_apr(self):
        assert apply_apr_guard_rails(5.2, 5.0, 100) == 5.2


class TestComputeDisclosure:
    """Scenario tests for compute_disclosure."""

    def test_zero_fee_apr_equals_contract_rate(self, base_record):
        result = compute_disclosure(base_record)

        assert result.total_fees == 0
        assert result.term_periods == 60
        assert result.amortization_periods == 300
        assert result.to_fields()["COB_APR"] == "5.00"

    def test_to_dict(self, base_record):
        data = compute_disclosure(base_record).to_dict()

        assert data["compounding"] == "semi-annual"
        assert data["termPeriods"] == 60
        assert data["apr"] == 5.0
        assert data["payment"] == pytest.approx(1744.81, abs=0.05)
        assert data["totalFees"] == 0

    def test_fee_raises_apr(self, base_record):
        base_record["Broker_Fee"] = "2,000"

        result = compute_disclosure(base_record)

        assert result.total_fees == 2000
        assert round(result.apr, 2) > 5.00

    def test_apr_never_below_contract_rate(self, base_record):
        for fees in (0, 1, 500, 5000):
            base_record["Lender_Fee"] = fees
            result = compute_disclosure(base_record)
            assert result.apr >= 5.0
            if fees:
                assert round(result.apr, 2) > 5.0

    def test_fee_tags(self, base_record):
        base_record.update({
            "Broker_Fee": 2000,
            "Appraisal_Fee": 400,
            "Title_Insurance_Fee": 300,
            "Legal_Fee_Borrower": 1000,
        })

        result = compute_disclosure(base_record)
        fields = result.to_fields()

        # broker + appraisal count toward APR; title insurance and borrower's lawyer do not
        assert result.total_fees == 2400
        assert fields["Broker_Fee_Deducted"] is True
        assert fields["Appraisal_Fee_Deducted"] is False
        assert fields["Title_Insurance_Fee_Deducted"] is True
        assert fields["Legal_Fee_Borrower_Deducted"] is False
        assert fields["Lender_Fee_Deducted"] is False

    def test_total_cost_of_borrowing(self, base_record):
        base_record["Broker_Fee"] = 1500

        result = compute_disclosure(base_record)

        assert result.interest_to_term > 0
        assert result.total_cost_of_borrowing == pytest.approx(result.interest_to_term + 1500)

    def test_interest_to_term(self, base_record):
        result = compute_disclosure(base_record)

        principal_repaid = 300000 - result.balance_at_term
        assert result.interest_to_term == pytest.approx(result.payment * 60 - principal_repaid)

    def test_no_term_uses_contract_rate(self, base_record):
        del base_record["Term_Years"]

        result = compute_disclosure(base_record)

        assert result.term_periods == 0
        assert result.apr == 5.0
        assert result.balance_at_term == pytest.approx(300000.0)

    def test_term_months_preferred_over_years(self, base_record):
        base_record["Term_Months"] = 36

        assert compute_disclosure(base_record).term_periods == 36

    def test_supplied_payment_used(self, base_record):
        base_record["Payment_Amount"] = "1,800.00"

        assert compute_disclosure(base_record).payment == 1800.0

    def test_principal_fallback_key(self, base_record):
        del base_record["Total_Mortgage_Amount_incl_Insurance"]
        base_record["Mortgage_Amount"] = 250000

        assert compute_disclosure(base_record).inputs.principal == 250000

    def test_output_formats(self, base_record):
        base_record["Broker_Fee"] = 2000

        fields = compute_disclosure(base_record).to_fields()

        for key in (
            "COB_Payment_Amount",
            "COB_Balance_At_Term",
            "COB_Interest_To_Term",
            "COB_Total_Fees",
            "COB_Total_Cost_Of_Borrowing",
        ):
            assert MONEY_PATTERN.match(fields[key]), key
        assert re.match(r"^\d+\.\d{2}$", fields["COB_APR"])
        assert fields["COB_Total_Fees"] == "2,000.00"
        assert fields["COB_Payment_Frequency"] == "monthly"
        assert fields["COB_Periods_To_Term"] == 60

    def test_bad_frequency_raises(self, base_record):
        base_record["Payment_Frequency"] = "whenever"

        with pytest.raises(ValueError):
            compute_disclosure(base_record)

    def test_calculate_from_inputs(self):
        inputs = DisclosureInputs(
            principal=120000,
            annual_rate=0.0,
            frequency=PaymentFrequency.MONTHLY,
            term_months=24,
            amortization_months=120,
        )

        result = calculate(inputs)

        assert result.payment == pytest.approx(1000.0)
        assert result.balance_at_term == pytest.approx(96000.0)
        assert result.interest_to_term == pytest.approx(0.0)
        assert result.apr == 0.0


class TestFeeTable:
    def test_borrower_legal_fee_excluded(self):
        fee = get_fee("Legal_Fee_Borrower")

        assert fee.policy_excluded
        assert not fee.counts_toward_apr
        assert not fee.counts_toward_deduction

    def test_unknown_fee(self):
        with pytest.raises(KeyError):
            get_fee("Courier_Fee")

    def test_keys_unique(self):
        keys = [fee.key for fee in FEE_TABLE]
        assert len(keys) == len(set(keys))
