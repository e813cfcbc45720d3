"""
Financial calculator: invoice pending, LOA aggregation, pending percentages
"""
from decimal import Decimal

from conftest import new_id, run

from loa_core.financial_calculator import (
    FinancialCalculator, InvoiceTotals, calculate_invoice_pending,
    calculate_pending_percentages, resolve_loa_financials
)


class TestInvoicePending:

    def test_simple_pending(self):
        assert calculate_invoice_pending(100, 40, 10) == 50

    def test_overpayment_is_not_clamped(self):
        assert calculate_invoice_pending(100, 120, 0) == -20

    def test_mixed_inputs_stay_exact(self):
        pending = calculate_invoice_pending(0.3, Decimal("0.1"), 0.2)
        assert isinstance(pending, Decimal)
        assert pending == Decimal("0")


class TestAggregateInvoiceTotals:
    """Totals over every bill of an LOA"""

    def test_no_bills_gives_zero_totals(self, repos):
        totals = run(FinancialCalculator(repos.bills).aggregate_invoice_totals(new_id()))
        assert totals == InvoiceTotals(0.0, 0.0, 0.0, 0.0)

    def test_totals_over_two_bills(self, repos):
        loa_id = new_id()
        run(repos.bills.create({"loa_id": loa_id, "invoice_amount": 100, "amount_received": 40, "amount_deducted": 10}))
        run(repos.bills.create({"loa_id": loa_id, "invoice_amount": 50, "amount_received": 50, "amount_deducted": 0}))
        run(repos.bills.create({"loa_id": new_id(), "invoice_amount": 999}))

        totals = run(FinancialCalculator(repos.bills).aggregate_invoice_totals(loa_id))
        assert totals.to_dict() == {
            "total_billed": 150.0,
            "total_received": 90.0,
            "total_deducted": 10.0,
            "total_pending": 50.0,
        }

    def test_missing_fields_count_as_zero(self, repos):
        loa_id = new_id()
        run(repos.bills.create({"loa_id": loa_id, "invoice_amount": 80}))
        totals = run(FinancialCalculator(repos.bills).aggregate_invoice_totals(loa_id))
        assert totals.total_pending == 80.0
        assert totals.total_received == 0.0


class TestPendingPercentages:

    def test_zero_total(self):
        result = calculate_pending_percentages(0, 0, 0)
        assert result.to_dict() == {"recoverable_percentage": 0.0, "payment_percentage": 0.0}

    def test_split(self):
        result = calculate_pending_percentages(100, 60, 40)
        assert result.recoverable_percentage == 60.0
        assert result.payment_percentage == 40.0


class TestResolveLoaFinancials:
    """Manual overrides win; pending measured against LOA value"""

    def test_computed_totals(self):
        loa = {"loa_value": 1000}
        result = resolve_loa_financials(loa, InvoiceTotals(500, 300, 20, 180))
        assert result["total_receivables"] == 1000
        assert result["total_billed"] == 500
        assert result["total_pending"] == 680.0

    def test_manual_overrides_win(self):
        loa = {"loa_value": 1000, "manual_total_billed": 900, "manual_total_received": 700, "manual_total_deducted": None}
        result = resolve_loa_financials(loa, InvoiceTotals(500, 300, 20, 180))
        assert result["total_billed"] == 900
        assert result["total_received"] == 700
        assert result["total_deducted"] == 20
        assert result["total_pending"] == 280.0

    def test_zero_override_is_still_an_override(self):
        loa = {"loa_value": 1000, "manual_total_received": 0}
        result = resolve_loa_financials(loa, InvoiceTotals(500, 300, 0, 200))
        assert result["total_received"] == 0
        assert result["total_pending"] == 1000.0
