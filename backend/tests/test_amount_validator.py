"""
Amount validation: invoice triple and pending split
"""
import pytest

from loa_core.amount_validator import (
    validate_invoice_amounts, validate_non_negative_amounts, validate_pending_split
)


class TestInvoiceAmounts:
    """received + deducted <= invoice, nothing negative"""

    @pytest.mark.parametrize("invoice, received, deducted", [
        (100, 0, 0),
        (100, 40, 10),
        (100, 60, 40),
        (0, 0, 0),
        (0.3, 0.1, 0.2),
    ])
    def test_valid_amounts(self, invoice, received, deducted):
        result = validate_invoice_amounts(invoice, received, deducted)
        assert result.valid
        assert result.error is None

    def test_sum_exceeding_invoice_is_rejected(self):
        result = validate_invoice_amounts(100, 60, 41)
        assert not result.valid
        assert "cannot exceed invoice amount" in result.error
        assert "60" in result.error and "41" in result.error and "100" in result.error

    @pytest.mark.parametrize("invoice, received, deducted, message", [
        (100, -1, 0, "Amount received cannot be negative"),
        (100, 0, -5, "Amount deducted cannot be negative"),
        (-100, 0, 0, "Invoice amount cannot be negative"),
    ])
    def test_negative_amounts_are_rejected(self, invoice, received, deducted, message):
        result = validate_invoice_amounts(invoice, received, deducted)
        assert not result.valid
        assert result.error == message

    def test_missing_amounts_count_as_zero(self):
        assert validate_invoice_amounts(100, None, None).valid
        assert not validate_invoice_amounts(None, 10, None).valid


class TestPendingSplit:
    """recoverable + payment must match total pending within 0.01"""

    def test_exact_split(self):
        assert validate_pending_split(1000, 600, 400).valid

    def test_split_within_tolerance(self):
        assert validate_pending_split(1000, 600.005, 400).valid

    def test_split_off_by_more_than_tolerance(self):
        result = validate_pending_split(1000, 600, 390)
        assert not result.valid
        assert "must equal total pending" in result.error

    def test_negative_component_rejected(self):
        result = validate_pending_split(1000, -100, 1100)
        assert not result.valid
        assert result.error == "Recoverable pending cannot be negative"


class TestNonNegativeAmounts:

    def test_reports_every_negative_field(self):
        errors = validate_non_negative_amounts(manual_total_billed=-1, manual_total_received=5, recoverable_pending=-2)
        assert [e.field for e in errors] == ["manual_total_billed", "recoverable_pending"]
        assert errors[0].message == "Manual total billed cannot be negative"

    def test_none_is_not_supplied(self):
        assert validate_non_negative_amounts(manual_total_billed=None) == []
