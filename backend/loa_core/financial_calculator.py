"""
FINANCIAL CALCULATOR

LOCKED FORMULAS:
- invoice pending = invoice_amount - amount_received - amount_deducted
  (may be negative: overpayment is surfaced, never clamped)
- LOA totals = fold over all bills of the LOA, missing amounts count as 0
- pending split percentages = part / total * 100, {0, 0} when total is 0
- LOA total pending = loa_value - total_received - total_deducted
  (manual overrides win over computed totals when present)
"""

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Dict, Optional
import logging

from loa_core.financial_precision import (
    Numeric, amount_or_zero, safe_divide, safe_subtract, to_decimal, to_float
)
from loa_core.repositories import BillRepository

logger = logging.getLogger(__name__)


@dataclass
class InvoiceTotals:
    total_billed: float = 0.0
    total_received: float = 0.0
    total_deducted: float = 0.0
    total_pending: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class PendingPercentages:
    recoverable_percentage: float = 0.0
    payment_percentage: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def calculate_invoice_pending(
    invoice_amount: Numeric,
    amount_received: Numeric,
    amount_deducted: Numeric
) -> Decimal:
    """
    Pending amount for a single invoice, unrounded.
    Can return negative values for overpayment scenarios.
    """
    return safe_subtract(safe_subtract(invoice_amount, amount_received), amount_deducted)


def calculate_pending_percentages(
    total_pending: Numeric,
    recoverable_pending: Numeric,
    payment_pending: Numeric
) -> PendingPercentages:
    """Percentage split for pending amounts"""
    if to_decimal(total_pending) == Decimal('0'):
        return PendingPercentages(0.0, 0.0)

    return PendingPercentages(
        recoverable_percentage=float(safe_divide(recoverable_pending, total_pending) * 100),
        payment_percentage=float(safe_divide(payment_pending, total_pending) * 100)
    )


def _override_or(value: Optional[Numeric], fallback: float) -> float:
    return fallback if value is None else float(value)


def resolve_loa_financials(loa: Dict[str, Any], totals: InvoiceTotals) -> Dict[str, Any]:
    """
    LOA with its receivables view.
    Uses LOA value as the receivables baseline so bulk-imported LOAs (manual
    totals, no bills) and billed LOAs read the same way.
    """
    total_billed = _override_or(loa.get("manual_total_billed"), totals.total_billed)
    total_received = _override_or(loa.get("manual_total_received"), totals.total_received)
    total_deducted = _override_or(loa.get("manual_total_deducted"), totals.total_deducted)

    total_pending = safe_subtract(
        safe_subtract(amount_or_zero(loa.get("loa_value")), total_received),
        total_deducted
    )

    return {
        **loa,
        "total_receivables": loa.get("loa_value"),
        "total_billed": total_billed,
        "total_received": total_received,
        "total_deducted": total_deducted,
        "total_pending": to_float(total_pending),
        "invoice_totals": totals.to_dict(),
    }


class FinancialCalculator:
    """Bill-backed financial aggregation for an LOA."""

    def __init__(self, bill_repository: BillRepository):
        self.bill_repository = bill_repository

    calculate_invoice_pending = staticmethod(calculate_invoice_pending)
    calculate_pending_percentages = staticmethod(calculate_pending_percentages)

    async def aggregate_invoice_totals(self, loa_id: str) -> InvoiceTotals:
        """Total billed, received, deducted and pending over every bill of the LOA"""
        bills = await self.bill_repository.find_by_loa_id(loa_id)

        billed = received = deducted = pending = Decimal('0')
        for bill in bills:
            invoice_amount = amount_or_zero(bill.get("invoice_amount"))
            amount_received = amount_or_zero(bill.get("amount_received"))
            amount_deducted = amount_or_zero(bill.get("amount_deducted"))

            billed += invoice_amount
            received += amount_received
            deducted += amount_deducted
            pending += calculate_invoice_pending(invoice_amount, amount_received, amount_deducted)

        totals = InvoiceTotals(
            total_billed=to_float(billed),
            total_received=to_float(received),
            total_deducted=to_float(deducted),
            total_pending=to_float(pending)
        )
        logger.debug(f"[FINANCIALS] loa={loa_id} bills={len(bills)} totals={totals}")
        return totals
