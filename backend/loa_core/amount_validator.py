"""
AMOUNT VALIDATOR

Pure checks on monetary fields:
1. amount_received + amount_deducted <= invoice_amount
2. no negative invoice / received / deducted amounts
3. recoverable_pending + payment_pending == total_pending (within 0.01)

Nothing here touches the database; every check returns a ValidityResult.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional
import logging

from loa_core.financial_precision import Numeric, amount_or_zero, safe_add, safe_subtract
from loa_core.results import FieldError

logger = logging.getLogger(__name__)

# Allowed drift between the pending split and total pending
PENDING_SPLIT_TOLERANCE = Decimal('0.01')


@dataclass
class ValidityResult:
    valid: bool
    error: Optional[str] = None


def validate_invoice_amounts(
    invoice_amount: Optional[Numeric],
    amount_received: Optional[Numeric],
    amount_deducted: Optional[Numeric]
) -> ValidityResult:
    """
    Validate invoice amounts.
    Ensures: received + deducted <= invoice amount, and nothing is negative.
    """
    invoice = amount_or_zero(invoice_amount)
    received = amount_or_zero(amount_received)
    deducted = amount_or_zero(amount_deducted)

    if received < 0:
        return ValidityResult(False, "Amount received cannot be negative")
    if deducted < 0:
        return ValidityResult(False, "Amount deducted cannot be negative")
    if invoice < 0:
        return ValidityResult(False, "Invoice amount cannot be negative")

    if safe_add(received, deducted) > invoice:
        return ValidityResult(
            False,
            f"Total of received ({amount_received}) and deducted ({amount_deducted}) "
            f"cannot exceed invoice amount ({invoice_amount})"
        )

    return ValidityResult(True)


def validate_pending_split(
    total_pending: Numeric,
    recoverable_pending: Numeric,
    payment_pending: Numeric
) -> ValidityResult:
    """
    Validate the LOA pending split.
    Ensures: recoverable + payment = total pending (floating point tolerance 0.01)
    """
    recoverable = amount_or_zero(recoverable_pending)
    payment = amount_or_zero(payment_pending)

    if recoverable < 0:
        return ValidityResult(False, "Recoverable pending cannot be negative")
    if payment < 0:
        return ValidityResult(False, "Payment pending cannot be negative")

    drift = abs(safe_subtract(safe_add(recoverable, payment), amount_or_zero(total_pending)))
    if drift > PENDING_SPLIT_TOLERANCE:
        return ValidityResult(
            False,
            f"Recoverable pending ({recoverable_pending}) + Payment pending ({payment_pending}) "
            f"must equal total pending ({total_pending})"
        )

    return ValidityResult(True)


def validate_non_negative_amounts(**amounts: Optional[Numeric]) -> List[FieldError]:
    """Field errors for every supplied amount below zero. None means 'not supplied'."""
    errors = []
    for field_name, value in amounts.items():
        if value is not None and amount_or_zero(value) < 0:
            label = field_name.replace("_", " ").capitalize()
            errors.append(FieldError(field_name, f"{label} cannot be negative"))
    return errors
