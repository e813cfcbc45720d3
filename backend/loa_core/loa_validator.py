"""
LOA STRUCTURAL VALIDATION

Collects every field error for a request instead of stopping at the first:
- identifiers must look like UUID v4
- length bounds (LOA number 3-50, work description 10-1000,
  amendment number 3-50, document title 3-100)
- LOA value > 0, delivery period start < end
- EMD amount > 0 when EMD is enabled
- status must be a recognised LOA status
- billing triple consistency for the LOA billing shortcut
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
import logging
import re

from loa_core.amount_validator import validate_invoice_amounts, validate_non_negative_amounts
from loa_core.models import (
    AmendmentCreate, DeliveryPeriod, LoaBase, LoaCreate, LoaUpdate, OtherDocumentCreate
)
from loa_core.results import FieldError
from loa_core.status_machine import loa_status_machine

logger = logging.getLogger(__name__)

UUID_V4_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE
)

LOA_NUMBER_LENGTH = (3, 50)
WORK_DESCRIPTION_LENGTH = (10, 1000)
AMENDMENT_NUMBER_LENGTH = (3, 50)
DOCUMENT_TITLE_LENGTH = (3, 100)


def is_valid_id(value: Any) -> bool:
    return isinstance(value, str) and bool(UUID_V4_PATTERN.match(value))


def validate_id(value: Any, field_name: str = "id") -> List[FieldError]:
    if is_valid_id(value):
        return []
    return [FieldError(field_name, "Invalid ID format")]


def _check_length(
    errors: List[FieldError],
    field_name: str,
    label: str,
    value: Optional[str],
    bounds: tuple,
    required: bool = True
) -> None:
    if value is None or not value.strip():
        if required:
            errors.append(FieldError(field_name, f"{label} is required"))
        return
    low, high = bounds
    if not low <= len(value) <= high:
        errors.append(FieldError(field_name, f"{label} must be between {low} and {high} characters"))


def _check_delivery_period(
    errors: List[FieldError],
    start: Optional[datetime],
    end: Optional[datetime]
) -> None:
    if start is None:
        errors.append(FieldError("delivery_period.start", "Invalid start date"))
    if end is None:
        errors.append(FieldError("delivery_period.end", "Invalid end date"))
    if start is not None and end is not None and to_utc_naive(start) >= to_utc_naive(end):
        errors.append(FieldError("delivery_period", "Start date must be before end date"))


def to_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Aware datetimes become naive UTC, the form MongoDB hands back."""
    if value is not None and value.utcoffset() is not None:
        return (value - value.utcoffset()).replace(tzinfo=None)
    return value


def _check_status(errors: List[FieldError], status: Optional[str], required: bool) -> None:
    if status is None or status == "":
        if required:
            errors.append(FieldError("status", "Status is required"))
        return
    if not loa_status_machine.is_state(status):
        errors.append(FieldError(
            "status",
            f"Status must be one of: {', '.join(loa_status_machine.get_states())}"
        ))


def _check_common(errors: List[FieldError], dto: LoaBase) -> None:
    """Rules that apply to any supplied value, on create and update alike."""
    if dto.status is not None:
        _check_status(errors, dto.status, required=False)

    if dto.tender_id:
        errors.extend(validate_id(dto.tender_id, "tender_id"))

    errors.extend(validate_non_negative_amounts(
        recoverable_pending=dto.recoverable_pending,
        payment_pending=dto.payment_pending,
        warranty_period_months=dto.warranty_period_months,
        warranty_period_years=dto.warranty_period_years,
    ))

    if dto.warranty_start_date and dto.warranty_end_date:
        if to_utc_naive(dto.warranty_start_date) > to_utc_naive(dto.warranty_end_date):
            errors.append(FieldError("warranty_end_date", "Warranty end date must not be before start date"))


def validate_billing_fields(
    invoice_amount: Optional[float],
    amount_received: Optional[float],
    amount_deducted: Optional[float],
    deduction_reason: Optional[str],
    amount_field: str = "invoice_amount"
) -> List[FieldError]:
    """Invoice triple consistency and the deduction reason rule."""
    errors = []
    validity = validate_invoice_amounts(invoice_amount, amount_received, amount_deducted)
    if not validity.valid:
        errors.append(FieldError(amount_field, validity.error))
    if amount_deducted is not None and amount_deducted > 0 and not (deduction_reason or "").strip():
        errors.append(FieldError("deduction_reason", "Deduction reason is required when an amount is deducted"))
    return errors


class LoaValidator:

    def validate_create(self, dto: LoaCreate) -> List[FieldError]:
        errors: List[FieldError] = []

        _check_length(errors, "loa_number", "LOA number", dto.loa_number, LOA_NUMBER_LENGTH)

        if not dto.site_id:
            errors.append(FieldError("site_id", "Site is required"))

        if dto.loa_value is None or dto.loa_value <= 0:
            errors.append(FieldError("loa_value", "LOA value must be a positive number"))

        if dto.delivery_period is None:
            errors.append(FieldError("delivery_period", "Delivery period is required"))
        else:
            _check_delivery_period(errors, dto.delivery_period.start, dto.delivery_period.end)

        _check_length(
            errors, "work_description", "Work description",
            dto.work_description, WORK_DESCRIPTION_LENGTH
        )

        if dto.has_emd is True and (dto.emd_amount is None or dto.emd_amount <= 0):
            errors.append(FieldError("emd_amount", "EMD amount must be a positive number when EMD is enabled"))

        _check_common(errors, dto)

        if dto.has_billing_fields() or dto.actual_amount_received is not None or dto.amount_deducted is not None:
            errors.extend(validate_billing_fields(
                dto.invoice_amount, dto.actual_amount_received,
                dto.amount_deducted, dto.deduction_reason
            ))

        return errors

    def validate_update(self, dto: LoaUpdate, existing: Dict[str, Any]) -> List[FieldError]:
        """Validate the supplied fields against the state they would produce."""
        errors: List[FieldError] = []

        if dto.loa_number is not None:
            _check_length(errors, "loa_number", "LOA number", dto.loa_number, LOA_NUMBER_LENGTH)

        if dto.supplied("site_id") and not dto.site_id:
            errors.append(FieldError("site_id", "Site is required"))

        if dto.loa_value is not None and dto.loa_value <= 0:
            errors.append(FieldError("loa_value", "LOA value must be a positive number"))

        if dto.delivery_period is not None:
            current = existing.get("delivery_period") or {}
            merged = DeliveryPeriod(
                start=dto.delivery_period.start or current.get("start"),
                end=dto.delivery_period.end or current.get("end")
            )
            _check_delivery_period(errors, merged.start, merged.end)

        if dto.work_description is not None:
            _check_length(
                errors, "work_description", "Work description",
                dto.work_description, WORK_DESCRIPTION_LENGTH
            )

        has_emd = dto.has_emd if dto.has_emd is not None else existing.get("has_emd", False)
        emd_amount = dto.emd_amount if dto.supplied("emd_amount") else existing.get("emd_amount")
        if has_emd is True and (emd_amount is None or emd_amount <= 0):
            errors.append(FieldError("emd_amount", "EMD amount must be a positive number when EMD is enabled"))

        if dto.bill_id is not None:
            errors.extend(validate_id(dto.bill_id, "bill_id"))

        _check_common(errors, dto)
        return errors

    def validate_status_update(self, status: Optional[str]) -> List[FieldError]:
        errors: List[FieldError] = []
        _check_status(errors, status, required=True)
        return errors

    def validate_amendment(self, dto: AmendmentCreate, partial: bool = False) -> List[FieldError]:
        errors: List[FieldError] = []
        if not partial or dto.amendment_number is not None:
            _check_length(
                errors, "amendment_number", "Amendment number",
                dto.amendment_number, AMENDMENT_NUMBER_LENGTH
            )
        return errors

    def validate_other_document(self, dto: OtherDocumentCreate, partial: bool = False) -> List[FieldError]:
        errors: List[FieldError] = []
        if not partial or dto.title is not None:
            _check_length(errors, "title", "Document title", dto.title, DOCUMENT_TITLE_LENGTH)
        if not partial and dto.document_file is None:
            errors.append(FieldError("document_file", "Document file is required"))
        return errors
