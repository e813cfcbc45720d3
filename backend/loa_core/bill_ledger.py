"""
BILL LEDGER

Bills (invoices) raised against one LOA.

RULES:
- amount_received and amount_deducted default to 0
- amount_received + amount_deducted <= invoice_amount, nothing negative
- deduction_reason is required whenever amount_deducted > 0
- partial updates are validated against the merged bill, not the delta
- amount_pending is never stored; it is recomputed on every read and may be
  negative (overpayment is flagged, not rejected)
- loa_id is fixed at creation
"""

from typing import Any, Dict, List, Optional
import logging

from loa_core.compensation import CompensationStack
from loa_core.documents import BILL_DOCUMENTS, DocumentUploader
from loa_core.financial_calculator import calculate_invoice_pending
from loa_core.financial_precision import amount_or_zero, to_float
from loa_core.loa_validator import validate_billing_fields, validate_id
from loa_core.models import BillCreate, BillUpdate
from loa_core.repositories import BillRepository, LoaRepository
from loa_core.results import FieldError, ServiceResult
from loa_core.status_machine import BillStatus, bill_status_machine

logger = logging.getLogger(__name__)

BILL_FIELDS = (
    "invoice_number", "invoice_amount", "amount_received", "amount_deducted",
    "deduction_reason", "bill_links", "remarks", "status",
)


def to_bill_response(bill: Dict[str, Any]) -> Dict[str, Any]:
    """Bill with derived pending amount attached"""
    pending = calculate_invoice_pending(
        amount_or_zero(bill.get("invoice_amount")),
        amount_or_zero(bill.get("amount_received")),
        amount_or_zero(bill.get("amount_deducted"))
    )
    response = {k: v for k, v in bill.items() if k != "amount_pending"}
    response["amount_pending"] = to_float(pending)
    response["is_overpaid"] = pending < 0
    return response


def validate_bill_state(state: Dict[str, Any]) -> List[FieldError]:
    """Validate a complete (merged) bill state."""
    errors = []
    status = state.get("status")
    if status is not None and not bill_status_machine.is_state(status):
        errors.append(FieldError(
            "status",
            f"Invalid status. Must be {', '.join(bill_status_machine.get_states())}"
        ))
    errors.extend(validate_billing_fields(
        state.get("invoice_amount"),
        state.get("amount_received"),
        state.get("amount_deducted"),
        state.get("deduction_reason")
    ))
    return errors


def merge_bill(existing: Dict[str, Any], dto: BillUpdate) -> Dict[str, Any]:
    """DTO values over existing values; absent fields keep the stored value."""
    changes = dto.model_dump(include=set(BILL_FIELDS), exclude_unset=True)
    changes = {k: v for k, v in changes.items() if v is not None}
    merged = {field: existing.get(field) for field in BILL_FIELDS}
    merged.update(changes)
    return merged


class BillLedger:

    def __init__(
        self,
        bill_repository: BillRepository,
        loa_repository: LoaRepository,
        uploader: DocumentUploader
    ):
        self.bills = bill_repository
        self.loas = loa_repository
        self.uploader = uploader

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create_bill(
        self,
        loa_id: str,
        dto: BillCreate,
        invoice_pdf_url: Optional[str] = None
    ) -> ServiceResult:
        """
        Register a bill against an existing LOA.

        invoice_pdf_url carries a PDF the caller has already uploaded; a file on
        the DTO is uploaded here instead.
        """
        id_errors = validate_id(loa_id, "loa_id")
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid LOA ID format")

        state = {field: getattr(dto, field) for field in BILL_FIELDS}
        state["amount_received"] = dto.amount_received if dto.amount_received is not None else 0
        state["amount_deducted"] = dto.amount_deducted if dto.amount_deducted is not None else 0
        state["status"] = dto.status or BillStatus.REGISTERED.value

        errors = validate_bill_state(state)
        if errors:
            return ServiceResult.validation_failed(errors)

        if not await self.loas.exists(loa_id):
            return ServiceResult.not_found("LOA not found")

        compensations = CompensationStack("create_bill")
        if dto.invoice_pdf_file is not None:
            invoice_pdf_url, failure = await self.uploader.process(
                "invoice_pdf_file", BILL_DOCUMENTS, dto.invoice_pdf_file, compensations
            )
            if failure:
                return failure

        try:
            bill = await self.bills.create({**state, "loa_id": loa_id, "invoice_pdf_url": invoice_pdf_url})
        except Exception:
            await compensations.run()
            raise

        logger.info(f"[BILL] Created bill {bill['id']} for LOA {loa_id} (status={bill['status']})")
        return ServiceResult.ok(to_bill_response(bill))

    # =========================================================================
    # READ
    # =========================================================================

    async def get_bill_by_id(self, bill_id: str) -> ServiceResult:
        id_errors = validate_id(bill_id)
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid bill ID format")

        bill = await self.bills.find_by_id(bill_id)
        if not bill:
            return ServiceResult.not_found("Bill not found")
        return ServiceResult.ok(to_bill_response(bill))

    async def get_bills_by_loa_id(self, loa_id: str) -> ServiceResult:
        id_errors = validate_id(loa_id, "loa_id")
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid LOA ID format")

        bills = await self.bills.find_by_loa_id(loa_id)
        return ServiceResult.ok([to_bill_response(b) for b in bills])

    async def count_bills(self, loa_id: str) -> int:
        return await self.bills.count_by_loa_id(loa_id)

    # =========================================================================
    # UPDATE
    # =========================================================================

    async def update_bill(
        self,
        bill_id: str,
        dto: BillUpdate,
        invoice_pdf_url: Optional[str] = None
    ) -> ServiceResult:
        id_errors = validate_id(bill_id)
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid bill ID format")

        existing = await self.bills.find_by_id(bill_id)
        if not existing:
            return ServiceResult.not_found("Bill not found")

        merged = merge_bill(existing, dto)
        errors = validate_bill_state(merged)
        if errors:
            return ServiceResult.validation_failed(errors)

        compensations = CompensationStack("update_bill")
        if dto.invoice_pdf_file is not None:
            invoice_pdf_url, failure = await self.uploader.process(
                "invoice_pdf_file", BILL_DOCUMENTS, dto.invoice_pdf_file, compensations
            )
            if failure:
                return failure

        changes = dict(merged)
        if invoice_pdf_url:
            changes["invoice_pdf_url"] = invoice_pdf_url

        try:
            bill = await self.bills.update(bill_id, changes)
        except Exception:
            await compensations.run()
            raise

        logger.info(f"[BILL] Updated bill {bill_id} (LOA {existing['loa_id']})")
        return ServiceResult.ok(to_bill_response(bill))

    # =========================================================================
    # DELETE
    # =========================================================================

    async def delete_bill(self, bill_id: str) -> ServiceResult:
        id_errors = validate_id(bill_id)
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid bill ID format")

        if not await self.bills.exists(bill_id):
            return ServiceResult.not_found("Bill not found")

        await self.bills.delete(bill_id)
        logger.info(f"[BILL] Deleted bill {bill_id}")
        return ServiceResult.ok(None)
