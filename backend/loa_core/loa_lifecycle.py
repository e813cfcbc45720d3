"""
LOA LIFECYCLE SERVICE

Orchestrates an LOA from creation to deletion.

CREATE ORDER:
1. structural validation (every field error at once)
2. LOA number uniqueness
3. tender resolution (EMD adoption)
4. tag normalization
5. document uploads (LOA document, invoice PDF)
6. persist the LOA
7. initial bill when billing fields are present

Steps 5-7 only run after 1-3 succeed. Every side effect from step 5 on
registers a compensation; a later failure undoes them newest first.

DELETE ORDER:
purchase orders block deletion; otherwise amendments, other documents,
FDR links and bills go first and the LOA row last.
"""

from typing import Any, Dict, List, Optional, Tuple
import asyncio
import logging
import math

from loa_core.amount_validator import validate_non_negative_amounts, validate_pending_split
from loa_core.bill_ledger import BillLedger, merge_bill, validate_bill_state
from loa_core.compensation import CompensationStack
from loa_core.deposit_linkage import DepositLinkage, fdr_link_changes
from loa_core.documents import (
    AMENDMENT_DOCUMENTS, BILL_DOCUMENTS, LOA_DOCUMENTS, OTHER_DOCUMENTS, DocumentUploader
)
from loa_core.financial_calculator import (
    FinancialCalculator, calculate_invoice_pending, calculate_pending_percentages, resolve_loa_financials
)
from loa_core.financial_precision import amount_or_zero, safe_subtract, to_float
from loa_core.loa_validator import LoaValidator, to_utc_naive, validate_id
from loa_core.models import (
    AmendmentCreate, AmendmentUpdate, BillCreate, BillUpdate, LoaCreate, LoaListParams,
    LoaUpdate, ManualFinancialsUpdate, OtherDocumentCreate, OtherDocumentUpdate, PendingSplitUpdate
)
from loa_core.repositories import LoaFilter, Repositories
from loa_core.results import FieldError, ServiceResult
from loa_core.status_machine import BillStatus, LoaStatus, loa_status_machine
from loa_core.tags import normalize_tags

logger = logging.getLogger(__name__)

# Plain LOA fields copied from the request when supplied
LOA_FIELDS = (
    "loa_value", "work_description", "site_id", "remarks", "tender_no", "tender_id",
    "order_poc", "poc_id", "inspection_agency_id", "fd_bg_details",
    "due_date", "order_received_date", "has_emd", "emd_amount",
    "recoverable_pending", "payment_pending",
    "warranty_period_months", "warranty_period_years", "warranty_start_date", "warranty_end_date",
)

# Fields an update may clear with an explicit null
NULLABLE_LOA_FIELDS = {
    "remarks", "tender_no", "tender_id", "order_poc", "poc_id", "inspection_agency_id",
    "fd_bg_details", "due_date", "order_received_date", "emd_amount",
    "warranty_period_months", "warranty_period_years", "warranty_start_date", "warranty_end_date",
}

DATETIME_FIELDS = ("due_date", "order_received_date", "warranty_start_date", "warranty_end_date")


def _bill_fields_from_loa(dto: Any) -> Dict[str, Any]:
    """Billing shortcut fields of an LOA request under their bill names"""
    mapping = {
        "invoice_number": dto.invoice_number,
        "invoice_amount": dto.invoice_amount,
        "amount_received": dto.actual_amount_received,
        "amount_deducted": dto.amount_deducted,
        "deduction_reason": dto.deduction_reason,
        "bill_links": dto.bill_links,
    }
    return {k: v for k, v in mapping.items() if v is not None}


def _loa_billing_totals(bill_state: Dict[str, Any]) -> Dict[str, Any]:
    """LOA-level mirror of the bill the shortcut writes"""
    pending = calculate_invoice_pending(
        amount_or_zero(bill_state.get("invoice_amount")),
        amount_or_zero(bill_state.get("amount_received")),
        amount_or_zero(bill_state.get("amount_deducted"))
    )
    return {
        "actual_amount_received": bill_state.get("amount_received"),
        "amount_deducted": bill_state.get("amount_deducted"),
        "amount_pending": to_float(pending),
        "deduction_reason": bill_state.get("deduction_reason"),
    }


class LoaService:
    """
    LOA operations over the repositories and the storage collaborator.

    Business outcomes are returned as ServiceResult values; persistence and
    storage failures raise ProcurementError subclasses.
    """

    def __init__(self, repos: Repositories, storage):
        self.repos = repos
        self.validator = LoaValidator()
        self.uploader = DocumentUploader(storage)
        self.bill_ledger = BillLedger(repos.bills, repos.loas, self.uploader)
        self.deposits = DepositLinkage(repos)
        self.financials = FinancialCalculator(repos.bills)

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create_loa(self, dto: LoaCreate) -> ServiceResult:
        errors = self.validator.validate_create(dto)
        if errors:
            logger.info(f"[LOA] Create rejected: {len(errors)} validation error(s)")
            return ServiceResult.validation_failed(errors)

        if await self.repos.loas.find_by_loa_number(dto.loa_number):
            return ServiceResult.conflict("LOA number already exists")

        deposit = await self.deposits.resolve_tender_for_create(dto)
        if not deposit.is_success:
            return deposit

        tag_result = normalize_tags(dto.tags)
        warnings = [tag_result.warning] if tag_result.warning else []

        compensations = CompensationStack("create_loa")
        document_url, failure = await self.uploader.process(
            "document_file", LOA_DOCUMENTS, dto.document_file, compensations
        )
        if failure:
            return failure.with_warnings(warnings)

        invoice_pdf_url, failure = await self.uploader.process(
            "invoice_pdf_file", BILL_DOCUMENTS, dto.invoice_pdf_file, compensations
        )
        if failure:
            return failure.with_warnings(warnings)

        record = {field_name: getattr(dto, field_name) for field_name in LOA_FIELDS}
        for field_name in DATETIME_FIELDS:
            record[field_name] = to_utc_naive(record[field_name])
        record.update(deposit.data)
        record.update({
            "loa_number": dto.loa_number,
            "delivery_period": {
                "start": to_utc_naive(dto.delivery_period.start),
                "end": to_utc_naive(dto.delivery_period.end),
            },
            "status": dto.status or LoaStatus.NOT_STARTED.value,
            "status_history": [],
            "document_url": document_url,
            "tags": tag_result.tags,
            "has_sd": dto.has_sd if dto.has_sd is not None else bool(dto.sd_fdr_id),
            "sd_fdr_id": dto.sd_fdr_id,
            "has_pg": dto.has_pg if dto.has_pg is not None else bool(dto.pg_fdr_id),
            "pg_fdr_id": dto.pg_fdr_id,
            "recoverable_pending": dto.recoverable_pending or 0,
            "payment_pending": dto.payment_pending or 0,
            "manual_total_billed": None,
            "manual_total_received": None,
            "manual_total_deducted": None,
        })

        bill_fields = _bill_fields_from_loa(dto) if dto.has_billing_fields() else None
        if bill_fields is not None:
            bill_fields.setdefault("amount_received", 0)
            bill_fields.setdefault("amount_deducted", 0)
            record.update(_loa_billing_totals(bill_fields))

        try:
            loa = await self.repos.loas.create(record)
            compensations.push(f"loa {loa['id']}", lambda: self.repos.loas.delete(loa["id"]))

            if bill_fields is not None:
                bill_result = await self.bill_ledger.create_bill(
                    loa["id"],
                    BillCreate(**bill_fields, status=BillStatus.REGISTERED.value),
                    invoice_pdf_url=invoice_pdf_url
                )
                if not bill_result.is_success:
                    failures = await compensations.run()
                    return bill_result.with_warnings(
                        warnings + [f"Cleanup failed: {f.description}" for f in failures]
                    )
                loa["bills"] = [bill_result.data]
        except Exception:
            logger.exception(f"[LOA] Create failed for {dto.loa_number}, compensating")
            await compensations.run()
            raise

        compensations.clear()
        logger.info(f"[LOA] Created LOA {loa['loa_number']} ({loa['id']})")
        return ServiceResult.ok(loa, warnings)

    # =========================================================================
    # UPDATE
    # =========================================================================

    async def _resolve_shortcut_bill(
        self,
        loa_id: str,
        bill_id: Optional[str]
    ) -> Tuple[Optional[Dict[str, Any]], Optional[ServiceResult]]:
        """
        The bill an LOA update's billing fields apply to.

        An explicit bill_id wins. Otherwise an LOA with no bills gets a new
        one, an LOA with exactly one bill updates it, and an LOA with several
        bills is rejected: the caller must say which.
        """
        if bill_id is not None:
            bill = await self.repos.bills.find_by_id(bill_id)
            if not bill or bill.get("loa_id") != loa_id:
                return None, ServiceResult.not_found("Bill not found for this LOA")
            return bill, None

        bills = await self.repos.bills.find_by_loa_id(loa_id)
        if len(bills) > 1:
            return None, ServiceResult.validation_failed([FieldError(
                "bill_id",
                f"LOA has {len(bills)} bills; bill_id is required to choose which one to update"
            )])
        return (bills[0] if bills else None), None

    def _update_changes(self, dto: LoaUpdate, existing: Dict[str, Any]) -> Dict[str, Any]:
        changes = {}
        for field_name in LOA_FIELDS:
            if not dto.supplied(field_name):
                continue
            value = getattr(dto, field_name)
            if value is None and field_name not in NULLABLE_LOA_FIELDS:
                continue
            changes[field_name] = to_utc_naive(value) if field_name in DATETIME_FIELDS else value

        if dto.loa_number is not None:
            changes["loa_number"] = dto.loa_number

        if dto.status is not None:
            changes["status"] = dto.status

        if dto.delivery_period is not None:
            current = existing.get("delivery_period") or {}
            changes["delivery_period"] = {
                "start": to_utc_naive(dto.delivery_period.start) or current.get("start"),
                "end": to_utc_naive(dto.delivery_period.end) or current.get("end"),
            }

        if changes.get("has_emd") is False:
            changes["emd_amount"] = None

        changes.update(fdr_link_changes(dto))
        if "sd_fdr_id" in changes and "has_sd" not in changes:
            changes["has_sd"] = changes["sd_fdr_id"] is not None
        if "pg_fdr_id" in changes and "has_pg" not in changes:
            changes["has_pg"] = changes["pg_fdr_id"] is not None

        return changes

    async def update_loa(self, loa_id: str, dto: LoaUpdate) -> ServiceResult:
        id_errors = validate_id(loa_id)
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid LOA ID format")

        existing = await self.repos.loas.find_by_id(loa_id)
        if not existing:
            return ServiceResult.not_found("LOA not found")

        errors = self.validator.validate_update(dto, existing)
        if errors:
            return ServiceResult.validation_failed(errors)

        if dto.loa_number and dto.loa_number != existing.get("loa_number"):
            if await self.repos.loas.find_by_loa_number(dto.loa_number):
                return ServiceResult.conflict("LOA number already exists")

        if dto.supplied("tender_id") and dto.tender_id != existing.get("tender_id"):
            tender_check = await self.deposits.validate_tender_reference(dto.tender_id)
            if not tender_check.is_success:
                return tender_check

        changes = self._update_changes(dto, existing)

        # Billing shortcut: resolve and validate the target bill before writing anything
        target_bill = None
        bill_fields = None
        if dto.has_billing_fields():
            target_bill, failure = await self._resolve_shortcut_bill(loa_id, dto.bill_id)
            if failure:
                return failure
            bill_fields = _bill_fields_from_loa(dto)
            if target_bill:
                bill_state = merge_bill(target_bill, BillUpdate(**bill_fields))
            else:
                bill_state = {"amount_received": 0, "amount_deducted": 0, **bill_fields}
            bill_errors = validate_bill_state(bill_state)
            if bill_errors:
                return ServiceResult.validation_failed(bill_errors)
            changes.update(_loa_billing_totals(bill_state))

        warnings = []
        if dto.tags is not None:
            tag_result = normalize_tags(dto.tags)
            changes["tags"] = tag_result.tags
            if tag_result.warning:
                warnings.append(tag_result.warning)

        compensations = CompensationStack("update_loa")
        document_url, failure = await self.uploader.process(
            "document_file", LOA_DOCUMENTS, dto.document_file, compensations
        )
        if failure:
            return failure.with_warnings(warnings)
        if document_url:
            changes["document_url"] = document_url

        invoice_pdf_url, failure = await self.uploader.process(
            "invoice_pdf_file", BILL_DOCUMENTS, dto.invoice_pdf_file, compensations
        )
        if failure:
            return failure.with_warnings(warnings)

        status_changed = "status" in changes and changes["status"] != existing.get("status")
        if status_changed:
            changes.update(loa_status_machine.get_status_update(changes["status"]))

        history_field = loa_status_machine.history_field
        previous = {k: existing.get(k) for k in changes}
        if status_changed:
            previous[history_field] = list(existing.get(history_field) or [])

        try:
            compensations.push(f"loa {loa_id} fields", lambda: self.repos.loas.update(loa_id, previous))
            if status_changed:
                await self.repos.loas.push(
                    loa_id,
                    history_field,
                    loa_status_machine.get_history_entry(existing.get("status"), changes["status"])
                )
            loa = await self.repos.loas.update(loa_id, changes)

            if bill_fields is not None:
                if target_bill:
                    bill_result = await self.bill_ledger.update_bill(
                        target_bill["id"], BillUpdate(**bill_fields), invoice_pdf_url=invoice_pdf_url
                    )
                else:
                    bill_result = await self.bill_ledger.create_bill(
                        loa_id,
                        BillCreate(**bill_fields, status=BillStatus.REGISTERED.value),
                        invoice_pdf_url=invoice_pdf_url
                    )
                if not bill_result.is_success:
                    failures = await compensations.run()
                    return bill_result.with_warnings(
                        warnings + [f"Cleanup failed: {f.description}" for f in failures]
                    )
                loa["bills"] = [bill_result.data]
        except Exception:
            logger.exception(f"[LOA] Update failed for {loa_id}, compensating")
            await compensations.run()
            raise

        compensations.clear()
        logger.info(f"[LOA] Updated LOA {loa_id}: {sorted(changes)}")
        return ServiceResult.ok(loa, warnings)

    # =========================================================================
    # DELETE
    # =========================================================================

    async def delete_loa(self, loa_id: str) -> ServiceResult:
        id_errors = validate_id(loa_id)
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid ID format")

        loa = await self.repos.loas.find_by_id(loa_id)
        if not loa:
            return ServiceResult.not_found("LOA not found")

        if await self.repos.purchase_orders.count_by_loa_id(loa_id) > 0:
            return ServiceResult.conflict("Cannot delete LOA with associated purchase orders")

        amendments = await self.repos.amendments.delete_many({"loa_id": loa_id})
        documents = await self.repos.other_documents.delete_many({"loa_id": loa_id})
        links = await self.deposits.remove_links_for_loa(loa_id)
        bills = await self.repos.bills.delete_many({"loa_id": loa_id})
        await self.repos.loas.delete(loa_id)

        logger.info(
            f"[LOA] Deleted LOA {loa.get('loa_number')} ({loa_id}): "
            f"{amendments} amendment(s), {documents} document(s), {links} FDR link(s), {bills} bill(s)"
        )
        return ServiceResult.ok(None)

    # =========================================================================
    # READ
    # =========================================================================

    async def get_loa(self, loa_id: str) -> ServiceResult:
        id_errors = validate_id(loa_id)
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid ID format")

        loa = await self.repos.loas.find_by_id(loa_id)
        if not loa:
            return ServiceResult.not_found("LOA not found")
        return ServiceResult.ok(loa)

    async def get_all_loas(self, params: LoaListParams) -> ServiceResult:
        page = params.page or 1
        limit = params.limit or 10
        skip = (page - 1) * limit

        loa_filter = LoaFilter(
            search_term=params.search_term,
            site_id=params.site_id,
            tender_id=params.tender_id,
            status=params.status,
            min_value=params.min_value,
            max_value=params.max_value,
            has_emd=params.has_emd,
            has_sd=params.has_sd,
            has_pg=params.has_pg,
        )

        loas, total = await asyncio.gather(
            self.repos.loas.find_page(loa_filter, skip, limit, params.sort_by, params.sort_order),
            self.repos.loas.count_matching(loa_filter)
        )

        return ServiceResult.ok({
            "loas": loas,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit),
        })

    # =========================================================================
    # STATUS
    # =========================================================================

    async def update_status(self, loa_id: str, status: Optional[str], user_id: Optional[str] = None) -> ServiceResult:
        errors = self.validator.validate_status_update(status)
        if errors:
            return ServiceResult.validation_failed(errors)

        id_errors = validate_id(loa_id)
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid LOA ID format")

        existing = await self.repos.loas.find_by_id(loa_id)
        if not existing:
            return ServiceResult.not_found("LOA not found")

        current = existing.get("status")
        to_state = loa_status_machine.validate_transition(current, status)

        await self.repos.loas.push(
            loa_id,
            loa_status_machine.history_field,
            loa_status_machine.get_history_entry(current, to_state, user_id)
        )
        loa = await self.repos.loas.update(loa_id, loa_status_machine.get_status_update(to_state))

        logger.info(f"[STATUS] LOA {existing.get('loa_number')}: {current} -> {to_state}")
        return ServiceResult.ok(loa)

    # =========================================================================
    # FINANCIALS
    # =========================================================================

    async def get_loa_with_financials(self, loa_id: str) -> ServiceResult:
        id_errors = validate_id(loa_id)
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid ID format")

        loa = await self.repos.loas.find_by_id(loa_id)
        if not loa:
            return ServiceResult.not_found("LOA not found")

        totals = await self.financials.aggregate_invoice_totals(loa_id)
        result = resolve_loa_financials(loa, totals)
        result["pending_percentages"] = calculate_pending_percentages(
            result["total_pending"],
            amount_or_zero(loa.get("recoverable_pending")),
            amount_or_zero(loa.get("payment_pending"))
        ).to_dict()
        return ServiceResult.ok(result)

    async def update_pending_split(self, loa_id: str, dto: PendingSplitUpdate) -> ServiceResult:
        financials = await self.get_loa_with_financials(loa_id)
        if not financials.is_success:
            return financials

        total_pending = financials.data.get("total_pending") or 0
        validity = validate_pending_split(total_pending, dto.recoverable_pending, dto.payment_pending)
        if not validity.valid:
            return ServiceResult.validation_failed(
                [FieldError("recoverable_pending", validity.error)], validity.error
            )

        loa = await self.repos.loas.update(loa_id, {
            "recoverable_pending": dto.recoverable_pending,
            "payment_pending": dto.payment_pending,
        })
        logger.info(
            f"[LOA] Pending split for {loa_id}: recoverable={dto.recoverable_pending} "
            f"payment={dto.payment_pending} (total={total_pending})"
        )
        return ServiceResult.ok(loa)

    async def update_manual_financials(self, loa_id: str, dto: ManualFinancialsUpdate) -> ServiceResult:
        """
        Historical totals entered by hand for LOAs billed outside the system.

        Supplied overrides replace the bill-derived totals; the payment side of
        the pending split is recomputed and may go negative on overpayment.
        """
        id_errors = validate_id(loa_id)
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid ID format")

        loa = await self.repos.loas.find_by_id(loa_id)
        if not loa:
            return ServiceResult.not_found("LOA not found")

        errors = validate_non_negative_amounts(
            manual_total_billed=dto.manual_total_billed,
            manual_total_received=dto.manual_total_received,
            manual_total_deducted=dto.manual_total_deducted,
            recoverable_pending=dto.recoverable_pending,
        )
        if errors:
            return ServiceResult.validation_failed(errors)

        totals = await self.financials.aggregate_invoice_totals(loa_id)

        def pick(supplied, stored, computed):
            if supplied is not None:
                return supplied
            return stored if stored is not None else computed

        total_received = pick(dto.manual_total_received, loa.get("manual_total_received"), totals.total_received)
        total_deducted = pick(dto.manual_total_deducted, loa.get("manual_total_deducted"), totals.total_deducted)
        total_pending = safe_subtract(
            safe_subtract(amount_or_zero(loa.get("loa_value")), total_received),
            total_deducted
        )

        changes: Dict[str, Any] = {}
        for field_name in ("manual_total_billed", "manual_total_received", "manual_total_deducted"):
            value = getattr(dto, field_name)
            if value is not None:
                changes[field_name] = value

        if dto.recoverable_pending is not None:
            if total_pending > 0 and amount_or_zero(dto.recoverable_pending) > total_pending:
                message = (
                    f"Recoverable pending ({dto.recoverable_pending}) cannot exceed "
                    f"total pending ({to_float(total_pending)})"
                )
                return ServiceResult.validation_failed([FieldError("recoverable_pending", message)], message)
            changes["recoverable_pending"] = dto.recoverable_pending
            changes["payment_pending"] = to_float(safe_subtract(total_pending, dto.recoverable_pending))

        if changes:
            await self.repos.loas.update(loa_id, changes)
            logger.info(f"[LOA] Manual financials for {loa_id}: {changes}")

        return await self.get_loa_with_financials(loa_id)

    # =========================================================================
    # AMENDMENTS
    # =========================================================================

    async def create_amendment(self, loa_id: str, dto: AmendmentCreate) -> ServiceResult:
        id_errors = validate_id(loa_id, "loa_id")
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid LOA ID format")

        errors = self.validator.validate_amendment(dto)
        if errors:
            return ServiceResult.validation_failed(errors)

        if not await self.repos.loas.exists(loa_id):
            return ServiceResult.not_found("LOA not found")

        tag_result = normalize_tags(dto.tags)
        warnings = [tag_result.warning] if tag_result.warning else []

        compensations = CompensationStack("create_amendment")
        document_url, failure = await self.uploader.process(
            "document_file", f"{AMENDMENT_DOCUMENTS}/{loa_id}", dto.document_file, compensations,
            label="amendment document file"
        )
        if failure:
            return failure.with_warnings(warnings)

        try:
            amendment = await self.repos.amendments.create({
                "loa_id": loa_id,
                "amendment_number": dto.amendment_number,
                "document_url": document_url,
                "tags": tag_result.tags,
            })
        except Exception:
            await compensations.run()
            raise

        logger.info(f"[LOA] Amendment {amendment['amendment_number']} added to LOA {loa_id}")
        return ServiceResult.ok(amendment, warnings)

    async def update_amendment(self, amendment_id: str, dto: AmendmentUpdate) -> ServiceResult:
        id_errors = validate_id(amendment_id)
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid amendment ID format")

        existing = await self.repos.amendments.find_by_id(amendment_id)
        if not existing:
            return ServiceResult.not_found("Amendment not found")

        errors = self.validator.validate_amendment(dto, partial=True)
        if errors:
            return ServiceResult.validation_failed(errors)

        changes: Dict[str, Any] = {}
        warnings: List[str] = []
        if dto.amendment_number is not None:
            changes["amendment_number"] = dto.amendment_number
        if dto.tags is not None:
            tag_result = normalize_tags(dto.tags)
            changes["tags"] = tag_result.tags
            if tag_result.warning:
                warnings.append(tag_result.warning)

        compensations = CompensationStack("update_amendment")
        document_url, failure = await self.uploader.process(
            "document_file", f"{AMENDMENT_DOCUMENTS}/{existing['loa_id']}", dto.document_file, compensations,
            label="amendment document file"
        )
        if failure:
            return failure.with_warnings(warnings)
        if document_url:
            changes["document_url"] = document_url

        try:
            amendment = await self.repos.amendments.update(amendment_id, changes)
        except Exception:
            await compensations.run()
            raise
        return ServiceResult.ok(amendment, warnings)

    async def delete_amendment(self, amendment_id: str) -> ServiceResult:
        id_errors = validate_id(amendment_id)
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid amendment ID format")

        if not await self.repos.amendments.delete(amendment_id):
            return ServiceResult.not_found("Amendment not found")
        logger.info(f"[LOA] Deleted amendment {amendment_id}")
        return ServiceResult.ok(None)

    async def get_amendments(self, loa_id: str) -> ServiceResult:
        id_errors = validate_id(loa_id, "loa_id")
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid LOA ID format")

        if not await self.repos.loas.exists(loa_id):
            return ServiceResult.not_found("LOA not found")
        return ServiceResult.ok(await self.repos.amendments.find_by_loa_id(loa_id))

    # =========================================================================
    # OTHER DOCUMENTS
    # =========================================================================

    async def create_other_document(self, loa_id: str, dto: OtherDocumentCreate) -> ServiceResult:
        id_errors = validate_id(loa_id, "loa_id")
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid LOA ID format")

        errors = self.validator.validate_other_document(dto)
        if errors:
            return ServiceResult.validation_failed(errors)

        if not await self.repos.loas.exists(loa_id):
            return ServiceResult.not_found("LOA not found")

        compensations = CompensationStack("create_other_document")
        document_url, failure = await self.uploader.process(
            "document_file", OTHER_DOCUMENTS, dto.document_file, compensations, label="document file"
        )
        if failure:
            return failure

        try:
            document = await self.repos.other_documents.create({
                "loa_id": loa_id,
                "title": dto.title,
                "document_url": document_url,
            })
        except Exception:
            await compensations.run()
            raise

        logger.info(f"[LOA] Document '{document['title']}' added to LOA {loa_id}")
        return ServiceResult.ok(document)

    async def update_other_document(self, document_id: str, dto: OtherDocumentUpdate) -> ServiceResult:
        id_errors = validate_id(document_id)
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid document ID format")

        existing = await self.repos.other_documents.find_by_id(document_id)
        if not existing:
            return ServiceResult.not_found("Other document not found")

        errors = self.validator.validate_other_document(dto, partial=True)
        if errors:
            return ServiceResult.validation_failed(errors)

        changes: Dict[str, Any] = {}
        if dto.title is not None:
            changes["title"] = dto.title

        compensations = CompensationStack("update_other_document")
        document_url, failure = await self.uploader.process(
            "document_file", OTHER_DOCUMENTS, dto.document_file, compensations, label="document file"
        )
        if failure:
            return failure
        if document_url:
            changes["document_url"] = document_url

        try:
            document = await self.repos.other_documents.update(document_id, changes)
        except Exception:
            await compensations.run()
            raise
        return ServiceResult.ok(document)

    async def delete_other_document(self, document_id: str) -> ServiceResult:
        id_errors = validate_id(document_id)
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid document ID format")

        if not await self.repos.other_documents.delete(document_id):
            return ServiceResult.not_found("Other document not found")
        logger.info(f"[LOA] Deleted other document {document_id}")
        return ServiceResult.ok(None)

    async def get_other_documents(self, loa_id: str) -> ServiceResult:
        id_errors = validate_id(loa_id, "loa_id")
        if id_errors:
            return ServiceResult.validation_failed(id_errors, "Invalid LOA ID format")

        if not await self.repos.loas.exists(loa_id):
            return ServiceResult.not_found("LOA not found")
        return ServiceResult.ok(await self.repos.other_documents.find_by_loa_id(loa_id))
