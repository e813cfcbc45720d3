from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Union
from datetime import datetime
import base64
import binascii
import os

# Request models are loose: missing or out-of-range values are
# reported by loa_validator as a full list of field errors instead of
# failing on the first pydantic error.

RawTags = Optional[Union[List[str], str]]


def strip_text(value):
    return value.strip() if isinstance(value, str) else value


# ============================================
# UPLOADED DOCUMENT
# ============================================
class UploadedDocument(BaseModel):
    file_name: str
    content_type: str = "application/pdf"
    data: str  # base64 encoded file content

    @property
    def extension(self) -> str:
        return os.path.splitext(self.file_name)[1].lower()

    def content(self) -> bytes:
        """Decoded bytes. Raises ValueError on malformed base64."""
        try:
            return base64.b64decode(self.data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 content for {self.file_name}: {e}")


# ============================================
# LOA MODELS
# ============================================
class DeliveryPeriod(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class LoaBase(BaseModel):
    loa_number: Optional[str] = None
    loa_value: Optional[float] = None
    delivery_period: Optional[DeliveryPeriod] = None
    due_date: Optional[datetime] = None
    order_received_date: Optional[datetime] = None
    work_description: Optional[str] = None
    site_id: Optional[str] = None
    status: Optional[str] = None
    tags: RawTags = None
    remarks: Optional[str] = None

    tender_no: Optional[str] = None
    tender_id: Optional[str] = None
    order_poc: Optional[str] = None
    poc_id: Optional[str] = None
    inspection_agency_id: Optional[str] = None
    fd_bg_details: Optional[str] = None

    # Deposits
    has_emd: Optional[bool] = None
    emd_amount: Optional[float] = None
    has_sd: Optional[bool] = None
    sd_fdr_id: Optional[str] = None
    has_pg: Optional[bool] = None
    pg_fdr_id: Optional[str] = None

    # Pending split
    recoverable_pending: Optional[float] = None
    payment_pending: Optional[float] = None

    # Warranty
    warranty_period_months: Optional[int] = None
    warranty_period_years: Optional[int] = None
    warranty_start_date: Optional[datetime] = None
    warranty_end_date: Optional[datetime] = None

    # Billing shortcut (LOA-level totals + initial invoice)
    invoice_number: Optional[str] = None
    invoice_amount: Optional[float] = None
    bill_links: Optional[str] = None
    actual_amount_received: Optional[float] = None
    amount_deducted: Optional[float] = None
    deduction_reason: Optional[str] = None

    # Files
    document_file: Optional[UploadedDocument] = None
    invoice_pdf_file: Optional[UploadedDocument] = None

    def has_billing_fields(self) -> bool:
        return any(
            value is not None
            for value in (self.invoice_number, self.invoice_amount, self.bill_links, self.invoice_pdf_file)
        )

    @field_validator("loa_number", mode="before")
    @classmethod
    def strip_loa_number(cls, value):
        return strip_text(value)


class LoaCreate(LoaBase):
    pass


class LoaUpdate(LoaBase):
    bill_id: Optional[str] = None  # selects the bill the billing shortcut applies to

    def supplied(self, field_name: str) -> bool:
        """True when the client sent the field, even as null"""
        return field_name in self.model_fields_set


class LoaStatusUpdate(BaseModel):
    status: Optional[str] = None


class PendingSplitUpdate(BaseModel):
    recoverable_pending: float
    payment_pending: float


class ManualFinancialsUpdate(BaseModel):
    manual_total_billed: Optional[float] = None
    manual_total_received: Optional[float] = None
    manual_total_deducted: Optional[float] = None
    recoverable_pending: Optional[float] = None


class FdrLinkRequest(BaseModel):
    fdr_id: str
    user_id: Optional[str] = None


# ============================================
# BILL MODELS
# ============================================
class BillBase(BaseModel):
    invoice_number: Optional[str] = None
    invoice_amount: Optional[float] = None
    amount_received: Optional[float] = None
    amount_deducted: Optional[float] = None
    deduction_reason: Optional[str] = None
    bill_links: Optional[str] = None
    remarks: Optional[str] = None
    status: Optional[str] = None
    invoice_pdf_file: Optional[UploadedDocument] = None


class BillCreate(BillBase):
    pass


class BillUpdate(BillBase):
    pass


# ============================================
# AMENDMENT / OTHER DOCUMENT MODELS
# ============================================
class AmendmentCreate(BaseModel):
    amendment_number: Optional[str] = None
    tags: RawTags = None
    document_file: Optional[UploadedDocument] = None

    @field_validator("amendment_number", mode="before")
    @classmethod
    def strip_amendment_number(cls, value):
        return strip_text(value)


class AmendmentUpdate(AmendmentCreate):
    pass


class OtherDocumentCreate(BaseModel):
    title: Optional[str] = None
    document_file: Optional[UploadedDocument] = None

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        return strip_text(value)


class OtherDocumentUpdate(OtherDocumentCreate):
    pass


# ============================================
# LISTING
# ============================================
class LoaListParams(BaseModel):
    search_term: Optional[str] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    site_id: Optional[str] = None
    tender_id: Optional[str] = None
    status: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    has_emd: Optional[bool] = None
    has_sd: Optional[bool] = None
    has_pg: Optional[bool] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None
