# LOA API Endpoints
#
# To integrate: Add to main server.py with:
# from loa_routes import create_loa_routes
# app.include_router(create_loa_routes(loa_service))

from fastapi import APIRouter, HTTPException, Query, status
from typing import Any, Dict, Optional
import logging

from loa_core.loa_lifecycle import LoaService
from loa_core.models import (
    AmendmentCreate, AmendmentUpdate, FdrLinkRequest, LoaCreate, LoaListParams, LoaStatusUpdate,
    LoaUpdate, ManualFinancialsUpdate, OtherDocumentCreate, OtherDocumentUpdate, PendingSplitUpdate
)
from loa_core.results import ErrorKind, ServiceResult

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.DOCUMENT: status.HTTP_502_BAD_GATEWAY,
}


def result_response(result: ServiceResult) -> Dict[str, Any]:
    """Response body for a successful result; HTTPException for a failed one."""
    if not result.is_success:
        raise HTTPException(
            status_code=ERROR_STATUS.get(result.kind, status.HTTP_400_BAD_REQUEST),
            detail={
                "message": result.message,
                "kind": result.kind.value if result.kind else None,
                "errors": result.error_dicts(),
                "warnings": result.warnings,
            }
        )
    return {"success": True, "data": result.data, "warnings": result.warnings}


def create_loa_routes(service: LoaService) -> APIRouter:
    """Create LOA API router with lifecycle, financial and sub-resource endpoints"""

    router = APIRouter(prefix="/api/loas", tags=["LOAs"])

    # ============================================
    # LOA ENDPOINTS
    # ============================================

    @router.post("", status_code=status.HTTP_201_CREATED)
    async def create_loa(loa_data: LoaCreate):
        """Create LOA (optional initial bill from billing fields)"""
        return result_response(await service.create_loa(loa_data))

    @router.get("")
    async def list_loas(
        search_term: Optional[str] = None,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        site_id: Optional[str] = None,
        tender_id: Optional[str] = None,
        status_filter: Optional[str] = Query(None, alias="status"),
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        has_emd: Optional[bool] = None,
        has_sd: Optional[bool] = None,
        has_pg: Optional[bool] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = Query(None, pattern="^(asc|desc)$")
    ):
        """Paginated LOA list with filters"""
        params = LoaListParams(
            search_term=search_term, page=page, limit=limit, site_id=site_id,
            tender_id=tender_id, status=status_filter, min_value=min_value, max_value=max_value,
            has_emd=has_emd, has_sd=has_sd, has_pg=has_pg, sort_by=sort_by, sort_order=sort_order
        )
        return result_response(await service.get_all_loas(params))

    @router.get("/{loa_id}")
    async def get_loa(loa_id: str):
        return result_response(await service.get_loa(loa_id))

    @router.put("/{loa_id}")
    async def update_loa(loa_id: str, loa_data: LoaUpdate):
        """
        Partial LOA update.
        Omitted fields are untouched; sd_fdr_id / pg_fdr_id set to null unlink.
        """
        return result_response(await service.update_loa(loa_id, loa_data))

    @router.delete("/{loa_id}")
    async def delete_loa(loa_id: str):
        """Delete LOA (blocked while purchase orders reference it)"""
        return result_response(await service.delete_loa(loa_id))

    @router.patch("/{loa_id}/status")
    async def update_loa_status(loa_id: str, status_data: LoaStatusUpdate):
        return result_response(await service.update_status(loa_id, status_data.status))

    # ============================================
    # FINANCIAL ENDPOINTS
    # ============================================

    @router.get("/{loa_id}/financials")
    async def get_loa_financials(loa_id: str):
        """LOA with bill-derived totals (manual overrides win)"""
        return result_response(await service.get_loa_with_financials(loa_id))

    @router.patch("/{loa_id}/pending-split")
    async def update_pending_split(loa_id: str, split_data: PendingSplitUpdate):
        return result_response(await service.update_pending_split(loa_id, split_data))

    @router.patch("/{loa_id}/manual-financials")
    async def update_manual_financials(loa_id: str, financials_data: ManualFinancialsUpdate):
        return result_response(await service.update_manual_financials(loa_id, financials_data))

    # ============================================
    # AMENDMENT ENDPOINTS
    # ============================================

    @router.get("/{loa_id}/amendments")
    async def list_amendments(loa_id: str):
        return result_response(await service.get_amendments(loa_id))

    @router.post("/{loa_id}/amendments", status_code=status.HTTP_201_CREATED)
    async def create_amendment(loa_id: str, amendment_data: AmendmentCreate):
        return result_response(await service.create_amendment(loa_id, amendment_data))

    @router.put("/amendments/{amendment_id}")
    async def update_amendment(amendment_id: str, amendment_data: AmendmentUpdate):
        return result_response(await service.update_amendment(amendment_id, amendment_data))

    @router.delete("/amendments/{amendment_id}")
    async def delete_amendment(amendment_id: str):
        return result_response(await service.delete_amendment(amendment_id))

    # ============================================
    # OTHER DOCUMENT ENDPOINTS
    # ============================================

    @router.get("/{loa_id}/other-documents")
    async def list_other_documents(loa_id: str):
        return result_response(await service.get_other_documents(loa_id))

    @router.post("/{loa_id}/other-documents", status_code=status.HTTP_201_CREATED)
    async def create_other_document(loa_id: str, document_data: OtherDocumentCreate):
        return result_response(await service.create_other_document(loa_id, document_data))

    @router.put("/other-documents/{document_id}")
    async def update_other_document(document_id: str, document_data: OtherDocumentUpdate):
        return result_response(await service.update_other_document(document_id, document_data))

    @router.delete("/other-documents/{document_id}")
    async def delete_other_document(document_id: str):
        return result_response(await service.delete_other_document(document_id))

    # ============================================
    # GENERAL FDR ENDPOINTS
    # ============================================

    @router.get("/{loa_id}/general-fdrs")
    async def list_general_fdrs(loa_id: str):
        return result_response(await service.deposits.get_general_fdrs(loa_id))

    @router.post("/{loa_id}/general-fdrs", status_code=status.HTTP_201_CREATED)
    async def link_general_fdr(loa_id: str, link_data: FdrLinkRequest):
        return result_response(
            await service.deposits.link_general_fdr(loa_id, link_data.fdr_id, link_data.user_id)
        )

    @router.delete("/{loa_id}/general-fdrs/{fdr_id}")
    async def unlink_general_fdr(loa_id: str, fdr_id: str):
        return result_response(await service.deposits.unlink_general_fdr(loa_id, fdr_id))

    return router
