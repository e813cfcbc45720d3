# Bill API Endpoints
#
# To integrate: Add to main server.py with:
# from bill_routes import create_bill_routes
# app.include_router(create_bill_routes(loa_service.bill_ledger))

from fastapi import APIRouter, status
import logging

from loa_core.bill_ledger import BillLedger
from loa_core.models import BillCreate, BillUpdate
from loa_routes import result_response

logger = logging.getLogger(__name__)


def create_bill_routes(ledger: BillLedger) -> APIRouter:
    """Create bill API router"""

    router = APIRouter(prefix="/api", tags=["Bills"])

    @router.post("/loas/{loa_id}/bills", status_code=status.HTTP_201_CREATED)
    async def create_bill(loa_id: str, bill_data: BillCreate):
        """Register a bill against an LOA (status defaults to REGISTERED)"""
        return result_response(await ledger.create_bill(loa_id, bill_data))

    @router.get("/loas/{loa_id}/bills")
    async def list_bills(loa_id: str):
        """Bills of an LOA, newest first, each with amount_pending"""
        return result_response(await ledger.get_bills_by_loa_id(loa_id))

    @router.get("/bills/{bill_id}")
    async def get_bill(bill_id: str):
        return result_response(await ledger.get_bill_by_id(bill_id))

    @router.put("/bills/{bill_id}")
    async def update_bill(bill_id: str, bill_data: BillUpdate):
        """Partial bill update, validated against the merged bill"""
        return result_response(await ledger.update_bill(bill_id, bill_data))

    @router.delete("/bills/{bill_id}")
    async def delete_bill(bill_id: str):
        return result_response(await ledger.delete_bill(bill_id))

    return router
