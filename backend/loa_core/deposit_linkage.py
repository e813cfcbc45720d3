"""
DEPOSIT LINKAGE

Ties an LOA to its deposits:
- EMD: adopted from the referenced tender exactly once, at creation, and only
  where the LOA did not say otherwise
- SD / PG: opaque references to FDR records; explicit null unlinks, an absent
  field leaves the link alone
- General FDRs: any number of FDRs linked through loa_fdr_links
"""

from datetime import datetime
from typing import Any, Dict, Optional
import logging

from loa_core.loa_validator import validate_id
from loa_core.models import LoaCreate, LoaUpdate
from loa_core.repositories import Repositories
from loa_core.results import ServiceResult

logger = logging.getLogger(__name__)

FDR_LINK_FIELDS = ("has_sd", "sd_fdr_id", "has_pg", "pg_fdr_id")


def fdr_link_changes(dto: LoaUpdate) -> Dict[str, Any]:
    """
    Deposit link keys the client actually sent.

    {"sd_fdr_id": None} unlinks the SD record; a missing key is not a change.
    """
    return {
        field_name: getattr(dto, field_name)
        for field_name in FDR_LINK_FIELDS
        if dto.supplied(field_name)
    }


class DepositLinkage:

    def __init__(self, repos: Repositories):
        self.repos = repos

    # =========================================================================
    # TENDER EMD
    # =========================================================================

    async def resolve_tender_for_create(self, dto: LoaCreate) -> ServiceResult:
        """
        Deposit fields for a new LOA.

        Returns ok({"has_emd": ..., "emd_amount": ...}) with the values to
        store, or NOT_FOUND when the referenced tender does not exist.
        """
        has_emd = dto.has_emd
        emd_amount = dto.emd_amount

        if dto.tender_id:
            tender = await self.repos.tenders.find_by_id(dto.tender_id)
            if not tender:
                return ServiceResult.not_found("Tender not found")

            if has_emd is None and tender.get("has_emd"):
                has_emd = True
                if emd_amount is None:
                    emd_amount = tender.get("emd_amount")
                logger.info(
                    f"[DEPOSIT] Adopted EMD from tender {tender.get('tender_number')} "
                    f"(amount={emd_amount})"
                )

        has_emd = bool(has_emd)
        return ServiceResult.ok({
            "has_emd": has_emd,
            "emd_amount": emd_amount if has_emd else None,
        })

    async def validate_tender_reference(self, tender_id: Optional[str]) -> ServiceResult:
        """A changed, non-null tender reference must point at an existing tender."""
        if tender_id is None:
            return ServiceResult.ok()
        if not await self.repos.tenders.exists(tender_id):
            return ServiceResult.not_found("Tender not found")
        return ServiceResult.ok()

    # =========================================================================
    # GENERAL FDRs
    # =========================================================================

    async def _check_ids(self, loa_id: str, fdr_id: Optional[str] = None) -> Optional[ServiceResult]:
        errors = validate_id(loa_id, "loa_id")
        if fdr_id is not None:
            errors += validate_id(fdr_id, "fdr_id")
        if errors:
            return ServiceResult.validation_failed(errors, "Invalid ID format")
        if not await self.repos.loas.exists(loa_id):
            return ServiceResult.not_found("LOA not found")
        return None

    async def get_general_fdrs(self, loa_id: str) -> ServiceResult:
        """FDR records linked to the LOA, most recently linked first"""
        failure = await self._check_ids(loa_id)
        if failure:
            return failure

        links = await self.repos.fdr_links.find_by_loa_id(loa_id)
        if not links:
            return ServiceResult.ok([])

        fdrs = await self.repos.fdrs.find_all({"_id": {"$in": [link["fdr_id"] for link in links]}})
        by_id = {fdr["id"]: fdr for fdr in fdrs}

        linked = []
        for link in links:
            fdr = by_id.get(link["fdr_id"])
            if fdr is None:
                logger.warning(f"[DEPOSIT] LOA {loa_id} links missing FDR {link['fdr_id']}")
                continue
            linked.append({**fdr, "linked_at": link.get("linked_at"), "linked_by": link.get("linked_by")})
        return ServiceResult.ok(linked)

    async def link_general_fdr(self, loa_id: str, fdr_id: str, user_id: Optional[str] = None) -> ServiceResult:
        failure = await self._check_ids(loa_id, fdr_id)
        if failure:
            return failure

        if not await self.repos.fdrs.exists(fdr_id):
            return ServiceResult.not_found("FDR not found")

        if await self.repos.fdr_links.find_link(loa_id, fdr_id):
            return ServiceResult.conflict("FDR is already linked to this LOA")

        link = await self.repos.fdr_links.create({
            "loa_id": loa_id,
            "fdr_id": fdr_id,
            "linked_by": user_id,
            "linked_at": datetime.utcnow(),
        })
        logger.info(f"[DEPOSIT] Linked FDR {fdr_id} to LOA {loa_id}")
        return ServiceResult.ok(link)

    async def unlink_general_fdr(self, loa_id: str, fdr_id: str) -> ServiceResult:
        failure = await self._check_ids(loa_id, fdr_id)
        if failure:
            return failure

        link = await self.repos.fdr_links.find_link(loa_id, fdr_id)
        if not link:
            return ServiceResult.not_found("FDR is not linked to this LOA")

        await self.repos.fdr_links.delete(link["id"])
        logger.info(f"[DEPOSIT] Unlinked FDR {fdr_id} from LOA {loa_id}")
        return ServiceResult.ok(None)

    async def remove_links_for_loa(self, loa_id: str) -> int:
        return await self.repos.fdr_links.delete_many({"loa_id": loa_id})
