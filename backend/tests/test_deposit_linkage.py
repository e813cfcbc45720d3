"""
Deposit linkage: tender EMD adoption, SD/PG links, general FDRs
"""
import pytest

from conftest import make_loa, new_id, run

from loa_core.models import LoaUpdate
from loa_core.results import ErrorKind


class TestTenderEmdAdoption:
    """EMD comes from the tender only where the LOA left it unspecified"""

    def test_adopts_emd_from_tender(self, service, seed_tender):
        tender = seed_tender(has_emd=True, emd_amount=500.0)
        result = run(service.create_loa(make_loa(tender_id=tender["id"])))
        assert result.is_success
        stored = run(service.repos.loas.find_by_id(result.data["id"]))
        assert stored["has_emd"] is True
        assert stored["emd_amount"] == 500.0

    def test_explicit_emd_amount_is_kept(self, service, seed_tender):
        tender = seed_tender(has_emd=True, emd_amount=500.0)
        result = run(service.create_loa(make_loa(tender_id=tender["id"], emd_amount=750.0)))
        assert result.data["has_emd"] is True
        assert result.data["emd_amount"] == 750.0

    def test_explicit_no_emd_is_not_overridden(self, service, seed_tender):
        tender = seed_tender(has_emd=True, emd_amount=500.0)
        result = run(service.create_loa(make_loa(tender_id=tender["id"], has_emd=False)))
        assert result.data["has_emd"] is False
        assert result.data["emd_amount"] is None

    def test_tender_without_emd(self, service, seed_tender):
        tender = seed_tender(has_emd=False, emd_amount=None)
        result = run(service.create_loa(make_loa(tender_id=tender["id"])))
        assert result.data["has_emd"] is False

    def test_missing_tender(self, service, repos):
        result = run(service.create_loa(make_loa(tender_id=new_id())))
        assert result.kind == ErrorKind.NOT_FOUND
        assert result.message == "Tender not found"
        assert run(repos.loas.count()) == 0


class TestFdrLinks:
    """Explicit null unlinks; an omitted field leaves the link alone"""

    @pytest.fixture
    def linked_loa(self, service, seed_fdr):
        sd = seed_fdr(category="SD")
        pg = seed_fdr(category="PG")
        loa = run(service.create_loa(make_loa(sd_fdr_id=sd["id"], pg_fdr_id=pg["id"]))).data
        assert loa["has_sd"] is True
        return loa

    def test_explicit_null_unlinks(self, service, linked_loa):
        result = run(service.update_loa(linked_loa["id"], LoaUpdate(sd_fdr_id=None)))
        assert result.is_success
        stored = run(service.repos.loas.find_by_id(linked_loa["id"]))
        assert stored["sd_fdr_id"] is None
        assert stored["has_sd"] is False
        assert stored["pg_fdr_id"] == linked_loa["pg_fdr_id"]

    def test_omitted_field_keeps_link(self, service, linked_loa):
        result = run(service.update_loa(linked_loa["id"], LoaUpdate(remarks="updated")))
        assert result.is_success
        stored = run(service.repos.loas.find_by_id(linked_loa["id"]))
        assert stored["sd_fdr_id"] == linked_loa["sd_fdr_id"]
        assert stored["pg_fdr_id"] == linked_loa["pg_fdr_id"]
        assert stored["remarks"] == "updated"


class TestGeneralFdrs:

    def test_link_list_unlink(self, service, seeded_loa, seed_fdr):
        fdr = seed_fdr()
        deposits = service.deposits

        linked = run(deposits.link_general_fdr(seeded_loa["id"], fdr["id"], "user-1"))
        assert linked.is_success

        listed = run(deposits.get_general_fdrs(seeded_loa["id"])).data
        assert [f["id"] for f in listed] == [fdr["id"]]
        assert listed[0]["bank_name"] == "State Bank"
        assert listed[0]["linked_by"] == "user-1"

        assert run(deposits.unlink_general_fdr(seeded_loa["id"], fdr["id"])).is_success
        assert run(deposits.get_general_fdrs(seeded_loa["id"])).data == []

    def test_duplicate_link_conflicts(self, service, seeded_loa, seed_fdr):
        fdr = seed_fdr()
        run(service.deposits.link_general_fdr(seeded_loa["id"], fdr["id"]))
        result = run(service.deposits.link_general_fdr(seeded_loa["id"], fdr["id"]))
        assert result.kind == ErrorKind.CONFLICT

    def test_unlink_when_not_linked(self, service, seeded_loa, seed_fdr):
        fdr = seed_fdr()
        result = run(service.deposits.unlink_general_fdr(seeded_loa["id"], fdr["id"]))
        assert result.kind == ErrorKind.NOT_FOUND
        assert result.message == "FDR is not linked to this LOA"

    def test_missing_fdr_or_loa(self, service, seeded_loa, seed_fdr):
        assert run(service.deposits.link_general_fdr(seeded_loa["id"], new_id())).kind == ErrorKind.NOT_FOUND
        assert run(service.deposits.link_general_fdr(new_id(), seed_fdr()["id"])).kind == ErrorKind.NOT_FOUND

    def test_malformed_ids(self, service):
        result = run(service.deposits.link_general_fdr("bad", "also-bad"))
        assert result.kind == ErrorKind.VALIDATION
        assert [e.field for e in result.errors] == ["loa_id", "fdr_id"]
