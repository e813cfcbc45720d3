"""
Bill ledger: creation rules, merged partial updates, derived pending
"""
from datetime import datetime

import pytest

from conftest import RecordingStorage, new_id, pdf, run

from loa_core.bill_ledger import BillLedger
from loa_core.documents import DocumentUploader
from loa_core.models import BillCreate, BillUpdate
from loa_core.results import ErrorKind, PersistenceError


@pytest.fixture
def ledger(repos, storage):
    return BillLedger(repos.bills, repos.loas, DocumentUploader(storage))


@pytest.fixture
def loa_id(seeded_loa):
    return seeded_loa["id"]


class TestCreateBill:

    def test_defaults(self, ledger, loa_id):
        result = run(ledger.create_bill(loa_id, BillCreate(invoice_number="INV-1", invoice_amount=1000)))
        assert result.is_success
        bill = result.data
        assert bill["loa_id"] == loa_id
        assert bill["amount_received"] == 0
        assert bill["amount_deducted"] == 0
        assert bill["status"] == "REGISTERED"
        assert bill["amount_pending"] == 1000.0
        assert bill["is_overpaid"] is False
        assert bill["invoice_pdf_url"] is None

    def test_deduction_requires_reason(self, ledger, loa_id):
        dto = BillCreate(invoice_amount=1000, amount_deducted=50)
        result = run(ledger.create_bill(loa_id, dto))
        assert not result.is_success
        assert result.kind == ErrorKind.VALIDATION
        assert [e.field for e in result.errors] == ["deduction_reason"]

        dto = BillCreate(invoice_amount=1000, amount_deducted=50, deduction_reason="damage")
        result = run(ledger.create_bill(loa_id, dto))
        assert result.is_success
        assert result.data["amount_pending"] == 950.0

    def test_received_plus_deducted_over_invoice(self, ledger, loa_id):
        dto = BillCreate(invoice_amount=100, amount_received=90, amount_deducted=20, deduction_reason="short supply")
        result = run(ledger.create_bill(loa_id, dto))
        assert result.kind == ErrorKind.VALIDATION
        assert result.errors[0].field == "invoice_amount"

    def test_unknown_status(self, ledger, loa_id):
        result = run(ledger.create_bill(loa_id, BillCreate(invoice_amount=100, status="PAID")))
        assert result.kind == ErrorKind.VALIDATION
        assert result.errors[0].field == "status"

    def test_missing_loa(self, ledger):
        result = run(ledger.create_bill(new_id(), BillCreate(invoice_amount=100)))
        assert result.kind == ErrorKind.NOT_FOUND

    def test_malformed_loa_id(self, ledger):
        result = run(ledger.create_bill("not-a-uuid", BillCreate(invoice_amount=100)))
        assert result.kind == ErrorKind.VALIDATION
        assert result.errors[0].field == "loa_id"

    def test_invoice_pdf_uploaded(self, ledger, loa_id, storage):
        result = run(ledger.create_bill(loa_id, BillCreate(invoice_amount=100, invoice_pdf_file=pdf("inv.pdf"))))
        assert result.is_success
        assert result.data["invoice_pdf_url"].startswith("memory://bills/")
        assert storage.uploaded_keys[-1].endswith(".pdf")

    def test_invoice_pdf_upload_failure(self, repos, loa_id):
        ledger = BillLedger(repos.bills, repos.loas, DocumentUploader(RecordingStorage(fail_on=["bills/"])))
        result = run(ledger.create_bill(loa_id, BillCreate(invoice_amount=100, invoice_pdf_file=pdf())))
        assert result.kind == ErrorKind.DOCUMENT
        assert result.errors[0].field == "invoice_pdf_file"
        assert run(repos.bills.count_by_loa_id(loa_id)) == 0

    def test_persistence_failure_removes_uploaded_pdf(self, ledger, loa_id, storage, monkeypatch):
        async def broken_create(data):
            raise PersistenceError("bills", "create", RuntimeError("write concern"))

        monkeypatch.setattr(ledger.bills, "create", broken_create)
        with pytest.raises(PersistenceError):
            run(ledger.create_bill(loa_id, BillCreate(invoice_amount=100, invoice_pdf_file=pdf())))
        assert len(storage.deleted) == 1
        assert storage.files == {}


class TestUpdateBill:

    @pytest.fixture
    def bill(self, ledger, loa_id):
        dto = BillCreate(invoice_number="INV-7", invoice_amount=1000, amount_received=200, invoice_pdf_file=pdf())
        return run(ledger.create_bill(loa_id, dto)).data

    def test_partial_update_validated_against_merged_state(self, ledger, bill):
        # 200 already received; 900 more deducted would exceed the invoice
        result = run(ledger.update_bill(bill["id"], BillUpdate(amount_deducted=900, deduction_reason="penalty")))
        assert result.kind == ErrorKind.VALIDATION

        result = run(ledger.update_bill(bill["id"], BillUpdate(amount_deducted=100)))
        assert result.kind == ErrorKind.VALIDATION
        assert result.errors[0].field == "deduction_reason"

        result = run(ledger.update_bill(bill["id"], BillUpdate(amount_deducted=100, deduction_reason="penalty")))
        assert result.is_success
        assert result.data["invoice_number"] == "INV-7"
        assert result.data["amount_pending"] == 700.0

    def test_pdf_kept_when_no_file_supplied(self, ledger, bill):
        result = run(ledger.update_bill(bill["id"], BillUpdate(remarks="checked")))
        assert result.data["invoice_pdf_url"] == bill["invoice_pdf_url"]

    def test_pdf_replaced_when_file_supplied(self, ledger, bill):
        result = run(ledger.update_bill(bill["id"], BillUpdate(invoice_pdf_file=pdf("revised.pdf"))))
        assert result.data["invoice_pdf_url"] != bill["invoice_pdf_url"]

    def test_missing_bill(self, ledger):
        result = run(ledger.update_bill(new_id(), BillUpdate(remarks="x")))
        assert result.kind == ErrorKind.NOT_FOUND

    def test_loa_id_is_fixed(self, ledger, bill):
        result = run(ledger.update_bill(bill["id"], BillUpdate(status="PAYMENT_MADE")))
        assert result.data["loa_id"] == bill["loa_id"]
        assert result.data["status"] == "PAYMENT_MADE"


class TestReadAndDelete:

    def test_bills_newest_first_with_pending(self, ledger, loa_id, repos):
        run(repos.bills.create({
            "loa_id": loa_id, "invoice_number": "OLD", "invoice_amount": 100,
            "amount_received": 150, "amount_deducted": 0, "created_at": datetime(2023, 1, 1),
        }))
        run(ledger.create_bill(loa_id, BillCreate(invoice_number="NEW", invoice_amount=300)))

        bills = run(ledger.get_bills_by_loa_id(loa_id)).data
        assert [b["invoice_number"] for b in bills] == ["NEW", "OLD"]
        assert bills[1]["amount_pending"] == -50.0
        assert bills[1]["is_overpaid"] is True

    def test_get_by_id(self, ledger, loa_id):
        bill = run(ledger.create_bill(loa_id, BillCreate(invoice_amount=10))).data
        assert run(ledger.get_bill_by_id(bill["id"])).data["id"] == bill["id"]
        assert run(ledger.get_bill_by_id(new_id())).kind == ErrorKind.NOT_FOUND

    def test_delete(self, ledger, loa_id):
        bill = run(ledger.create_bill(loa_id, BillCreate(invoice_amount=10))).data
        assert run(ledger.delete_bill(bill["id"])).is_success
        assert run(ledger.delete_bill(bill["id"])).kind == ErrorKind.NOT_FOUND
        assert run(ledger.count_bills(loa_id)) == 0
