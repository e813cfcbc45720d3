"""
Status state machine: membership, open graph, update builders
"""
import pytest

from loa_core.status_machine import (
    BillStatus, LoaStatus, StateMachine, UnknownStateError,
    bill_status_machine, loa_status_machine
)


class TestLoaStatusMachine:

    def test_nine_states_in_order(self):
        assert loa_status_machine.get_states() == [
            "NOT_STARTED", "IN_PROGRESS", "SUPPLY_WORK_COMPLETED", "CHASE_PAYMENT", "CLOSED",
            "SUPPLY_WORK_DELAYED", "APPLICATION_PENDING", "UPLOAD_BILL", "RETRIEVE_EMD_SECURITY",
        ]

    def test_any_state_reaches_any_other(self):
        for from_state in LoaStatus.values():
            for to_state in LoaStatus.values():
                assert loa_status_machine.validate_transition(from_state, to_state) == to_state

    def test_closed_can_reopen(self):
        assert loa_status_machine.validate_transition("CLOSED", "IN_PROGRESS") == "IN_PROGRESS"

    def test_record_without_status_can_enter_any_state(self):
        assert loa_status_machine.validate_transition(None, "UPLOAD_BILL") == "UPLOAD_BILL"

    @pytest.mark.parametrize("value", ["DONE", "closed", "", None, 3])
    def test_unknown_states_rejected(self, value):
        with pytest.raises(UnknownStateError) as exc:
            loa_status_machine.validate_state(value)
        assert str(exc.value).startswith("Status must be one of: NOT_STARTED")

    def test_unknown_target_rejected_from_any_state(self):
        with pytest.raises(UnknownStateError) as exc:
            loa_status_machine.validate_transition("IN_PROGRESS", "PAYMENT_MADE")
        assert exc.value.entity == "loa"
        assert exc.value.state == "PAYMENT_MADE"

    def test_enum_members_accepted(self):
        assert loa_status_machine.validate_state(LoaStatus.CHASE_PAYMENT) == "CHASE_PAYMENT"

    def test_status_update_and_history(self):
        update = loa_status_machine.get_status_update("CLOSED")
        assert update["status"] == "CLOSED"
        assert "status_changed_at" in update

        entry = loa_status_machine.get_history_entry("IN_PROGRESS", "CLOSED", "user-1")
        assert entry["from_state"] == "IN_PROGRESS"
        assert entry["to_state"] == "CLOSED"
        assert entry["transitioned_by"] == "user-1"


class TestBillStatusMachine:

    def test_bill_states(self):
        assert bill_status_machine.get_states() == BillStatus.values()
        assert bill_status_machine.history_field is None

    def test_bill_machine_is_open(self):
        assert bill_status_machine.validate_transition("PAYMENT_MADE", "REGISTERED") == "REGISTERED"

    def test_membership(self):
        assert bill_status_machine.is_state("RETURNED")
        assert not bill_status_machine.is_state("CLOSED")
        assert not bill_status_machine.is_state(None)

    def test_custom_status_field(self):
        machine = StateMachine("bill", BillStatus.values(), status_field="state", history_field=None)
        assert set(machine.get_status_update("RETURNED")) == {"state", "state_changed_at"}
