"""
STATUS STATE MACHINE

A small state machine for entity status fields with:
- A closed set of recognised states (unknown values are rejected, never coerced)
- An open graph: any recognised state may move to any other
- Status update and history entry builders

The LOA states read like a sequence (NOT_STARTED -> IN_PROGRESS -> ...)
but only membership is enforced.

Usage:
    machine = StateMachine("loa", LoaStatus.values())
    machine.validate_transition(loa["status"], "CHASE_PAYMENT")
    update = machine.get_status_update("CHASE_PAYMENT")
"""

from typing import Any, Dict, Iterable, List, Optional, Set
from datetime import datetime
from enum import Enum
import logging

logger = logging.getLogger(__name__)


class LoaStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    SUPPLY_WORK_COMPLETED = "SUPPLY_WORK_COMPLETED"
    CHASE_PAYMENT = "CHASE_PAYMENT"
    CLOSED = "CLOSED"
    SUPPLY_WORK_DELAYED = "SUPPLY_WORK_DELAYED"
    APPLICATION_PENDING = "APPLICATION_PENDING"
    UPLOAD_BILL = "UPLOAD_BILL"
    RETRIEVE_EMD_SECURITY = "RETRIEVE_EMD_SECURITY"

    @classmethod
    def values(cls) -> List[str]:
        return [s.value for s in cls]


class BillStatus(str, Enum):
    REGISTERED = "REGISTERED"
    RETURNED = "RETURNED"
    PAYMENT_MADE = "PAYMENT_MADE"

    @classmethod
    def values(cls) -> List[str]:
        return [s.value for s in cls]


# =============================================================================
# EXCEPTIONS
# =============================================================================

class StateMachineError(Exception):
    """Base exception for state machine errors."""
    pass


class UnknownStateError(StateMachineError):
    """Raised when a value is not one of the machine's states."""
    def __init__(self, entity: str, state: Any, allowed: List[str]):
        self.entity = entity
        self.state = state
        self.allowed = allowed
        super().__init__(f"Status must be one of: {', '.join(allowed)}")


# =============================================================================
# STATE MACHINE
# =============================================================================

class StateMachine:
    """
    Status validation for one entity type.

    Example:
        machine = StateMachine("bill", BillStatus.values(), history_field=None)
        machine.validate_transition("REGISTERED", "PAYMENT_MADE")
    """

    def __init__(
        self,
        entity_name: str,
        states: Iterable[str],
        status_field: str = "status",
        history_field: Optional[str] = "status_history"
    ):
        """
        Args:
            entity_name: Name of the entity (for logging/errors)
            states: Every recognised state, in display order
            status_field: Field name that holds current state
            history_field: Field name for transition history (None to disable)
        """
        self.entity_name = entity_name
        self.status_field = status_field
        self.history_field = history_field

        self._ordered_states: List[str] = list(states)
        self._states: Set[str] = set(self._ordered_states)

        logger.info(f"[STATE_MACHINE] Initialized for entity: {entity_name}")

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def is_state(self, state: Any) -> bool:
        return isinstance(state, str) and state in self._states

    def validate_state(self, state: Any) -> str:
        """Return the state if recognised, else raise UnknownStateError."""
        if isinstance(state, Enum):
            state = state.value
        if not self.is_state(state):
            raise UnknownStateError(self.entity_name, state, self._ordered_states)
        return state

    def validate_transition(self, from_state: Optional[str], to_state: str) -> str:
        """
        Validate a status change.
        Raises UnknownStateError for an unrecognised target.
        Any current state, including none, may move to any recognised state.
        """
        return self.validate_state(to_state)

    # =========================================================================
    # UPDATE BUILDERS
    # =========================================================================

    def get_status_update(self, to_state: str) -> Dict[str, Any]:
        """
        Get the update dict for changing status.
        """
        return {
            self.status_field: to_state,
            f"{self.status_field}_changed_at": datetime.utcnow()
        }

    def get_history_entry(
        self,
        from_state: Optional[str],
        to_state: str,
        user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Get a history entry for the transition.
        Use this to append to entity's status history array.
        """
        return {
            "from_state": from_state,
            "to_state": to_state,
            "transitioned_at": datetime.utcnow(),
            "transitioned_by": user_id
        }

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def get_states(self) -> List[str]:
        return list(self._ordered_states)

    def __repr__(self):
        return (
            f"StateMachine({self.entity_name}, "
            f"states={len(self._states)})"
        )


loa_status_machine = StateMachine("loa", LoaStatus.values())

bill_status_machine = StateMachine("bill", BillStatus.values(), history_field=None)
