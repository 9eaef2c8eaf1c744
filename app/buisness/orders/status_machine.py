"""
State machines for order request, client order and supplier order statuses

Encodes valid transitions only. Keeps "what is allowed" separate from
"how stock and persistence follow", which belongs to the lifecycle manager.
"""

from typing import Dict, Set
from app.buisness.orders.errors import ValidationError


class StatusMachine:
    """Base transition table with the shared checks"""

    ENTITY_LABEL = 'status'
    TERMINAL_STATES: Set[str] = set()
    TRANSITIONS: Dict[str, Set[str]] = {}

    # Statuses the system enters on its own; callers cannot request them
    AUTOMATIC_STATES: Set[str] = set()

    @classmethod
    def statuses(cls) -> Set[str]:
        result = set(cls.TRANSITIONS)
        for targets in cls.TRANSITIONS.values():
            result |= targets
        return result | cls.TERMINAL_STATES

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """
        Check if transition is valid.

        Args:
            from_status: Current status
            to_status: Target status

        Returns:
            bool: True if transition is allowed
        """
        if from_status in cls.TERMINAL_STATES:
            return False
        return to_status in cls.TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """
        Raises:
            ValidationError: If transition is not allowed
        """
        if to_status not in cls.statuses():
            raise ValidationError(f"Unknown {cls.ENTITY_LABEL}: {to_status}")
        if not cls.can_transition(from_status, to_status):
            raise ValidationError(
                f"Invalid {cls.ENTITY_LABEL} transition: {from_status} → {to_status}"
            )

    @classmethod
    def validate_requested(cls, from_status: str, to_status: str) -> None:
        """Like validate_transition, but also refuses statuses that are only entered automatically"""
        if to_status in cls.AUTOMATIC_STATES:
            raise ValidationError(f"{to_status} is set automatically and cannot be chosen")
        cls.validate_transition(from_status, to_status)

    @classmethod
    def get_allowed_transitions(cls, from_status: str) -> Set[str]:
        """Get set of allowed target statuses a caller may request from current status"""
        if from_status in cls.TERMINAL_STATES:
            return set()
        return cls.TRANSITIONS.get(from_status, set()) - cls.AUTOMATIC_STATES


class OrderRequestStateMachine(StatusMachine):
    """
    Request workflow: Pending → Approved | Rejected, terminal afterwards.
    """

    ENTITY_LABEL = 'request status'

    PENDING = 'Pending'
    APPROVED = 'Approved'
    REJECTED = 'Rejected'

    TERMINAL_STATES = {APPROVED, REJECTED}

    TRANSITIONS: Dict[str, Set[str]] = {
        PENDING: {APPROVED, REJECTED},
    }


class ClientOrderStateMachine(StatusMachine):
    """
    Client order workflow.

    Approved ⇄ Partially Paid → Completed, Approved | Partially Paid → Rejected,
    and Approved | Partially Paid | Rejected → Pending (reverts to a fresh request).
    Completed is terminal and only reached by a payment that clears the balance.
    """

    ENTITY_LABEL = 'order status'

    PENDING = 'Pending'
    APPROVED = 'Approved'
    PARTIALLY_PAID = 'Partially Paid'
    COMPLETED = 'Completed'
    REJECTED = 'Rejected'

    TERMINAL_STATES = {COMPLETED}
    AUTOMATIC_STATES = {COMPLETED}

    # Partially Paid -> Partially Paid is a further payment
    TRANSITIONS: Dict[str, Set[str]] = {
        APPROVED: {PARTIALLY_PAID, COMPLETED, REJECTED, PENDING},
        PARTIALLY_PAID: {APPROVED, PARTIALLY_PAID, COMPLETED, REJECTED, PENDING},
        REJECTED: {PENDING},
    }

    PAYABLE_STATES = {APPROVED, PARTIALLY_PAID}
    ACTIVE_STATES = {APPROVED, PARTIALLY_PAID}


class SupplierOrderStateMachine(StatusMachine):
    """
    Supplier order workflow: payments move Pending → Partially Paid → Paid;
    only a Pending order can be cancelled.
    """

    ENTITY_LABEL = 'supplier order status'

    PENDING = 'Pending'
    PARTIALLY_PAID = 'Partially Paid'
    PAID = 'Paid'
    CANCELLED = 'Cancelled'

    TERMINAL_STATES = {PAID, CANCELLED}
    AUTOMATIC_STATES = {PARTIALLY_PAID, PAID}

    TRANSITIONS: Dict[str, Set[str]] = {
        PENDING: {PARTIALLY_PAID, PAID, CANCELLED},
        PARTIALLY_PAID: {PARTIALLY_PAID, PAID},
    }
