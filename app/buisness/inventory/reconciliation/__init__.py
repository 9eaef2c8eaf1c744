"""
Ledger-backed stock reconciliation.

The engine is called by the order lifecycle for every business event that
moves stock. It always recomputes what was already moved from the ledger, so
replaying an event is a no-op.
"""

from app.buisness.inventory.reconciliation.reconciliation_engine import (
    EVENT_APPROVAL,
    EVENT_DELETION,
    EVENT_PAYMENT,
    EVENT_PAYMENT_PLAN,
    EVENT_RECEIPT,
    EVENT_REJECTION,
    EVENT_REVERSION,
    EVENT_SUBMIT,
    ClampEvent,
    LedgerMovement,
    ReconciliationEngine,
    ReconciliationResult,
    compute_paid_ratio,
    target_for_ratio,
)

__all__ = [
    'EVENT_APPROVAL',
    'EVENT_DELETION',
    'EVENT_PAYMENT',
    'EVENT_PAYMENT_PLAN',
    'EVENT_RECEIPT',
    'EVENT_REJECTION',
    'EVENT_REVERSION',
    'EVENT_SUBMIT',
    'ClampEvent',
    'LedgerMovement',
    'ReconciliationEngine',
    'ReconciliationResult',
    'compute_paid_ratio',
    'target_for_ratio',
]
