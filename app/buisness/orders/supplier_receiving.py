"""
SupplierReceivingManager - supplier orders with payment-driven stock receipts

Each payment receives, per item, what the money paid so far covers:
min(floor(paid_amount / unit_price), quantity), less what the ledger already
shows received for the order. The order number is the ledger tag.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional

from app import db
from app.buisness.inventory.availability import EPSILON, format_quantity
from app.buisness.inventory.reconciliation.reconciliation_engine import (
    EVENT_RECEIPT,
    ReconciliationEngine,
    ReconciliationResult,
)
from app.buisness.orders.errors import NotFoundError, ValidationError
from app.buisness.orders.history_sink import HistorySink
from app.buisness.orders.numbering import SUPPLIER_ORDER_PREFIX, document_number
from app.buisness.orders.status_machine import SupplierOrderStateMachine
from app.buisness.orders.unit_of_work import OrderUnitOfWork
from app.data.inventory.material import Material
from app.data.orders.supplier_order import SupplierOrder, SupplierOrderItem, SupplierPayment
from app.utils.logger import get_logger

logger = get_logger("ops_console.orders.supplier")

ENTITY_SUPPLIER_ORDER = 'supplier_order'


def receivable_quantity(paid_amount: float, unit_price: float, quantity: float) -> float:
    """Units of one item covered by the amount paid so far"""
    if unit_price <= 0:
        return quantity
    covered = math.floor(Decimal(str(paid_amount or 0)) / Decimal(str(unit_price)))
    return float(min(covered, quantity))


@dataclass
class SupplierOutcome:
    order: SupplierOrder
    from_status: Optional[str]
    to_status: str
    reconciliation: ReconciliationResult

    @property
    def entity_type(self):
        return ENTITY_SUPPLIER_ORDER

    @property
    def entity_id(self):
        return self.order.id

    @property
    def warnings(self) -> List[str]:
        return self.reconciliation.warnings

    def to_dict(self) -> dict:
        return {
            'entity_type': ENTITY_SUPPLIER_ORDER,
            'entity_id': self.order.id,
            'from_status': self.from_status,
            'to_status': self.to_status,
            'reconciliation': self.reconciliation.to_dict(),
            'order': self.order.to_dict(include_relationships=True),
        }


class SupplierReceivingManager:
    """Creates supplier orders, records their payments and receives the stock those payments cover"""

    def __init__(
        self,
        engine: Optional[ReconciliationEngine] = None,
        history: Optional[HistorySink] = None,
        unit_of_work: Optional[OrderUnitOfWork] = None,
    ):
        self.engine = engine or ReconciliationEngine()
        self.history = history or HistorySink()
        self.uow = unit_of_work or OrderUnitOfWork()

    @staticmethod
    def get_order(order_id: int) -> SupplierOrder:
        order = db.session.get(SupplierOrder, order_id)
        if order is None:
            raise NotFoundError(f"Supplier order {order_id} not found")
        return order

    def create_order(
        self,
        supplier_name: str,
        items: Iterable[Mapping],
        actor: Optional[str] = None,
        payment_plan: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> SupplierOrder:
        """
        Args:
            supplier_name: Supplier
            items: Dicts with material_id, quantity and unit_price; one item per material
        """
        actor = self.uow.actor(actor)
        if not supplier_name:
            raise ValidationError("supplier_name is required")
        items = list(items or [])
        if not items:
            raise ValidationError("A supplier order needs at least one item")

        seen = set()
        for item in items:
            material_id = item.get('material_id')
            if material_id is None:
                raise ValidationError("Each item needs a material_id")
            if material_id in seen:
                raise ValidationError(f"Material {material_id} appears more than once")
            seen.add(material_id)
            if not item.get('quantity') or item['quantity'] <= 0:
                raise ValidationError("Item quantity must be greater than zero")
            if not item.get('unit_price') or item['unit_price'] <= 0:
                raise ValidationError("Item unit price must be greater than zero")
            if db.session.get(Material, material_id) is None:
                raise NotFoundError(f"Material {material_id} not found")

        def operation():
            order = SupplierOrder(
                supplier_name=supplier_name,
                status=SupplierOrderStateMachine.PENDING,
                payment_plan=payment_plan,
                notes=notes,
                paid_amount=0.0,
                created_by=actor,
            )
            for item in items:
                order.items.append(SupplierOrderItem(
                    material_id=item['material_id'],
                    quantity=item['quantity'],
                    unit_price=item['unit_price'],
                    total_price=item['quantity'] * item['unit_price'],
                    created_by=actor,
                ))
            order.total_amount = sum(i.total_price for i in order.items)
            db.session.add(order)
            db.session.flush()
            order.order_number = document_number(SUPPLIER_ORDER_PREFIX, order.id)
            self.history.record(ENTITY_SUPPLIER_ORDER, order.id, None, order.status, "Supplier order created", actor)
            return order

        order = self.uow.run(f"supplier-{supplier_name}", operation, "Create supplier order")
        logger.info(f"Supplier order {order.order_number} created for {supplier_name}")
        return order

    def record_payment(
        self,
        order_id: int,
        amount: float,
        actor: Optional[str] = None,
        note: Optional[str] = None,
        payment_date: Optional[datetime] = None,
    ) -> SupplierOutcome:
        """Record a payment, receive the stock it covers, and move to Partially Paid or Paid"""
        actor = self.uow.actor(actor)
        if amount is None or amount <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        lock_key = self._order_tag(order_id)

        def operation():
            order = self.get_order(order_id)
            from_status = order.status
            if from_status not in (SupplierOrderStateMachine.PENDING, SupplierOrderStateMachine.PARTIALLY_PAID):
                raise ValidationError(f"Payments cannot be recorded on a {from_status} supplier order")
            if amount > order.remaining_amount + EPSILON:
                raise ValidationError(
                    f"Payment of {format_quantity(amount)} exceeds the remaining balance of "
                    f"{format_quantity(order.remaining_amount)}"
                )

            payment = SupplierPayment(amount=amount, notes=note, created_by=actor)
            if payment_date is not None:
                payment.payment_date = payment_date
            order.payments.append(payment)
            order.paid_amount = sum(p.amount for p in order.payments)

            if order.remaining_amount <= EPSILON:
                to_status = SupplierOrderStateMachine.PAID
            else:
                to_status = SupplierOrderStateMachine.PARTIALLY_PAID
            SupplierOrderStateMachine.validate_transition(from_status, to_status)
            order.status = to_status
            order.updated_at = datetime.utcnow()
            db.session.flush()

            targets = {
                item.material_id: receivable_quantity(order.paid_amount, item.unit_price, item.quantity)
                for item in order.items
            }
            result = self.engine.receive_to_targets(
                order.order_tag, targets, EVENT_RECEIPT,
                reference_type='supplier_payment', reference_id=payment.id, actor=actor,
            )
            self.history.record(
                ENTITY_SUPPLIER_ORDER, order.id, from_status, to_status,
                note or f"Payment of {format_quantity(amount)} recorded", actor,
            )
            return SupplierOutcome(order, from_status, to_status, result)

        return self.uow.run(lock_key, operation, f"Payment on supplier order {order_id}")

    def transition(self, order_id: int, to_status: str, actor: Optional[str] = None, note: Optional[str] = None) -> SupplierOutcome:
        """Caller-requested supplier status change; only cancellation of a Pending order"""
        actor = self.uow.actor(actor)
        lock_key = self._order_tag(order_id)

        def operation():
            order = self.get_order(order_id)
            from_status = order.status
            SupplierOrderStateMachine.validate_requested(from_status, to_status)
            order.status = to_status
            order.updated_at = datetime.utcnow()
            # Nothing is received before the first payment, so there is no stock to undo
            result = ReconciliationResult(order_tag=order.order_tag, event=to_status.lower())
            self.history.record(ENTITY_SUPPLIER_ORDER, order.id, from_status, to_status, note, actor)
            return SupplierOutcome(order, from_status, to_status, result)

        return self.uow.run(lock_key, operation, f"Supplier order {order_id} -> {to_status}")

    def _order_tag(self, order_id: int) -> str:
        tag = db.session.query(SupplierOrder.order_number).filter(SupplierOrder.id == order_id).scalar()
        if tag is None:
            raise NotFoundError(f"Supplier order {order_id} not found")
        return tag
