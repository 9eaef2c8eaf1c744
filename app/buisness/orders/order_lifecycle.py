"""
OrderLifecycleManager - single entry point for order status changes

Every status change of a request or client order goes through `transition`
(payments through `record_payment`, which performs the Partially Paid /
Completed transition). Each transition makes exactly one reconciliation
engine call and appends exactly one history row, inside one transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from app import db
from app.buisness.inventory.availability import EPSILON, AvailabilityReport, format_quantity
from app.buisness.inventory.reconciliation.reconciliation_engine import (
    EVENT_APPROVAL,
    EVENT_DELETION,
    EVENT_PAYMENT,
    EVENT_PAYMENT_PLAN,
    EVENT_REJECTION,
    EVENT_REVERSION,
    EVENT_SUBMIT,
    ReconciliationEngine,
    ReconciliationResult,
    compute_paid_ratio,
)
from app.buisness.orders.edit_session import EditSession, SubmitPlan, compute_submit_deltas
from app.buisness.orders.errors import InsufficientStockError, NotFoundError, ValidationError
from app.buisness.orders.history_sink import HistorySink
from app.buisness.orders.numbering import CLIENT_ORDER_PREFIX, REQUEST_PREFIX, document_number
from app.buisness.orders.status_machine import ClientOrderStateMachine, OrderRequestStateMachine
from app.buisness.orders.unit_of_work import OrderUnitOfWork
from app.data.orders.client_order import ClientOrder, ClientOrderItem, OrderPayment
from app.data.orders.order_request import OrderRequest, OrderRequestItem
from app.utils.logger import get_logger

logger = get_logger("ops_console.orders.lifecycle")

ENTITY_REQUEST = 'request'
ENTITY_CLIENT_ORDER = 'client_order'
ENTITY_SUPPLIER_ORDER = 'supplier_order'
ENTITY_TYPES = (ENTITY_REQUEST, ENTITY_CLIENT_ORDER, ENTITY_SUPPLIER_ORDER)

DELETED = 'Deleted'


@dataclass
class TransitionOutcome:
    entity_type: str
    entity_id: int
    from_status: Optional[str]
    to_status: str
    reconciliation: ReconciliationResult
    entity: Any = None
    spawned: Any = None

    @property
    def warnings(self) -> List[str]:
        return self.reconciliation.warnings

    def to_dict(self) -> dict:
        return {
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'from_status': self.from_status,
            'to_status': self.to_status,
            'reconciliation': self.reconciliation.to_dict(),
            'spawned': self.spawned.to_dict() if self.spawned is not None else None,
        }


@dataclass
class SubmitOutcome:
    request: OrderRequest
    reconciliation: ReconciliationResult
    report: AvailabilityReport
    plan: Optional[SubmitPlan] = field(default=None, repr=False)

    def to_dict(self) -> dict:
        return {
            'request': self.request.to_dict(include_relationships=True),
            'reconciliation': self.reconciliation.to_dict(),
            'availability': self.report.to_dict(),
        }


class OrderLifecycleManager:
    """
    Owns order request and client order status changes and the stock that follows them.

    Pattern: every public mutation builds an `operation` closure and hands it to
    OrderUnitOfWork.run, which locks the order tag, commits, and retries on
    version conflicts. Business rule violations raise ValidationError before
    anything is committed.
    """

    def __init__(
        self,
        engine: Optional[ReconciliationEngine] = None,
        history: Optional[HistorySink] = None,
        unit_of_work: Optional[OrderUnitOfWork] = None,
    ):
        self.engine = engine or ReconciliationEngine()
        self.history = history or HistorySink()
        self.uow = unit_of_work or OrderUnitOfWork()

    # ========== Lookups ==========

    @staticmethod
    def get_request(request_id: int) -> OrderRequest:
        req = db.session.get(OrderRequest, request_id)
        if req is None:
            raise NotFoundError(f"Order request {request_id} not found")
        return req

    @staticmethod
    def get_client_order(order_id: int) -> ClientOrder:
        order = db.session.get(ClientOrder, order_id)
        if order is None:
            raise NotFoundError(f"Client order {order_id} not found")
        return order

    def get_history(self, entity_type: str, entity_id: int):
        """Status history for one entity, newest first"""
        if entity_type not in ENTITY_TYPES:
            raise ValidationError(f"Unknown entity type: {entity_type}")
        return self.history.history(entity_type, entity_id)

    # ========== Client guards ==========

    @staticmethod
    def client_has_pending_requests(client_id: int) -> bool:
        return db.session.query(
            OrderRequest.query.filter_by(client_id=client_id, status=OrderRequestStateMachine.PENDING).exists()
        ).scalar()

    @staticmethod
    def client_has_active_orders(client_id: int) -> bool:
        return db.session.query(
            ClientOrder.query.filter(
                ClientOrder.client_id == client_id,
                ClientOrder.status.in_(ClientOrderStateMachine.ACTIVE_STATES),
            ).exists()
        ).scalar()

    def _guard_client(self, client_id: int) -> None:
        if self.client_has_pending_requests(client_id):
            raise ValidationError("Client already has a pending order request")
        if self.client_has_active_orders(client_id):
            raise ValidationError("Client already has an active order")

    # ========== Submit ==========

    def submit_request(
        self,
        session: EditSession,
        client_id: Optional[int] = None,
        client_name: Optional[str] = None,
        actor: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> SubmitOutcome:
        """
        Persist an edit session as a Pending request and make the ledger hold its footprint.

        A new session (no request_id) creates the request; otherwise the request's
        items are replaced wholesale.

        Raises:
            InsufficientStockError: The session's lines need more than is available
            ValidationError: Missing client, empty request, or request no longer Pending
        """
        actor = self.uow.actor(actor)
        if not session.lines:
            raise ValidationError("An order request needs at least one item")

        plan = compute_submit_deltas(session)
        if not plan.report.ok:
            raise InsufficientStockError(
                "Insufficient stock: " + "; ".join(plan.report.out_of_stock),
                report=plan.report,
            )

        if session.request_id is None:
            if client_id is None:
                raise ValidationError("client_id is required")
            lock_key = f"client-{client_id}"
        else:
            lock_key = self._request_tag(session.request_id)

        names = {}
        for line in plan.lines:
            for bom_line in line.bom:
                names.setdefault(bom_line.material_id, bom_line.material_name)

        def operation():
            if session.request_id is None:
                self._guard_client(client_id)
                req = OrderRequest(
                    client_id=client_id,
                    client_name=client_name,
                    status=OrderRequestStateMachine.PENDING,
                    notes=notes,
                    created_by=actor,
                )
                db.session.add(req)
                db.session.flush()
                req.request_number = document_number(REQUEST_PREFIX, req.id)
                req.order_tag = req.request_number
                from_status = None
                note = "Request submitted"
            else:
                req = self.get_request(session.request_id)
                if req.status != OrderRequestStateMachine.PENDING:
                    raise ValidationError(f"Only pending requests can be edited (request is {req.status})")
                if session.order_tag and req.order_tag != session.order_tag:
                    raise ValidationError("The request was reverted or replaced since this edit began")
                if notes is not None:
                    req.notes = notes
                from_status = req.status
                note = "Request items updated"

            self._replace_request_items(req, plan.lines, actor)
            req.updated_at = datetime.utcnow()

            result = self.engine.reconcile_to_targets(
                req.order_tag,
                plan.targets,
                EVENT_SUBMIT,
                names=names,
                expected=plan.expected,
                reference_type='order_request',
                reference_id=req.id,
                actor=actor,
            )
            self.history.record(ENTITY_REQUEST, req.id, from_status, OrderRequestStateMachine.PENDING, note, actor)
            return SubmitOutcome(request=req, reconciliation=result, report=plan.report, plan=plan)

        outcome = self.uow.run(lock_key, operation, "Submit order request")
        logger.info(f"Order request {outcome.request.request_number} submitted by {actor}")
        return outcome

    def restore_deleted_line(self, order_tag: str, request_id: int, quantities, actor: Optional[str] = None) -> ReconciliationResult:
        """Push a deleted line's held footprint back to stock right away"""
        actor = self.uow.actor(actor)

        def operation():
            req = self.get_request(request_id)
            if req.status != OrderRequestStateMachine.PENDING:
                raise ValidationError(f"Only pending requests can be edited (request is {req.status})")
            req.updated_at = datetime.utcnow()
            return self.engine.restore_quantities(
                order_tag, quantities, EVENT_DELETION,
                reference_type='order_request', reference_id=request_id, actor=actor,
            )

        return self.uow.run(order_tag, operation, "Restore deleted line")

    # ========== Transitions ==========

    def transition(
        self,
        entity_type: str,
        entity_id: int,
        to_status: str,
        actor: Optional[str] = None,
        note: Optional[str] = None,
        payment_amount: Optional[float] = None,
        payment_plan: Optional[str] = None,
    ) -> TransitionOutcome:
        """
        Move a request, client order or supplier order to `to_status`.

        Args:
            entity_type: 'request', 'client_order' or 'supplier_order'
            entity_id: Row id
            to_status: Requested status; Completed and Paid are never accepted here
            actor: Who made the change (defaults to DEFAULT_ACTOR)
            note: Free text stored with the history row
            payment_amount: Required when moving a client order to Partially Paid
            payment_plan: Payment plan for the client order spawned by an approval

        Returns:
            TransitionOutcome
        """
        actor = self.uow.actor(actor)

        if entity_type == ENTITY_REQUEST:
            return self._transition_request(entity_id, to_status, actor, note, payment_plan)
        if entity_type == ENTITY_CLIENT_ORDER:
            if to_status == ClientOrderStateMachine.PARTIALLY_PAID:
                if payment_amount is None:
                    raise ValidationError("A payment amount is required to mark an order Partially Paid")
                return self.record_payment(entity_id, payment_amount, actor=actor, note=note)
            if payment_amount is not None:
                raise ValidationError("Payments can only accompany a Partially Paid transition")
            return self._transition_client_order(entity_id, to_status, actor, note)
        if entity_type == ENTITY_SUPPLIER_ORDER:
            from app.buisness.orders.supplier_receiving import SupplierReceivingManager
            return SupplierReceivingManager(engine=self.engine, history=self.history, unit_of_work=self.uow).transition(
                entity_id, to_status, actor=actor, note=note
            )
        raise ValidationError(f"Unknown entity type: {entity_type}")

    def _transition_request(self, request_id, to_status, actor, note, payment_plan) -> TransitionOutcome:
        lock_key = self._request_tag(request_id)

        def operation():
            req = self.get_request(request_id)
            from_status = req.status
            OrderRequestStateMachine.validate_requested(from_status, to_status)

            req.status = to_status
            req.updated_at = datetime.utcnow()
            order = self._sync_client_order(req, to_status, payment_plan, actor)

            if to_status == OrderRequestStateMachine.APPROVED:
                result = self.engine.apply_paid_ratio(
                    req.order_tag,
                    self.engine.requirements_for_items(req.items),
                    compute_paid_ratio(order.amount, order.paid_amount, order.payment_plan),
                    EVENT_APPROVAL,
                    reference_type='client_order', reference_id=order.id, actor=actor,
                )
            else:
                result = self.engine.restore_all(
                    req.order_tag, EVENT_REJECTION,
                    reference_type='order_request', reference_id=req.id, actor=actor,
                )

            self.history.record(ENTITY_REQUEST, req.id, from_status, to_status, note, actor)
            return TransitionOutcome(ENTITY_REQUEST, req.id, from_status, to_status, result, entity=req, spawned=order)

        return self.uow.run(lock_key, operation, f"Request {request_id} -> {to_status}")

    def _transition_client_order(self, order_id, to_status, actor, note) -> TransitionOutcome:
        lock_key = self._client_order_tag(order_id)

        def operation():
            order = self.get_client_order(order_id)
            from_status = order.status
            ClientOrderStateMachine.validate_requested(from_status, to_status)

            if to_status == ClientOrderStateMachine.PENDING:
                return self._revert_client_order(order, from_status, actor, note)

            order.status = to_status
            order.updated_at = datetime.utcnow()

            if to_status == ClientOrderStateMachine.REJECTED:
                result = self.engine.restore_all(
                    order.order_tag, EVENT_REJECTION,
                    reference_type='client_order', reference_id=order.id, actor=actor,
                )
            else:
                result = self._apply_order_ratio(order, EVENT_APPROVAL, actor)

            self.history.record(ENTITY_CLIENT_ORDER, order.id, from_status, to_status, note, actor)
            return TransitionOutcome(ENTITY_CLIENT_ORDER, order.id, from_status, to_status, result, entity=order)

        return self.uow.run(lock_key, operation, f"Client order {order_id} -> {to_status}")

    def _revert_client_order(self, order, from_status, actor, note) -> TransitionOutcome:
        """Restore all stock, regenerate a Pending request with the same items, drop the stale records"""
        result = self.engine.restore_all(
            order.order_tag, EVENT_REVERSION,
            reference_type='client_order', reference_id=order.id, actor=actor,
        )

        new_request = OrderRequest(
            client_id=order.client_id,
            client_name=order.client_name,
            status=OrderRequestStateMachine.PENDING,
            notes=f"Reverted from {order.order_number}",
            created_by=actor,
        )
        db.session.add(new_request)
        db.session.flush()
        new_request.request_number = document_number(REQUEST_PREFIX, new_request.id)
        new_request.order_tag = new_request.request_number
        for item in order.items:
            new_request.items.append(OrderRequestItem(created_by=actor, **item.line_dict()))
        new_request.total_amount = sum(item.total_price for item in new_request.items)

        self.history.record(
            ENTITY_CLIENT_ORDER, order.id, from_status, ClientOrderStateMachine.PENDING,
            note or f"Reverted to request {new_request.request_number}", actor,
        )

        stale_request = order.request
        db.session.delete(order)
        if stale_request is not None:
            db.session.delete(stale_request)

        logger.info(f"Client order {order.order_number} reverted to request {new_request.request_number}")
        return TransitionOutcome(
            ENTITY_CLIENT_ORDER, order.id, from_status, ClientOrderStateMachine.PENDING, result,
            entity=new_request, spawned=new_request,
        )

    # ========== Payments ==========

    def record_payment(
        self,
        order_id: int,
        amount: float,
        actor: Optional[str] = None,
        note: Optional[str] = None,
        payment_date: Optional[datetime] = None,
    ) -> TransitionOutcome:
        """
        Record a payment; the order becomes Partially Paid, or Completed once nothing remains.

        Raises:
            ValidationError: Non-positive amount, overpayment, or order not payable
        """
        actor = self.uow.actor(actor)
        if amount is None or amount <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        lock_key = self._client_order_tag(order_id)

        def operation():
            order = self.get_client_order(order_id)
            from_status = order.status
            if from_status not in ClientOrderStateMachine.PAYABLE_STATES:
                raise ValidationError(f"Payments can only be recorded for Approved or Partially Paid orders (order is {from_status})")
            remaining = order.remaining_amount
            if amount > remaining + EPSILON:
                raise ValidationError(
                    f"Payment of {format_quantity(amount)} exceeds the remaining balance of {format_quantity(remaining)}"
                )

            payment = OrderPayment(amount=amount, notes=note, created_by=actor)
            if payment_date is not None:
                payment.payment_date = payment_date
            order.payments.append(payment)
            order.paid_amount = sum(p.amount for p in order.payments)

            if order.remaining_amount <= EPSILON:
                to_status = ClientOrderStateMachine.COMPLETED
            else:
                to_status = ClientOrderStateMachine.PARTIALLY_PAID
            ClientOrderStateMachine.validate_transition(from_status, to_status)
            order.status = to_status
            order.updated_at = datetime.utcnow()
            db.session.flush()

            result = self._apply_order_ratio(order, EVENT_PAYMENT, actor, reference=('order_payment', payment.id))
            self.history.record(
                ENTITY_CLIENT_ORDER, order.id, from_status, to_status,
                note or f"Payment of {format_quantity(amount)} recorded", actor,
            )
            return TransitionOutcome(ENTITY_CLIENT_ORDER, order.id, from_status, to_status, result, entity=order)

        return self.uow.run(lock_key, operation, f"Payment on client order {order_id}")

    def update_payment_plan(self, order_id: int, payment_plan: Optional[str], actor: Optional[str] = None) -> TransitionOutcome:
        """Change the payment plan; removing it makes the order count as fully paid for stock purposes"""
        actor = self.uow.actor(actor)
        lock_key = self._client_order_tag(order_id)

        def operation():
            order = self.get_client_order(order_id)
            if order.status not in ClientOrderStateMachine.PAYABLE_STATES:
                raise ValidationError(f"Payment plan cannot change on a {order.status} order")
            order.payment_plan = payment_plan or None
            order.updated_at = datetime.utcnow()

            result = self._apply_order_ratio(order, EVENT_PAYMENT_PLAN, actor)
            self.history.record(
                ENTITY_CLIENT_ORDER, order.id, order.status, order.status,
                f"Payment plan updated: {payment_plan or 'none'}", actor,
            )
            return TransitionOutcome(ENTITY_CLIENT_ORDER, order.id, order.status, order.status, result, entity=order)

        return self.uow.run(lock_key, operation, f"Payment plan on client order {order_id}")

    # ========== Deletion ==========

    def delete_request(self, request_id: int, actor: Optional[str] = None, note: Optional[str] = None) -> TransitionOutcome:
        """Delete a Pending request and return any stock it holds"""
        actor = self.uow.actor(actor)
        lock_key = self._request_tag(request_id)

        def operation():
            req = self.get_request(request_id)
            if req.status != OrderRequestStateMachine.PENDING:
                raise ValidationError(f"Only pending requests can be deleted (request is {req.status})")
            result = self.engine.restore_all(
                req.order_tag, EVENT_DELETION,
                reference_type='order_request', reference_id=req.id, actor=actor,
            )
            self.history.record(ENTITY_REQUEST, req.id, req.status, DELETED, note or "Request deleted", actor)
            db.session.delete(req)
            return TransitionOutcome(ENTITY_REQUEST, request_id, OrderRequestStateMachine.PENDING, DELETED, result)

        return self.uow.run(lock_key, operation, f"Delete request {request_id}")

    # ========== Helpers ==========

    def _apply_order_ratio(self, order, event, actor, reference=None) -> ReconciliationResult:
        reference_type, reference_id = reference or ('client_order', order.id)
        return self.engine.apply_paid_ratio(
            order.order_tag,
            self.engine.requirements_for_items(order.items),
            compute_paid_ratio(order.amount, order.paid_amount, order.payment_plan),
            event,
            reference_type=reference_type, reference_id=reference_id, actor=actor,
        )

    def _sync_client_order(self, req, status, payment_plan, actor) -> ClientOrder:
        """Create the client order for a decided request, or bring an existing one in line with it"""
        order = ClientOrder.query.filter_by(request_id=req.id).first()
        if order is None:
            order = ClientOrder(
                request_id=req.id,
                order_tag=req.order_tag,
                client_id=req.client_id,
                client_name=req.client_name,
                paid_amount=0.0,
                created_by=actor,
            )
            db.session.add(order)
        order.status = status
        order.amount = req.total_amount
        if payment_plan is not None:
            order.payment_plan = payment_plan or None
        order.items = [ClientOrderItem(created_by=actor, **item.line_dict()) for item in req.items]
        db.session.flush()
        if not order.order_number:
            order.order_number = document_number(CLIENT_ORDER_PREFIX, order.id)
        return order

    @staticmethod
    def _replace_request_items(req, lines, actor) -> None:
        req.items = [
            OrderRequestItem(
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=line.total_price,
                created_by=actor,
            )
            for line in lines
        ]
        req.total_amount = sum(line.total_price for line in lines)

    def _request_tag(self, request_id: int) -> str:
        tag = db.session.query(OrderRequest.order_tag).filter(OrderRequest.id == request_id).scalar()
        if tag is None:
            raise NotFoundError(f"Order request {request_id} not found")
        return tag

    def _client_order_tag(self, order_id: int) -> str:
        tag = db.session.query(ClientOrder.order_tag).filter(ClientOrder.id == order_id).scalar()
        if tag is None:
            raise NotFoundError(f"Client order {order_id} not found")
        return tag
