"""
EditSessionService - connects the pure edit session to the stores

Opening a session snapshots stock and derives what each saved line already
holds from the ledger. Edits are validated against live stock without writing
anything; only an immediate line deletion writes (the restore) and only submit
persists the request. An abandoned session is simply dropped.
"""

from __future__ import annotations

from typing import Mapping, Optional
from uuid import uuid4

from app.buisness.inventory.stores import LedgerStore, MaterialStore
from app.buisness.orders.edit_session import (
    DeleteOutcome,
    EditOutcome,
    EditSession,
    SessionLine,
    allocate_committed,
    apply_delete,
    apply_edit,
)
from app.buisness.orders.errors import ValidationError
from app.buisness.orders.order_lifecycle import OrderLifecycleManager, SubmitOutcome
from app.buisness.orders.status_machine import OrderRequestStateMachine
from app.buisness.products.product_catalog import ProductCatalog


class EditSessionService:

    def __init__(
        self,
        lifecycle: Optional[OrderLifecycleManager] = None,
        catalog: Optional[ProductCatalog] = None,
        materials: Optional[MaterialStore] = None,
        ledger: Optional[LedgerStore] = None,
    ):
        self.lifecycle = lifecycle or OrderLifecycleManager()
        self.catalog = catalog or ProductCatalog()
        self.materials = materials or MaterialStore()
        self.ledger = ledger or LedgerStore()

    def open(self, request_id: Optional[int] = None) -> EditSession:
        """Start a session for a new request, or for editing a Pending one"""
        baseline = self.materials.snapshot()
        if request_id is None:
            return EditSession(baseline=baseline)

        req = self.lifecycle.get_request(request_id)
        if req.status != OrderRequestStateMachine.PENDING:
            raise ValidationError(f"Only pending requests can be edited (request is {req.status})")

        lines = tuple(
            self.build_line(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                product_name=item.product_name,
                line_id=f"item-{item.id}",
            )
            for item in req.items
        )
        held = {
            material_id: self.ledger.net_outflow(req.order_tag, material_id)
            for material_id in self.ledger.materials_for_tag(req.order_tag)
        }
        return EditSession(
            baseline=baseline,
            lines=allocate_committed(lines, held),
            order_tag=req.order_tag,
            request_id=req.id,
        )

    def build_line(
        self,
        product_id: Optional[int] = None,
        quantity: float = 1,
        unit_price: Optional[float] = None,
        product_name: Optional[str] = None,
        line_id: Optional[str] = None,
    ) -> SessionLine:
        """
        Build a line, resolving the product's BOM.

        A line whose product cannot be resolved becomes an ad hoc line: it
        needs a name, is priced, and never touches stock.
        """
        product = self.catalog.get(product_id) if product_id is not None else None
        line_id = line_id or f"new-{uuid4().hex[:8]}"

        if product is None:
            if not product_name:
                raise ValidationError("Ad hoc items need a product name")
            return SessionLine(
                line_id=line_id,
                product_id=None,
                product_name=product_name,
                quantity=quantity,
                unit_price=unit_price or 0.0,
            )

        return SessionLine(
            line_id=line_id,
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            unit_price=product.unit_price if unit_price is None else unit_price,
            bom=tuple(self.catalog.get_bom(product.id)),
        )

    def edit(self, session: EditSession, line: SessionLine, pending: Optional[Mapping[int, float]] = None) -> EditOutcome:
        """
        Validate a line against live stock.

        `pending` is stock that staged deletions will give back on submit; it
        counts as available although it has not been written yet.
        """
        live = self.materials.snapshot()
        if pending:
            live = live.adjusted(pending)
        return apply_edit(session, line, live)

    def delete(self, session: EditSession, line_id: str, actor: Optional[str] = None) -> DeleteOutcome:
        """
        Remove a line and immediately give its held stock back.

        If the restore fails the exception propagates and the caller keeps the
        old session, so a retry restores exactly once.
        """
        outcome = apply_delete(session, line_id)
        if outcome.restorations and session.order_tag and session.request_id:
            self.lifecycle.restore_deleted_line(
                session.order_tag, session.request_id, outcome.restored_quantities(), actor=actor
            )
        return outcome

    def stage_delete(self, session: EditSession, line_id: str) -> DeleteOutcome:
        """
        Remove a line without writing anything.

        The restorations stay in the session and the next submit hands the
        stock back in its own transaction, so nothing moves if the edit is
        abandoned or refused.
        """
        return apply_delete(session, line_id)

    def submit(
        self,
        session: EditSession,
        client_id: Optional[int] = None,
        client_name: Optional[str] = None,
        actor: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> SubmitOutcome:
        return self.lifecycle.submit_request(
            session, client_id=client_id, client_name=client_name, actor=actor, notes=notes
        )
