"""
Material and ledger stores

Thin persistence helpers over Material and InventoryTransaction. They add and
flush; committing is left to the caller that owns the transaction.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from sqlalchemy import func

from app import db
from app.data.inventory.material import Material
from app.data.inventory.inventory_transaction import InventoryTransaction
from app.buisness.inventory.availability import InventorySnapshot, StockLevel
from app.buisness.orders.errors import NotFoundError, ValidationError


class MaterialStore:
    """Reads and writes material stock levels"""

    def get(self, material_id: int) -> Optional[Material]:
        return db.session.get(Material, material_id)

    def update(self, material_id: int, quantity: float) -> Material:
        material = self.get(material_id)
        if material is None:
            raise NotFoundError(f"Material {material_id} not found")
        if quantity < 0:
            raise ValidationError(f"Quantity for {material.name} cannot be negative")
        material.quantity_on_hand = quantity
        return material

    def snapshot(self, material_ids: Iterable[int] | None = None) -> InventorySnapshot:
        """
        Build an immutable snapshot of current stock.

        Args:
            material_ids: Restrict to these materials; all materials when None
        """
        query = Material.query
        if material_ids is not None:
            ids = list(set(material_ids))
            if not ids:
                return InventorySnapshot()
            query = query.filter(Material.id.in_(ids))
        return InventorySnapshot.from_levels(
            StockLevel(
                material_id=m.id,
                name=m.name,
                quantity=m.quantity_on_hand or 0.0,
                min_stock_level=m.min_stock_level or 0.0,
            )
            for m in query.all()
        )


class LedgerStore:
    """Append-only access to the inventory transaction ledger"""

    def append(
        self,
        material_id: int,
        order_tag: str | None,
        direction: str,
        quantity: float,
        reason: str,
        *,
        reference_type: str | None = None,
        reference_id: int | None = None,
        notes: str | None = None,
        actor: str | None = None,
    ) -> InventoryTransaction:
        if direction not in (InventoryTransaction.DIRECTION_IN, InventoryTransaction.DIRECTION_OUT):
            raise ValidationError(f"Unknown ledger direction: {direction}")
        if quantity <= 0:
            raise ValidationError("Ledger quantity must be positive")

        entry = InventoryTransaction(
            material_id=material_id,
            order_tag=order_tag,
            direction=direction,
            quantity=quantity,
            reason=reason,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
            created_by=actor,
        )
        db.session.add(entry)
        return entry

    def sum_movement(self, order_tag: str, material_id: int, direction: str) -> float:
        total = db.session.query(func.coalesce(func.sum(InventoryTransaction.quantity), 0.0)).filter(
            InventoryTransaction.order_tag == order_tag,
            InventoryTransaction.material_id == material_id,
            InventoryTransaction.direction == direction,
        ).scalar()
        return float(total or 0.0)

    def net_outflow(self, order_tag: str, material_id: int) -> float:
        """Stock taken out for the tag minus stock returned for it"""
        return (
            self.sum_movement(order_tag, material_id, InventoryTransaction.DIRECTION_OUT)
            - self.sum_movement(order_tag, material_id, InventoryTransaction.DIRECTION_IN)
        )

    def materials_for_tag(self, order_tag: str) -> List[int]:
        rows = db.session.query(InventoryTransaction.material_id).filter(
            InventoryTransaction.order_tag == order_tag
        ).distinct().order_by(InventoryTransaction.material_id).all()
        return [row[0] for row in rows]

    def entries_for_tag(self, order_tag: str) -> List[InventoryTransaction]:
        return InventoryTransaction.query.filter_by(order_tag=order_tag).order_by(InventoryTransaction.id).all()
