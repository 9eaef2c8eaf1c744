from app import db
from app.data.core.record_base import RecordBase
from datetime import datetime


class InventoryTransaction(RecordBase):
    """
    Append-only ledger of stock movements.

    Conventions:
    - `quantity` is always positive; `direction` says which way it moved ('in' or 'out').
    - `order_tag` identifies the order lineage that caused the movement. The amount
      already moved for an order is always derived by summing these rows.
    """
    __tablename__ = 'inventory_transactions'

    DIRECTION_IN = 'in'
    DIRECTION_OUT = 'out'

    material_id = db.Column(db.Integer, db.ForeignKey('materials.id'), nullable=False, index=True)
    order_tag = db.Column(db.String(40), nullable=True, index=True)

    # Movement Details
    direction = db.Column(db.String(3), nullable=False)
    quantity = db.Column(db.Float, nullable=False)
    reason = db.Column(db.String(30), nullable=False)  # submit/approval/payment/rejection/reversion/restore/receipt
    transaction_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    # Reference Fields
    reference_type = db.Column(db.String(50), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    material = db.relationship('Material', back_populates='transactions')

    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='ck_inventory_transaction_quantity_positive'),
        db.CheckConstraint("direction IN ('in', 'out')", name='ck_inventory_transaction_direction'),
        db.Index('ix_inventory_transactions_tag_material', 'order_tag', 'material_id'),
    )

    @property
    def signed_quantity(self):
        return self.quantity if self.direction == self.DIRECTION_IN else -self.quantity

    def __repr__(self):
        return f'<InventoryTransaction {self.order_tag} {self.direction} {self.quantity} of material {self.material_id}>'
