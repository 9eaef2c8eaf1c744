from app import db
from app.data.core.record_base import RecordBase


class Material(RecordBase):
    """
    Raw material held in stock.

    `quantity_on_hand` is only changed by the reconciliation engine and never
    drops below zero; `min_stock_level` is the reorder threshold used for
    low-stock warnings. Stock is written as an absolute value, so the version
    column turns a write based on a stale read into a StaleDataError.
    """
    __tablename__ = 'materials'

    name = db.Column(db.String(150), nullable=False, unique=True)
    unit = db.Column(db.String(30), nullable=True)
    quantity_on_hand = db.Column(db.Float, nullable=False, default=0.0)
    min_stock_level = db.Column(db.Float, nullable=False, default=0.0)
    unit_cost = db.Column(db.Float, nullable=True)

    version_id = db.Column(db.Integer, nullable=False)

    transactions = db.relationship(
        'InventoryTransaction',
        back_populates='material',
        lazy='dynamic',
        order_by='InventoryTransaction.id',
    )

    __table_args__ = (
        db.CheckConstraint('quantity_on_hand >= 0', name='ck_material_quantity_non_negative'),
        db.CheckConstraint('min_stock_level >= 0', name='ck_material_min_stock_non_negative'),
    )

    __mapper_args__ = {'version_id_col': version_id}

    @property
    def is_low_stock(self):
        return (self.quantity_on_hand or 0.0) <= (self.min_stock_level or 0.0)

    def __repr__(self):
        return f'<Material {self.name}: {self.quantity_on_hand}>'
