from app import db
from app.data.core.record_base import RecordBase
from datetime import datetime


class SupplierOrder(RecordBase):
    """
    Purchase order for raw materials.

    Stock is received in proportion to payments; the order number doubles as
    the ledger tag for the receipts.
    """
    __tablename__ = 'supplier_orders'

    order_number = db.Column(db.String(40), nullable=True, unique=True)
    supplier_name = db.Column(db.String(150), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='Pending')
    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    paid_amount = db.Column(db.Float, nullable=False, default=0.0)
    payment_plan = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False)

    items = db.relationship(
        'SupplierOrderItem',
        back_populates='order',
        cascade='all, delete-orphan',
        order_by='SupplierOrderItem.id',
    )
    payments = db.relationship(
        'SupplierPayment',
        back_populates='order',
        cascade='all, delete-orphan',
        order_by='SupplierPayment.id',
    )

    __mapper_args__ = {'version_id_col': version_id}

    @property
    def order_tag(self):
        return self.order_number

    @property
    def remaining_amount(self):
        return (self.total_amount or 0.0) - (self.paid_amount or 0.0)

    def __repr__(self):
        return f'<SupplierOrder {self.order_number}: {self.status}>'


class SupplierOrderItem(RecordBase):
    __tablename__ = 'supplier_order_items'

    order_id = db.Column(db.Integer, db.ForeignKey('supplier_orders.id'), nullable=False, index=True)
    material_id = db.Column(db.Integer, db.ForeignKey('materials.id'), nullable=False)
    quantity = db.Column(db.Float, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)
    total_price = db.Column(db.Float, nullable=False, default=0.0)

    order = db.relationship('SupplierOrder', back_populates='items')
    material = db.relationship('Material')

    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='ck_supplier_order_item_quantity_positive'),
        db.CheckConstraint('unit_price > 0', name='ck_supplier_order_item_price_positive'),
    )


class SupplierPayment(RecordBase):
    __tablename__ = 'supplier_payments'

    order_id = db.Column(db.Integer, db.ForeignKey('supplier_orders.id'), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    payment_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    notes = db.Column(db.Text, nullable=True)

    order = db.relationship('SupplierOrder', back_populates='payments')

    __table_args__ = (
        db.CheckConstraint('amount > 0', name='ck_supplier_payment_amount_positive'),
    )
