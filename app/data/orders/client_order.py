from app import db
from app.data.core.record_base import RecordBase
from app.data.orders.line_item_mixin import LineItemMixin
from datetime import datetime


class ClientOrder(RecordBase):
    """
    Client order derived from an approved or rejected OrderRequest.

    Shares `order_tag` with the request it came from, so stock already held by
    the request is counted toward the order. `paid_amount` always equals the
    sum of the recorded payments.
    """
    __tablename__ = 'client_orders'

    order_number = db.Column(db.String(40), nullable=True, unique=True)
    order_tag = db.Column(db.String(40), nullable=False, index=True)
    request_id = db.Column(db.Integer, db.ForeignKey('order_requests.id', ondelete='SET NULL'), nullable=True)
    client_id = db.Column(db.Integer, nullable=False, index=True)
    client_name = db.Column(db.String(150), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='Approved')
    amount = db.Column(db.Float, nullable=False, default=0.0)
    paid_amount = db.Column(db.Float, nullable=False, default=0.0)
    payment_plan = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False)

    request = db.relationship('OrderRequest')
    items = db.relationship(
        'ClientOrderItem',
        back_populates='order',
        cascade='all, delete-orphan',
        order_by='ClientOrderItem.id',
    )
    payments = db.relationship(
        'OrderPayment',
        back_populates='order',
        cascade='all, delete-orphan',
        order_by='OrderPayment.id',
    )

    __mapper_args__ = {'version_id_col': version_id}

    @property
    def remaining_amount(self):
        return (self.amount or 0.0) - (self.paid_amount or 0.0)

    def __repr__(self):
        return f'<ClientOrder {self.order_number}: {self.status}>'


class ClientOrderItem(RecordBase, LineItemMixin):
    __tablename__ = 'client_order_items'

    order_id = db.Column(db.Integer, db.ForeignKey('client_orders.id'), nullable=False, index=True)

    order = db.relationship('ClientOrder', back_populates='items')


class OrderPayment(RecordBase):
    """Append-only payment against a client order"""
    __tablename__ = 'order_payments'

    order_id = db.Column(db.Integer, db.ForeignKey('client_orders.id'), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    payment_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    notes = db.Column(db.Text, nullable=True)

    order = db.relationship('ClientOrder', back_populates='payments')

    __table_args__ = (
        db.CheckConstraint('amount > 0', name='ck_order_payment_amount_positive'),
    )
