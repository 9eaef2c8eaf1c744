from app import db
from app.data.core.record_base import RecordBase
from app.data.orders.line_item_mixin import LineItemMixin


class OrderRequest(RecordBase):
    """
    Client order request awaiting approval.

    Items are replaced wholesale on edit. While Pending, the ledger holds the
    material footprint of the submitted items under `order_tag`.
    """
    __tablename__ = 'order_requests'

    request_number = db.Column(db.String(40), nullable=True, unique=True)
    order_tag = db.Column(db.String(40), nullable=True, index=True)
    client_id = db.Column(db.Integer, nullable=False, index=True)
    client_name = db.Column(db.String(150), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='Pending')
    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False)

    items = db.relationship(
        'OrderRequestItem',
        back_populates='request',
        cascade='all, delete-orphan',
        order_by='OrderRequestItem.id',
    )

    __mapper_args__ = {'version_id_col': version_id}

    def __repr__(self):
        return f'<OrderRequest {self.request_number}: {self.status}>'


class OrderRequestItem(RecordBase, LineItemMixin):
    __tablename__ = 'order_request_items'

    request_id = db.Column(db.Integer, db.ForeignKey('order_requests.id'), nullable=False, index=True)

    request = db.relationship('OrderRequest', back_populates='items')

    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='ck_order_request_item_quantity_positive'),
    )
