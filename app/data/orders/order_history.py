from app import db
from app.data.core.record_base import RecordBase
from datetime import datetime


class OrderHistory(RecordBase):
    """
    One row per status change of a request, client order or supplier order.

    Keyed by (entity_type, entity_id) without a foreign key so the trail
    survives deletion of the entity it describes.
    """
    __tablename__ = 'order_history'

    entity_type = db.Column(db.String(30), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    from_status = db.Column(db.String(20), nullable=True)
    to_status = db.Column(db.String(20), nullable=False)
    actor = db.Column(db.String(100), nullable=True)
    note = db.Column(db.Text, nullable=True)
    changed_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.Index('ix_order_history_entity', 'entity_type', 'entity_id'),
    )

    def __repr__(self):
        return f'<OrderHistory {self.entity_type}#{self.entity_id}: {self.from_status} -> {self.to_status}>'
