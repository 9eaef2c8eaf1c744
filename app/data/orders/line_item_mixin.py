from app import db
from sqlalchemy.orm import declared_attr


class LineItemMixin:
    """
    Columns shared by every priced order line.

    A line without `product_id` is an ad hoc item: it is priced but never
    consumes materials.
    """

    @declared_attr
    def product_id(cls):
        return db.Column(db.Integer, db.ForeignKey('products.id'), nullable=True)

    product_name = db.Column(db.String(150), nullable=False)
    quantity = db.Column(db.Float, nullable=False)
    unit_price = db.Column(db.Float, nullable=False, default=0.0)
    total_price = db.Column(db.Float, nullable=False, default=0.0)

    @property
    def is_ad_hoc(self):
        return self.product_id is None

    def line_dict(self):
        """Plain line data, used when copying items between requests and orders"""
        return {
            'product_id': self.product_id,
            'product_name': self.product_name,
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'total_price': self.total_price,
        }
