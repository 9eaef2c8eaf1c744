from app import db
from app.data.core.record_base import RecordBase


class Product(RecordBase):
    """Sellable product. Its bill of materials lives in ProductMaterial rows."""
    __tablename__ = 'products'

    name = db.Column(db.String(150), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    unit_price = db.Column(db.Float, nullable=False, default=0.0)

    materials = db.relationship(
        'ProductMaterial',
        back_populates='product',
        cascade='all, delete-orphan',
        order_by='ProductMaterial.id',
    )

    def __repr__(self):
        return f'<Product {self.name}>'


class ProductMaterial(RecordBase):
    """
    One bill-of-materials line: how much of a material a single unit of the product consumes.
    """
    __tablename__ = 'product_materials'

    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False, index=True)
    material_id = db.Column(db.Integer, db.ForeignKey('materials.id'), nullable=False)
    quantity_per_unit = db.Column(db.Float, nullable=False)

    product = db.relationship('Product', back_populates='materials')
    material = db.relationship('Material')

    __table_args__ = (
        db.CheckConstraint('quantity_per_unit > 0', name='ck_product_material_quantity_positive'),
        db.UniqueConstraint('product_id', 'material_id', name='uq_product_material'),
    )

    def __repr__(self):
        return f'<ProductMaterial product={self.product_id} material={self.material_id} x{self.quantity_per_unit}>'
