from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from app import db
from app.data.products.product import Product, ProductMaterial


@dataclass(frozen=True)
class BillOfMaterialsLine:
    product_id: int
    material_id: int
    material_name: str
    quantity_per_unit: float


class ProductCatalog:
    """Read-only access to products and their bill of materials"""

    def get(self, product_id: int) -> Optional[Product]:
        return db.session.get(Product, product_id)

    def get_bom(self, product_id: int) -> List[BillOfMaterialsLine]:
        """Unknown products and products without materials both give an empty list"""
        rows = ProductMaterial.query.filter_by(product_id=product_id).order_by(ProductMaterial.id).all()
        return [
            BillOfMaterialsLine(
                product_id=row.product_id,
                material_id=row.material_id,
                material_name=row.material.name if row.material else f"Material #{row.material_id}",
                quantity_per_unit=row.quantity_per_unit,
            )
            for row in rows
        ]
