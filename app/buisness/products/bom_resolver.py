"""
Bill-of-materials resolver

Expands a product and quantity into the raw materials it consumes.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from app.buisness.inventory.availability import MaterialRequirement, merge_requirements
from app.buisness.inventory.stores import MaterialStore
from app.buisness.orders.errors import ValidationError
from app.buisness.products.product_catalog import BillOfMaterialsLine, ProductCatalog


def expand_bom(bom: Iterable[BillOfMaterialsLine], quantity: float) -> List[MaterialRequirement]:
    """Multiply each BOM line by the ordered quantity. No store access."""
    return [
        MaterialRequirement(
            material_id=line.material_id,
            material_name=line.material_name,
            quantity_needed=line.quantity_per_unit * quantity,
        )
        for line in bom
    ]


class BomResolver:
    """
    Resolves product quantities into material requirements.

    A product with no BOM, or an unknown product, resolves to no requirements.
    """

    def __init__(self, catalog: Optional[ProductCatalog] = None, materials: Optional[MaterialStore] = None):
        self.catalog = catalog or ProductCatalog()
        self.materials = materials or MaterialStore()

    def resolve(self, product_id: int, quantity: float) -> List[MaterialRequirement]:
        """
        Args:
            product_id: Product to expand
            quantity: Units ordered, must be > 0

        Returns:
            list of MaterialRequirement with `available` filled from the material store
        """
        if quantity is None or quantity <= 0:
            raise ValidationError("Quantity must be greater than zero")

        requirements = []
        for req in expand_bom(self.catalog.get_bom(product_id), quantity):
            material = self.materials.get(req.material_id)
            requirements.append(MaterialRequirement(
                material_id=req.material_id,
                material_name=material.name if material else req.material_name,
                quantity_needed=req.quantity_needed,
                available=material.quantity_on_hand if material else None,
            ))
        return requirements

    def resolve_lines(self, lines: Iterable[Tuple[Optional[int], float]]) -> List[MaterialRequirement]:
        """
        Resolve several (product_id, quantity) lines and sum them per material.

        Lines without a product_id are ad hoc and skipped.
        """
        requirements: List[MaterialRequirement] = []
        for product_id, quantity in lines:
            if product_id is None:
                continue
            requirements.extend(self.resolve(product_id, quantity))
        return merge_requirements(requirements)
