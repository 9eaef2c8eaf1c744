"""
Availability validation

Pure functions that compare material requirements with a stock snapshot.
The snapshot may be the live store or a speculative view built by an edit
session; nothing here touches the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

# Tolerance for float quantities coming out of quantity_per_unit * quantity
EPSILON = 1e-9


def format_quantity(value: float) -> str:
    """Render 3.0 as "3" and 2.5 as "2.5" for user-facing messages"""
    return f"{value:g}"


@dataclass(frozen=True)
class StockLevel:
    material_id: int
    name: str
    quantity: float
    min_stock_level: float = 0.0


@dataclass(frozen=True)
class InventorySnapshot:
    """Immutable material_id -> StockLevel view of inventory"""

    levels: Mapping[int, StockLevel] = field(default_factory=dict)

    @classmethod
    def from_levels(cls, levels: Iterable[StockLevel]) -> 'InventorySnapshot':
        return cls({level.material_id: level for level in levels})

    def __contains__(self, material_id: int) -> bool:
        return material_id in self.levels

    def get(self, material_id: int) -> Optional[StockLevel]:
        return self.levels.get(material_id)

    def quantity_of(self, material_id: int) -> float:
        level = self.levels.get(material_id)
        return level.quantity if level else 0.0

    def adjusted(self, deltas: Mapping[int, float]) -> 'InventorySnapshot':
        """
        Return a new snapshot with deltas added to the listed materials.

        Materials absent from the snapshot stay absent.
        """
        levels = dict(self.levels)
        for material_id, delta in deltas.items():
            level = levels.get(material_id)
            if level is None or not delta:
                continue
            levels[material_id] = StockLevel(
                material_id=level.material_id,
                name=level.name,
                quantity=level.quantity + delta,
                min_stock_level=level.min_stock_level,
            )
        return InventorySnapshot(levels)


@dataclass(frozen=True)
class MaterialRequirement:
    material_id: int
    material_name: str
    quantity_needed: float
    available: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            'material_id': self.material_id,
            'material_name': self.material_name,
            'quantity_needed': self.quantity_needed,
            'available': self.available,
        }


@dataclass(frozen=True)
class Shortage:
    material_id: int
    material_name: str
    needed: float
    available: Optional[float]  # None when the material is missing from the snapshot


@dataclass(frozen=True)
class AvailabilityReport:
    """
    Outcome of an availability check.

    The three partitions are disjoint. `out_of_stock` blocks save/submit,
    `low_stock` is advisory only.
    """

    sufficient: Tuple[MaterialRequirement, ...] = ()
    low_stock: Tuple[str, ...] = ()
    out_of_stock: Tuple[str, ...] = ()
    shortages: Tuple[Shortage, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.out_of_stock

    def to_dict(self) -> dict:
        return {
            'ok': self.ok,
            'sufficient': [r.to_dict() for r in self.sufficient],
            'low_stock': list(self.low_stock),
            'out_of_stock': list(self.out_of_stock),
        }


def merge_requirements(requirements: Iterable[MaterialRequirement]) -> List[MaterialRequirement]:
    """Sum requirements per material, keeping first-seen order"""
    merged: Dict[int, MaterialRequirement] = {}
    for req in requirements:
        existing = merged.get(req.material_id)
        if existing is None:
            merged[req.material_id] = req
        else:
            merged[req.material_id] = MaterialRequirement(
                material_id=req.material_id,
                material_name=existing.material_name,
                quantity_needed=existing.quantity_needed + req.quantity_needed,
                available=existing.available,
            )
    return list(merged.values())


def validate_availability(requirements: Iterable[MaterialRequirement], snapshot: InventorySnapshot) -> AvailabilityReport:
    """
    Partition requirements into sufficient, low-stock and out-of-stock.

    A material that ends exactly at its minimum stock level is low, not insufficient.

    Args:
        requirements: Material requirements; duplicates per material are summed
        snapshot: Real or speculative stock levels

    Returns:
        AvailabilityReport
    """
    sufficient: List[MaterialRequirement] = []
    low_stock: List[str] = []
    out_of_stock: List[str] = []
    shortages: List[Shortage] = []

    for req in merge_requirements(requirements):
        if req.quantity_needed <= 0:
            continue

        level = snapshot.get(req.material_id)
        if level is None:
            out_of_stock.append(f"{req.material_name} (not found in inventory)")
            shortages.append(Shortage(req.material_id, req.material_name, req.quantity_needed, None))
            continue

        if level.quantity + EPSILON < req.quantity_needed:
            out_of_stock.append(
                f"{req.material_name} (need {format_quantity(req.quantity_needed)}, "
                f"have {format_quantity(level.quantity)})"
            )
            shortages.append(Shortage(req.material_id, req.material_name, req.quantity_needed, level.quantity))
        elif level.quantity - req.quantity_needed <= level.min_stock_level + EPSILON:
            low_stock.append(f"{req.material_name} (low stock: {format_quantity(level.quantity)})")
        else:
            sufficient.append(MaterialRequirement(
                material_id=req.material_id,
                material_name=req.material_name,
                quantity_needed=req.quantity_needed,
                available=level.quantity,
            ))

    return AvailabilityReport(
        sufficient=tuple(sufficient),
        low_stock=tuple(low_stock),
        out_of_stock=tuple(out_of_stock),
        shortages=tuple(shortages),
    )
