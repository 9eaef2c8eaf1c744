from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional

from app.buisness.inventory.availability import EPSILON, MaterialRequirement, format_quantity, merge_requirements
from app.buisness.inventory.stores import LedgerStore, MaterialStore
from app.buisness.products.bom_resolver import expand_bom
from app.buisness.products.product_catalog import ProductCatalog
from app.data.inventory.inventory_transaction import InventoryTransaction
from app.utils.logger import get_logger

logger = get_logger("ops_console.reconciliation")

EVENT_SUBMIT = 'submit'
EVENT_APPROVAL = 'approval'
EVENT_PAYMENT = 'payment'
EVENT_PAYMENT_PLAN = 'payment_plan'
EVENT_REJECTION = 'rejection'
EVENT_REVERSION = 'reversion'
EVENT_DELETION = 'deletion'
EVENT_RECEIPT = 'receipt'

ONE = Decimal(1)


def compute_paid_ratio(amount: float | None, paid_amount: float | None, payment_plan: str | None = None) -> Decimal:
    """
    Fraction of the order that has been paid, clamped to [0, 1].

    Orders without a payment plan, and orders with no positive amount, count as fully paid.
    """
    if not payment_plan:
        return ONE
    if amount is None or amount <= 0:
        return ONE
    ratio = Decimal(str(paid_amount or 0)) / Decimal(str(amount))
    return max(Decimal(0), min(ONE, ratio))


def target_for_ratio(total_needed: float, paid_ratio: Decimal) -> float:
    """floor(total_needed * paid_ratio); the full requirement once fully paid"""
    if paid_ratio >= ONE:
        return total_needed
    return float(math.floor(Decimal(str(total_needed)) * paid_ratio))


@dataclass(frozen=True)
class LedgerMovement:
    material_id: int
    material_name: str
    direction: str
    requested: float
    applied: float
    reason: str


@dataclass(frozen=True)
class ClampEvent:
    material_id: int
    material_name: str
    requested: float
    applied: float


@dataclass
class ReconciliationResult:
    """What one reconciliation call moved, and anything the caller should be warned about"""
    order_tag: Optional[str]
    event: str
    movements: List[LedgerMovement] = field(default_factory=list)
    clamps: List[ClampEvent] = field(default_factory=list)
    skipped_materials: List[int] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.warnings)

    def moved(self, material_id: int, direction: str | None = None) -> float:
        return sum(
            m.applied for m in self.movements
            if m.material_id == material_id and (direction is None or m.direction == direction)
        )

    def to_dict(self) -> dict:
        return {
            'order_tag': self.order_tag,
            'event': self.event,
            'movements': [
                {
                    'material_id': m.material_id,
                    'material_name': m.material_name,
                    'direction': m.direction,
                    'requested': m.requested,
                    'applied': m.applied,
                }
                for m in self.movements
            ],
            'clamped': [c.material_id for c in self.clamps],
            'skipped_materials': list(self.skipped_materials),
            'warnings': list(self.warnings),
        }


class ReconciliationEngine:
    """
    Computes and applies stock deltas for order events.

    Responsibilities:
    - Derive what has already moved for an order tag from the ledger, never from stored counters
    - Move only the difference between that and the target, in one ledger row per material
    - Clamp deductions at zero stock and report the clamp
    - Skip materials that no longer exist and report them

    The engine stages rows through the stores; committing belongs to the caller.
    """

    def __init__(
        self,
        materials: Optional[MaterialStore] = None,
        ledger: Optional[LedgerStore] = None,
        catalog: Optional[ProductCatalog] = None,
    ):
        self.materials = materials or MaterialStore()
        self.ledger = ledger or LedgerStore()
        self.catalog = catalog or ProductCatalog()

    # ========== Requirement helpers ==========

    def requirements_for_items(self, items: Iterable) -> List[MaterialRequirement]:
        """
        Sum the BOM footprint of order line items per material.

        Items need `product_id` and `quantity`; ad hoc items (no product) contribute nothing.
        """
        requirements: List[MaterialRequirement] = []
        for item in items:
            if item.product_id is None:
                continue
            requirements.extend(expand_bom(self.catalog.get_bom(item.product_id), item.quantity))
        return merge_requirements(requirements)

    # ========== Event reconciliation ==========

    def apply_paid_ratio(
        self,
        order_tag: str,
        requirements: Iterable[MaterialRequirement],
        paid_ratio: Decimal,
        event: str,
        *,
        reference_type: str | None = None,
        reference_id: int | None = None,
        actor: str | None = None,
    ) -> ReconciliationResult:
        """
        Approval and payment: bring each material's net outflow up to
        floor(total_needed * paid_ratio). Never returns stock.
        """
        result = ReconciliationResult(order_tag=order_tag, event=event)
        for req in requirements:
            already = self.ledger.net_outflow(order_tag, req.material_id)
            target = target_for_ratio(req.quantity_needed, paid_ratio)
            delta = target - already
            if delta <= EPSILON:
                continue
            self._take(result, req.material_id, req.material_name, delta, event,
                       reference_type=reference_type, reference_id=reference_id, actor=actor)
        self._log_summary(result)
        return result

    def reconcile_to_targets(
        self,
        order_tag: str,
        targets: Mapping[int, float],
        event: str,
        *,
        names: Optional[Mapping[int, str]] = None,
        expected: Optional[Mapping[int, float]] = None,
        reference_type: str | None = None,
        reference_id: int | None = None,
        actor: str | None = None,
    ) -> ReconciliationResult:
        """
        Submit: make the tag hold exactly `targets`, taking or returning stock as needed.

        Materials the tag holds but that are no longer targeted are returned in full.
        When `expected` stock levels are given, any material ending elsewhere is
        reported: stock changed outside the edit session.
        """
        names = names or {}
        result = ReconciliationResult(order_tag=order_tag, event=event)
        materials = set(targets) | set(self.ledger.materials_for_tag(order_tag))

        for material_id in sorted(materials):
            name = names.get(material_id, f"Material #{material_id}")
            delta = targets.get(material_id, 0.0) - self.ledger.net_outflow(order_tag, material_id)
            if delta > EPSILON:
                self._take(result, material_id, name, delta, event,
                           reference_type=reference_type, reference_id=reference_id, actor=actor)
            elif delta < -EPSILON:
                self._give(result, material_id, name, -delta, event,
                           reference_type=reference_type, reference_id=reference_id, actor=actor)

        for material_id, expected_qty in (expected or {}).items():
            material = self.materials.get(material_id)
            if material is None or material_id in result.skipped_materials:
                continue
            if abs((material.quantity_on_hand or 0.0) - expected_qty) > EPSILON:
                message = (
                    f"{material.name} is at {format_quantity(material.quantity_on_hand)}, "
                    f"expected {format_quantity(expected_qty)}; stock changed while the order was being edited"
                )
                logger.warning(f"{order_tag}: {message}")
                result.warnings.append(message)

        self._log_summary(result)
        return result

    def restore_all(
        self,
        order_tag: str,
        event: str,
        *,
        reference_type: str | None = None,
        reference_id: int | None = None,
        actor: str | None = None,
    ) -> ReconciliationResult:
        """Rejection and reversion: return the full net outflow of every material the tag touched"""
        result = ReconciliationResult(order_tag=order_tag, event=event)
        for material_id in self.ledger.materials_for_tag(order_tag):
            net = self.ledger.net_outflow(order_tag, material_id)
            if net <= EPSILON:
                continue
            self._give(result, material_id, None, net, event,
                       reference_type=reference_type, reference_id=reference_id, actor=actor)
        self._log_summary(result)
        return result

    def restore_quantities(
        self,
        order_tag: str,
        quantities: Mapping[int, float],
        event: str,
        *,
        reference_type: str | None = None,
        reference_id: int | None = None,
        actor: str | None = None,
    ) -> ReconciliationResult:
        """
        Return specific quantities to stock (a deleted line's footprint),
        never more than the tag still holds.
        """
        result = ReconciliationResult(order_tag=order_tag, event=event)
        for material_id, quantity in sorted(quantities.items()):
            held = self.ledger.net_outflow(order_tag, material_id)
            amount = min(quantity, held)
            if amount <= EPSILON:
                continue
            self._give(result, material_id, None, amount, event,
                       reference_type=reference_type, reference_id=reference_id, actor=actor)
        self._log_summary(result)
        return result

    def receive_to_targets(
        self,
        order_tag: str,
        targets: Mapping[int, float],
        event: str = EVENT_RECEIPT,
        *,
        reference_type: str | None = None,
        reference_id: int | None = None,
        actor: str | None = None,
    ) -> ReconciliationResult:
        """Supplier receipts: stock in whatever part of each target the ledger does not show received yet"""
        result = ReconciliationResult(order_tag=order_tag, event=event)
        for material_id, target in sorted(targets.items()):
            already = self.ledger.sum_movement(order_tag, material_id, InventoryTransaction.DIRECTION_IN)
            delta = target - already
            if delta <= EPSILON:
                continue
            self._give(result, material_id, None, delta, event,
                       reference_type=reference_type, reference_id=reference_id, actor=actor)
        self._log_summary(result)
        return result

    # ========== Movement primitives ==========

    def _take(self, result, material_id, name, quantity, reason, **refs):
        material = self.materials.get(material_id)
        if material is None:
            self._skip_missing(result, material_id, name)
            return

        on_hand = material.quantity_on_hand or 0.0
        applied = min(quantity, on_hand)
        if applied < quantity - EPSILON:
            result.clamps.append(ClampEvent(material_id, material.name, quantity, applied))
            message = (
                f"{material.name}: needed {format_quantity(quantity)} but only "
                f"{format_quantity(on_hand)} on hand, stock set to 0"
            )
            result.warnings.append(message)
            logger.warning(f"{result.order_tag}: {message}")

        if applied <= EPSILON:
            return

        self.materials.update(material_id, max(0.0, on_hand - applied))
        self._append(result, material, InventoryTransaction.DIRECTION_OUT, quantity, applied, reason, **refs)

    def _give(self, result, material_id, name, quantity, reason, **refs):
        material = self.materials.get(material_id)
        if material is None:
            self._skip_missing(result, material_id, name)
            return

        self.materials.update(material_id, (material.quantity_on_hand or 0.0) + quantity)
        self._append(result, material, InventoryTransaction.DIRECTION_IN, quantity, quantity, reason, **refs)

    def _append(self, result, material, direction, requested, applied, reason,
                reference_type=None, reference_id=None, actor=None):
        self.ledger.append(
            material.id,
            result.order_tag,
            direction,
            applied,
            reason,
            reference_type=reference_type,
            reference_id=reference_id,
            actor=actor,
        )
        result.movements.append(LedgerMovement(material.id, material.name, direction, requested, applied, reason))
        logger.info(
            f"{result.order_tag}: {reason} {direction} {format_quantity(applied)} of {material.name} "
            f"(now {format_quantity(material.quantity_on_hand)})"
        )

    def _skip_missing(self, result, material_id, name):
        label = name or f"Material #{material_id}"
        message = f"{label} (not found in inventory), skipped"
        result.skipped_materials.append(material_id)
        result.warnings.append(message)
        logger.warning(f"{result.order_tag}: {message}")

    def _log_summary(self, result):
        moved = defaultdict(float)
        for m in result.movements:
            moved[m.direction] += m.applied
        logger.debug(
            f"{result.order_tag}: {result.event} reconciled, "
            f"out={format_quantity(moved['out'])} in={format_quantity(moved['in'])} "
            f"warnings={len(result.warnings)}"
        )
