"""
Speculative edit session for order request line items

An EditSession is an immutable value: every operation returns a new session
and never touches the database. The session remembers

- the stock levels seen when it was opened (`baseline`),
- for each line, the material footprint the ledger already holds for it (`committed`),
- the restorations already pushed back to live stock by deletions.

Availability for an edited line is judged against live stock minus what the
other lines still have to take, plus what the edited line already holds, so
repeated edits of the same line never compound.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Optional, Tuple

from app.buisness.inventory.availability import (
    EPSILON,
    AvailabilityReport,
    InventorySnapshot,
    MaterialRequirement,
    validate_availability,
)
from app.buisness.orders.errors import NotFoundError, ValidationError
from app.buisness.products.product_catalog import BillOfMaterialsLine


@dataclass(frozen=True)
class SessionLine:
    line_id: str
    product_id: Optional[int]
    product_name: str
    quantity: float
    unit_price: float = 0.0
    bom: Tuple[BillOfMaterialsLine, ...] = ()
    committed: Tuple[Tuple[int, float], ...] = ()

    @property
    def is_ad_hoc(self) -> bool:
        return self.product_id is None

    @property
    def total_price(self) -> float:
        return self.unit_price * self.quantity

    @property
    def committed_footprint(self) -> Dict[int, float]:
        return dict(self.committed)

    def footprint(self, quantity: Optional[float] = None) -> Dict[int, float]:
        """Materials consumed by `quantity` units (defaults to the line quantity)"""
        if self.is_ad_hoc:
            return {}
        qty = self.quantity if quantity is None else quantity
        result: Dict[int, float] = defaultdict(float)
        for bom_line in self.bom:
            result[bom_line.material_id] += bom_line.quantity_per_unit * qty
        return dict(result)

    def outstanding(self) -> Dict[int, float]:
        """Footprint still to be taken from stock; negative where the line shrank"""
        result = self.footprint()
        for material_id, held in self.committed:
            result[material_id] = result.get(material_id, 0.0) - held
        return result

    def requirements(self) -> List[MaterialRequirement]:
        names = {b.material_id: b.material_name for b in self.bom}
        return [
            MaterialRequirement(material_id=m, material_name=names.get(m, f"Material #{m}"), quantity_needed=q)
            for m, q in self.footprint().items()
        ]

    def to_dict(self) -> dict:
        return {
            'line_id': self.line_id,
            'product_id': self.product_id,
            'product_name': self.product_name,
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'total_price': self.total_price,
            'ad_hoc': self.is_ad_hoc,
        }


@dataclass(frozen=True)
class Restoration:
    line_id: str
    material_id: int
    quantity: float


@dataclass(frozen=True)
class EditSession:
    baseline: InventorySnapshot
    lines: Tuple[SessionLine, ...] = ()
    restorations: Tuple[Restoration, ...] = ()
    order_tag: Optional[str] = None
    request_id: Optional[int] = None

    def line(self, line_id: str) -> Optional[SessionLine]:
        for line in self.lines:
            if line.line_id == line_id:
                return line
        return None

    @property
    def total_amount(self) -> float:
        return sum(line.total_price for line in self.lines)

    def restored_totals(self) -> Dict[int, float]:
        totals: Dict[int, float] = defaultdict(float)
        for restoration in self.restorations:
            totals[restoration.material_id] += restoration.quantity
        return dict(totals)

    def virtual_stock(self) -> InventorySnapshot:
        """Baseline stock plus everything deletions have already put back"""
        return self.baseline.adjusted(self.restored_totals())


@dataclass(frozen=True)
class EditOutcome:
    session: EditSession
    report: AvailabilityReport
    accepted: bool


@dataclass(frozen=True)
class DeleteOutcome:
    session: EditSession
    restorations: Tuple[Restoration, ...]

    def restored_quantities(self) -> Dict[int, float]:
        totals: Dict[int, float] = defaultdict(float)
        for restoration in self.restorations:
            totals[restoration.material_id] += restoration.quantity
        return dict(totals)


@dataclass(frozen=True)
class SubmitPlan:
    """
    What a submit should leave behind.

    `targets` is the full footprint the ledger must hold for the order tag.
    `expected` is the stock level per material the session predicts after the
    submit: baseline - outstanding + restored.
    """
    order_tag: Optional[str]
    request_id: Optional[int]
    targets: Mapping[int, float]
    expected: Mapping[int, float]
    report: AvailabilityReport
    lines: Tuple[SessionLine, ...] = field(default=())

    def batch(self) -> List[dict]:
        return [
            {'material_id': material_id, 'new_quantity': quantity}
            for material_id, quantity in sorted(self.expected.items())
        ]


def allocate_committed(lines: Tuple[SessionLine, ...], held: Mapping[int, float]) -> Tuple[SessionLine, ...]:
    """
    Spread what the ledger holds per material over the lines, in line order.

    Used when reopening a saved request: a line only counts as committed for
    the part of its footprint the ledger actually still holds.
    """
    remaining = dict(held)
    allocated = []
    for line in lines:
        committed = []
        for material_id, qty in line.footprint().items():
            share = min(qty, max(0.0, remaining.get(material_id, 0.0)))
            if share > EPSILON:
                committed.append((material_id, share))
                remaining[material_id] = remaining.get(material_id, 0.0) - share
        allocated.append(replace(line, committed=tuple(committed)))
    return tuple(allocated)


def perceived_stock(session: EditSession, line_id: str, live: Optional[InventorySnapshot] = None) -> InventorySnapshot:
    """
    Stock as seen by the line being edited.

    Args:
        session: Current session
        line_id: Line being edited (may be new)
        live: Current stock; defaults to the session's virtual stock
    """
    stock = live if live is not None else session.virtual_stock()
    deltas: Dict[int, float] = defaultdict(float)
    for line in session.lines:
        if line.line_id == line_id:
            for material_id, held in line.committed:
                deltas[material_id] += held
        else:
            for material_id, qty in line.outstanding().items():
                deltas[material_id] -= qty
    return stock.adjusted(dict(deltas))


def apply_edit(session: EditSession, line: SessionLine, live: Optional[InventorySnapshot] = None) -> EditOutcome:
    """
    Add a new line or replace an existing one (matched by line_id).

    An out-of-stock result leaves the session unchanged. Ad hoc lines are
    accepted without validation.
    """
    if line.quantity is None or line.quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")
    if line.unit_price is not None and line.unit_price < 0:
        raise ValidationError("Unit price cannot be negative")

    existing = session.line(line.line_id)
    # Only stock the ledger already holds counts as committed
    line = replace(line, committed=existing.committed if existing else ())

    if line.is_ad_hoc or not line.bom:
        report = AvailabilityReport()
    else:
        report = validate_availability(line.requirements(), perceived_stock(session, line.line_id, live))
        if not report.ok:
            return EditOutcome(session=session, report=report, accepted=False)

    if existing:
        lines = tuple(line if l.line_id == line.line_id else l for l in session.lines)
    else:
        lines = session.lines + (line,)
    return EditOutcome(session=replace(session, lines=lines), report=report, accepted=True)


def apply_delete(session: EditSession, line_id: str) -> DeleteOutcome:
    """
    Remove a line. Its committed footprint becomes restorations the caller must
    push back to live stock right away.
    """
    line = session.line(line_id)
    if line is None:
        raise NotFoundError(f"Line {line_id} not found in edit session")

    restorations = tuple(
        Restoration(line_id=line_id, material_id=material_id, quantity=held)
        for material_id, held in line.committed
        if held > EPSILON
    )
    new_session = replace(
        session,
        lines=tuple(l for l in session.lines if l.line_id != line_id),
        restorations=session.restorations + restorations,
    )
    return DeleteOutcome(session=new_session, restorations=restorations)


def compute_submit_deltas(session: EditSession) -> SubmitPlan:
    """
    Work out the stock batch for a submit.

    The report validates what the lines still need to take against the
    session's virtual stock; a plan with `report.ok == False` must not be applied.
    """
    targets: Dict[int, float] = defaultdict(float)
    outstanding: Dict[int, float] = defaultdict(float)
    names: Dict[int, str] = {}

    for line in session.lines:
        for bom_line in line.bom:
            names.setdefault(bom_line.material_id, bom_line.material_name)
        for material_id, qty in line.footprint().items():
            targets[material_id] += qty
        for material_id, qty in line.outstanding().items():
            outstanding[material_id] += qty

    restored = session.restored_totals()

    expected: Dict[int, float] = {}
    for material_id in set(targets) | set(outstanding) | set(restored):
        if material_id not in session.baseline:
            continue
        expected[material_id] = (
            session.baseline.quantity_of(material_id)
            - outstanding.get(material_id, 0.0)
            + restored.get(material_id, 0.0)
        )

    requirements = [
        MaterialRequirement(material_id=m, material_name=names.get(m, f"Material #{m}"), quantity_needed=q)
        for m, q in outstanding.items()
        if q > EPSILON
    ]
    report = validate_availability(requirements, session.virtual_stock())

    return SubmitPlan(
        order_tag=session.order_tag,
        request_id=session.request_id,
        targets=dict(targets),
        expected=expected,
        report=report,
        lines=session.lines,
    )
