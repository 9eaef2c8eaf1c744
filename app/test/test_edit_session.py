"""
Tests for the speculative edit session
Sessions are plain values, so none of these tests touch the database.
"""

import pytest

from app.buisness.inventory.availability import InventorySnapshot, StockLevel
from app.buisness.orders.edit_session import (
    EditSession,
    SessionLine,
    allocate_committed,
    apply_delete,
    apply_edit,
    compute_submit_deltas,
    perceived_stock,
)
from app.buisness.orders.errors import NotFoundError, ValidationError
from app.buisness.products.product_catalog import BillOfMaterialsLine

M = 1
M2 = 2


def _bom(*lines):
    """lines: (material_id, name, quantity_per_unit)"""
    return tuple(BillOfMaterialsLine(1, material_id, name, qpu) for material_id, name, qpu in lines)


def _stock(**quantities):
    ids = {'m': M, 'm2': M2}
    return InventorySnapshot.from_levels(
        StockLevel(ids[key], key.upper(), qty, 0.0) for key, qty in quantities.items()
    )


def _line(line_id, quantity, bom=None, committed=(), product_id=1, unit_price=10.0):
    return SessionLine(
        line_id=line_id,
        product_id=product_id,
        product_name='Widget',
        quantity=quantity,
        unit_price=unit_price,
        bom=_bom((M, 'M', 1.0)) if bom is None else bom,
        committed=committed,
    )


def test_editing_a_line_perceives_the_original_baseline():
    """A line needing 5 of M (stock 20) edited to 8 is judged against 20, not 15"""
    live = _stock(m=20.0)
    session = EditSession(baseline=live)

    session = apply_edit(session, _line('a', 5), live).session
    outcome = apply_edit(session, _line('a', 8), live)

    assert outcome.accepted
    assert perceived_stock(session, 'a', live).quantity_of(M) == 20.0
    assert session.line('a').quantity == 5, "Sessions are immutable"
    assert outcome.session.line('a').quantity == 8

    # 20 fits, 21 does not: the line's own earlier quantity never counts against it
    assert apply_edit(outcome.session, _line('a', 20), live).accepted
    assert not apply_edit(outcome.session, _line('a', 21), live).accepted


def test_saved_line_counts_its_held_stock_back():
    """The ledger holds 5 for the line and live stock already shows 15"""
    live = _stock(m=15.0)
    session = EditSession(baseline=live, lines=(_line('item-1', 5, committed=((M, 5.0),)),))

    assert perceived_stock(session, 'item-1', live).quantity_of(M) == 20.0
    assert apply_edit(session, _line('item-1', 20), live).accepted
    assert not apply_edit(session, _line('item-1', 21), live).accepted


def test_other_lines_reduce_perceived_stock():
    live = _stock(m=20.0)
    session = apply_edit(EditSession(baseline=live), _line('a', 5), live).session

    assert perceived_stock(session, 'b', live).quantity_of(M) == 15.0
    assert apply_edit(session, _line('b', 15), live).accepted
    assert not apply_edit(session, _line('b', 16), live).accepted


def test_out_of_stock_edit_leaves_session_unchanged():
    """Product needs 2xM and 1xM2; qty 3 against M=10, M2=2"""
    live = _stock(m=10.0, m2=2.0)
    bom = _bom((M, 'M1', 2.0), (M2, 'M2', 1.0))
    session = EditSession(baseline=live)

    outcome = apply_edit(session, _line('a', 3, bom=bom), live)

    assert not outcome.accepted
    assert outcome.session is session
    assert outcome.report.out_of_stock == ('M2 (need 3, have 2)',)


def test_low_stock_edit_is_accepted_with_warning():
    live = _stock(m=10.0, m2=3.0)
    bom = _bom((M, 'M1', 2.0), (M2, 'M2', 1.0))

    outcome = apply_edit(EditSession(baseline=live), _line('a', 3, bom=bom), live)

    assert outcome.accepted
    assert outcome.report.low_stock == ('M2 (low stock: 3)',)


def test_ad_hoc_line_skips_validation():
    live = _stock(m=0.0)
    line = SessionLine(line_id='x', product_id=None, product_name='Installation', quantity=2, unit_price=50.0)

    outcome = apply_edit(EditSession(baseline=live), line, live)

    assert outcome.accepted
    assert outcome.report.ok
    assert outcome.session.total_amount == 100.0
    assert line.footprint() == {}


@pytest.mark.parametrize('quantity', [0, -1])
def test_non_positive_quantity_is_rejected(quantity):
    with pytest.raises(ValidationError):
        apply_edit(EditSession(baseline=_stock(m=5.0)), _line('a', quantity))


def test_negative_price_is_rejected():
    with pytest.raises(ValidationError):
        apply_edit(EditSession(baseline=_stock(m=5.0)), _line('a', 1, unit_price=-1.0))


def test_edit_keeps_the_committed_footprint_of_the_line():
    live = _stock(m=15.0)
    session = EditSession(baseline=live, lines=(_line('item-1', 5, committed=((M, 5.0),)),))

    # Callers build fresh lines without committed data; the session keeps what the ledger holds
    edited = apply_edit(session, _line('item-1', 7), live).session.line('item-1')

    assert edited.committed_footprint == {M: 5.0}
    assert edited.outstanding() == {M: 2.0}


def test_delete_returns_committed_restorations():
    session = EditSession(
        baseline=_stock(m=15.0),
        lines=(_line('item-1', 5, committed=((M, 5.0),)), _line('new-1', 2)),
    )

    outcome = apply_delete(session, 'item-1')

    assert outcome.restored_quantities() == {M: 5.0}
    assert [l.line_id for l in outcome.session.lines] == ['new-1']
    assert outcome.session.virtual_stock().quantity_of(M) == 20.0


def test_deleting_an_uncommitted_line_restores_nothing():
    session = EditSession(baseline=_stock(m=15.0), lines=(_line('new-1', 2),))
    assert apply_delete(session, 'new-1').restorations == ()


def test_delete_unknown_line():
    with pytest.raises(NotFoundError):
        apply_delete(EditSession(baseline=_stock(m=1.0)), 'missing')


def test_submit_deltas_after_delete_do_not_restore_twice():
    """Deleted line already gave back 5; the submit plan only accounts for what remains"""
    session = EditSession(
        baseline=_stock(m=15.0),
        lines=(_line('item-1', 5, committed=((M, 5.0),)), _line('item-2', 3, committed=((M, 3.0),))),
        order_tag='REQ-1',
        request_id=1,
    )
    session = apply_delete(session, 'item-1').session

    plan = compute_submit_deltas(session)

    assert plan.targets == {M: 3.0}
    assert plan.expected == {M: 20.0}, "15 on hand + 5 restored, item-2 already held"
    assert plan.report.ok
    assert plan.batch() == [{'material_id': M, 'new_quantity': 20.0}]


def test_submit_deltas_for_a_new_request():
    live = _stock(m=20.0, m2=4.0)
    bom = _bom((M, 'M1', 2.0), (M2, 'M2', 1.0))
    session = apply_edit(EditSession(baseline=live), _line('a', 3, bom=bom), live).session

    plan = compute_submit_deltas(session)

    assert plan.targets == {M: 6.0, M2: 3.0}
    assert plan.expected == {M: 14.0, M2: 1.0}
    assert plan.order_tag is None


def test_submit_deltas_report_shortage_when_lines_outgrow_stock():
    session = EditSession(baseline=_stock(m=4.0), lines=(_line('a', 3), _line('b', 3)))
    plan = compute_submit_deltas(session)
    assert plan.report.out_of_stock == ('M (need 6, have 4)',)


def test_allocate_committed_spreads_held_stock_in_line_order():
    lines = (_line('item-1', 5), _line('item-2', 4))

    allocated = allocate_committed(lines, {M: 7.0})

    assert allocated[0].committed_footprint == {M: 5.0}
    assert allocated[1].committed_footprint == {M: 2.0}
    assert allocated[1].outstanding() == {M: 2.0}


def test_allocate_committed_with_nothing_held():
    """A reverted request holds nothing; its lines start uncommitted"""
    allocated = allocate_committed((_line('item-1', 5),), {})
    assert allocated[0].committed == ()
    assert allocated[0].outstanding() == {M: 5.0}
