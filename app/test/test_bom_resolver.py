"""
Tests for the product catalog and BOM resolver
"""

import pytest

from app.buisness.orders.errors import ValidationError
from app.buisness.products.bom_resolver import BomResolver, expand_bom
from app.buisness.products.product_catalog import ProductCatalog


def test_resolve_multiplies_quantity_per_unit(make_material, make_product):
    m1 = make_material('Steel Sheet', 10)
    m2 = make_material('Bolt M8', 2)
    product = make_product('Feed Hopper', 450.0, [(m1, 2), (m2, 1)])

    requirements = BomResolver().resolve(product.id, 3)

    assert [(r.material_id, r.quantity_needed, r.available) for r in requirements] == [
        (m1.id, 6.0, 10.0),
        (m2.id, 3.0, 2.0),
    ]
    assert requirements[0].material_name == 'Steel Sheet'


def test_unknown_product_resolves_to_nothing(db):
    assert BomResolver().resolve(999, 2) == []


def test_product_without_bom_resolves_to_nothing(make_product):
    product = make_product('Service Visit', 80.0, [])
    assert BomResolver().resolve(product.id, 1) == []


@pytest.mark.parametrize('quantity', [0, -2, None])
def test_quantity_must_be_positive(db, quantity):
    with pytest.raises(ValidationError):
        BomResolver().resolve(1, quantity)


def test_resolve_lines_merges_and_skips_ad_hoc(make_material, make_product):
    steel = make_material('Steel Sheet', 100)
    bearing = make_material('Bearing 6204', 50)
    hopper = make_product('Feed Hopper', 450.0, [(steel, 4)])
    roller = make_product('Conveyor Roller', 85.0, [(steel, 1), (bearing, 2)])

    requirements = BomResolver().resolve_lines([(hopper.id, 2), (None, 5), (roller.id, 3)])

    assert {r.material_id: r.quantity_needed for r in requirements} == {steel.id: 11.0, bearing.id: 6.0}


def test_catalog_bom_lines(make_material, make_product):
    steel = make_material('Steel Sheet', 100)
    product = make_product('Feed Hopper', 450.0, [(steel, 4)])

    bom = ProductCatalog().get_bom(product.id)

    assert len(bom) == 1
    assert bom[0].material_name == 'Steel Sheet'
    assert bom[0].quantity_per_unit == 4
    assert [r.quantity_needed for r in expand_bom(bom, 2.5)] == [10.0]
