"""
Tests for the orders JSON API
"""

from types import SimpleNamespace

import pytest


@pytest.fixture
def catalog(make_material, make_product):
    steel = make_material('Steel Sheet', 100, min_stock_level=10)
    bolts = make_material('Bolt M8', 50)
    hopper = make_product('Feed Hopper', 100.0, [(steel, 2), (bolts, 1)])
    roller = make_product('Conveyor Roller', 50.0, [(steel, 1)])
    return SimpleNamespace(steel=steel, bolts=bolts, hopper=hopper, roller=roller)


def _create_request(client, catalog, items=None, client_id=1):
    items = items or [{'product_id': catalog.hopper.id, 'quantity': 5}]
    return client.post('/orders/api/requests', json={
        'client_id': client_id,
        'client_name': 'Acme Mills',
        'actor': 'sales',
        'items': items,
    })


def test_availability_dry_run(client, catalog, stock):
    response = client.post('/orders/api/availability', json={
        'items': [{'product_id': catalog.hopper.id, 'quantity': 60}],
    })

    assert response.status_code == 200
    body = response.get_json()
    assert body['success'] is False
    assert body['availability']['out_of_stock'] == [
        'Steel Sheet (need 120, have 100)',
        'Bolt M8 (need 60, have 50)',
    ]
    assert stock(catalog.steel.id) == 100


def test_product_requirements(client, catalog):
    response = client.get(f'/orders/api/products/{catalog.hopper.id}/requirements?quantity=3')

    assert response.status_code == 200
    assert [(r['material_name'], r['quantity_needed']) for r in response.get_json()] == [
        ('Steel Sheet', 6.0),
        ('Bolt M8', 3.0),
    ]


def test_create_request(client, catalog, stock):
    response = _create_request(client, catalog, items=[
        {'product_id': catalog.hopper.id, 'quantity': 45},
        {'product_name': 'Delivery', 'quantity': 1, 'unit_price': 30},
    ])

    assert response.status_code == 201
    body = response.get_json()
    assert body['success'] is True
    assert body['request']['status'] == 'Pending'
    assert body['request']['total_amount'] == 4530
    assert len(body['request']['items']) == 2
    assert body['low_stock'] == ['Steel Sheet (low stock: 100)']
    assert stock(catalog.steel.id) == 10


def test_create_request_out_of_stock(client, catalog, stock):
    response = _create_request(client, catalog, items=[{'product_id': catalog.hopper.id, 'quantity': 51}])

    assert response.status_code == 400
    body = response.get_json()
    assert body['success'] is False
    assert 'Bolt M8 (need 51, have 50)' in body['availability']['out_of_stock']
    assert stock(catalog.bolts.id) == 50


def test_create_request_validation(client, catalog):
    assert _create_request(client, catalog, items=[{'product_id': catalog.hopper.id}]).status_code == 400
    assert _create_request(client, catalog, items=[{'product_id': catalog.hopper.id, 'quantity': 'lots'}]).status_code == 400
    response = client.post('/orders/api/requests', json={'items': [{'product_id': catalog.hopper.id, 'quantity': 1}]})
    assert response.status_code == 400
    assert response.get_json()['message'] == 'client_id is required'


def test_update_request_edits_and_removes_lines(client, catalog, stock):
    created = _create_request(client, catalog, items=[
        {'product_id': catalog.hopper.id, 'quantity': 5},
        {'product_id': catalog.roller.id, 'quantity': 3},
    ]).get_json()['request']
    hopper_item = next(i for i in created['items'] if i['product_id'] == catalog.hopper.id)
    assert stock(catalog.steel.id) == 87

    response = client.put(f"/orders/api/requests/{created['id']}", json={
        'items': [{'id': hopper_item['id'], 'product_id': catalog.hopper.id, 'quantity': 8}],
    })

    assert response.status_code == 200
    body = response.get_json()
    assert [(i['product_id'], i['quantity']) for i in body['request']['items']] == [(catalog.hopper.id, 8)]
    assert stock(catalog.steel.id) == 84
    assert stock(catalog.bolts.id) == 42


def test_refused_update_leaves_request_and_stock_untouched(client, catalog, stock):
    created = _create_request(client, catalog, items=[
        {'product_id': catalog.hopper.id, 'quantity': 5},
        {'product_id': catalog.roller.id, 'quantity': 3},
    ]).get_json()['request']
    hopper_item = next(i for i in created['items'] if i['product_id'] == catalog.hopper.id)

    response = client.put(f"/orders/api/requests/{created['id']}", json={
        'items': [{'id': hopper_item['id'], 'product_id': catalog.hopper.id, 'quantity': 60}],
    })

    assert response.status_code == 400
    body = response.get_json()
    assert body['success'] is False
    assert 'Steel Sheet (need 120, have 100)' in body['availability']['out_of_stock']
    assert stock(catalog.steel.id) == 87
    assert stock(catalog.bolts.id) == 45

    saved = client.get(f"/orders/api/requests/{created['id']}").get_json()
    assert sorted((i['product_id'], i['quantity']) for i in saved['items']) == sorted([
        (catalog.hopper.id, 5),
        (catalog.roller.id, 3),
    ])


def test_get_and_delete_request(client, catalog, stock):
    request_id = _create_request(client, catalog).get_json()['request']['id']

    assert client.get(f'/orders/api/requests/{request_id}').get_json()['status'] == 'Pending'

    response = client.delete(f'/orders/api/requests/{request_id}', json={'actor': 'sales'})

    assert response.status_code == 200
    assert response.get_json()['to_status'] == 'Deleted'
    assert stock(catalog.steel.id) == 100
    assert client.get(f'/orders/api/requests/{request_id}').status_code == 404


def test_order_flow(client, catalog, stock):
    request_id = _create_request(client, catalog).get_json()['request']['id']

    approved = client.post(f'/orders/api/requests/{request_id}/status', json={'status': 'Approved', 'actor': 'manager'})
    assert approved.status_code == 200
    order = approved.get_json()['spawned']
    assert order['status'] == 'Approved'

    paid = client.post(f"/orders/api/client-orders/{order['id']}/payments", json={'amount': 200})
    assert paid.status_code == 201
    assert paid.get_json()['to_status'] == 'Partially Paid'

    detail = client.get(f"/orders/api/client-orders/{order['id']}").get_json()
    assert detail['paid_amount'] == 200
    assert detail['remaining_amount'] == 300
    assert len(detail['payments']) == 1

    finished = client.post(f"/orders/api/client-orders/{order['id']}/status", json={
        'status': 'Partially Paid', 'payment_amount': 300,
    })
    assert finished.get_json()['to_status'] == 'Completed'

    history = client.get(f"/orders/api/history/client_order/{order['id']}").get_json()
    assert [h['to_status'] for h in history] == ['Completed', 'Partially Paid']
    assert stock(catalog.steel.id) == 90


def test_illegal_transition_is_a_400(client, catalog):
    request_id = _create_request(client, catalog).get_json()['request']['id']
    order = client.post(f'/orders/api/requests/{request_id}/status', json={'status': 'Approved'}).get_json()['spawned']

    response = client.post(f"/orders/api/client-orders/{order['id']}/status", json={'status': 'Completed'})

    assert response.status_code == 400
    assert 'set automatically' in response.get_json()['message']
    assert client.post(f"/orders/api/client-orders/{order['id']}/status", json={}).status_code == 400


def test_payment_plan_update(client, catalog, stock):
    request_id = _create_request(client, catalog).get_json()['request']['id']
    order = client.post(f'/orders/api/requests/{request_id}/status', json={
        'status': 'Approved', 'payment_plan': '50/50',
    }).get_json()['spawned']
    assert order['payment_plan'] == '50/50'

    response = client.put(f"/orders/api/client-orders/{order['id']}/payment-plan", json={'payment_plan': 'monthly'})

    assert response.status_code == 200
    assert client.get(f"/orders/api/client-orders/{order['id']}").get_json()['payment_plan'] == 'monthly'
    assert stock(catalog.steel.id) == 90


def test_missing_records_are_404(client, db):
    assert client.get('/orders/api/requests/999').status_code == 404
    assert client.get('/orders/api/client-orders/999').status_code == 404
    assert client.post('/orders/api/client-orders/999/payments', json={'amount': 5}).status_code == 404
    assert client.get('/orders/api/supplier-orders/999').status_code == 404


def test_supplier_order_api(client, make_material, stock):
    steel = make_material('Steel Sheet', 0)

    created = client.post('/orders/api/supplier-orders', json={
        'supplier_name': 'Northern Metals',
        'items': [{'material_id': steel.id, 'quantity': 10, 'unit_price': 20}],
    })
    assert created.status_code == 201
    order_id = created.get_json()['id']

    paid = client.post(f'/orders/api/supplier-orders/{order_id}/payments', json={'amount': 100})
    assert paid.status_code == 201
    assert paid.get_json()['order']['status'] == 'Partially Paid'
    assert stock(steel.id) == 5

    refused = client.post(f'/orders/api/supplier-orders/{order_id}/status', json={'status': 'Cancelled'})
    assert refused.status_code == 400

    detail = client.get(f'/orders/api/supplier-orders/{order_id}').get_json()
    assert detail['paid_amount'] == 100
    assert len(detail['items']) == 1


def test_security_headers(client, db):
    response = client.get('/orders/api/requests/999')
    assert response.headers['X-Frame-Options'] == 'SAMEORIGIN'
    assert response.headers['X-Content-Type-Options'] == 'nosniff'
