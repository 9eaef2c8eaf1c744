from flask import jsonify
from app.presentation.routes.orders import orders_bp
from app.presentation.routes.orders.api import _json, _number
from app.buisness.orders.errors import ValidationError
from app.buisness.orders.order_lifecycle import ENTITY_SUPPLIER_ORDER, OrderLifecycleManager
from app.buisness.orders.supplier_receiving import SupplierReceivingManager


@orders_bp.post('/api/supplier-orders')
def api_create_supplier_order():
    data = _json()
    items = [
        {
            'material_id': _number(item, 'material_id', cast=int),
            'quantity': _number(item, 'quantity'),
            'unit_price': _number(item, 'unit_price'),
        }
        for item in data.get('items', [])
    ]
    order = SupplierReceivingManager().create_order(
        data.get('supplier_name'),
        items,
        actor=data.get('actor'),
        payment_plan=data.get('payment_plan'),
        notes=data.get('notes'),
    )
    body = order.to_dict(include_relationships=True)
    body['success'] = True
    return jsonify(body), 201


@orders_bp.get('/api/supplier-orders/<int:order_id>')
def api_get_supplier_order(order_id):
    order = SupplierReceivingManager.get_order(order_id)
    return jsonify(order.to_dict(include_relationships=True))


@orders_bp.post('/api/supplier-orders/<int:order_id>/payments')
def api_supplier_order_payment(order_id):
    data = _json()
    outcome = SupplierReceivingManager().record_payment(
        order_id,
        _number(data, 'amount'),
        actor=data.get('actor'),
        note=data.get('note'),
    )
    body = outcome.to_dict()
    body['success'] = True
    return jsonify(body), 201


@orders_bp.post('/api/supplier-orders/<int:order_id>/status')
def api_supplier_order_status(order_id):
    data = _json()
    if not data.get('status'):
        raise ValidationError("status is required")
    outcome = OrderLifecycleManager().transition(
        ENTITY_SUPPLIER_ORDER, order_id, data['status'], actor=data.get('actor'), note=data.get('note')
    )
    body = outcome.to_dict()
    body['success'] = True
    return jsonify(body)
