from flask import jsonify, request
from app import limiter
from app.presentation.routes.orders import orders_bp
from app.buisness.inventory.availability import validate_availability
from app.buisness.inventory.stores import MaterialStore
from app.buisness.orders.edit_session_service import EditSessionService
from app.buisness.orders.errors import InsufficientStockError, ValidationError
from app.buisness.orders.order_lifecycle import (
    ENTITY_CLIENT_ORDER,
    ENTITY_REQUEST,
    OrderLifecycleManager,
)
from app.buisness.products.bom_resolver import BomResolver


def _json():
    return request.get_json(silent=True) or {}


def _number(data, key, required=True, cast=float):
    value = data.get(key)
    if value is None or value == '':
        if required:
            raise ValidationError(f"{key} is required")
        return None
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be a number")


def _apply_items(service, session, items, pending=None):
    """Run each payload item through the edit session; stop at the first out-of-stock line"""
    low_stock = []
    for item in items:
        item_id = item.get('id')
        line = service.build_line(
            product_id=_number(item, 'product_id', required=False, cast=int),
            quantity=_number(item, 'quantity'),
            unit_price=_number(item, 'unit_price', required=False),
            product_name=item.get('product_name'),
            line_id=f"item-{item_id}" if item_id is not None else None,
        )
        outcome = service.edit(session, line, pending=pending)
        if not outcome.accepted:
            raise InsufficientStockError(
                "Insufficient stock: " + "; ".join(outcome.report.out_of_stock),
                report=outcome.report,
            )
        low_stock.extend(outcome.report.low_stock)
        session = outcome.session
    return session, low_stock


@orders_bp.post('/api/availability')
def api_check_availability():
    """Dry-run availability for a list of {product_id, quantity} items; never writes"""
    data = _json()
    lines = [
        (_number(item, 'product_id', required=False, cast=int), _number(item, 'quantity'))
        for item in data.get('items', [])
    ]
    requirements = BomResolver().resolve_lines(lines)
    report = validate_availability(requirements, MaterialStore().snapshot(r.material_id for r in requirements))
    return jsonify({
        'success': report.ok,
        'requirements': [r.to_dict() for r in requirements],
        'availability': report.to_dict(),
    })


@orders_bp.get('/api/products/<int:product_id>/requirements')
def api_product_requirements(product_id):
    quantity = request.args.get('quantity', 1, type=float)
    requirements = BomResolver().resolve(product_id, quantity)
    return jsonify([r.to_dict() for r in requirements])


@orders_bp.post('/api/requests')
@limiter.limit("30 per minute")
def api_create_request():
    data = _json()
    service = EditSessionService()
    session, low_stock = _apply_items(service, service.open(), data.get('items', []))
    outcome = service.submit(
        session,
        client_id=_number(data, 'client_id', cast=int),
        client_name=data.get('client_name'),
        actor=data.get('actor'),
        notes=data.get('notes'),
    )
    body = outcome.to_dict()
    body['success'] = True
    body['low_stock'] = low_stock
    return jsonify(body), 201


@orders_bp.get('/api/requests/<int:request_id>')
def api_get_request(request_id):
    req = OrderLifecycleManager.get_request(request_id)
    return jsonify(req.to_dict(include_relationships=True))


@orders_bp.put('/api/requests/<int:request_id>')
def api_update_request(request_id):
    """
    Replace a Pending request's items.

    Items carrying an `id` edit the saved line with that id; saved lines missing
    from the payload are dropped. The whole payload is validated before anything
    is written, and the stock of dropped lines is given back by the submit.
    """
    data = _json()
    items = data.get('items', [])
    actor = data.get('actor')
    service = EditSessionService()
    session = service.open(request_id)

    keep = {f"item-{item['id']}" for item in items if item.get('id') is not None}
    for line in session.lines:
        if line.line_id not in keep:
            session = service.stage_delete(session, line.line_id).session

    session, low_stock = _apply_items(service, session, items, pending=session.restored_totals())
    outcome = service.submit(session, actor=actor, notes=data.get('notes'))
    body = outcome.to_dict()
    body['success'] = True
    body['low_stock'] = low_stock
    return jsonify(body)


@orders_bp.delete('/api/requests/<int:request_id>')
def api_delete_request(request_id):
    data = _json()
    outcome = OrderLifecycleManager().delete_request(request_id, actor=data.get('actor'), note=data.get('note'))
    body = outcome.to_dict()
    body['success'] = True
    return jsonify(body)


@orders_bp.post('/api/requests/<int:request_id>/status')
def api_request_status(request_id):
    data = _json()
    if not data.get('status'):
        raise ValidationError("status is required")
    outcome = OrderLifecycleManager().transition(
        ENTITY_REQUEST,
        request_id,
        data['status'],
        actor=data.get('actor'),
        note=data.get('note'),
        payment_plan=data.get('payment_plan'),
    )
    body = outcome.to_dict()
    body['success'] = True
    return jsonify(body)


@orders_bp.get('/api/client-orders/<int:order_id>')
def api_get_client_order(order_id):
    order = OrderLifecycleManager.get_client_order(order_id)
    body = order.to_dict(include_relationships=True)
    body['remaining_amount'] = order.remaining_amount
    return jsonify(body)


@orders_bp.post('/api/client-orders/<int:order_id>/status')
def api_client_order_status(order_id):
    data = _json()
    if not data.get('status'):
        raise ValidationError("status is required")
    outcome = OrderLifecycleManager().transition(
        ENTITY_CLIENT_ORDER,
        order_id,
        data['status'],
        actor=data.get('actor'),
        note=data.get('note'),
        payment_amount=_number(data, 'payment_amount', required=False),
    )
    body = outcome.to_dict()
    body['success'] = True
    return jsonify(body)


@orders_bp.post('/api/client-orders/<int:order_id>/payments')
def api_client_order_payment(order_id):
    data = _json()
    outcome = OrderLifecycleManager().record_payment(
        order_id,
        _number(data, 'amount'),
        actor=data.get('actor'),
        note=data.get('note'),
    )
    body = outcome.to_dict()
    body['success'] = True
    return jsonify(body), 201


@orders_bp.put('/api/client-orders/<int:order_id>/payment-plan')
def api_client_order_payment_plan(order_id):
    data = _json()
    outcome = OrderLifecycleManager().update_payment_plan(
        order_id, data.get('payment_plan'), actor=data.get('actor')
    )
    body = outcome.to_dict()
    body['success'] = True
    return jsonify(body)


@orders_bp.get('/api/history/<entity_type>/<int:entity_id>')
def api_history(entity_type, entity_id):
    entries = OrderLifecycleManager().get_history(entity_type, entity_id)
    return jsonify([entry.to_dict(include_audit_fields=False) for entry in entries])
