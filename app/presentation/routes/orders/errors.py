from flask import jsonify
from app.presentation.routes.orders import orders_bp
from app.buisness.orders.errors import (
    ConcurrencyConflict,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from app.utils.logger import get_logger

logger = get_logger("ops_console.routes.orders")


@orders_bp.errorhandler(ValidationError)
def handle_validation_error(e):
    body = {"success": False, "message": str(e)}
    if e.report is not None:
        body["availability"] = e.report.to_dict()
    return jsonify(body), 400


@orders_bp.errorhandler(NotFoundError)
def handle_not_found(e):
    return jsonify({"success": False, "message": str(e)}), 404


@orders_bp.errorhandler(ConcurrencyConflict)
def handle_conflict(e):
    return jsonify({"success": False, "message": str(e)}), 409


@orders_bp.errorhandler(PersistenceError)
def handle_persistence_error(e):
    logger.error(f"Persistence failure: {e}")
    return jsonify({"success": False, "message": "The change could not be saved"}), 500
