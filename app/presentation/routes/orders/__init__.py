from flask import Blueprint

orders_bp = Blueprint('orders', __name__)

# Import all route modules
from . import (  # noqa: E402,F401
    errors,
    api,
    supplier_api,
)
