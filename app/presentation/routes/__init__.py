"""
Routes package for the operations console
"""

from app.utils.logger import get_logger

logger = get_logger("ops_console.routes")


def init_app(app):
    """Initialize all route blueprints with the Flask app"""
    logger.debug("Initializing route blueprints")

    from .orders import orders_bp
    app.register_blueprint(orders_bp, url_prefix='/orders')

    logger.debug("Route blueprints registered")
