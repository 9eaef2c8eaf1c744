#!/usr/bin/env python3
"""
Build orchestrator for the operations console
Creates the database tables and optionally inserts debug data
"""

from app import create_app, db
from app.utils.logger import get_logger

logger = get_logger("ops_console.build")


def build_models():
    """Create every table registered on the SQLAlchemy metadata"""
    logger.info("Creating database tables")
    db.create_all()
    logger.info("Database tables created")


def build_database(enable_debug_data=True, app=None):
    """
    Main build entry point

    Args:
        enable_debug_data (bool): Whether to insert debug data (default: True)
        app: Existing application; a new one is created when omitted
    """
    app = app or create_app()

    with app.app_context():
        build_models()

        if enable_debug_data:
            from app.debug.debug_data_manager import insert_debug_data
            logger.info("Inserting debug data...")
            insert_debug_data(enabled=True, actor=app.config.get('DEFAULT_ACTOR', 'System'))

        logger.info("Database build completed successfully")
    return app
