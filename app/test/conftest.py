"""
Pytest configuration and fixtures
"""
import os
import tempfile

import pytest

# Environment must be in place before the app package configures logging
os.environ.setdefault('SECRET_KEY', 'test-secret-key')
os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
os.environ.setdefault('ENABLE_HTTPS', 'False')
os.environ.setdefault('LOG_DIR', tempfile.mkdtemp(prefix='ops_console_logs_'))
os.environ.setdefault('LOG_LEVEL', 'WARNING')

from app import create_app  # noqa: E402
from app import db as _db  # noqa: E402
from app.data.inventory.material import Material  # noqa: E402
from app.data.products.product import Product, ProductMaterial  # noqa: E402


@pytest.fixture(scope='session')
def app():
    """Create Flask application for testing"""
    app = create_app(test_config={
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'RATELIMIT_ENABLED': False,
        'RECONCILE_MAX_RETRIES': 3,
        'DEFAULT_ACTOR': 'tester',
        'ENABLE_HTTPS': False,
        'FORCE_HTTPS_REDIRECT': False,
    })

    with app.app_context():
        yield app


@pytest.fixture(scope='function')
def db(app):
    """Fresh schema for every test"""
    _db.create_all()
    yield _db
    _db.session.remove()
    _db.drop_all()


@pytest.fixture(scope='function')
def client(app, db):
    """Create Flask test client"""
    return app.test_client()


@pytest.fixture
def make_material(db):
    def _make(name, quantity, min_stock_level=0.0):
        material = Material(name=name, quantity_on_hand=quantity, min_stock_level=min_stock_level, created_by='tester')
        db.session.add(material)
        db.session.commit()
        return material
    return _make


@pytest.fixture
def make_product(db):
    def _make(name, unit_price, bom):
        """bom: list of (Material, quantity_per_unit)"""
        product = Product(name=name, unit_price=unit_price, created_by='tester')
        for material, qpu in bom:
            product.materials.append(ProductMaterial(material_id=material.id, quantity_per_unit=qpu))
        db.session.add(product)
        db.session.commit()
        return product
    return _make


@pytest.fixture
def stock(db):
    """Current on-hand quantity of a material"""
    def _stock(material_id):
        return db.session.get(Material, material_id).quantity_on_hand
    return _stock
