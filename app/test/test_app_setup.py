"""
Tests for application setup: factory, logging, build, debug data and .env generation
"""

import json
import logging

import pytest

from app import create_app
from app.build import build_database
from app.data.inventory.material import Material
from app.data.products.product import Product
from app.debug.debug_data_manager import insert_debug_data
from app.utils.logger import JsonFormatter, get_logger
from generate_env import EnvGenerator


def test_missing_secret_key_refuses_to_start():
    with pytest.raises(RuntimeError, match='SECRET_KEY'):
        create_app(test_config={'SECRET_KEY': None, 'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:'})


def test_orders_blueprint_is_registered(app):
    assert 'orders' in app.blueprints
    assert app.config['DEFAULT_ACTOR'] == 'tester'


def test_module_loggers_hang_off_the_base_logger():
    assert get_logger().name == 'ops_console'
    assert get_logger('ops_console.reconciliation').name == 'ops_console.reconciliation'
    assert get_logger('build').name == 'ops_console.build'


def test_json_formatter():
    record = logging.LogRecord('ops_console.test', logging.WARNING, __file__, 10, 'Steel Sheet clamped', None, None)
    formatter = JsonFormatter({'level': 'levelname', 'message': 'message'})

    assert json.loads(formatter.format(record)) == {'level': 'WARNING', 'message': 'Steel Sheet clamped'}


def test_debug_data_inserted_once(db):
    summary = insert_debug_data(enabled=True, actor='builder')

    assert summary == {'materials': 4, 'products': 2}
    hopper = Product.query.filter_by(name='Feed Hopper').one()
    assert sorted(line.material.name for line in hopper.materials) == ['Bolt M8', 'Steel Sheet']
    assert insert_debug_data()['status'] == 'skipped'
    assert insert_debug_data(enabled=False) == {}


def test_create_from_dict_ignores_unknown_keys(db):
    material = Material.create_from_dict(
        {'name': 'Copper Wire', 'quantity_on_hand': 12, 'colour': 'red'},
        actor='importer',
    )

    assert material.id is not None
    assert material.created_by == 'importer'
    assert material.version_id == 1
    assert Material.query.filter_by(name='Copper Wire').one().quantity_on_hand == 12


def test_build_database_creates_tables_and_catalog(app, db):
    assert build_database(enable_debug_data=True, app=app) is app
    assert Material.query.count() == 4


def test_generate_env_file(tmp_path):
    env_file = tmp_path / '.env'
    generator = EnvGenerator(dev_mode=True, env_file=env_file)

    assert generator.generate(force=True)

    content = env_file.read_text()
    assert 'SECRET_KEY=dev-secret-key-DO-NOT-USE-IN-PRODUCTION' in content
    assert 'ENABLE_HTTPS=False' in content
    assert 'RECONCILE_MAX_RETRIES=3' in content

    backup = generator.create_backup()
    assert backup.exists()


def test_production_secret_key_is_random(tmp_path):
    generator = EnvGenerator(env_file=tmp_path / '.env')
    key = generator.generate_secret_key()

    assert len(key) == 128
    assert key != generator.generate_secret_key()
