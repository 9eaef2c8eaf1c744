"""
Tests for the order unit of work and the per-tag lock registry
"""

import threading

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from app import db as _db
from app.buisness.inventory.reconciliation.order_locks import OrderLockRegistry
from app.buisness.inventory.stores import MaterialStore
from app.buisness.orders.errors import ConcurrencyConflict, PersistenceError, ValidationError
from app.buisness.orders.unit_of_work import OrderUnitOfWork
from app.data.inventory.material import Material


def test_returns_operation_result_and_commits(db):
    def operation():
        material = Material(name='Steel Sheet', quantity_on_hand=5)
        db.session.add(material)
        return material

    material = OrderUnitOfWork().run('REQ-1', operation, 'Add material')

    db.session.expire_all()
    assert db.session.get(Material, material.id).quantity_on_hand == 5


def test_retries_on_version_conflict(db):
    calls = []

    def operation():
        calls.append(1)
        if len(calls) == 1:
            raise StaleDataError("order row changed")
        return 'done'

    assert OrderUnitOfWork(max_retries=3).run('REQ-1', operation, 'Approve') == 'done'
    assert len(calls) == 2


def test_gives_up_after_max_retries(db):
    calls = []

    def operation():
        calls.append(1)
        raise StaleDataError("order row changed")

    with pytest.raises(ConcurrencyConflict):
        OrderUnitOfWork(max_retries=2).run('REQ-1', operation, 'Approve')
    assert len(calls) == 2


def test_max_retries_defaults_to_config(app, db):
    assert OrderUnitOfWork().max_retries == app.config['RECONCILE_MAX_RETRIES']


def test_store_failure_becomes_persistence_error(db):
    def operation():
        raise OperationalError("UPDATE materials", {}, Exception("database is locked"))

    with pytest.raises(PersistenceError):
        OrderUnitOfWork().run('REQ-1', operation, 'Approve')


def test_domain_errors_roll_back_and_propagate(db):
    def operation():
        db.session.add(Material(name='Never Saved', quantity_on_hand=1))
        raise ValidationError("rule broken")

    with pytest.raises(ValidationError):
        OrderUnitOfWork().run('REQ-1', operation, 'Approve')
    assert Material.query.filter_by(name='Never Saved').count() == 0


def test_actor_falls_back_to_default(app, db):
    assert OrderUnitOfWork().actor('alice') == 'alice'
    assert OrderUnitOfWork().actor() == app.config['DEFAULT_ACTOR']
    assert OrderUnitOfWork(default_actor='importer').actor(None) == 'importer'


def test_unexpected_errors_roll_back_and_propagate(db):
    def operation():
        db.session.add(Material(name='Half Staged', quantity_on_hand=1))
        raise TypeError("bad payload")

    with pytest.raises(TypeError):
        OrderUnitOfWork().run('REQ-1', operation, 'Approve')
    assert Material.query.filter_by(name='Half Staged').count() == 0


# ========== Stock written from a stale read ==========

def _bump_version(material_id):
    """Another writer changes the material row between our read and our write"""
    _db.session.execute(
        text("UPDATE materials SET version_id = version_id + 1 WHERE id = :id"),
        {'id': material_id},
    )


def test_stale_stock_write_is_retried(make_material):
    steel = make_material('Steel Sheet', 20)
    calls = []

    def operation():
        calls.append(1)
        on_hand = MaterialStore().get(steel.id).quantity_on_hand
        if len(calls) == 1:
            _bump_version(steel.id)
        return MaterialStore().update(steel.id, on_hand - 8)

    OrderUnitOfWork(max_retries=3).run('REQ-2', operation, 'Take steel')

    _db.session.expire_all()
    material = _db.session.get(Material, steel.id)
    assert len(calls) == 2
    assert material.quantity_on_hand == 12
    assert material.version_id == 2


def test_stale_stock_write_gives_up_as_conflict(make_material):
    steel = make_material('Steel Sheet', 20)

    def operation():
        on_hand = MaterialStore().get(steel.id).quantity_on_hand
        _bump_version(steel.id)
        return MaterialStore().update(steel.id, on_hand - 8)

    with pytest.raises(ConcurrencyConflict):
        OrderUnitOfWork(max_retries=2).run('REQ-3', operation, 'Take steel')

    _db.session.expire_all()
    assert _db.session.get(Material, steel.id).quantity_on_hand == 20


# ========== Lock registry ==========

def test_lock_registry_serializes_same_tag():
    results = {}

    def contender():
        results['same'] = lock.acquire(timeout=0.05)
        with OrderLockRegistry.hold('REQ-OTHER') as other:
            results['other'] = other is not lock

    with OrderLockRegistry.hold('REQ-LOCK') as lock:
        with OrderLockRegistry.hold('REQ-LOCK') as again:
            assert again is lock, "Re-entering a held tag reuses its lock"
        thread = threading.Thread(target=contender)
        thread.start()
        thread.join()

    assert results == {'same': False, 'other': True}


def test_lock_registry_drops_released_tags():
    with OrderLockRegistry.hold('REQ-EVICT'):
        assert 'REQ-EVICT' in OrderLockRegistry.active_tags()
    assert 'REQ-EVICT' not in OrderLockRegistry.active_tags()

    with pytest.raises(RuntimeError):
        with OrderLockRegistry.hold('REQ-EVICT'):
            raise RuntimeError("operation failed")
    assert 'REQ-EVICT' not in OrderLockRegistry.active_tags()
