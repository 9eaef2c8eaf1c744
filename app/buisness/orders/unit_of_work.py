"""
Transaction scope for order operations

Every stock-moving operation runs as: lock the order lineage, read the
baseline, compute and stage the delta, commit. A version collision on an order
or material row rolls back and retries the whole operation with a fresh baseline.
"""

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from app import db
from app.buisness.inventory.reconciliation.order_locks import OrderLockRegistry
from app.buisness.orders.errors import ConcurrencyConflict, OrderDomainError, PersistenceError
from app.utils.logger import get_logger

logger = get_logger("ops_console.orders.unit_of_work")


class OrderUnitOfWork:
    """Runs an operation in one transaction, serialized per lock key, with retries on version conflicts"""

    def __init__(self, max_retries=None, default_actor=None):
        self._max_retries = max_retries
        self._default_actor = default_actor

    @property
    def max_retries(self):
        if self._max_retries is not None:
            return self._max_retries
        return current_app.config.get('RECONCILE_MAX_RETRIES', 3)

    def actor(self, actor=None):
        if actor:
            return actor
        if self._default_actor:
            return self._default_actor
        return current_app.config.get('DEFAULT_ACTOR', 'System')

    def run(self, lock_key, operation, description):
        """
        Args:
            lock_key: Order tag (or other lineage key) to serialize on
            operation: Callable staging all changes; re-invoked on retry
            description: Label for logs and error messages

        Returns:
            Whatever `operation` returns, after a successful commit

        Raises:
            ConcurrencyConflict: Version conflicts on every attempt
            PersistenceError: Any other store failure
        """
        attempts = max(1, int(self.max_retries))
        last_error = None

        for attempt in range(1, attempts + 1):
            try:
                with OrderLockRegistry.hold(lock_key):
                    outcome = operation()
                    db.session.commit()
                return outcome
            except StaleDataError as e:
                db.session.rollback()
                last_error = e
                logger.warning(f"{description}: order or stock changed concurrently (attempt {attempt}/{attempts}), retrying")
            except OrderDomainError:
                db.session.rollback()
                raise
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error(f"{description}: store failure: {e}")
                raise PersistenceError(f"{description} failed: {e}") from e
            except Exception as e:
                db.session.rollback()
                logger.error(f"{description}: unexpected error, changes rolled back: {e}")
                raise

        logger.error(f"{description}: gave up after {attempts} conflicting attempts")
        raise ConcurrencyConflict(
            f"{description}: the order was modified concurrently, please retry"
        ) from last_error
