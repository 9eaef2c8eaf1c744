from __future__ import annotations

from typing import List

from app import db
from app.data.orders.order_history import OrderHistory
from app.utils.logger import get_logger

logger = get_logger("ops_console.orders.history")


class HistorySink:
    """Appends and reads order status history"""

    def record(
        self,
        entity_type: str,
        entity_id: int,
        from_status: str | None,
        to_status: str,
        note: str | None = None,
        actor: str | None = None,
    ) -> OrderHistory:
        entry = OrderHistory(
            entity_type=entity_type,
            entity_id=entity_id,
            from_status=from_status,
            to_status=to_status,
            note=note,
            actor=actor,
            created_by=actor,
        )
        db.session.add(entry)
        logger.info(f"{entity_type} {entity_id}: {from_status} -> {to_status} by {actor}")
        return entry

    def history(self, entity_type: str, entity_id: int) -> List[OrderHistory]:
        """Newest first"""
        return OrderHistory.query.filter_by(
            entity_type=entity_type, entity_id=entity_id
        ).order_by(OrderHistory.changed_at.desc(), OrderHistory.id.desc()).all()
