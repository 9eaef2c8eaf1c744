"""
Raw-material inventory models

- material.py - Materials with their on-hand quantity and reorder threshold
- inventory_transaction.py - Append-only stock movement ledger
"""

from app.data.inventory.material import Material
from app.data.inventory.inventory_transaction import InventoryTransaction

__all__ = [
    'Material',
    'InventoryTransaction',
]
