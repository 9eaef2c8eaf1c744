"""
Inventory business layer.

Organized into:
- stores.py - Material and ledger persistence helpers
- availability.py - Pure availability validation against a stock snapshot
- reconciliation/ - Ledger-backed stock reconciliation for order events
"""
