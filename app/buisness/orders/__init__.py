"""
Order business layer.

- status_machine.py - Legal status transitions for requests, client and supplier orders
- edit_session.py - Pure speculative edit session for request line items
- order_lifecycle.py - Single entry point for order status transitions
- supplier_receiving.py - Supplier orders and payment-driven stock receipts
"""
