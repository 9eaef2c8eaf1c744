"""
Domain layer for the operations console.
Contains order lifecycle, reconciliation and catalog logic kept apart from
data persistence concerns.
"""
