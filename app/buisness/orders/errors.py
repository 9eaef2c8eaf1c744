"""
Domain exceptions for order and inventory reconciliation logic

These exceptions represent business rule violations and store failures.
They are raised by the business layer and mapped to HTTP responses by the
orders blueprint.
"""


class OrderDomainError(Exception):
    """Base exception for all order domain errors"""
    pass


class ValidationError(OrderDomainError, ValueError):
    """
    Raised for insufficient stock, missing fields, illegal transitions and
    non-positive quantities or payments. Nothing has been mutated.
    """

    def __init__(self, message, report=None):
        super().__init__(message)
        self.report = report


class InsufficientStockError(ValidationError):
    """Raised when an availability check finds out-of-stock materials; carries the AvailabilityReport"""
    pass


class NotFoundError(OrderDomainError, LookupError):
    """Raised when an order, request or material cannot be found"""
    pass


class ConcurrencyConflict(OrderDomainError):
    """Raised when the order row was changed by someone else between read and write"""
    pass


class PersistenceError(OrderDomainError):
    """Raised when the store fails; the session has been rolled back"""
    pass
