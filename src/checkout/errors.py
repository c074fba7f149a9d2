"""Checkout failure taxonomy.

Only ``InsufficientStockError`` and ``PersistenceError`` ever reach the
shopper. The remaining errors are raised by collaborators and absorbed by
the orchestrator, which logs them and carries on with the sale.
"""


class CheckoutError(Exception):
    """Base class for checkout pipeline failures."""

    error = "Checkout failed"

    def __init__(self, message: str | None = None, details: list | dict | None = None):
        super().__init__(message or self.error)
        self.message = message or self.error
        self.details = details if details is not None else []


class InsufficientStockError(CheckoutError):
    """One or more lines cannot be fulfilled from available stock."""

    error = "Insufficient stock"


class PersistenceError(CheckoutError):
    """The order could not be written."""

    error = "Failed to create order"


class StockDecrementError(CheckoutError):
    error = "Stock decrement failed"


class CourierError(CheckoutError):
    """A courier provider call failed."""

    error = "Courier request failed"


class CourierBookingError(CourierError):
    error = "Courier booking failed"


class NotificationError(CheckoutError):
    error = "Notification failed"


class JobEnqueueError(CheckoutError):
    error = "Scheduled job could not be created"
