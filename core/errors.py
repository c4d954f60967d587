"""Local error taxonomy for the order engines.

Remote-call errors (ERPError and subclasses) live in connectors.erp_base.
"""

from typing import Optional


class OrderError(Exception):
    """Base exception for order engine errors."""
    pass


class OrderValidationError(OrderError):
    """Malformed caller input; rejected before any remote call."""
    pass


class PersistenceError(OrderError):
    """Local store failure (split ledger, sequence, workflow assignment)."""
    pass


class SplitPersistenceError(PersistenceError):
    """The ERP-side split landed but recording it locally failed.

    The new order stands; there is no compensating rollback.
    """
    def __init__(self, message: str, new_order_id: str, new_order_number: str):
        super().__init__(message)
        self.new_order_id = new_order_id
        self.new_order_number = new_order_number


class NotificationError(OrderError):
    """Notification channel could not be reached."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
