"""Order reconciliation, update and split engines."""

from core.orders.diff import diff_header, diff_line
from core.orders.update import OrderUpdateOrchestrator
from core.orders.split import SplitEngine, allocate_order_number
from core.orders.responses import ResponseService
from core.orders.details import OrderDetailsService

__all__ = [
    "diff_header",
    "diff_line",
    "OrderUpdateOrchestrator",
    "SplitEngine",
    "allocate_order_number",
    "ResponseService",
    "OrderDetailsService",
]
