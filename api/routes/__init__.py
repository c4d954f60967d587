"""API Routes Package."""

from api.routes import health, orders

__all__ = [
    "health",
    "orders",
]
