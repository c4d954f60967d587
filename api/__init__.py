"""API Package.

FastAPI server for the sales order service.
"""

from api.server import create_app

__all__ = [
    "create_app",
]
