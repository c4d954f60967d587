"""Core module - order reconciliation, split, storage and notifications.

This module contains the diff, update and split engines, the local SQLite
stores and the notification pipeline. It is intentionally ERP-agnostic.

ERP-specific logic (NetSuite signing, URLs, envelopes) belongs in /connectors/.
"""

__version__ = "1.0.0"
