"""Core storage - SQLite-backed ledgers and reference lookups."""

from core.storage.db import get_db_connection, init_db
from core.storage.lineage import SplitLineageStore, SplitRecord
from core.storage.workflow import OrderWorkflowStore, WorkflowAssignment
from core.storage.reference import ReferenceDataStore, UserDirectory, StaffUser

__all__ = [
    "get_db_connection",
    "init_db",
    "SplitLineageStore",
    "SplitRecord",
    "OrderWorkflowStore",
    "WorkflowAssignment",
    "ReferenceDataStore",
    "UserDirectory",
    "StaffUser",
]
