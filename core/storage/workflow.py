"""Department review assignments and responses."""

import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from core.errors import PersistenceError
from core.storage.db import get_db_connection


@dataclass
class WorkflowAssignment:
    """Which departments must review an order, and who last edited it."""
    netsuite_id: str
    updated_by: Optional[str] = None
    selected_departments: List[str] = field(default_factory=list)


def _split_departments(raw: Optional[str]) -> List[str]:
    return [d.strip() for d in (raw or "").split(",") if d.strip()]


class OrderWorkflowStore:
    """order_workflow (one row per order) and order_responses (append-only)."""

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        self.db_path = db_path

    def save_assignment(self, order_id: str, updated_by: Optional[str], departments: List[str]) -> WorkflowAssignment:
        """Upsert the review assignment for an order."""
        conn = get_db_connection(self.db_path)
        try:
            conn.execute(
                """
                INSERT INTO order_workflow (netsuite_id, updated_by, selected_departments, updated_at)
                VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(netsuite_id) DO UPDATE SET
                    updated_by = excluded.updated_by,
                    selected_departments = excluded.selected_departments,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (str(order_id), updated_by, ",".join(departments)),
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save workflow for order {order_id}: {e}") from e
        finally:
            conn.close()
        return WorkflowAssignment(str(order_id), updated_by, list(departments))

    def get_assignment(self, order_id: str) -> Optional[WorkflowAssignment]:
        conn = get_db_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT netsuite_id, updated_by, selected_departments FROM order_workflow WHERE netsuite_id = ?",
                (str(order_id),),
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read workflow for order {order_id}: {e}") from e
        finally:
            conn.close()

        if not row:
            return None
        return WorkflowAssignment(
            netsuite_id=row["netsuite_id"],
            updated_by=row["updated_by"],
            selected_departments=_split_departments(row["selected_departments"]),
        )

    def record_response(
        self,
        order_id: str,
        department: str,
        action: str,
        remark: str = "",
        responded_by: Optional[str] = None,
    ) -> int:
        """Append a department response; returns its row id."""
        conn = get_db_connection(self.db_path)
        try:
            cursor = conn.execute(
                """
                INSERT INTO order_responses (netsuite_id, department, action, remark, responded_by)
                VALUES (?, ?, ?, ?, ?)
                """,
                (str(order_id), department, action, remark, responded_by),
            )
            return cursor.lastrowid
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to record response for order {order_id}: {e}") from e
        finally:
            conn.close()

    def list_responses(self, order_id: str) -> List[dict]:
        conn = get_db_connection(self.db_path)
        try:
            rows = conn.execute(
                """
                SELECT department, action, remark, responded_by, created_at
                FROM order_responses WHERE netsuite_id = ? ORDER BY id
                """,
                (str(order_id),),
            ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read responses for order {order_id}: {e}") from e
        finally:
            conn.close()
        return [dict(row) for row in rows]
