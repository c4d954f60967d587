"""
Split Lineage Store

Append-only ledger of parent -> child order splits and the per-prefix
order-number sequence used to name split orders.
"""

import sqlite3
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from core.errors import PersistenceError
from core.observability.logging import get_logger
from core.storage.db import get_db_connection

logger = get_logger(__name__)

DEFAULT_SPLIT_REASON = "Item split"


@dataclass(frozen=True)
class SplitRecord:
    """One row of the split ledger. Never mutated after insert."""
    parent_order_id: str
    child_order_id: str
    split_reason: str = DEFAULT_SPLIT_REASON
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    id: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SplitLineageStore:
    """SQLite-backed split ledger and order-number sequence.

    A connection is opened per call, so one store can be shared across
    threads and requests.
    """

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        return get_db_connection(self.db_path)

    def record_split(self, record: SplitRecord) -> SplitRecord:
        """Insert a split record and return it with its id and timestamp."""
        conn = self._connect()
        try:
            cursor = conn.execute(
                """
                INSERT INTO order_splits (parent_order_id, child_order_id, split_reason, created_by)
                VALUES (?, ?, ?, ?)
                """,
                (
                    str(record.parent_order_id),
                    str(record.child_order_id),
                    record.split_reason,
                    record.created_by,
                ),
            )
            row = conn.execute(
                "SELECT id, created_at FROM order_splits WHERE id = ?",
                (cursor.lastrowid,),
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to record split {record.parent_order_id} -> {record.child_order_id}: {e}") from e
        finally:
            conn.close()

        logger.info(f"Recorded split {record.parent_order_id} -> {record.child_order_id}")
        return SplitRecord(
            parent_order_id=str(record.parent_order_id),
            child_order_id=str(record.child_order_id),
            split_reason=record.split_reason,
            created_by=record.created_by,
            created_at=row["created_at"],
            id=row["id"],
        )

    def sequence_next(self, prefix: str) -> int:
        """Atomically allocate the next counter value for a prefix.

        Single upsert-increment statement under an immediate write lock, so
        concurrent callers never see the same value.
        """
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute(
                    """
                    INSERT INTO split_order_sequence (prefix, current_number) VALUES (?, 1)
                    ON CONFLICT(prefix) DO UPDATE SET current_number = current_number + 1
                    RETURNING current_number
                    """,
                    (prefix,),
                ).fetchall()[0]
                conn.execute("COMMIT")
            except sqlite3.Error:
                conn.execute("ROLLBACK")
                raise
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to allocate sequence for {prefix}: {e}") from e
        finally:
            conn.close()
        return int(row[0])

    def history_for(self, order_id: str) -> List[SplitRecord]:
        """Splits where the order is the parent or the child, newest first."""
        conn = self._connect()
        try:
            rows = conn.execute(
                """
                SELECT os.id, os.parent_order_id, os.child_order_id, os.split_reason,
                       os.created_by, os.created_at, u.first_name, u.last_name
                FROM order_splits os
                LEFT JOIN users u ON os.created_by = u.telegram_id
                WHERE os.parent_order_id = ? OR os.child_order_id = ?
                ORDER BY os.created_at DESC, os.id DESC
                """,
                (str(order_id), str(order_id)),
            ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read split history for {order_id}: {e}") from e
        finally:
            conn.close()

        return [
            SplitRecord(
                id=row["id"],
                parent_order_id=row["parent_order_id"],
                child_order_id=row["child_order_id"],
                split_reason=row["split_reason"],
                created_by=row["created_by"],
                created_at=row["created_at"],
                first_name=row["first_name"],
                last_name=row["last_name"],
            )
            for row in rows
        ]
