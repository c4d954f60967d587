"""
Reference data lookups.

Read-only views over the tables mirrored from the reporting database:
order numbers, customer ship-to addresses, billing conditions, item and
location names, and the staff user directory used for notifications.
"""

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from core.errors import PersistenceError
from core.storage.db import get_db_connection


class ReferenceDataStore:
    """Lookups used to decorate the order detail view."""

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        self.db_path = db_path

    def _query(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        conn = get_db_connection(self.db_path)
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Reference lookup failed: {e}") from e
        finally:
            conn.close()

    def venio_so_number(self, netsuite_id: str) -> Optional[str]:
        rows = self._query(
            "SELECT salesOrderNo FROM sid_v_so WHERE netsuite_id = ? LIMIT 1",
            (str(netsuite_id),),
        )
        return rows[0]["salesOrderNo"] if rows else None

    def search_orders(self, query: Optional[str], limit: int = 10) -> List[Dict[str, Any]]:
        """Orders whose number or customer code contains the query, or whose id equals it.

        Queries shorter than two characters return nothing.
        """
        query = (query or "").strip()
        if len(query) < 2:
            return []
        pattern = f"%{query}%"
        rows = self._query(
            """
            SELECT netsuite_id, salesOrderNo, customerCode FROM sid_v_so
            WHERE salesOrderNo LIKE ? OR customerCode LIKE ? OR netsuite_id = ?
            LIMIT ?
            """,
            (pattern, pattern, query, limit),
        )
        return [dict(row) for row in rows]

    def staff_orders(self, staff_code: str, limit: int = 20) -> List[Dict[str, Any]]:
        """A staff member's most recent orders, newest first."""
        rows = self._query(
            "SELECT * FROM sid_v_so WHERE staffCode = ? ORDER BY salesOrderDate DESC LIMIT ?",
            (str(staff_code), limit),
        )
        return [dict(row) for row in rows]

    def customer_info(self, customer_id: Optional[str]) -> Dict[str, Any]:
        """Customer name and every ship-to address on file."""
        if not customer_id:
            return {"customerName": "", "shippingAddresses": []}
        rows = self._query(
            "SELECT name, address_internal_id, shipping_address FROM erp_shipto WHERE internal_id = ?",
            (str(customer_id),),
        )
        name = next((row["name"] for row in rows if row["name"]), "")
        addresses = [
            {
                "address_internal_id": row["address_internal_id"],
                "shipping_address": row["shipping_address"],
            }
            for row in rows
        ]
        return {"customerName": name, "shippingAddresses": addresses}

    def conditions(self) -> Dict[str, List[Dict[str, Any]]]:
        """Billing conditions grouped by condition_group."""
        rows = self._query("SELECT * FROM billing_conditions ORDER BY condition_group, id")
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for row in rows:
            grouped.setdefault(row["condition_group"], []).append(dict(row))
        return grouped

    def item_map(self) -> Dict[str, str]:
        rows = self._query("SELECT Internal_ID, Item FROM erp_price")
        return {str(row["Internal_ID"]): row["Item"] for row in rows}

    def locations(self) -> Dict[str, str]:
        rows = self._query("SELECT Internal_ID, Name FROM erp_location")
        return {str(row["Internal_ID"]): row["Name"] for row in rows}


@dataclass(frozen=True)
class StaffUser:
    telegram_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    department: Optional[str] = None


class UserDirectory:
    """Registered staff users, keyed by their Telegram chat id."""

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        self.db_path = db_path

    def department_members(self, department: str) -> List[StaffUser]:
        """Users of a department who completed registration."""
        conn = get_db_connection(self.db_path)
        try:
            rows = conn.execute(
                """
                SELECT telegram_id, first_name, last_name, department FROM users
                WHERE department = ? AND registration_complete = 1
                """,
                (department,),
            ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list users of {department}: {e}") from e
        finally:
            conn.close()
        return [
            StaffUser(str(row["telegram_id"]), row["first_name"], row["last_name"], row["department"])
            for row in rows
            if row["telegram_id"]
        ]

    def upsert_user(
        self,
        telegram_id: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        department: Optional[str] = None,
        registration_complete: bool = True,
    ) -> StaffUser:
        """Add or replace a user row (used by seeding scripts and tests)."""
        conn = get_db_connection(self.db_path)
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO users (telegram_id, first_name, last_name, department, registration_complete)
                VALUES (?, ?, ?, ?, ?)
                """,
                (str(telegram_id), first_name, last_name, department, 1 if registration_complete else 0),
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save user {telegram_id}: {e}") from e
        finally:
            conn.close()
        return StaffUser(str(telegram_id), first_name, last_name, department)
