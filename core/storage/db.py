"""
Order Service Database

Creates and manages the locally owned tables:
- order_splits: append-only parent -> child split ledger
- split_order_sequence: per-prefix order-number counter
- order_workflow: department review assignment per order
- order_responses: department approve/revise responses

and the read-only reference tables mirrored from the reporting database:
- sid_v_so, erp_shipto, billing_conditions, erp_price, erp_location, users
"""

import sqlite3
from pathlib import Path
from typing import Optional, Union

from core.errors import PersistenceError
from core.observability.logging import get_logger

logger = get_logger(__name__)

DB_PATH = Path(__file__).resolve().parents[2] / "order_split.db"

PathLike = Union[str, Path]


def get_db_connection(db_path: Optional[PathLike] = None) -> sqlite3.Connection:
    """Get database connection with row factory.

    Autocommit mode: callers that need a multi-statement transaction issue
    BEGIN themselves.
    """
    path = str(db_path or DB_PATH)
    try:
        conn = sqlite3.connect(path, timeout=30, isolation_level=None)
    except sqlite3.Error as e:
        raise PersistenceError(f"Cannot open database {path}: {e}") from e
    conn.row_factory = sqlite3.Row
    return conn


SCHEMA = """
CREATE TABLE IF NOT EXISTS order_splits (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    parent_order_id TEXT NOT NULL,
    child_order_id TEXT NOT NULL,
    split_reason TEXT,
    created_by TEXT,
    created_at TIMESTAMP DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now'))
);
CREATE INDEX IF NOT EXISTS idx_order_splits_parent ON order_splits(parent_order_id);
CREATE INDEX IF NOT EXISTS idx_order_splits_child ON order_splits(child_order_id);

CREATE TABLE IF NOT EXISTS split_order_sequence (
    prefix TEXT PRIMARY KEY,
    current_number INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS order_workflow (
    netsuite_id TEXT PRIMARY KEY,
    updated_by TEXT,
    selected_departments TEXT,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS order_responses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    netsuite_id TEXT NOT NULL,
    department TEXT NOT NULL,
    action TEXT NOT NULL,
    remark TEXT,
    responded_by TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_order_responses_order ON order_responses(netsuite_id);

CREATE TABLE IF NOT EXISTS users (
    telegram_id TEXT PRIMARY KEY,
    first_name TEXT,
    last_name TEXT,
    department TEXT,
    registration_complete INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS sid_v_so (
    netsuite_id TEXT PRIMARY KEY,
    salesOrderNo TEXT,
    salesOrderDate TEXT,
    customerCode TEXT,
    staffCode TEXT
);
CREATE INDEX IF NOT EXISTS idx_sid_v_so_staff ON sid_v_so(staffCode);

CREATE TABLE IF NOT EXISTS erp_shipto (
    internal_id TEXT NOT NULL,
    name TEXT,
    address_internal_id TEXT,
    shipping_address TEXT
);
CREATE INDEX IF NOT EXISTS idx_erp_shipto_customer ON erp_shipto(internal_id);

CREATE TABLE IF NOT EXISTS billing_conditions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    condition_group TEXT,
    condition_text TEXT
);

CREATE TABLE IF NOT EXISTS erp_price (
    Internal_ID TEXT PRIMARY KEY,
    Item TEXT
);

CREATE TABLE IF NOT EXISTS erp_location (
    Internal_ID TEXT PRIMARY KEY,
    Name TEXT
);
"""


def init_db(db_path: Optional[PathLike] = None) -> None:
    """Create all tables and indexes if they do not exist."""
    conn = get_db_connection(db_path)
    try:
        conn.executescript(SCHEMA)
    except sqlite3.Error as e:
        raise PersistenceError(f"Failed to initialise database: {e}") from e
    finally:
        conn.close()
    logger.info(f"Order database initialised at {db_path or DB_PATH}")
