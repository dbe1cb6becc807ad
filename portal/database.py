"""SQLite user store — schema, connection helper and user lookups.

Usage
-----
    conn = db_connect(db_path)
    try:
        conn.execute(...)
        conn.commit()
    finally:
        conn.close()
"""
from __future__ import annotations

import json
import logging
import sqlite3

logger = logging.getLogger(__name__)

DB_NAME = "app.db"

ADMIN_ROLES = ("owner", "admin")


def db_connect(db_path: str) -> sqlite3.Connection:
    """Return a synchronous :class:`sqlite3.Connection`.

    *Always* called inside a ``try/finally`` block by callers.
    """
    conn = sqlite3.connect(db_path, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    return conn


_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    username     TEXT PRIMARY KEY,
    role         TEXT NOT NULL DEFAULT 'user',
    banned       INTEGER NOT NULL DEFAULT 0,
    -- JSON list of api site keys; NULL means every enabled site
    enabled_apis TEXT,
    created_at   TEXT
);
"""


def init_db(db_path: str) -> None:
    """Create all tables. Safe to call on every startup (idempotent)."""
    conn = db_connect(db_path)
    try:
        conn.executescript(_SCHEMA)
        conn.commit()
        logger.info(f"Database initialised at {db_path}")
    finally:
        conn.close()


def _row_to_user(row: sqlite3.Row) -> dict:
    enabled_apis = row["enabled_apis"]
    return {
        "username": row["username"],
        "role": row["role"],
        "banned": bool(row["banned"]),
        "enabled_apis": json.loads(enabled_apis) if enabled_apis else None,
    }


def get_user(db_path: str, username: str) -> dict | None:
    conn = db_connect(db_path)
    try:
        row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
    finally:
        conn.close()
    return _row_to_user(row) if row else None

