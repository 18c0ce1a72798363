"""SQLite-backed history of DNS update attempts."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class UpdateRecord:
    target_id: str
    status: str
    message: str
    response_code: Optional[int]
    ip_address: Optional[str]


class LogDB:
    """Simple SQLite logger for DDNS updates."""

    def __init__(self, path: str) -> None:
        self._connection = sqlite3.connect(path)
        self._connection.row_factory = sqlite3.Row
        self._initialize()

    def _initialize(self) -> None:
        self._connection.execute("PRAGMA journal_mode=WAL")
        self._connection.execute(
            """
            CREATE TABLE IF NOT EXISTS update_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                target_id TEXT NOT NULL,
                status TEXT NOT NULL,
                message TEXT NOT NULL,
                response_code INTEGER,
                ip_address TEXT,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        self._connection.commit()

    def log_update(self, record: UpdateRecord) -> None:
        self._connection.execute(
            """
            INSERT INTO update_history (target_id, status, message, response_code, ip_address)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                record.target_id,
                record.status,
                record.message,
                record.response_code,
                record.ip_address,
            ),
        )
        self._connection.commit()

    def list_updates(self, limit: int = 50) -> list[dict[str, Any]]:
        cursor = self._connection.execute(
            """
            SELECT target_id, status, message, response_code, ip_address, created_at
            FROM update_history
            ORDER BY id DESC
            LIMIT ?
            """,
            (limit,),
        )
        return [dict(row) for row in cursor.fetchall()]

    def clear(self) -> int:
        cursor = self._connection.execute("DELETE FROM update_history")
        self._connection.commit()
        return cursor.rowcount

    def close(self) -> None:
        self._connection.close()
