"""Device registry and notification delivery backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
import json
import sqlite3
from typing import Any

from pushpackage.util.logging import get_logger

logger = get_logger(__name__)


class PushNotificationBackend(ABC):
    """Storage and transport hooks the request dispatcher calls into."""

    @abstractmethod
    def add_device(self, user_id: str, device_token: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def delete_device(self, user_id: str, device_token: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def get_device_token(self, user_id: str) -> str:
        """Return the device token registered for ``user_id`` or an empty string."""
        raise NotImplementedError

    @abstractmethod
    def send_push_notification(self, json_payload: str, device_token: str) -> bool:
        """Hand a payload over for delivery; asynchronous backends just return True."""
        raise NotImplementedError

    def process_error_log(self, log: list[Any]) -> bool:
        for entry in log:
            logger.warning("Safari reported push error: %s", entry)
        return True


class SqlitePushBackend(PushNotificationBackend):
    """Keeps devices in SQLite and queues payloads in an outbox table.

    A separate deliverer is expected to drain the outbox towards APNs.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._init_db()

    def _init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS devices (
                    user_id TEXT NOT NULL,
                    device_token TEXT NOT NULL,
                    registered_at TEXT,
                    PRIMARY KEY (user_id, device_token)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS outbox (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    device_token TEXT NOT NULL,
                    payload_json TEXT NOT NULL,
                    queued_at TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS error_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    message TEXT,
                    reported_at TEXT
                )
                """
            )
            conn.commit()

    def add_device(self, user_id: str, device_token: str) -> bool:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO devices (user_id, device_token, registered_at) VALUES (?, ?, ?)",
                (user_id, device_token, datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()
        return True

    def delete_device(self, user_id: str, device_token: str) -> bool:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM devices WHERE user_id = ? AND device_token = ?",
                (user_id, device_token),
            )
            conn.commit()
        return cursor.rowcount > 0

    def get_device_token(self, user_id: str) -> str:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT device_token FROM devices WHERE user_id = ? ORDER BY registered_at DESC LIMIT 1",
                (user_id,),
            ).fetchone()
        if not row:
            return ""
        return row[0]

    def send_push_notification(self, json_payload: str, device_token: str) -> bool:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                "INSERT INTO outbox (device_token, payload_json, queued_at) VALUES (?, ?, ?)",
                (device_token, json_payload, datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()
        return True

    def pending_notifications(self) -> list[dict[str, Any]]:
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT id, device_token, payload_json FROM outbox ORDER BY id"
            ).fetchall()
        return [
            {"id": row[0], "device_token": row[1], "payload": json.loads(row[2])}
            for row in rows
        ]

    def process_error_log(self, log: list[Any]) -> bool:
        super().process_error_log(log)
        reported_at = datetime.now(timezone.utc).isoformat()
        with sqlite3.connect(self.db_path) as conn:
            conn.executemany(
                "INSERT INTO error_log (message, reported_at) VALUES (?, ?)",
                [(str(entry), reported_at) for entry in log],
            )
            conn.commit()
        return True
