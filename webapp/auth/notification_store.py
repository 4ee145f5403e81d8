from __future__ import annotations

import logging
import sqlite3
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from backend.db.engine import Database, new_id, now_iso
from webapp.errors import NotFound

log = logging.getLogger("projecthub.notifications")

WORKSPACE_INVITE = "WORKSPACE_INVITE"


@dataclass
class Notification:
    id: str = ""
    user_id: str = ""
    type: str = ""
    title: str = ""
    message: str = ""
    link: str = ""
    is_read: bool = False
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class NotificationStore:
    """Per-user notifications (invitation received, invitation accepted)."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def _from_row(self, row: Dict[str, Any]) -> Notification:
        return Notification(
            id=row.get("id", ""),
            user_id=row.get("user_id", ""),
            type=row.get("type", ""),
            title=row.get("title", ""),
            message=row.get("message", ""),
            link=row.get("link", ""),
            is_read=bool(row.get("is_read", 0)),
            created_at=row.get("created_at", ""),
        )

    def create(
        self,
        user_id: str,
        type: str,
        title: str,
        message: str,
        link: str = "",
        conn: Optional[sqlite3.Connection] = None,
    ) -> Notification:
        n = Notification(
            id=new_id(), user_id=user_id, type=type, title=title,
            message=message, link=link, is_read=False, created_at=now_iso(),
        )
        sql = """INSERT INTO notifications (id, user_id, type, title, message, link, is_read, created_at)
                 VALUES (?, ?, ?, ?, ?, ?, 0, ?)"""
        params = (n.id, n.user_id, n.type, n.title, n.message, n.link, n.created_at)
        if conn is not None:
            conn.execute(sql, params)
        else:
            with self._db.connect() as c:
                c.execute(sql, params)
        return n

    def list_for_user(self, user_id: str, limit: int = 20, unread_only: bool = False) -> List[Notification]:
        sql = "SELECT * FROM notifications WHERE user_id = ?"
        if unread_only:
            sql += " AND is_read = 0"
        sql += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
        rows = self._db.fetch_all(sql, (user_id, max(1, int(limit))))
        return [self._from_row(r) for r in rows]

    def unread_count(self, user_id: str) -> int:
        row = self._db.fetch_one(
            "SELECT COUNT(*) AS cnt FROM notifications WHERE user_id = ? AND is_read = 0",
            (user_id,),
        )
        return row["cnt"] if row else 0

    def mark_read(self, notification_id: str, user_id: str) -> Notification:
        with self._db.connect() as conn:
            cursor = conn.execute(
                "UPDATE notifications SET is_read = 1 WHERE id = ? AND user_id = ?",
                (notification_id, user_id),
            )
            if cursor.rowcount == 0:
                raise NotFound("Notification not found")
            row = conn.execute("SELECT * FROM notifications WHERE id = ?", (notification_id,)).fetchone()
            return self._from_row(dict(row))

    def mark_all_read(self, user_id: str) -> int:
        with self._db.connect() as conn:
            cursor = conn.execute(
                "UPDATE notifications SET is_read = 1 WHERE user_id = ? AND is_read = 0",
                (user_id,),
            )
            return cursor.rowcount
