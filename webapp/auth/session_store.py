from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from backend.db.engine import Database, to_iso, utcnow

from .passwords import generate_token

log = logging.getLogger("projecthub.auth.sessions")


class SessionStore:
    """Login sessions keyed by an opaque token; rows past ``expires_at`` are dead."""

    COOKIE_NAME = "projecthub_session"

    def __init__(self, db: Database) -> None:
        self._db = db

    def create_session(self, user_id: str, timeout_hours: int = 720, ip: str = "") -> str:
        """Open a session for ``user_id`` that lasts ``timeout_hours``; returns its token."""
        token = generate_token()
        now = utcnow()
        expires = now + timedelta(hours=timeout_hours)

        with self._db.connect() as conn:
            conn.execute(
                "INSERT INTO auth_sessions (token, user_id, created_at, expires_at, ip) VALUES (?, ?, ?, ?, ?)",
                (token, user_id, to_iso(now), to_iso(expires), ip),
            )
        return token

    def get_session(self, token: str) -> Optional[Dict[str, Any]]:
        """Session row for ``token``; an expired row is deleted and None returned."""
        if not token:
            return None
        session = self._db.fetch_one("SELECT * FROM auth_sessions WHERE token = ?", (token,))
        if session is None:
            return None

        try:
            expires = datetime.fromisoformat(session["expires_at"])
        except (KeyError, ValueError):
            return None
        if utcnow() >= expires:
            self.delete_session(token)
            return None
        return session

    def delete_session(self, token: str) -> bool:
        with self._db.connect() as conn:
            cursor = conn.execute("DELETE FROM auth_sessions WHERE token = ?", (token,))
            return cursor.rowcount > 0

    def delete_user_sessions(self, user_id: str) -> int:
        """Sign ``user_id`` out everywhere; returns how many sessions were dropped."""
        with self._db.connect() as conn:
            cursor = conn.execute("DELETE FROM auth_sessions WHERE user_id = ?", (user_id,))
            return cursor.rowcount

    def cleanup_expired(self) -> int:
        """Purge sessions whose expiry has passed."""
        with self._db.connect() as conn:
            cursor = conn.execute(
                "DELETE FROM auth_sessions WHERE expires_at <= ?", (to_iso(utcnow()),)
            )
            removed = cursor.rowcount
        if removed:
            log.info("Removed %d expired sessions", removed)
        return removed
