from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from backend.db.engine import Database, new_id, now_iso
from webapp.errors import StateConflict, ValidationError

from .passwords import hash_password, validate_password_strength, verify_password

log = logging.getLogger("projecthub.auth.users")


@dataclass
class UserRecord:
    user_id: str = ""
    email: str = ""
    name: str = ""
    password_hash: str = ""
    created_at: str = ""

    def public(self) -> Dict[str, Any]:
        return {"id": self.user_id, "email": self.email, "name": self.name}


def normalize_email(email: Any) -> str:
    """Lower-case and strip an email, rejecting obviously malformed input."""
    if email is None:
        raise ValidationError("Email is required")
    if not isinstance(email, str):
        raise ValidationError("Invalid email address")
    value = email.strip().lower()
    if not value:
        raise ValidationError("Email is required")
    local, _, domain = value.partition("@")
    if not local or not domain or " " in value:
        raise ValidationError("Invalid email address")
    return value


class UserStore:
    """SQLite-backed user accounts, keyed by id and unique by email."""

    def __init__(self, db: Database, password_min_length: int = 8) -> None:
        self._db = db
        self._password_min_length = password_min_length

    def _record_from_row(self, row: Dict[str, Any]) -> UserRecord:
        return UserRecord(
            user_id=row.get("id", ""),
            email=row.get("email", ""),
            name=row.get("name", ""),
            password_hash=row.get("password_hash", ""),
            created_at=row.get("created_at", ""),
        )

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        row = self._db.fetch_one("SELECT * FROM users WHERE id = ?", (user_id,))
        return self._record_from_row(row) if row else None

    def get_by_email(self, email: str, conn=None) -> Optional[UserRecord]:
        email_lower = (email or "").strip().lower()
        sql = "SELECT * FROM users WHERE LOWER(email) = ?"
        if conn is not None:
            row = conn.execute(sql, (email_lower,)).fetchone()
            return self._record_from_row(dict(row)) if row else None
        row = self._db.fetch_one(sql, (email_lower,))
        return self._record_from_row(row) if row else None

    def create_user(self, email: str, name: str, password: str, conn=None) -> UserRecord:
        """Insert a user; pass ``conn`` to take part in the caller's transaction."""
        email = normalize_email(email)
        name = name.strip() if isinstance(name, str) else ""
        if not name:
            raise ValidationError("Name is required")
        if not password or not isinstance(password, str):
            raise ValidationError("Password is required")
        err = validate_password_strength(password, self._password_min_length)
        if err:
            raise ValidationError(err)

        rec = UserRecord(
            user_id=new_id(),
            email=email,
            name=name,
            password_hash=hash_password(password),
            created_at=now_iso(),
        )
        if conn is None:
            with self._db.transaction() as tx:
                self._insert(tx, rec)
        else:
            self._insert(conn, rec)
        log.info("Created user %s", rec.email)
        return rec

    def _insert(self, conn, rec: UserRecord) -> None:
        existing = conn.execute(
            "SELECT id FROM users WHERE LOWER(email) = ?", (rec.email,)
        ).fetchone()
        if existing:
            raise StateConflict("User already exists with this email")
        conn.execute(
            "INSERT INTO users (id, email, name, password_hash, created_at) VALUES (?, ?, ?, ?, ?)",
            (rec.user_id, rec.email, rec.name, rec.password_hash, rec.created_at),
        )

    def authenticate(self, email: str, password: str) -> Optional[UserRecord]:
        """Return the user when the credentials match, else None."""
        if not isinstance(email, str) or not isinstance(password, str):
            return None
        rec = self.get_by_email(email)
        if rec is None or not verify_password(password, rec.password_hash):
            return None
        return rec
