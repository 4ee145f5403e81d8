"""Workspace role resolution and authorization checks.

Every workspace-scoped operation asks this module for the caller's role before
touching storage. Nothing is cached: each call reads ``workspace_members``.
A user who is not a member and a workspace that does not exist look the same.
"""
from __future__ import annotations

import sqlite3
from typing import Any, Iterable, Optional

from backend.db.engine import Database
from webapp.errors import AuthorizationDenied, ValidationError

OWNER = "OWNER"
ADMIN = "ADMIN"
MEMBER = "MEMBER"

ROLES = (OWNER, ADMIN, MEMBER)

# Higher outranks lower; used to order member listings.
ROLE_RANK = {OWNER: 3, ADMIN: 2, MEMBER: 1}

# Roles allowed to invite, cancel invitations and manage members.
MANAGER_ROLES = (OWNER, ADMIN)


def normalize_role(value: Any) -> str:
    role = str(value or "").strip().upper()
    if role not in ROLES:
        raise ValidationError(f"Invalid role. Must be one of: {', '.join(ROLES)}")
    return role


class AccessEvaluator:

    def __init__(self, db: Database) -> None:
        self._db = db

    def role_of(self, user_id: str, workspace_id: str,
                conn: Optional[sqlite3.Connection] = None) -> Optional[str]:
        sql = "SELECT role FROM workspace_members WHERE workspace_id = ? AND user_id = ?"
        if conn is not None:
            row = conn.execute(sql, (workspace_id, user_id)).fetchone()
            return row["role"] if row else None
        row = self._db.fetch_one(sql, (workspace_id, user_id))
        return row["role"] if row else None

    def require_role(
        self,
        user_id: str,
        workspace_id: str,
        allowed_roles: Iterable[str],
        conn: Optional[sqlite3.Connection] = None,
        message: str = "Insufficient permissions",
    ) -> str:
        role = self.role_of(user_id, workspace_id, conn=conn)
        if role is None or role not in tuple(allowed_roles):
            raise AuthorizationDenied(message)
        return role

    def require_member(self, user_id: str, workspace_id: str,
                       conn: Optional[sqlite3.Connection] = None) -> str:
        return self.require_role(
            user_id, workspace_id, ROLES, conn=conn,
            message="You are not a member of this workspace",
        )
