"""Workspace registry: workspaces, members and the activity log.

Every mutation that reads membership state before writing runs inside a
``BEGIN IMMEDIATE`` transaction, so owner-count checks and the write that
depends on them cannot interleave with another request.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Optional

from backend.db.engine import Database, new_id, now_iso
from webapp.errors import AuthorizationDenied, NotFound, StateConflict, ValidationError

from .access import MANAGER_ROLES, OWNER, ROLE_RANK, AccessEvaluator, normalize_role

log = logging.getLogger("projecthub.workspaces")

_MEMBER_ORDER = "CASE m.role {} ELSE 0 END DESC, m.joined_at, m.rowid".format(
    " ".join(f"WHEN '{role}' THEN {rank}" for role, rank in ROLE_RANK.items())
)


class WorkspaceStore:

    def __init__(self, db: Database, access: AccessEvaluator) -> None:
        self._db = db
        self._access = access

    @contextmanager
    def _tx(self, conn: Optional[sqlite3.Connection]) -> Generator[sqlite3.Connection, None, None]:
        # Join the caller's transaction when given one.
        if conn is not None:
            yield conn
            return
        with self._db.transaction() as tx:
            yield tx

    # --- Workspaces ---

    def create_workspace(
        self,
        owner_id: str,
        name: str,
        description: str = "",
        conn: Optional[sqlite3.Connection] = None,
    ) -> Dict[str, Any]:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Workspace name is required")
        wid = new_id()
        now = now_iso()
        with self._tx(conn) as tx:
            tx.execute(
                """INSERT INTO workspaces (id, name, description, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (wid, name, description or "", now, now),
            )
            self.add_member(wid, owner_id, OWNER, conn=tx)
            self.log_activity(wid, owner_id, "created", {"name": name}, conn=tx)
            ws = self._workspace_row(tx, wid)
        log.info("Created workspace %s (%s)", wid, name)
        return ws

    def _workspace_row(self, conn: sqlite3.Connection, workspace_id: str) -> Optional[Dict[str, Any]]:
        row = conn.execute(
            """SELECT w.*,
                      (SELECT COUNT(*) FROM workspace_members m WHERE m.workspace_id = w.id)
                          AS member_count
               FROM workspaces w WHERE w.id = ?""",
            (workspace_id,),
        ).fetchone()
        return dict(row) if row else None

    def get_workspace(self, workspace_id: str) -> Optional[Dict[str, Any]]:
        with self._db.connect() as conn:
            return self._workspace_row(conn, workspace_id)

    def get_workspace_for(self, workspace_id: str, requester_id: str) -> Dict[str, Any]:
        """Workspace as seen by a member; anyone else gets ``NotFound``."""
        with self._db.connect() as conn:
            role = self._access.role_of(requester_id, workspace_id, conn=conn)
            ws = self._workspace_row(conn, workspace_id) if role else None
        if ws is None:
            raise NotFound("Workspace not found")
        ws["role"] = role
        return ws

    def list_workspaces(self, user_id: str) -> List[Dict[str, Any]]:
        """Workspaces the user belongs to, with their role, sorted by name."""
        return self._db.fetch_all(
            """SELECT w.*, m.role AS role,
                      (SELECT COUNT(*) FROM workspace_members mm WHERE mm.workspace_id = w.id)
                          AS member_count
               FROM workspaces w
               JOIN workspace_members m ON m.workspace_id = w.id
               WHERE m.user_id = ?
               ORDER BY w.name COLLATE NOCASE, w.created_at""",
            (user_id,),
        )

    def update_workspace(
        self,
        workspace_id: str,
        requester_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        updates: Dict[str, Any] = {}
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Workspace name is required")
            updates["name"] = name
        if description is not None:
            updates["description"] = description
        with self._db.transaction() as conn:
            self._access.require_role(requester_id, workspace_id, MANAGER_ROLES, conn=conn)
            if updates:
                updates["updated_at"] = now_iso()
                set_clause = ", ".join(f"{k} = ?" for k in updates)
                conn.execute(
                    f"UPDATE workspaces SET {set_clause} WHERE id = ?",
                    list(updates.values()) + [workspace_id],
                )
            return self._workspace_row(conn, workspace_id)

    def delete_workspace(self, workspace_id: str, requester_id: str) -> bool:
        """Permanently delete the workspace; members, invitations and activity cascade."""
        with self._db.transaction() as conn:
            self._access.require_role(
                requester_id, workspace_id, (OWNER,), conn=conn,
                message="Only an owner can delete the workspace",
            )
            cursor = conn.execute("DELETE FROM workspaces WHERE id = ?", (workspace_id,))
            deleted = cursor.rowcount > 0
        if deleted:
            log.info("Deleted workspace %s", workspace_id)
        return deleted

    # --- Members ---

    def _owner_count(self, conn: sqlite3.Connection, workspace_id: str) -> int:
        row = conn.execute(
            "SELECT COUNT(*) AS cnt FROM workspace_members WHERE workspace_id = ? AND role = 'OWNER'",
            (workspace_id,),
        ).fetchone()
        return row["cnt"]

    def _member(self, conn: sqlite3.Connection, workspace_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        row = conn.execute(
            """SELECT m.user_id, u.email, u.name, m.role, m.joined_at
               FROM workspace_members m JOIN users u ON u.id = m.user_id
               WHERE m.workspace_id = ? AND m.user_id = ?""",
            (workspace_id, user_id),
        ).fetchone()
        return dict(row) if row else None

    def add_member(
        self,
        workspace_id: str,
        user_id: str,
        role: str,
        conn: Optional[sqlite3.Connection] = None,
        overwrite: bool = True,
    ) -> Dict[str, Any]:
        """Idempotent upsert keyed by (workspace, user).

        With ``overwrite=False`` an existing membership keeps its role.
        """
        role = normalize_role(role)
        with self._tx(conn) as tx:
            current = self._access.role_of(user_id, workspace_id, conn=tx)
            if current is None:
                tx.execute(
                    """INSERT INTO workspace_members (id, workspace_id, user_id, role, joined_at)
                       VALUES (?, ?, ?, ?, ?)""",
                    (new_id(), workspace_id, user_id, role, now_iso()),
                )
            elif overwrite and current != role:
                if current == OWNER and self._owner_count(tx, workspace_id) <= 1:
                    raise StateConflict("Cannot demote the only owner of the workspace")
                tx.execute(
                    "UPDATE workspace_members SET role = ? WHERE workspace_id = ? AND user_id = ?",
                    (role, workspace_id, user_id),
                )
            return self._member(tx, workspace_id, user_id)

    def list_members(self, workspace_id: str, requester_id: str) -> List[Dict[str, Any]]:
        with self._db.connect() as conn:
            self._access.require_member(requester_id, workspace_id, conn=conn)
            rows = conn.execute(
                f"""SELECT m.user_id, u.email, u.name, m.role, m.joined_at
                    FROM workspace_members m JOIN users u ON u.id = m.user_id
                    WHERE m.workspace_id = ?
                    ORDER BY {_MEMBER_ORDER}""",
                (workspace_id,),
            ).fetchall()
            return [dict(r) for r in rows]

    def _guard_target(self, conn: sqlite3.Connection, workspace_id: str,
                      requester_role: str, target_user_id: str) -> str:
        target_role = self._access.role_of(target_user_id, workspace_id, conn=conn)
        if target_role is None:
            raise NotFound("Member not found")
        if target_role == OWNER and requester_role != OWNER:
            raise AuthorizationDenied("Only an owner can modify an owner's membership")
        return target_role

    def change_role(self, workspace_id: str, requester_id: str,
                    target_user_id: str, role: Any) -> Dict[str, Any]:
        with self._db.transaction() as conn:
            requester_role = self._access.require_role(
                requester_id, workspace_id, MANAGER_ROLES, conn=conn,
            )
            new_role = normalize_role(role)
            target_role = self._guard_target(conn, workspace_id, requester_role, target_user_id)
            if new_role == OWNER and requester_role != OWNER:
                raise AuthorizationDenied("Only an owner can grant the owner role")
            if target_role == new_role:
                return self._member(conn, workspace_id, target_user_id)
            if target_role == OWNER and self._owner_count(conn, workspace_id) <= 1:
                raise StateConflict("Cannot demote the only owner of the workspace")
            conn.execute(
                "UPDATE workspace_members SET role = ? WHERE workspace_id = ? AND user_id = ?",
                (new_role, workspace_id, target_user_id),
            )
            self.log_activity(
                workspace_id, requester_id, "role_changed",
                {"user_id": target_user_id, "from": target_role, "to": new_role}, conn=conn,
            )
            member = self._member(conn, workspace_id, target_user_id)
        log.info("Role of %s in workspace %s changed %s -> %s",
                 target_user_id, workspace_id, target_role, new_role)
        return member

    def remove_member(self, workspace_id: str, requester_id: str, target_user_id: str) -> bool:
        with self._db.transaction() as conn:
            requester_role = self._access.require_role(
                requester_id, workspace_id, MANAGER_ROLES, conn=conn,
            )
            target_role = self._guard_target(conn, workspace_id, requester_role, target_user_id)
            if target_role == OWNER and self._owner_count(conn, workspace_id) <= 1:
                raise StateConflict("Cannot remove the only owner of the workspace")
            conn.execute(
                "DELETE FROM workspace_members WHERE workspace_id = ? AND user_id = ?",
                (workspace_id, target_user_id),
            )
            self.log_activity(
                workspace_id, requester_id, "member_removed",
                {"user_id": target_user_id, "role": target_role}, conn=conn,
            )
        log.info("Removed member %s from workspace %s", target_user_id, workspace_id)
        return True

    def leave_workspace(self, workspace_id: str, user_id: str) -> bool:
        with self._db.transaction() as conn:
            role = self._access.role_of(user_id, workspace_id, conn=conn)
            if role is None:
                raise NotFound("You are not a member of this workspace")
            if role == OWNER and self._owner_count(conn, workspace_id) <= 1:
                raise StateConflict(
                    "Cannot leave workspace. You are the only owner. "
                    "Please transfer ownership first."
                )
            conn.execute(
                "DELETE FROM workspace_members WHERE workspace_id = ? AND user_id = ?",
                (workspace_id, user_id),
            )
            self.log_activity(workspace_id, user_id, "member_left", {"role": role}, conn=conn)
        log.info("User %s left workspace %s", user_id, workspace_id)
        return True

    # --- Activity ---

    def get_activity(self, workspace_id: str, requester_id: str, limit: int = 30) -> List[Dict[str, Any]]:
        with self._db.connect() as conn:
            self._access.require_member(requester_id, workspace_id, conn=conn)
            rows = conn.execute(
                """SELECT a.*, COALESCE(u.name, '') AS user_name
                   FROM workspace_activity a LEFT JOIN users u ON u.id = a.user_id
                   WHERE a.workspace_id = ?
                   ORDER BY a.created_at DESC, a.rowid DESC LIMIT ?""",
                (workspace_id, max(1, int(limit))),
            ).fetchall()
        result = []
        for r in rows:
            d = dict(r)
            d["detail"] = json.loads(d.get("detail") or "{}")
            result.append(d)
        return result

    def log_activity(
        self,
        workspace_id: str,
        user_id: str,
        action: str,
        detail: Optional[Dict[str, Any]] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> None:
        with self._tx(conn) as tx:
            tx.execute(
                """INSERT INTO workspace_activity (id, workspace_id, user_id, action, detail, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (new_id(), workspace_id, user_id or "", action,
                 json.dumps(detail or {}, ensure_ascii=False), now_iso()),
            )
