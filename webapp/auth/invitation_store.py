"""Workspace invitations bound to an email address.

Lifecycle: an invitation is created PENDING and moves once, to ACCEPTED or
DECLINED, by the user whose email it names. Cancelling deletes the row.

Expiry is lazy. Nothing sweeps old rows; an invitation whose ``expires_at``
has passed is filtered out of the invitee's listing and refused by
accept/decline, while its stored status stays PENDING.

Accept, decline and cancel each run in one ``BEGIN IMMEDIATE`` transaction and
finish with a conditional write on ``status = 'PENDING'``, so at most one of
them succeeds per invitation; the loser gets ``StateConflict``.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import timedelta
from typing import Any, Dict, List, Optional

from backend.db.engine import Database, new_id, now_iso, to_iso, utcnow
from webapp.errors import AuthenticationRequired, AuthorizationDenied, NotFound, StateConflict

from .access import MANAGER_ROLES, MEMBER, OWNER, AccessEvaluator, normalize_role
from .notification_store import WORKSPACE_INVITE, NotificationStore
from .user_store import UserStore, normalize_email
from .workspace_store import WorkspaceStore

log = logging.getLogger("projecthub.invitations")

PENDING = "PENDING"
ACCEPTED = "ACCEPTED"
DECLINED = "DECLINED"


def _is_expired(inv: Dict[str, Any], now: str) -> bool:
    return inv["expires_at"] <= now


class InvitationStore:

    def __init__(
        self,
        db: Database,
        access: AccessEvaluator,
        workspaces: WorkspaceStore,
        users: UserStore,
        notifications: NotificationStore,
        expiry_days: int = 7,
    ) -> None:
        self._db = db
        self._access = access
        self._workspaces = workspaces
        self._users = users
        self._notifications = notifications
        self._expiry_days = expiry_days

    def _load(self, conn: sqlite3.Connection, invitation_id: str) -> Dict[str, Any]:
        row = conn.execute(
            "SELECT * FROM workspace_invitations WHERE id = ?", (invitation_id,)
        ).fetchone()
        if row is None:
            raise NotFound("Invitation not found")
        return dict(row)

    def _workspace_summary(self, conn: sqlite3.Connection, workspace_id: str) -> Dict[str, Any]:
        row = conn.execute(
            "SELECT id, name, description FROM workspaces WHERE id = ?", (workspace_id,)
        ).fetchone()
        return dict(row) if row else {"id": workspace_id, "name": "", "description": None}

    # --- Create ---

    def create_invitation(
        self,
        workspace_id: str,
        inviter_id: str,
        email: Any,
        role: Any = MEMBER,
    ) -> Dict[str, Any]:
        with self._db.transaction() as conn:
            inviter_role = self._access.require_role(
                inviter_id, workspace_id, MANAGER_ROLES, conn=conn,
                message="Only owners and admins can invite members",
            )
            email = normalize_email(email)
            role = normalize_role(role or MEMBER)
            if role == OWNER and inviter_role != OWNER:
                raise AuthorizationDenied("Only an owner can invite another owner")

            invitee = self._users.get_by_email(email, conn=conn)
            if invitee and self._access.role_of(invitee.user_id, workspace_id, conn=conn):
                raise StateConflict("User is already a member of this workspace")

            created = utcnow()
            now = to_iso(created)
            pending = conn.execute(
                """SELECT id, expires_at FROM workspace_invitations
                   WHERE workspace_id = ? AND email = ? AND status = 'PENDING'""",
                (workspace_id, email),
            ).fetchone()
            if pending is not None:
                if not _is_expired(dict(pending), now):
                    raise StateConflict("An invitation is already pending for this email")
                conn.execute("DELETE FROM workspace_invitations WHERE id = ?", (pending["id"],))

            inv_id = new_id()
            expires = to_iso(created + timedelta(days=self._expiry_days))
            conn.execute(
                """INSERT INTO workspace_invitations
                   (id, workspace_id, email, role, inviter_id, status, created_at, expires_at)
                   VALUES (?, ?, ?, ?, ?, 'PENDING', ?, ?)""",
                (inv_id, workspace_id, email, role, inviter_id, now, expires),
            )
            self._workspaces.log_activity(
                workspace_id, inviter_id, "invitation_sent",
                {"email": email, "role": role}, conn=conn,
            )
            if invitee is not None:
                ws = self._workspace_summary(conn, workspace_id)
                self._notifications.create(
                    invitee.user_id, WORKSPACE_INVITE,
                    "Workspace invitation",
                    f"You have been invited to join {ws['name']}",
                    link="/invitations", conn=conn,
                )
            inv = self._load(conn, inv_id)
        log.info("Invitation %s created for %s in workspace %s (%s)", inv_id, email, workspace_id, role)
        return inv

    # --- Listing ---

    def list_pending_for_user(self, email: str) -> List[Dict[str, Any]]:
        """Active invitations addressed to ``email``, newest first."""
        email = (email or "").strip().lower()
        rows = self._db.fetch_all(
            """SELECT i.*, w.name AS workspace_name, w.description AS workspace_description,
                      u.name AS inviter_name, u.email AS inviter_email
               FROM workspace_invitations i
               JOIN workspaces w ON w.id = i.workspace_id
               LEFT JOIN users u ON u.id = i.inviter_id
               WHERE i.email = ? AND i.status = 'PENDING' AND i.expires_at > ?
               ORDER BY i.created_at DESC, i.rowid DESC""",
            (email, now_iso()),
        )
        return [
            {
                "id": r["id"],
                "email": r["email"],
                "role": r["role"],
                "status": r["status"],
                "created_at": r["created_at"],
                "expires_at": r["expires_at"],
                "workspace": {
                    "id": r["workspace_id"],
                    "name": r["workspace_name"],
                    "description": r["workspace_description"],
                },
                "inviter": {
                    "id": r["inviter_id"],
                    "name": r["inviter_name"] or "",
                    "email": r["inviter_email"] or "",
                },
            }
            for r in rows
        ]

    def list_pending_for_workspace(self, workspace_id: str, requester_id: str) -> List[Dict[str, Any]]:
        """Pending invitations of a workspace; expired ones are flagged, not hidden."""
        now = now_iso()
        with self._db.connect() as conn:
            self._access.require_role(
                requester_id, workspace_id, MANAGER_ROLES, conn=conn,
                message="Only owners and admins can view invitations",
            )
            rows = conn.execute(
                """SELECT i.*, u.name AS inviter_name, u.email AS inviter_email
                   FROM workspace_invitations i
                   LEFT JOIN users u ON u.id = i.inviter_id
                   WHERE i.workspace_id = ? AND i.status = 'PENDING'
                   ORDER BY i.created_at DESC, i.rowid DESC""",
                (workspace_id,),
            ).fetchall()
        return [
            {
                "id": r["id"],
                "email": r["email"],
                "role": r["role"],
                "invited_at": r["created_at"],
                "expires_at": r["expires_at"],
                "expired": _is_expired(dict(r), now),
                "invited_by": {
                    "id": r["inviter_id"],
                    "name": r["inviter_name"] or "",
                    "email": r["inviter_email"] or "",
                },
            }
            for r in rows
        ]

    # --- Respond ---

    def _guard_response(self, conn: sqlite3.Connection, invitation_id: str, user_id: str) -> Dict[str, Any]:
        inv = self._load(conn, invitation_id)
        user = conn.execute("SELECT email FROM users WHERE id = ?", (user_id,)).fetchone()
        if user is None:
            raise AuthenticationRequired()
        if (user["email"] or "").strip().lower() != inv["email"]:
            raise AuthorizationDenied("This invitation is not for you")
        if inv["status"] != PENDING:
            raise StateConflict(f"Invitation has already been {inv['status'].lower()}")
        if _is_expired(inv, now_iso()):
            raise StateConflict("Invitation has expired")
        return inv

    def _transition(self, conn: sqlite3.Connection, invitation_id: str, status: str) -> None:
        cursor = conn.execute(
            """UPDATE workspace_invitations SET status = ?, responded_at = ?
               WHERE id = ? AND status = 'PENDING'""",
            (status, now_iso(), invitation_id),
        )
        if cursor.rowcount == 0:
            log.warning("Invitation %s changed state concurrently", invitation_id)
            raise StateConflict("Invitation is no longer pending")

    def accept(self, invitation_id: str, user_id: str) -> Dict[str, Any]:
        """Join the workspace at the invited role; an existing member keeps their role."""
        with self._db.transaction() as conn:
            inv = self._guard_response(conn, invitation_id, user_id)
            self._transition(conn, invitation_id, ACCEPTED)
            member = self._workspaces.add_member(
                inv["workspace_id"], user_id, inv["role"], conn=conn, overwrite=False,
            )
            self._workspaces.log_activity(
                inv["workspace_id"], user_id, "member_added",
                {"role": member["role"], "invitation_id": invitation_id}, conn=conn,
            )
            ws = self._workspace_summary(conn, inv["workspace_id"])
            self._notifications.create(
                user_id, WORKSPACE_INVITE,
                "Welcome to the team!",
                f"You have successfully joined {ws['name']}",
                link=f"/workspaces/{ws['id']}", conn=conn,
            )
        log.info("Invitation %s accepted by %s", invitation_id, inv["email"])
        return {"member": member, "workspace": ws}

    def decline(self, invitation_id: str, user_id: str) -> Dict[str, Any]:
        with self._db.transaction() as conn:
            inv = self._guard_response(conn, invitation_id, user_id)
            self._transition(conn, invitation_id, DECLINED)
            self._workspaces.log_activity(
                inv["workspace_id"], user_id, "invitation_declined",
                {"email": inv["email"]}, conn=conn,
            )
            inv = self._load(conn, invitation_id)
        log.info("Invitation %s declined by %s", invitation_id, inv["email"])
        return inv

    def cancel(self, workspace_id: str, invitation_id: str, requester_id: str) -> bool:
        with self._db.transaction() as conn:
            self._access.require_role(
                requester_id, workspace_id, MANAGER_ROLES, conn=conn,
                message="Only owners and admins can cancel invitations",
            )
            row = conn.execute(
                "SELECT * FROM workspace_invitations WHERE id = ? AND workspace_id = ?",
                (invitation_id, workspace_id),
            ).fetchone()
            if row is None:
                raise NotFound("Invitation not found")
            if row["status"] != PENDING:
                raise StateConflict("Only pending invitations can be cancelled")
            cursor = conn.execute(
                "DELETE FROM workspace_invitations WHERE id = ? AND status = 'PENDING'",
                (invitation_id,),
            )
            if cursor.rowcount == 0:
                log.warning("Invitation %s changed state concurrently", invitation_id)
                raise StateConflict("Invitation is no longer pending")
            self._workspaces.log_activity(
                workspace_id, requester_id, "invitation_cancelled",
                {"email": row["email"]}, conn=conn,
            )
        log.info("Invitation %s cancelled in workspace %s", invitation_id, workspace_id)
        return True

    def get_invitation(self, invitation_id: str) -> Optional[Dict[str, Any]]:
        return self._db.fetch_one(
            "SELECT * FROM workspace_invitations WHERE id = ?", (invitation_id,)
        )
