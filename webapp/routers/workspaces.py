"""API router for workspaces, their members, activity and invitations.

Prefix: /api/workspaces
"""
from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from webapp.auth.access import MEMBER
from webapp.errors import NotFound

from .common import current_user, read_json, text_field

router = APIRouter(prefix="/api/workspaces", tags=["workspaces"])


def _store(request: Request):
    return request.app.state.workspaces


# =====================================================================
# WORKSPACES
# =====================================================================

@router.get("")
def list_workspaces(request: Request):
    user = current_user(request)
    return JSONResponse(_store(request).list_workspaces(user.user_id))


@router.post("")
async def create_workspace(request: Request):
    user = current_user(request)
    body = await read_json(request)
    ws = _store(request).create_workspace(
        user.user_id,
        text_field(body, "name", ""),
        text_field(body, "description", ""),
    )
    ws["role"] = "OWNER"
    return JSONResponse(ws, status_code=201)


@router.get("/{workspace_id}")
def get_workspace(workspace_id: str, request: Request):
    user = current_user(request)
    return JSONResponse(_store(request).get_workspace_for(workspace_id, user.user_id))


@router.put("/{workspace_id}")
async def update_workspace(workspace_id: str, request: Request):
    user = current_user(request)
    body = await read_json(request)
    ws = _store(request).update_workspace(
        workspace_id,
        user.user_id,
        name=text_field(body, "name"),
        description=text_field(body, "description"),
    )
    return JSONResponse(ws)


@router.delete("/{workspace_id}")
def delete_workspace(workspace_id: str, request: Request):
    user = current_user(request)
    if not _store(request).delete_workspace(workspace_id, user.user_id):
        raise NotFound("Workspace not found")
    return JSONResponse({"success": True})


@router.get("/{workspace_id}/my-role")
def my_role(workspace_id: str, request: Request):
    user = current_user(request)
    role = request.app.state.access.role_of(user.user_id, workspace_id)
    if role is None:
        raise NotFound("Workspace not found")
    return JSONResponse({"workspace_id": workspace_id, "role": role})


@router.get("/{workspace_id}/activity")
def get_activity(workspace_id: str, request: Request, limit: int = 30):
    user = current_user(request)
    return JSONResponse(_store(request).get_activity(workspace_id, user.user_id, limit=limit))


# =====================================================================
# MEMBERS
# =====================================================================

@router.get("/{workspace_id}/members")
def list_members(workspace_id: str, request: Request):
    user = current_user(request)
    return JSONResponse(_store(request).list_members(workspace_id, user.user_id))


@router.put("/{workspace_id}/members/{user_id}")
async def change_member_role(workspace_id: str, user_id: str, request: Request):
    user = current_user(request)
    body = await read_json(request)
    member = _store(request).change_role(workspace_id, user.user_id, user_id, body.get("role"))
    return JSONResponse(member)


@router.delete("/{workspace_id}/members/{user_id}")
def remove_member(workspace_id: str, user_id: str, request: Request):
    user = current_user(request)
    _store(request).remove_member(workspace_id, user.user_id, user_id)
    return JSONResponse({"success": True})


@router.post("/{workspace_id}/leave")
def leave_workspace(workspace_id: str, request: Request):
    user = current_user(request)
    _store(request).leave_workspace(workspace_id, user.user_id)
    return JSONResponse({"message": "You have left the workspace"})


# =====================================================================
# INVITATIONS
# =====================================================================

@router.get("/{workspace_id}/invites")
def list_invites(workspace_id: str, request: Request):
    user = current_user(request)
    invites = request.app.state.invitations.list_pending_for_workspace(workspace_id, user.user_id)
    return JSONResponse(invites)


@router.post("/{workspace_id}/invites")
async def create_invite(workspace_id: str, request: Request):
    user = current_user(request)
    body = await read_json(request)
    inv = request.app.state.invitations.create_invitation(
        workspace_id, user.user_id, body.get("email"), body.get("role") or MEMBER,
    )
    return JSONResponse(inv, status_code=201)


@router.delete("/{workspace_id}/invites/{invite_id}")
def cancel_invite(workspace_id: str, invite_id: str, request: Request):
    user = current_user(request)
    request.app.state.invitations.cancel(workspace_id, invite_id, user.user_id)
    return JSONResponse({"success": True})
