"""Invitations addressed to the signed-in user.

Prefix: /api/invitations
"""
from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from .common import current_user

router = APIRouter(prefix="/api/invitations", tags=["invitations"])


@router.get("")
def my_invitations(request: Request):
    user = current_user(request)
    return JSONResponse(request.app.state.invitations.list_pending_for_user(user.email))


@router.post("/{invitation_id}/accept")
def accept_invitation(invitation_id: str, request: Request):
    user = current_user(request)
    result = request.app.state.invitations.accept(invitation_id, user.user_id)
    return JSONResponse({
        "message": "Invitation accepted successfully",
        "member": result["member"],
        "workspace": result["workspace"],
    })


@router.post("/{invitation_id}/decline")
def decline_invitation(invitation_id: str, request: Request):
    user = current_user(request)
    request.app.state.invitations.decline(invitation_id, user.user_id)
    return JSONResponse({"message": "Invitation declined successfully"})
