from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from .common import current_user

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("")
def list_notifications(request: Request, limit: int = 20, unread: bool = False):
    user = current_user(request)
    store = request.app.state.notifications
    items = store.list_for_user(user.user_id, limit=limit, unread_only=unread)
    return JSONResponse({
        "notifications": [n.to_dict() for n in items],
        "unread_count": store.unread_count(user.user_id),
    })


@router.get("/count")
def unread_count(request: Request):
    user = current_user(request)
    return JSONResponse({"count": request.app.state.notifications.unread_count(user.user_id)})


@router.post("/read-all")
def mark_all_read(request: Request):
    """Mark every unread notification of the current user as read."""
    user = current_user(request)
    updated = request.app.state.notifications.mark_all_read(user.user_id)
    return JSONResponse({"success": True, "updated": updated})


@router.post("/{notification_id}/read")
def mark_read(notification_id: str, request: Request):
    user = current_user(request)
    n = request.app.state.notifications.mark_read(notification_id, user.user_id)
    return JSONResponse(n.to_dict())
