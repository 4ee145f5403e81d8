from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from webapp.auth.access import OWNER
from webapp.auth.session_store import SessionStore
from webapp.errors import AuthenticationRequired, ValidationError

from .common import current_user, read_json

router = APIRouter(prefix="/api/auth", tags=["auth"])

log = logging.getLogger("projecthub.auth")


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else ""


def _present(*values) -> bool:
    """True when every value is a non-blank string."""
    return all(isinstance(v, str) and v.strip() for v in values)


def _with_session_cookie(request: Request, response: JSONResponse, user_id: str) -> JSONResponse:
    settings = request.app.state.settings
    token = request.app.state.sessions.create_session(
        user_id, timeout_hours=settings.session_timeout_hours, ip=_client_ip(request),
    )
    response.set_cookie(
        key=SessionStore.COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        max_age=settings.session_timeout_hours * 3600,
        path="/",
    )
    return response


@router.post("/register")
async def register(request: Request) -> JSONResponse:
    """Create an account together with its personal workspace."""
    state = request.app.state
    body = await read_json(request)
    name = body.get("name")
    email = body.get("email")
    password = body.get("password")
    if not _present(email, password, name):
        raise ValidationError("Email, password and name are required")

    with state.db.transaction() as conn:
        user = state.users.create_user(email, name, password, conn=conn)
        ws = state.workspaces.create_workspace(
            user.user_id, f"{user.name}'s Workspace", "Your personal workspace", conn=conn,
        )

    log.info("Registered %s from %s", user.email, _client_ip(request))
    response = JSONResponse(
        {
            "user": user.public(),
            "workspaces": [{"id": ws["id"], "name": ws["name"], "role": OWNER}],
        },
        status_code=201,
    )
    return _with_session_cookie(request, response, user.user_id)


@router.post("/login")
async def login(request: Request) -> JSONResponse:
    body = await read_json(request)
    email = body.get("email")
    password = body.get("password")
    if not _present(email, password):
        raise ValidationError("Email and password are required")
    email = email.strip()

    user = request.app.state.users.authenticate(email, password)
    if user is None:
        log.warning("Failed login for %s from %s", email.lower(), _client_ip(request))
        raise AuthenticationRequired("Invalid email or password")
    return _with_session_cookie(request, JSONResponse({"user": user.public()}), user.user_id)


@router.post("/logout")
async def logout(request: Request) -> JSONResponse:
    current_user(request)
    token = getattr(request.state, "session_token", None)
    if token:
        request.app.state.sessions.delete_session(token)
    response = JSONResponse({"success": True})
    response.delete_cookie(key=SessionStore.COOKIE_NAME, path="/")
    return response


@router.get("/me")
async def me(request: Request) -> JSONResponse:
    user = current_user(request)
    return JSONResponse({"user": user.public()})
