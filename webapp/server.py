from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.db.engine import Database
from backend.settings import APP_NAME, APP_VERSION, Settings
from backend.settings_store import get_db_path, load_settings

from webapp.auth.access import AccessEvaluator
from webapp.auth.invitation_store import InvitationStore
from webapp.auth.notification_store import NotificationStore
from webapp.auth.session_store import SessionStore
from webapp.auth.user_store import UserStore
from webapp.auth.workspace_store import WorkspaceStore
from webapp.errors import AppError
from webapp.routers import auth as auth_router
from webapp.routers import invitations as invitations_router
from webapp.routers import notifications as notifications_router
from webapp.routers import workspaces as workspaces_router

log = logging.getLogger("projecthub.http")

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Attach one stream handler to the ``projecthub`` logger tree."""
    root = logging.getLogger("projecthub")
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if not any(getattr(h, "_projecthub", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        handler._projecthub = True  # type: ignore[attr-defined]
        root.addHandler(handler)


def _session_token(request: Request) -> Optional[str]:
    token = request.cookies.get(SessionStore.COOKIE_NAME)
    if token:
        return token
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return None


def create_app(settings: Optional[Settings] = None, db: Optional[Database] = None) -> FastAPI:
    """Build the application; the process entry point owns the Database."""
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    if db is None:
        db = Database(get_db_path())
    db.init()

    app = FastAPI(title=APP_NAME, version=APP_VERSION)

    access = AccessEvaluator(db)
    users = UserStore(db, password_min_length=settings.password_min_length)
    notifications = NotificationStore(db)
    workspaces = WorkspaceStore(db, access)

    app.state.settings = settings
    app.state.db = db
    app.state.access = access
    app.state.users = users
    app.state.sessions = SessionStore(db)
    app.state.notifications = notifications
    app.state.workspaces = workspaces
    app.state.invitations = InvitationStore(
        db, access, workspaces, users, notifications,
        expiry_days=settings.invitation_expiry_days,
    )

    @app.middleware("http")
    async def _auth_middleware(request: Request, call_next: Callable) -> Response:
        start = time.time()
        request.state.user = None
        request.state.session_token = None
        token = _session_token(request)
        if token:
            session = app.state.sessions.get_session(token)
            if session is not None:
                request.state.user = app.state.users.get_user(session["user_id"])
                request.state.session_token = token
        response = await call_next(request)
        log.debug(
            "%s %s -> %d (%.1f ms)",
            request.method, request.url.path, response.status_code,
            (time.time() - start) * 1000,
        )
        return response

    @app.exception_handler(AppError)
    async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        log.info("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
        return JSONResponse({"error": "Invalid request"}, status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            {"error": str(exc.detail)}, status_code=exc.status_code, headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        log.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    @app.get("/api/health")
    def health():
        return JSONResponse({"status": "ok", "version": APP_VERSION})

    app.include_router(auth_router.router)
    app.include_router(workspaces_router.router)
    app.include_router(invitations_router.router)
    app.include_router(notifications_router.router)

    return app
