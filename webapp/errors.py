"""Error taxonomy shared by the stores and the HTTP layer.

Stores raise these; ``webapp.server`` turns them into ``{"error": message}``
responses with the matching status code.
"""
from __future__ import annotations


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = "") -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationRequired(AppError):
    status_code = 401
    default_message = "Authentication required"


class AuthorizationDenied(AppError):
    status_code = 403
    default_message = "Insufficient permissions"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class StateConflict(AppError):
    status_code = 409
    default_message = "Conflict"
