from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Request

from webapp.auth.user_store import UserRecord
from webapp.errors import AuthenticationRequired, ValidationError


def current_user(request: Request) -> UserRecord:
    """User resolved by the session middleware, or 401."""
    user = getattr(request.state, "user", None)
    if user is None:
        raise AuthenticationRequired()
    return user


async def read_json(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Invalid JSON body")
    if not isinstance(body, dict):
        raise ValidationError("Invalid JSON body")
    return body


def text_field(body: Dict[str, Any], key: str, default: Optional[str] = None) -> Optional[str]:
    """String value of ``key``; ``default`` when absent or null, 400 for any other type."""
    value = body.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValidationError(f"Field '{key}' must be a string")
    return value
