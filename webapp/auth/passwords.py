from __future__ import annotations

import hashlib
import hmac
import os
import secrets


def _pbkdf2_hash(password: str, salt: bytes | None = None, iterations: int = 260_000) -> str:
    """PBKDF2-HMAC-SHA256 digest encoded as ``pbkdf2:<iterations>:<salt hex>:<hash hex>``."""
    if salt is None:
        salt = os.urandom(16)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, dklen=32)
    return f"pbkdf2:{iterations}:{salt.hex()}:{dk.hex()}"


def hash_password(password: str) -> str:
    """Stored form of a new account password, with a fresh random salt."""
    return _pbkdf2_hash(password)


def verify_password(password: str, stored_hash: str) -> bool:
    """True when ``password`` matches ``stored_hash``; malformed hashes never match."""
    parts = (stored_hash or "").split(":")
    if len(parts) != 4 or parts[0] != "pbkdf2":
        return False
    try:
        iterations = int(parts[1])
        salt = bytes.fromhex(parts[2])
    except ValueError:
        return False
    expected = _pbkdf2_hash(password, salt=salt, iterations=iterations)
    return hmac.compare_digest(expected, stored_hash)


def generate_token() -> str:
    """Random URL-safe token used as the session cookie value."""
    return secrets.token_urlsafe(32)


def validate_password_strength(password: str, min_length: int = 8) -> str | None:
    """Reason the password is too weak for registration, or None."""
    if len(password) < min_length:
        return f"Password must be at least {min_length} characters"
    if password.strip() == "":
        return "Password must not be blank"
    return None
