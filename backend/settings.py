from __future__ import annotations
from dataclasses import dataclass

# ====== App identity (used by API metadata) ======
APP_NAME: str = "ProjectHub"
APP_VERSION: str = "1.2.0"

@dataclass
class Settings:
    # Session cookie lifetime (30 days)
    session_timeout_hours: int = 720
    cookie_secure: bool = False
    # Invitations: PENDING rows stop being actionable after this many days
    invitation_expiry_days: int = 7
    # Registration: minimum password length
    password_min_length: int = 8
    log_level: str = "INFO"
