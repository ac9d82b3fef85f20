# app/utils/client_trust.py
"""
Detects requests coming from the first-party CarCard app.
Only the app may see blank tags (to start activation) or decode QR payloads.
"""

from typing import Optional

from fastapi import Header

from app.config import settings


def is_trusted_app(app_key: Optional[str], user_agent: Optional[str]) -> bool:
    if settings.APP_CLIENT_KEY:
        return app_key == settings.APP_CLIENT_KEY
    # No key configured (dev builds): fall back to the app's User-Agent marker
    marker = settings.APP_USER_AGENT_MARKER
    return bool(marker and user_agent and marker in user_agent)


def get_trusted_app(
    x_app_key: Optional[str] = Header(default=None),
    user_agent: Optional[str] = Header(default=None),
) -> bool:
    """FastAPI dependency: True when the caller is the CarCard app."""
    return is_trusted_app(x_app_key, user_agent)
