"""
core/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (to mount as middleware) and by the sign-in routes in
api/routes/v1/auth.py and web/routes.py (to apply @limiter.limit()). It lives
in core/ so both layers can share it without importing each other.

A single shared instance means all routes share one in-memory counter store.
Separate instances per module would each count in isolation.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_limit() -> str:
    """Per-client-IP limit for password sign-in and sign-up (LOGIN_RATE_LIMIT)."""
    return get_settings().login_rate_limit
