"""
api/limiter.py -- The one slowapi Limiter shared by every route module.

api/main.py mounts it as middleware; api/routes/v1/auth.py and
api/routes/v1/jobs.py attach per-route limits with @limiter.limit().

Counters are keyed by client address and kept in process memory, so each
worker process enforces its own budget. A second Limiter instance would keep
a separate counter store and its limits would never be seen by the middleware.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_rate_limit() -> str:
    """Limit string for POST /login, resolved per request from Settings."""
    return get_settings().login_rate_limit
