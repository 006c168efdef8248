"""Rate limiter singleton, keyed by client address."""
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

# default_limits only apply under SlowAPIMiddleware; workflow endpoints opt in
# explicitly with @limiter.limit(settings.RATE_LIMIT_WORKFLOW)
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    enabled=settings.RATE_LIMIT_ENABLED,
)
