"""Global rate limiter instance for SlowAPI."""

from slowapi import Limiter
from slowapi.util import get_remote_address
from common.core.config import settings

# Default limits apply per client address to every route; credit spend and
# checkout add stricter per-route limits on top
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=settings.rate_limit_defaults,
    storage_uri=settings.rate_limit_storage_uri or settings.redis_connection_url,
    enabled=settings.rate_limit_enabled,
)
