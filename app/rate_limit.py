"""Shared rate limiter (in-process memory storage).

Limits are per client address and per worker process. Auth endpoints
carry the stricter settings.rate_limit_auth limit.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
)
