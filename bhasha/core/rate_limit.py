"""
core/rate_limit.py
Process-wide request limiter (slowapi), keyed by client address.
The default limit applies to every route not marked @limiter.exempt.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from bhasha.core.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT],
    enabled=settings.RATE_LIMIT_ENABLED,
)

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."
