"""
Rate limiting with slowapi.

The limiter lives here rather than in ``main`` so routers can decorate
endpoints without importing the application module.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from bookstore.core.config import get_settings


def auth_rate_limit() -> str:
    return get_settings().auth_rate_limit


limiter = Limiter(
    key_func=get_remote_address,
    enabled=get_settings().rate_limit_enabled,
)
