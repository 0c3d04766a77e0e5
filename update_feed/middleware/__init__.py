"""Middleware module for the update feed service."""

from update_feed.middleware.rate_limit import RateLimiter, get_rate_limiter
from update_feed.middleware.rate_limit_cleanup import rate_limit_cleanup_loop
from update_feed.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "RateLimiter",
    "SecurityHeadersMiddleware",
    "get_rate_limiter",
    "rate_limit_cleanup_loop",
]
