"""Middleware package."""

from reqthrottle.app.middleware.rate_limit import RateLimitMiddleware
from reqthrottle.app.middleware.request_id import RequestIdMiddleware

__all__ = ["RateLimitMiddleware", "RequestIdMiddleware"]
