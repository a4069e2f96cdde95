"""Rate limiting middleware.

Extracts the caller identity from each request, asks the decision engine
whether to admit it, and answers 429 with a fixed JSON body on rejection.
"""

from typing import Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from reqthrottle.app.core.logging import get_log_context, get_logger
from reqthrottle.app.limiter import RateLimiter

logger = get_logger(__name__)

RATE_LIMIT_MESSAGE = (
    "you have reached the maximum number of requests or actions "
    "allowed within a certain time frame"
)

FORWARDED_FOR_HEADER = "X-Forwarded-For"
API_KEY_HEADER = "API_KEY"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce rate limits on requests.

    Rate limits are applied per API key if one is sent, otherwise per
    client address. The limiter is taken from the constructor or, when not
    given, from ``request.app.state.rate_limiter`` (set up in the lifespan).
    """

    def __init__(self, app, limiter: Optional[RateLimiter] = None):
        super().__init__(app)
        self.limiter = limiter

    @staticmethod
    def get_client_address(request: Request) -> str:
        """Get the caller address.

        X-Forwarded-For replaces the transport address wholesale; the proxy
        chain is not parsed.
        """
        forwarded = request.headers.get(FORWARDED_FOR_HEADER)
        if forwarded:
            return forwarded
        return request.client.host if request.client else ""

    @staticmethod
    def get_api_key(request: Request) -> str:
        """Get the caller access token verbatim (empty if absent)."""
        return request.headers.get(API_KEY_HEADER, "")

    def _get_limiter(self, request: Request) -> RateLimiter:
        if self.limiter is not None:
            return self.limiter
        return request.app.state.rate_limiter

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        address = self.get_client_address(request)
        token = self.get_api_key(request)

        decision = await self._get_limiter(request).decide(address, token)

        if not decision.allowed:
            logger.debug(
                "Request rejected by rate limiter",
                extra=get_log_context(
                    reason=decision.reason.value if decision.reason else None,
                    path=request.url.path,
                    method=request.method,
                    status_code=429,
                ),
            )
            return JSONResponse(status_code=429, content={"error": RATE_LIMIT_MESSAGE})

        return await call_next(request)
