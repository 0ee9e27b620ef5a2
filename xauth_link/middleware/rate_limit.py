"""Starlette middleware that rate-limits the browser side of the link flow."""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from xauth_link.services.rate_limiter import InMemoryRateLimiter

LINK_FLOW_PREFIXES = ("/start", "/discord/callback", "/xauth/callback")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Apply per-IP rate limiting to the OAuth start and callback routes.

    The interactions webhook is not limited.
    """

    def __init__(self, app: ASGIApp, limiter: InMemoryRateLimiter) -> None:
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not request.url.path.startswith(LINK_FLOW_PREFIXES):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        if self.limiter.check(client_ip):
            return await call_next(request)

        retry_after = self.limiter.retry_after(client_ip)
        return JSONResponse(
            status_code=429,
            content={"detail": f"Too many link attempts. Try again in {retry_after} seconds."},
            headers={
                "Retry-After": str(retry_after),
                "X-RateLimit-Limit": str(self.limiter.max_requests),
                "X-RateLimit-Remaining": str(self.limiter.remaining(client_ip)),
            },
        )
