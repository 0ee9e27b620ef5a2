"""ASGI middleware for security headers."""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from xauth_link.config import is_production

# The status pages carry one inline <style> block and no scripts.
PAGE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": (
        "default-src 'none'; style-src 'unsafe-inline'; frame-ancestors 'none'; "
        "form-action 'none'; base-uri 'none'"
    ),
}

# OAuth legs redirect with codes and state in the query string.
NO_STORE_PREFIXES = ("/start", "/discord/callback", "/xauth/callback")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to every response.

    Link-flow redirects are marked ``no-store``. HSTS is only sent in
    production.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers.update(PAGE_HEADERS)

        if request.url.path.startswith(NO_STORE_PREFIXES):
            response.headers["Cache-Control"] = "no-store"

        if is_production():
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
