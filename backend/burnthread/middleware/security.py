"""
Security middleware for request filtering
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from burnthread.config import settings
from burnthread.middleware.rate_limit import rate_limiter
from burnthread.logging_config import log_rate_limited
from burnthread.utils.network import get_client_ip


class SecurityMiddleware(BaseHTTPMiddleware):
    """
    Middleware that runs before route handlers
    - Applies per-IP rate limiting
    - Adds security headers
    """

    # Paths that skip rate limiting
    BYPASS_PATHS = {"/health", "/health/store", "/health/ready"}

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path in self.BYPASS_PATHS:
            response = await call_next(request)
            return self._add_security_headers(response)

        client_ip = get_client_ip(request)

        if not rate_limiter.is_allowed(client_ip):
            log_rate_limited(client_ip)
            return self._add_security_headers(JSONResponse(
                status_code=429,
                content={"success": False, "error": "Too many requests"}
            ))

        response = await call_next(request)
        return self._add_security_headers(response)

    def _add_security_headers(self, response: Response) -> Response:
        """Add security headers to response"""
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
        response.headers["Pragma"] = "no-cache"
        response.headers["Content-Security-Policy"] = "default-src 'self'; frame-ancestors 'none'"
        response.headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=()"
        if settings.HSTS_ENABLED:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains; preload"
            )
        return response
