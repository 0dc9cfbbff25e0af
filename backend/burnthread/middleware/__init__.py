# Burnthread Middleware
from burnthread.middleware.security import SecurityMiddleware
from burnthread.middleware.rate_limit import RateLimiter, rate_limiter

__all__ = ["SecurityMiddleware", "RateLimiter", "rate_limiter"]
