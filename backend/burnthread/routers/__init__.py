# Burnthread API Routers
from burnthread.routers import health, threads, websocket

__all__ = ["health", "threads", "websocket"]
