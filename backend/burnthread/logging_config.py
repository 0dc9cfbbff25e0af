"""
Logging configuration
Lifecycle events are logged but never include message content
"""

import logging
import sys
from typing import Set

from burnthread.config import settings


class ContentFilter(logging.Filter):
    """Filter that redacts anything resembling payload data"""

    SENSITIVE_KEYS: Set[str] = {
        "content",
        "ciphertext",
        "message=",
        "key",
        "secret",
    }

    def filter(self, record: logging.LogRecord) -> bool:
        if hasattr(record, "msg"):
            msg = str(record.msg).lower()
            for key in self.SENSITIVE_KEYS:
                if key in msg and "=" in str(record.msg):
                    # Likely contains a payload assignment
                    record.msg = "[REDACTED - Sensitive data filtered]"
                    record.args = None
                    break
        return True


def setup_logging():
    """Configure application logging"""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    handler.addFilter(ContentFilter())

    root = logging.getLogger()
    root.setLevel(settings.LOG_LEVEL.upper())

    # Clear existing handlers to avoid duplicates
    root.handlers = []
    root.addHandler(handler)

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)


lifecycle_logger = logging.getLogger("burnthread.lifecycle")
security_logger = logging.getLogger("burnthread.security")


def short_id(thread_id: str) -> str:
    """Thread ids double as invite capabilities; only log a prefix."""
    return f"{thread_id[:8]}..."


def log_thread_created(thread_id: str, timer_hours: int):
    lifecycle_logger.info(f"Thread {short_id(thread_id)} created ({timer_hours}h)")


def log_thread_deleted(thread_id: str, reason: str):
    lifecycle_logger.info(f"Thread {short_id(thread_id)} deleted: {reason}")


def log_store_fallback(backend: str, error_type: str):
    """Log switch from the durable store to the in-process store"""
    lifecycle_logger.warning(
        f"Store backend {backend} unavailable ({error_type}), using in-memory store"
    )


def log_rate_limited(ip: str):
    """Log rate limit event"""
    security_logger.warning(f"Rate limit exceeded for {ip}")
