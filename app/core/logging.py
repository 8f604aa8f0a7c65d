"""
Logging configuration

Centralized console logging with per-request correlation ids.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

REQUEST_ID_HEADER = "X-Request-ID"

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")

_NOISY_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "aiosqlite",
    "engineio",
    "socketio",
    "httpx",
    "httpcore",
    "asyncio",
)


class RequestIDFilter(logging.Filter):
    """Attach the current request id to every record"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get()
        return True


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Set up and configure the application logger."""
    if level is None:
        from app.core.config import get_settings
        level = get_settings().log_level

    logger = logging.getLogger("app")
    logger.setLevel(level.upper())

    if not any(getattr(h, "_app_handler", False) for h in logger.handlers):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler._app_handler = True
        console_handler.addFilter(RequestIDFilter())
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] - %(message)s"
            )
        )
        logger.addHandler(console_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    if not name.startswith("app"):
        name = f"app.{name}"
    return logging.getLogger(name)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Propagate or generate an X-Request-ID for each HTTP request"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
