"""
FastAPI Application Entry Point

``asgi_app`` is what the server runs: the Socket.IO server (``/chat`` and
``/notifications`` namespaces) in front of the FastAPI HTTP application.
"""

from contextlib import asynccontextmanager
from typing import Optional

import socketio
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException

from app.api.v1.router import api_router
from app.context import AppContext, build_context
from app.core.config import Settings, get_settings
from app.core.errors import (
    AppError,
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from app.core.logging import RequestIDMiddleware, get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    context: AppContext = app.state.context
    setup_logging(context.settings.log_level)
    logger.info(
        f"Starting ({context.settings.env}); push "
        f"{'enabled' if context.push.is_enabled else 'disabled'}"
    )

    yield

    # Shutdown
    await context.aclose()


def create_app(settings: Optional[Settings] = None, context: Optional[AppContext] = None) -> FastAPI:
    settings = settings or (context.settings if context else get_settings())
    context = context or build_context(settings)

    app = FastAPI(
        title="Marketplace Chat Backend",
        description="Marketplace chat and real-time notification service",
        version="0.1.0",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        lifespan=lifespan,
    )
    app.state.context = context

    # Middleware
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_credentials,
        allow_methods=settings.cors_methods,
        allow_headers=settings.cors_headers,
    )

    # Routes
    app.include_router(api_router, prefix=settings.api_prefix)

    # Exception Handlers
    app.add_exception_handler(AppError, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    return app


def create_asgi_app(app: FastAPI) -> socketio.ASGIApp:
    context: AppContext = app.state.context
    return socketio.ASGIApp(
        context.sio,
        other_asgi_app=app,
        socketio_path=context.settings.socketio_path,
    )


app = create_app()
asgi_app = create_asgi_app(app)
