"""
FastAPI application entry point for the events backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from events_backend.config import get_settings
from events_backend.errors import (
    EventNotFoundError,
    EventValidationError,
    NotAuthorizedError,
)
from events_backend.routes import health_router, router

logger = logging.getLogger(__name__)


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


async def _not_found(request: Request, exc: EventNotFoundError) -> JSONResponse:
    return _message(404, "Event not found")


async def _not_authorized(request: Request, exc: NotAuthorizedError) -> JSONResponse:
    return _message(401, "Not authorized")


async def _server_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Request failed: %s %s", request.method, request.url.path, exc_info=exc
    )
    return _message(500, "Server error")


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(
        title="Events Backend (FastAPI)",
        version=settings.version,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(EventNotFoundError, _not_found)
    app.add_exception_handler(NotAuthorizedError, _not_authorized)
    # Everything else, request validation included, is a generic server fault.
    app.add_exception_handler(EventValidationError, _server_error)
    app.add_exception_handler(RequestValidationError, _server_error)
    app.add_exception_handler(Exception, _server_error)

    app.include_router(health_router)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
