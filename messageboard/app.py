"""
FastAPI application entry point for the message board.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from messageboard.config import get_settings
from messageboard.db import StoreError
from messageboard.diagnostics import router as diagnostics_router
from messageboard.errors import ThreadNotFoundError
from messageboard.middleware import security_headers
from messageboard.routes import router

logger = logging.getLogger(__name__)


def _invalid_fields(exc: RequestValidationError) -> list[str]:
    fields = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query")]
        if loc and loc[-1] not in fields:
            fields.append(loc[-1])
    return fields


async def handle_validation_error(request: Request, exc: RequestValidationError):
    fields = _invalid_fields(exc)
    message = "missing or invalid fields"
    if fields:
        message = f"{message}: {', '.join(fields)}"
    return JSONResponse(status_code=400, content={"error": message, "fields": fields})


async def handle_thread_not_found(request: Request, exc: ThreadNotFoundError):
    return JSONResponse(status_code=404, content={"error": "thread not found"})


async def handle_store_error(request: Request, exc: StoreError):
    logger.error(
        "Record store failure on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(status_code=500, content={"error": "store unavailable"})


async def handle_http_error(request: Request, exc: StarletteHTTPException):
    # Unknown routes, and methods a route does not serve, answer in plain text.
    if exc.status_code in (404, 405):
        return PlainTextResponse("Not Found", status_code=404)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Message Board API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(security_headers)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(ThreadNotFoundError, handle_thread_not_found)
    app.add_exception_handler(StoreError, handle_store_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(diagnostics_router)
    return app


app = create_app()
