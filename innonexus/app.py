"""
FastAPI application entry point for the incubator backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from innonexus.config import get_settings
from innonexus.dependencies import get_activity_store
from innonexus.errors import InnonexusError
from innonexus.routes import router
from innonexus.session import ActivityMiddleware

logger = logging.getLogger(__name__)


async def handle_innonexus_error(request: Request, exc: InnonexusError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code, content={"success": False, "message": exc.message}
    )


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:]) or "body"
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": f"Invalid input data: {field}: {first.get('msg', 'invalid value')}",
        },
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(
        status_code=500, content={"success": False, "message": "Internal server error"}
    )


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="InnoNexus Incubator API", version="0.1.0")
    app.add_middleware(ActivityMiddleware, get_activity_store=get_activity_store)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.app_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(InnonexusError, handle_innonexus_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
