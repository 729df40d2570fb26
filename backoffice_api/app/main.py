"""
Main entrypoint for the Back Office API.

This module assembles the FastAPI application, sets up logging,
registers the error handlers and includes versioned routers.  The
``create_app`` function builds and configures the app, which is then
instantiated at module import time as ``app``::

    uvicorn backoffice_api.app.main:app --reload

Every failure reaches the client as
``{"success": false, "message": ..., "code": ..., "details": ...}``.
Details of internal errors are only included when ``DEBUG`` is on.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .api.v1.router import router as v1_router
from .core.config import settings
from .core.db import init_db
from .core.errors import ErrorCode, ServiceError
from .core.logging_config import setup_logging

logger = logging.getLogger(__name__)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    body = exc.to_body()
    if exc.code is ErrorCode.INTERNAL_SERVER_ERROR and not settings.debug:
        body.pop("details", None)
    return JSONResponse(status_code=exc.http_status, content=body)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ServiceError.validation("Invalid request", {"errors": jsonable_encoder(exc.errors())})
    return JSONResponse(status_code=error.http_status, content=error.to_body())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    error = ServiceError.internal("Internal server error", {"error": str(exc)} if settings.debug else None)
    return JSONResponse(status_code=error.http_status, content=error.to_body())


def create_app() -> FastAPI:
    """Create and configure a FastAPI application.

    Returns
    -------
    FastAPI
        A configured FastAPI application instance.
    """
    # Logging first so that the modules below can log during setup.
    setup_logging(settings.log_level, settings.log_file, settings.log_format, settings.log_date_format)

    app = FastAPI(title=settings.project_name, version=settings.api_version)

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(v1_router, prefix="/api/v1")

    @app.on_event("startup")
    async def startup_event() -> None:
        # Creates the database file if needed and applies pending migrations.
        init_db()

    return app


app = create_app()
