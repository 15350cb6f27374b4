"""FastAPI application factory for fluxdoctor.

Usage::

    from fluxdoctor.api.app import create_app

    app = create_app(diagnostician=diagnostician, config=config)

Used by the production bootstrap (``fluxdoctor.app``) and by unit tests,
which pass a diagnostician built over in-memory stores.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from fluxdoctor.api.routes import router
from fluxdoctor.api.schemas import ErrorResponse
from fluxdoctor.observability.logging import get_logger

_log = get_logger("api.app")

_API_PREFIX = "/api/v1"


def create_app(diagnostician: Any, config: Any = None) -> FastAPI:
    """Create and configure the fluxdoctor FastAPI application.

    Args:
        diagnostician: FluxDiagnostician serving the diagnostic routes.
        config:        Optional FluxDoctorConfig, kept for route handlers.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from fluxdoctor import __version__

    app = FastAPI(
        title="fluxdoctor",
        summary="Read-only FluxCD diagnostics API",
        version=__version__,
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
    )

    app.state.diagnostician = diagnostician
    app.state.config = config

    app.include_router(router, prefix=_API_PREFIX)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Map pydantic validation errors to the error envelope."""
        errors = exc.errors()
        first_field = ""
        first_msg = ""
        if errors:
            locs = errors[0].get("loc", ())
            first_field = str(locs[-1]) if locs else ""
            first_msg = str(errors[0].get("msg", ""))

        error_code = "INVALID_KIND" if first_field == "kind" else "INVALID_RESOURCE_FORMAT"

        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error=error_code, detail=first_msg).model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                detail="An unexpected error occurred.",
            ).model_dump(),
        )

    return app
