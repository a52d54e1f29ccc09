"""FastAPI application factory for kubetopo.

Usage::

    from kubetopo.api.app import create_app

    app = create_app(cluster=reader, config=config)

The factory is used by both the production bootstrap (``kubetopo.app``)
and unit tests, which pass an in-memory cluster reader.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from kubetopo.api.routes import router
from kubetopo.api.schemas import ErrorResponse
from kubetopo.errors import ClusterAccessError, InvalidTargetError, StartObjectNotFoundError
from kubetopo.models.config import KubeTopoConfig

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail).model_dump(),
    )


def create_app(cluster: Any, config: KubeTopoConfig | None = None) -> FastAPI:
    """Create and configure the kubetopo FastAPI application.

    Args:
        cluster: ClusterReader used by every query.
        config:  KubeTopoConfig; defaults apply when omitted.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from kubetopo import __version__

    app = FastAPI(
        title="kubetopo",
        summary="Kubernetes traffic-flow and impact analysis API",
        version=__version__,
        description=(
            "kubetopo answers two questions from live cluster state: how does "
            "traffic reach an object, and what breaks if it is deleted or changed."
        ),
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
    )

    app.state.cluster = cluster
    app.state.config = config or KubeTopoConfig()

    app.include_router(router, prefix=_API_PREFIX)
    app.mount("/metrics", make_asgi_app())

    # -----------------------------------------------------------------------
    # Exception handlers
    # -----------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Map Pydantic validation errors to the error envelope."""
        errors = exc.errors()
        first_field = ""
        first_msg = ""
        if errors:
            locs = errors[0].get("loc", ())
            first_field = str(locs[-1]) if locs else ""
            first_msg = str(errors[0].get("msg", ""))

        error_code = "INVALID_ACTION" if first_field == "action" else "INVALID_TARGET"
        detail = f"{first_field}: {first_msg}" if first_field else first_msg
        return _error(400, error_code, detail)

    @app.exception_handler(InvalidTargetError)
    async def invalid_target_handler(_request: Request, exc: InvalidTargetError) -> JSONResponse:
        return _error(400, exc.code, str(exc))

    @app.exception_handler(StartObjectNotFoundError)
    async def not_found_handler(_request: Request, exc: StartObjectNotFoundError) -> JSONResponse:
        return _error(404, "START_OBJECT_NOT_FOUND", str(exc))

    @app.exception_handler(ClusterAccessError)
    async def cluster_access_handler(request: Request, exc: ClusterAccessError) -> JSONResponse:
        _log.warning(
            "cluster_access_failed",
            path=str(request.url.path),
            status=exc.status,
            error=str(exc),
        )
        return _error(502, "CLUSTER_ACCESS_FAILED", str(exc))

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; stack traces are never exposed."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return _error(500, "INTERNAL_ERROR", "An unexpected error occurred.")

    return app
